import requests
import logging
from typing import Optional
from dibreport.core.exceptions import ArtifactFetchError, ManifestError
from dibreport.core.interfaces import ArtifactSourceBase
from dibreport.plugins.sources.manifest import DATA_DIR, MANIFEST_FILE

logger = logging.getLogger(__name__)

class HttpArtifactSource(ArtifactSourceBase):
    """Reads report runs published on a web server (<base_url>/<run>/...)."""

    def __init__(self, base_url: str, timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, url: str) -> Optional[str]:
        logger.debug(f"Fetching {url}")
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise ArtifactFetchError(url, str(e)) from e
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ArtifactFetchError(url, f"HTTP {response.status_code}")
        return response.text

    def read_manifest(self, run: str) -> str:
        url = f"{self.base_url}/{run}/{MANIFEST_FILE}"
        try:
            text = self._get(url)
        except ArtifactFetchError as e:
            raise ManifestError(str(e)) from e
        if text is None:
            raise ManifestError(f"No manifest at {url}")
        return text

    def read_artifact(self, run: str, image: str, filename: str) -> Optional[str]:
        return self._get(f"{self.base_url}/{run}/{DATA_DIR}/{image}/{filename}")
