import logging
import os
from typing import List, Optional
from dibreport.core.exceptions import ArtifactFetchError, ManifestError
from dibreport.core.interfaces import ArtifactSourceBase
from dibreport.plugins.sources.manifest import DATA_DIR, MANIFEST_FILE

logger = logging.getLogger(__name__)

class FileArtifactSource(ArtifactSourceBase):
    """Reads report runs from a local directory (<root>/<run>/...)."""

    def __init__(self, root: str = "reports"):
        self.root = root

    def list_runs(self) -> List[str]:
        if not os.path.isdir(self.root):
            logger.warning(f"Report directory {self.root} does not exist")
            return []
        runs = [
            entry for entry in os.listdir(self.root)
            if os.path.isfile(os.path.join(self.root, entry, MANIFEST_FILE))
        ]
        # Run names are generation timestamps (YYYYmmddHHMMSS)
        return sorted(runs, reverse=True)

    def read_manifest(self, run: str) -> str:
        path = os.path.join(self.root, run, MANIFEST_FILE)
        try:
            with open(path, 'r') as f:
                return f.read()
        except OSError as e:
            raise ManifestError(f"Cannot read manifest {path}: {e}") from e

    def read_artifact(self, run: str, image: str, filename: str) -> Optional[str]:
        path = os.path.join(self.root, run, DATA_DIR, image, filename)
        if not os.path.exists(path):
            logger.debug(f"No {filename} for {image}")
            return None
        try:
            with open(path, 'r', encoding='utf-8', errors='replace') as f:
                return f.read()
        except OSError as e:
            raise ArtifactFetchError(path, str(e)) from e
