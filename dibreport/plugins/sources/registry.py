"""Source registry for picking where report runs are read from."""
import logging
from typing import List
from dibreport.core.interfaces import ArtifactSourceBase
from dibreport.plugins.sources.filesystem import FileArtifactSource
from dibreport.plugins.sources.http import HttpArtifactSource

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Registry for managing available artifact sources."""

    _sources = {
        "file": FileArtifactSource,
        "http": HttpArtifactSource,
    }

    @classmethod
    def get_source(cls, kind: str, location: str) -> ArtifactSourceBase:
        """Instantiate the source registered under `kind`.

        Args:
            kind: Source name (e.g. 'file' or 'http')
            location: Report root directory or base URL

        Returns:
            The source instance

        Raises:
            ValueError: If an unknown source name is provided
        """
        kind_lower = kind.lower()
        if kind_lower not in cls._sources:
            raise ValueError(f"Unknown source: {kind}. Available: {', '.join(cls._sources.keys())}")
        logger.debug(f"Using {kind_lower} source at {location}")
        return cls._sources[kind_lower](location)

    @classmethod
    def available_sources(cls) -> List[str]:
        """Get list of available source names."""
        return list(cls._sources.keys())
