from abc import ABC, abstractmethod
from typing import List, Optional, Union
from pydantic import BaseModel

RawDocument = Union[str, bytes, dict]

class ParserBase(ABC):
    @abstractmethod
    def parse(self, document: RawDocument) -> BaseModel:
        """Turn a tool's raw output into a validated model."""
        pass

class ArtifactSourceBase(ABC):
    def list_runs(self) -> List[str]:
        """List available report runs, newest first. Sources that cannot enumerate runs return []."""
        return []

    @abstractmethod
    def read_manifest(self, run: str) -> str:
        """Return the raw manifest text listing the run's images."""
        pass

    @abstractmethod
    def read_artifact(self, run: str, image: str, filename: str) -> Optional[str]:
        """Return the artifact content, or None if the image has no such artifact."""
        pass
