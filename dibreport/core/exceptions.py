"""
Exception hierarchy for dibreport.

Parsers raise the Malformed* errors; the loader catches them per artifact
so that one bad document never stops the rest of a report from loading.
"""
from typing import Optional


class DibReportException(Exception):
    """Base exception for all dibreport errors."""
    pass


class MalformedDocument(DibReportException):
    """A tool document is missing a required field or has the wrong shape."""

    kind = "document"

    def __init__(self, field: Optional[str], reason: str):
        """
        Args:
            field: Dotted path of the offending field, None when the whole
                document is unusable (e.g. not JSON)
            reason: What was wrong with it
        """
        self.field = field
        self.reason = reason
        if field:
            super().__init__(f"Malformed {self.kind}: {field}: {reason}")
        else:
            super().__init__(f"Malformed {self.kind}: {reason}")


class MalformedScanDocument(MalformedDocument):
    kind = "scan document"


class MalformedTestDocument(MalformedDocument):
    kind = "test document"


class ManifestError(DibReportException):
    """The image manifest of a report run could not be read."""
    pass


class ArtifactFetchError(DibReportException):
    """An artifact exists but could not be retrieved."""

    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"Failed to fetch {location}: {reason}")
