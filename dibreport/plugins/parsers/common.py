import json
import logging
from typing import Any, Dict, Type
from pydantic import ValidationError
from dibreport.core.exceptions import MalformedDocument
from dibreport.core.interfaces import RawDocument

logger = logging.getLogger(__name__)


def load_json(document: RawDocument, error: Type[MalformedDocument]) -> Dict[str, Any]:
    """Decode a raw JSON document, accepting an already decoded mapping."""
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as e:
            raise error(None, f"not valid JSON ({e})")
    if not isinstance(document, dict):
        raise error(None, f"expected an object, got {type(document).__name__}")
    return document


def to_malformed(exc: ValidationError, error: Type[MalformedDocument]) -> MalformedDocument:
    """Report the first validation problem as a dotted field path."""
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or None
    return error(field, first["msg"])
