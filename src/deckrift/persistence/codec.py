from __future__ import annotations

import json
from typing import Any, Dict, Mapping

from .errors import SaveParseError, SaveValidationError
from .models import SAVE_DATA_SCHEMA, SAVE_VERSION, SUPPORTED_VERSIONS
from .schema import validate

EXPORT_FIELDS = ("exportTimestamp", "exportVersion")


def encode_document(document: Mapping[str, Any]) -> str:
    """Encode a document (or any JSON-compatible record) to text.

    Values JSON cannot represent are reported as a validation failure.
    """
    try:
        return json.dumps(document, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SaveValidationError([f"Document is not JSON-serializable: {e}"]) from e


def decode_document(text: str) -> Dict[str, Any]:
    """Decode stored text into a mapping; anything else is a parse failure."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise SaveParseError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SaveParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def check_document(document: Any) -> Dict[str, Any]:
    """Validate a save document and its version; return it unchanged.

    Raises SaveValidationError carrying every schema violation.
    """
    result = validate(document, SAVE_DATA_SCHEMA)
    errors = list(result.errors)
    version = document.get("version") if isinstance(document, Mapping) else None
    if isinstance(version, str) and version not in SUPPORTED_VERSIONS:
        # Migration between versions is not handled here
        errors.append(f"Unsupported save version: {version} (expected {SAVE_VERSION})")
    if errors:
        raise SaveValidationError(errors)
    return document


def add_export_metadata(document: Mapping[str, Any], timestamp: int) -> Dict[str, Any]:
    exported = json.loads(encode_document(document))
    exported["exportTimestamp"] = timestamp
    exported["exportVersion"] = SAVE_VERSION
    return exported


def strip_export_metadata(document: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in document.items() if k not in EXPORT_FIELDS}
