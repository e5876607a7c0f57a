"""Declarative schema validation for save records.

A schema is a plain mapping of field name to a constraint mapping::

    {
        "health": {"required": True, "type": "number", "min": 0},
        "stats": {"required": True, "object": True, "schema": STATS_SCHEMA},
        "equipment": {"required": True, "array": True, "items": ITEM_SCHEMA},
    }

Recognized constraint keys are ``required``, ``type``, ``array``, ``object``,
``schema``, ``items``, ``enum``, ``min`` and ``max``. Fields not declared in the
schema are ignored. :func:`validate` never stops at the first problem; it
walks the whole record and returns every violation with a dot-separated path.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence

Schema = Mapping[str, Mapping[str, Any]]


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def type_name(value: Any) -> str:
    """Return the schema type name describing ``value``."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def validate(record: Any, schema: Schema) -> ValidationResult:
    """Check ``record`` against ``schema`` and collect every violation."""
    errors: List[str] = []
    if not isinstance(record, Mapping):
        errors.append(f"Invalid type for record: expected object, got {type_name(record)}")
    else:
        _validate_mapping(record, schema, "", errors)
    return ValidationResult(is_valid=not errors, errors=errors)


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _validate_mapping(record: Mapping[str, Any], schema: Schema, path: str, errors: List[str]) -> None:
    for key, constraint in schema.items():
        _validate_field(record.get(key), constraint, _join(path, key), errors)


def _validate_field(value: Any, constraint: Mapping[str, Any], path: str, errors: List[str]) -> None:
    if value is None:
        # Absent and null are the same thing to the schema
        if constraint.get("required"):
            errors.append(f"Missing required field: {path}")
        return

    expected = constraint.get("type")
    if expected and type_name(value) != expected:
        errors.append(f"Invalid type for {path}: expected {expected}, got {type_name(value)}")
        return
    if constraint.get("array") and type_name(value) != "array":
        errors.append(f"Invalid type for {path}: expected array")
        return
    if constraint.get("object") and type_name(value) != "object":
        errors.append(f"Invalid type for {path}: expected object")
        return

    if "enum" in constraint and value not in constraint["enum"]:
        allowed = ", ".join(str(v) for v in constraint["enum"])
        errors.append(f"Invalid value for {path}: must be one of: {allowed}")
    if type_name(value) == "number":
        if "min" in constraint and value < constraint["min"]:
            errors.append(f"Invalid value for {path}: must be >= {constraint['min']}")
        if "max" in constraint and value > constraint["max"]:
            errors.append(f"Invalid value for {path}: must be <= {constraint['max']}")

    nested = constraint.get("schema")
    if nested and isinstance(value, Mapping):
        _validate_mapping(value, nested, path, errors)

    items = constraint.get("items")
    if items and isinstance(value, (list, tuple)):
        _validate_items(value, items, path, errors)


def _validate_items(values: Sequence[Any], items: Any, path: str, errors: List[str]) -> None:
    for index, item in enumerate(values):
        item_path = f"{path}[{index}]"
        if isinstance(items, str):
            if type_name(item) != items:
                errors.append(f"Invalid type for {item_path}: expected {items}, got {type_name(item)}")
        elif not isinstance(item, Mapping):
            errors.append(f"Invalid type for {item_path}: expected object, got {type_name(item)}")
        else:
            _validate_mapping(item, items, item_path, errors)

