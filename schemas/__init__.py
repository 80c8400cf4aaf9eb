"""
schemas/__init__.py

JSON Schema definition and validation utilities for .buml documents.
Provides full-document validation, value-only validation for tolerant
loading, and record defaults derived from the schema.
"""

from __future__ import annotations

import copy
import json
import os
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

# Schema file paths
SCHEMA_DIR = os.path.dirname(os.path.abspath(__file__))
BUML_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "buml_schema.json")

# Cached schema and validators
_buml_schema: Optional[Dict] = None
_validators: Dict[str, Draft202012Validator] = {}


def get_buml_schema() -> Dict:
    """Load and return the .buml document schema."""
    global _buml_schema
    if _buml_schema is None:
        with open(BUML_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _buml_schema = json.load(f)
    return _buml_schema


def _get_validator(def_name: Optional[str] = None) -> Draft202012Validator:
    """Validator for the whole document, or for one ``$defs`` entry."""
    cache_key = def_name or ""
    if cache_key not in _validators:
        schema = get_buml_schema()
        if def_name is not None:
            defs = schema.get("$defs", {})
            schema = {
                "$schema": "https://json-schema.org/draft/2020-12/schema",
                "$defs": defs,
                **defs[def_name],
            }
        _validators[cache_key] = Draft202012Validator(schema)
    return _validators[cache_key]


def _format_errors(errors) -> List[str]:
    error_messages = []
    for error in errors:
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        error_messages.append(f"{path}: {error.message}")
    return error_messages


def validate_document(data: Dict) -> Tuple[bool, List[str]]:
    """
    Validate a whole .buml document against the schema.

    Args:
        data: The parsed JSON document

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = sorted(_get_validator().iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path])
    return not errors, _format_errors(errors)


_VALUE_VALIDATORS = frozenset({
    "pattern", "minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum",
    "enum", "type", "const", "minLength", "maxLength", "multipleOf",
    "minItems", "maxItems", "format",
})


def validate_document_values(data: Dict) -> Tuple[bool, List[str]]:
    """Validate only value constraints (pattern, range, enum, type).

    Skips structural constraints (``required``, ``additionalProperties``)
    so that missing optional sections in older files are not reported.

    Args:
        data: The parsed JSON document.

    Returns:
        Tuple of (is_valid, list_of_error_messages).
    """
    errors = [
        e for e in _get_validator().iter_errors(data)
        if e.validator in _VALUE_VALIDATORS
    ]
    errors.sort(key=lambda e: [str(p) for p in e.absolute_path])
    return not errors, _format_errors(errors)


def validate_record(def_name: str, record: Dict) -> Tuple[bool, List[str]]:
    """Validate a single record (``lifeline``, ``message``, ...) against its definition."""
    errors = list(_get_validator(def_name).iter_errors(record))
    return not errors, _format_errors(errors)


# -------------------------------------------------------------------------
# Schema -> defaults
# -------------------------------------------------------------------------

def _resolve_ref(ref: str, defs: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve ``$ref`` like ``#/$defs/colorHex`` to its definition."""
    parts = ref.split("/")
    if len(parts) == 3 and parts[0] == "#" and parts[1] == "$defs":
        return defs.get(parts[2], {})
    return {}


def _extract_defaults(schema_def: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    """Walk a schema definition and build ``{prop_name: default_value}``.

    Only properties that declare a ``default`` (inline, or on the ``$ref``
    target) are included; required fields without one are left for the
    record parser to reject.
    """
    result: Dict[str, Any] = {}
    for prop_name, prop_def in schema_def.get("properties", {}).items():
        if "default" in prop_def:
            result[prop_name] = prop_def["default"]
        elif "$ref" in prop_def:
            resolved = _resolve_ref(prop_def["$ref"], defs)
            if "default" in resolved:
                result[prop_name] = resolved["default"]
    return result


def build_defaults(def_name: str) -> Dict[str, Any]:
    """Default values for a ``$defs`` record type, e.g. ``build_defaults("group")``.

    Returns:
        A fresh dict; callers may mutate it.
    """
    schema = get_buml_schema()
    defs = schema.get("$defs", {})
    if def_name not in defs:
        raise KeyError(f"Unknown schema definition '{def_name}'")
    return copy.deepcopy(_extract_defaults(defs[def_name], defs))


def normalize_record(def_name: str, record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill missing optional fields of a record with schema defaults.
    Does not modify the original dictionary.

    Args:
        def_name: Record type in ``$defs`` (``lifeline``, ``message``, ...)
        record: A single record dictionary

    Returns:
        A new dictionary with defaults applied
    """
    result = build_defaults(def_name)
    result.update(record)
    return result
