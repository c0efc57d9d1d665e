"""JSON Schema validation for dispute payloads.

Provides:
- A registry of the packaged schemas so $ref resolves across files
- One cached validator per network version
- Error reporting that separates missing required fields from other problems
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, List, Tuple

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from disputes.core import PACKAGE_ROOT, load_json

SCHEMAS_DIR = PACKAGE_ROOT / "schemas"
SCHEMA_BASE_URI = "https://schemas.p2p-disputes.org"


def dispute_schema_path(version: int, schemas_dir: Path = SCHEMAS_DIR) -> Path:
    return schemas_dir / f"dispute.v{version}.schema.json"


@lru_cache(maxsize=4)
def _schema_registry(schemas_dir: Path = SCHEMAS_DIR) -> Registry:
    """Build a registry for every packaged schema.

    This enables $ref resolution across the schema files.
    """
    resources = []
    for schema_path in sorted(schemas_dir.glob("*.schema.json")):
        schema = load_json(schema_path)
        if not isinstance(schema, dict):
            continue

        # Use $id from schema, or derive from filename
        schema_id = schema.get("$id") or f"{SCHEMA_BASE_URI}/{schema_path.name}"
        resource = Resource.from_contents(schema, default_specification=DRAFT202012)
        resources.append((schema_id, resource))

    return Registry().with_resources(resources)


@lru_cache(maxsize=8)
def schema_validator(version: int, schemas_dir: Path = SCHEMAS_DIR) -> Draft202012Validator:
    """Validator for the dispute schema of a network version.

    Raises FileNotFoundError when no schema exists for that version.
    """
    schema = load_json(dispute_schema_path(version, schemas_dir))
    return Draft202012Validator(schema, registry=_schema_registry(schemas_dir))


def required_fields(version: int, schemas_dir: Path = SCHEMAS_DIR) -> Tuple[str, ...]:
    """Top-level fields a payload of this version must carry."""
    return tuple(schema_validator(version, schemas_dir).schema.get("required", ()))


def _format_error(error: ValidationError) -> str:
    return f"{error.json_path}: {error.message}"


def validate_dispute_payload(
    obj: Any,
    version: int,
    schemas_dir: Path = SCHEMAS_DIR,
) -> Tuple[List[str], List[str]]:
    """Validate a decoded payload against its version's schema.

    Returns:
        Tuple of (missing required field paths, other error messages).
        Both empty means the payload is valid.
    """
    validator = schema_validator(version, schemas_dir)
    missing: List[str] = []
    errors: List[str] = []
    for error in sorted(validator.iter_errors(obj), key=lambda e: e.json_path):
        if error.validator == "required":
            instance = error.instance if isinstance(error.instance, dict) else {}
            for name in error.validator_value:
                if name not in instance:
                    missing.append(f"{error.json_path}.{name}")
        else:
            errors.append(_format_error(error))
    return missing, errors
