"""JSON-Schema validation of configuration documents using the packaged schema."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import cache
from importlib.resources import files
from pathlib import Path
from typing import Any

from jsonschema.validators import Draft202012Validator

from scaffoldx.configurations.loader import parse_document_text
from scaffoldx.errors import ConfigParseError

SCHEMA_PACKAGE = "scaffoldx.schemas"
CONFIGURATION_SCHEMA = "configuration.schema.json"


@dataclass(frozen=True)
class SchemaResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


@cache
def configuration_schema() -> dict[str, Any]:
    """Load the configuration schema from package data (never from the working directory)."""
    text = files(SCHEMA_PACKAGE).joinpath(CONFIGURATION_SCHEMA).read_text(encoding="utf-8")
    return json.loads(text)


def validate_document(data: Any) -> list[str]:
    validator = Draft202012Validator(configuration_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    return [
        f"{'.'.join(str(p) for p in e.absolute_path)}: {e.message}" if e.absolute_path else e.message
        for e in errors
    ]


def validate_file(path: Path) -> SchemaResult:
    """Validate one configuration file. Parent documents are not followed."""
    if not path.is_file():
        return SchemaResult(False, [f"Configuration file not found: {path}"])
    try:
        data = parse_document_text(path.read_text(encoding="utf-8"), path)
    except ConfigParseError as exc:
        return SchemaResult(False, [str(exc)])
    errors = validate_document(data)
    return SchemaResult(not errors, errors)
