"""Configuration loading and inheritance."""

from __future__ import annotations

from scaffoldx.configurations.loader import ConfigurationLoader, load_configuration, read_document
from scaffoldx.configurations.merge import (
    merge_configurations,
    merge_document,
    order_by_dependencies,
    validate_unique_ids,
)

__all__ = [
    "ConfigurationLoader",
    "load_configuration",
    "merge_configurations",
    "merge_document",
    "order_by_dependencies",
    "read_document",
    "validate_unique_ids",
]
