"""Load configuration files and resolve ``extends`` chains."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from scaffoldx.configurations.merge import merge_configurations, order_by_dependencies
from scaffoldx.errors import CircularDependencyError, ConfigFileNotFoundError, ConfigParseError
from scaffoldx.types import Configuration, ConfigurationDocument

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def parse_document_text(text: str, path: Path) -> Any:
    """Parse JSON, or YAML for ``.yaml``/``.yml`` files."""
    if path.suffix.lower() in YAML_SUFFIXES:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigParseError(str(path), str(exc)) from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(str(path), str(exc)) from exc


def read_document(path: Path) -> ConfigurationDocument:
    if not path.is_file():
        raise ConfigFileNotFoundError(str(path))
    data = parse_document_text(path.read_text(encoding="utf-8"), path)
    return ConfigurationDocument.from_dict(data, path=path)


class ConfigurationLoader:
    """Loads configurations with a per-path cache.

    Two caches are kept, both keyed by absolute path: parsed documents and
    merged results. ``clear_cache`` drops both so the next ``load`` re-reads
    from disk.
    """

    def __init__(self) -> None:
        self._documents: dict[Path, ConfigurationDocument] = {}
        self._merged: dict[Path, Configuration] = {}

    def clear_cache(self) -> None:
        self._documents.clear()
        self._merged.clear()

    async def load(self, path: str | Path) -> Configuration:
        resolved = Path(path).expanduser().resolve()
        cached = self._merged.get(resolved)
        if cached is not None:
            logger.debug("Using cached configuration %s", resolved)
            return cached

        documents = await self.load_in_order(resolved)
        merged = merge_configurations(documents)
        self._merged[resolved] = merged
        logger.info("Loaded %d task(s) from %s", len(merged.tasks), resolved)
        if len(merged.sources) > 1:
            logger.info("Extended from: %s", ", ".join(str(p) for p in merged.sources[:-1]))
        return merged

    async def load_in_order(self, path: str | Path) -> list[ConfigurationDocument]:
        """Every document reachable through ``extends``, ancestors first, unmerged."""
        collected: list[ConfigurationDocument] = []
        await self._collect(Path(path).expanduser().resolve(), set(), [], collected)
        return order_by_dependencies(collected)

    async def _collect(
        self,
        path: Path,
        visited: set[Path],
        visiting: list[Path],
        collected: list[ConfigurationDocument],
    ) -> None:
        if path in visiting:
            raise CircularDependencyError.for_extends((str(p) for p in visiting), str(path))
        if path in visited:
            return
        visiting.append(path)
        document = await self._document(path)
        for parent in document.extends:
            parent_path = Path(parent).expanduser()
            if not parent_path.is_absolute():
                parent_path = path.parent / parent_path
            await self._collect(parent_path.resolve(), visited, visiting, collected)
        visiting.pop()
        visited.add(path)
        collected.append(document)

    async def _document(self, path: Path) -> ConfigurationDocument:
        document = self._documents.get(path)
        if document is None:
            document = await asyncio.to_thread(read_document, path)
            self._documents[path] = document
        return document


async def load_configuration(path: str | Path, loader: ConfigurationLoader | None = None) -> Configuration:
    """Convenience wrapper around a fresh (or given) ConfigurationLoader."""
    return await (loader or ConfigurationLoader()).load(path)
