"""Persisted record of a completed scaffolding run."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from scaffoldx.errors import ScaffoldxError
from scaffoldx.tasks.base import atomic_write

logger = logging.getLogger(__name__)

STATE_FILENAME = ".scaffoldx-initialized"
REASON_STATE_INVALID = "STATE_INVALID"


@dataclass(frozen=True)
class InitState:
    initialized_at: str
    config: str
    completed_tasks: tuple[str, ...] = field(default_factory=tuple)
    version: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InitState:
        return cls(
            initialized_at=str(data.get("initializedAt", "")),
            config=str(data.get("config", "")),
            completed_tasks=tuple(str(item) for item in data.get("completedTasks") or []),
            version=str(data.get("version", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "initializedAt": self.initialized_at,
            "config": self.config,
            "completedTasks": list(self.completed_tasks),
            "version": self.version,
        }


def state_path(root: Path) -> Path:
    return root / STATE_FILENAME


def load_state(root: Path) -> InitState | None:
    """Read the state record under ``root``; None when the project was never initialised."""
    path = state_path(root)
    if not path.exists():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ScaffoldxError(f"{STATE_FILENAME} parse error: {exc}", REASON_STATE_INVALID) from exc
    if not isinstance(raw, dict):
        raise ScaffoldxError(f"{STATE_FILENAME} must contain a JSON object", REASON_STATE_INVALID)
    return InitState.from_dict(raw)


def save_state(
    root: Path,
    config: str,
    completed_tasks: list[str],
    version: str,
    *,
    now: datetime | None = None,
) -> InitState:
    state = InitState(
        initialized_at=(now or datetime.now(UTC)).isoformat(),
        config=config,
        completed_tasks=tuple(completed_tasks),
        version=version,
    )
    atomic_write(state_path(root), json.dumps(state.to_dict(), indent=2) + "\n")
    logger.debug("Saved state to %s", state_path(root))
    return state
