"""Path helpers for docgraph state snapshots and exports."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

__all__ = [
    "STATE_FILENAME",
    "DocGraphPathConfig",
    "default_export_root",
    "default_state_root",
    "resolve_export_path",
    "resolve_state_file",
]

STATE_FILENAME = "docgraph-state.json"


def default_state_root() -> Path:
    return Path(os.getenv("DOCGRAPH_STATE_ROOT", ".docgraph"))


def default_export_root() -> Path:
    return Path(os.getenv("DOCGRAPH_EXPORT_ROOT", "exports"))


def _normalise(path: Path | str) -> Path:
    return Path(path).expanduser()


def resolve_state_file(path: Path | str | None = None, *, create_parent: bool = False) -> Path:
    """Return the snapshot file; a directory argument gets the default file name."""

    candidate = _normalise(path) if path else default_state_root() / STATE_FILENAME
    if candidate.is_dir():
        candidate = candidate / STATE_FILENAME
    if create_parent:
        candidate.parent.mkdir(parents=True, exist_ok=True)
    return candidate


def resolve_export_path(path: Path | str | None = None, *, create: bool = True) -> Path:
    candidate = _normalise(path or default_export_root())
    if create:
        candidate.mkdir(parents=True, exist_ok=True)
    return candidate


@dataclass(slots=True)
class DocGraphPathConfig:
    state_file: Path = field(default_factory=lambda: default_state_root() / STATE_FILENAME)
    export_root: Path = field(default_factory=default_export_root)

    def expanded(self) -> "DocGraphPathConfig":
        return replace(
            self,
            state_file=_normalise(self.state_file),
            export_root=_normalise(self.export_root),
        )

    def ensure(self) -> "DocGraphPathConfig":
        resolved = self.expanded()
        resolved.state_file.parent.mkdir(parents=True, exist_ok=True)
        resolved.export_root.mkdir(parents=True, exist_ok=True)
        return resolved
