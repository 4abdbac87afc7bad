"""Snapshot persistence and document export for docgraph projects."""

from __future__ import annotations

import json
import logging
import re
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .workflow.documents import Document
from .workflow.state import AppState

__all__ = [
    "MAX_SNAPSHOT_BYTES",
    "SNAPSHOT_VERSION",
    "SnapshotEnvelope",
    "SnapshotError",
    "SnapshotStore",
    "export_documents",
]

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0.0"
MAX_SNAPSHOT_BYTES = 5 * 1024 * 1024

ExportFormat = Literal["json", "zip"]


class SnapshotError(ValueError):
    """Raised when a snapshot cannot be written or parsed."""


class FrozenBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class SnapshotEnvelope(FrozenBaseModel):
    """On-disk wrapper around a serialised :class:`AppState`."""

    version: str = Field(..., description="Snapshot format version.")
    saved_at: datetime = Field(..., description="When the snapshot was written.")
    app: dict[str, Any] = Field(default_factory=dict, description="Serialised application state.")


class SnapshotStore:
    """JSON file holding every project between CLI invocations."""

    def __init__(self, path: Path | str, *, max_bytes: int = MAX_SNAPSHOT_BYTES) -> None:
        self.path = Path(path).expanduser()
        self.max_bytes = max_bytes

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, state: AppState, *, saved_at: datetime | None = None) -> Path:
        envelope = SnapshotEnvelope(
            version=SNAPSHOT_VERSION,
            saved_at=saved_at or datetime.now(timezone.utc),
            app=state.to_dict(),
        )
        payload = json.dumps(envelope.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"
        size = len(payload.encode("utf-8"))
        if size > self.max_bytes:
            raise SnapshotError(
                f"Snapshot is {size} bytes which exceeds the {self.max_bytes} byte limit. "
                "Delete old projects or documents before saving."
            )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(self.path)
        logger.debug("Saved snapshot to %s (%d bytes)", self.path, size)
        return self.path

    def load(self) -> AppState:
        if not self.exists():
            raise FileNotFoundError(f"Snapshot not found: {self.path}")
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            envelope = SnapshotEnvelope.model_validate(raw)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise SnapshotError(f"Snapshot {self.path} is not valid: {exc}") from exc
        if envelope.version != SNAPSHOT_VERSION:
            logger.warning(
                "Snapshot version mismatch. Expected %s, got %s",
                SNAPSHOT_VERSION,
                envelope.version,
            )
        try:
            return AppState.from_dict(envelope.app)
        except (KeyError, TypeError, ValueError) as exc:
            raise SnapshotError(f"Snapshot {self.path} holds a malformed project: {exc!r}") from exc

    def load_or_empty(self) -> AppState:
        return self.load() if self.exists() else AppState()

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def export_documents(
    documents: Iterable[Document],
    destination: Path | str,
    *,
    fmt: ExportFormat = "json",
    exported_at: datetime | None = None,
) -> Path:
    """Write documents as one JSON bundle or a zip of Markdown files.

    ``destination`` is a directory; the file name carries the export date.
    """

    items = list(documents)
    if not items:
        raise ValueError("No documents to export")
    moment = exported_at or datetime.now(timezone.utc)
    directory = Path(destination).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    stem = f"docgraph-documents-{moment.date().isoformat()}"

    if fmt == "json":
        path = directory / f"{stem}.json"
        bundle = {
            "exported_at": moment.isoformat(),
            "version": SNAPSHOT_VERSION,
            "document_count": len(items),
            "documents": [document.to_dict() for document in items],
        }
        path.write_text(json.dumps(bundle, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        return path

    if fmt == "zip":
        path = directory / f"{stem}.zip"
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for index, document in enumerate(items, start=1):
                archive.writestr(_markdown_filename(index, document.title), _to_markdown(document))
            archive.writestr("README.md", _readme(len(items), moment))
        return path

    raise ValueError(f"Unsupported export format: {fmt}")


def _markdown_filename(index: int, title: str) -> str:
    return f"{index:02d}-{re.sub(r'[^a-zA-Z0-9]', '-', title)}.md"


def _to_markdown(document: Document) -> str:
    sections = [f"# {document.title}\n"]
    if document.outline:
        sections.append(f"## Outline\n\n{document.outline}\n")
    if document.synthesis:
        sections.append(f"## Synthesis\n\n{document.synthesis}\n")
    if document.content:
        sections.append(f"## Content\n\n{document.content}\n")
    if document.sources:
        lines = "\n".join(f"- [{source.title}]({source.uri})" for source in document.sources)
        sections.append(f"## Sources\n\n{lines}\n")
    sections.append(
        "---\n\n"
        f"**Version:** {document.version}\n"
        f"**Created:** {document.created_at.isoformat()}\n"
        f"**Updated:** {document.updated_at.isoformat()}\n"
    )
    return "\n".join(sections)


def _readme(count: int, moment: datetime) -> str:
    return (
        "# docgraph Documents Export\n\n"
        f"This archive contains {count} documents.\n\n"
        f"**Export Date:** {moment.isoformat()}\n"
        "**Export Format:** Markdown files in ZIP archive\n\n"
        "Each file holds the title, then Outline, Synthesis, Content and Sources "
        "sections when present, followed by version and timestamp metadata.\n"
    )
