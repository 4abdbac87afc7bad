"""Versioned node artefacts and the upsert protocol that maintains them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Iterable, Literal, Mapping

from ..graph.model import WorkflowGraph

__all__ = [
    "EDITABLE_FIELDS",
    "ChatMessage",
    "Document",
    "Source",
    "find_document",
    "upsert_document",
]

ChatRole = Literal["user", "model"]

EDITABLE_FIELDS = frozenset({"title", "content", "outline", "synthesis", "sources"})


@dataclass(frozen=True, slots=True)
class Source:
    """Web citation returned by grounded generation."""

    uri: str
    title: str

    def to_dict(self) -> dict[str, str]:
        return {"uri": self.uri, "title": self.title}


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: ChatRole
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class Document:
    """Current artefact for one graph node."""

    id: str
    node_id: str
    title: str
    created_at: datetime
    updated_at: datetime
    content: str = ""
    outline: str | None = None
    synthesis: str | None = None
    sources: tuple[Source, ...] | None = None
    version: int = 1
    chat_history: tuple[ChatMessage, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "node_id": self.node_id,
            "title": self.title,
            "content": self.content,
            "outline": self.outline,
            "synthesis": self.synthesis,
            "sources": [source.to_dict() for source in self.sources] if self.sources is not None else None,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "chat_history": [message.to_dict() for message in self.chat_history],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Document":
        raw_sources = payload.get("sources")
        return cls(
            id=str(payload["id"]),
            node_id=str(payload["node_id"]),
            title=str(payload.get("title", "")),
            content=str(payload.get("content") or ""),
            outline=payload.get("outline"),
            synthesis=payload.get("synthesis"),
            sources=(
                tuple(Source(uri=str(item["uri"]), title=str(item.get("title") or item["uri"])) for item in raw_sources)
                if raw_sources is not None
                else None
            ),
            version=int(payload.get("version", 1)),
            created_at=datetime.fromisoformat(payload["created_at"]),
            updated_at=datetime.fromisoformat(payload.get("updated_at") or payload["created_at"]),
            chat_history=tuple(
                ChatMessage(role=item["role"], content=str(item.get("content", "")))
                for item in payload.get("chat_history", [])
            ),
        )


def find_document(documents: Iterable[Document], node_id: str | None) -> Document | None:
    if node_id is None:
        return None
    for document in documents:
        if document.node_id == node_id:
            return document
    return None


def _coerce_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unsupported document fields: {', '.join(sorted(unknown))}")
    coerced = dict(fields)
    if coerced.get("sources") is not None:
        coerced["sources"] = tuple(coerced["sources"])
    return coerced


def upsert_document(
    documents: tuple[Document, ...],
    node_id: str,
    fields: Mapping[str, Any],
    *,
    graph: WorkflowGraph,
    at: datetime,
) -> tuple[Document, ...]:
    """Merge ``fields`` into the node's current document or create it.

    Every call produces a new version, even when the merged content is
    identical, so each generation pass is auditable.
    """

    updates = _coerce_fields(fields)
    for idx, existing in enumerate(documents):
        if existing.node_id == node_id:
            merged = replace(
                existing,
                **updates,
                version=existing.version + 1,
                created_at=at,
                updated_at=at,
            )
            return documents[:idx] + (merged,) + documents[idx + 1 :]

    node = graph.require(node_id)
    created = Document(
        id=f"doc_{node_id}_{int(at.timestamp() * 1000)}",
        node_id=node_id,
        title=node.label,
        created_at=at,
        updated_at=at,
    )
    created = replace(created, **updates)
    return documents + (created,)
