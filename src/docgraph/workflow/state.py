"""Project and application state aggregates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from ..graph.model import GraphNode, WorkflowGraph
from ..status import NodeStatus, StreamingSource, WorkflowStatus
from .documents import Document, find_document

__all__ = [
    "AppState",
    "ProjectState",
    "create_project_state",
]


@dataclass(frozen=True, slots=True)
class ProjectState:
    """Everything the orchestration engine knows about one project.

    Instances are never mutated; the reducer returns a new value for every
    action. ``epoch`` increases on each reset so in-flight work can tell that
    the state it started from is gone.
    """

    id: str
    description: str
    workflow: WorkflowGraph
    language: str = "en"
    documents: tuple[Document, ...] = ()
    active_node_id: str | None = None
    workflow_status: WorkflowStatus = WorkflowStatus.IDLE
    history: dict[str, tuple[Document, ...]] = field(default_factory=dict)
    streaming_content: str = ""
    streaming_source: StreamingSource | None = None
    is_streaming: bool = False
    user_feedback: dict[str, str] = field(default_factory=dict)
    feedback_history: dict[str, tuple[str, ...]] = field(default_factory=dict)
    epoch: int = 0

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------
    def node(self, node_id: str | None) -> GraphNode | None:
        return self.workflow.node(node_id)

    def node_status(self, node_id: str) -> NodeStatus | None:
        node = self.workflow.node(node_id)
        return node.status if node is not None else None

    def document_for(self, node_id: str | None) -> Document | None:
        return find_document(self.documents, node_id)

    @property
    def active_node(self) -> GraphNode | None:
        return self.workflow.node(self.active_node_id)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "language": self.language,
            "workflow": self.workflow.to_dict(),
            "documents": [document.to_dict() for document in self.documents],
            "active_node_id": self.active_node_id,
            "workflow_status": self.workflow_status.value,
            "history": {
                node_id: [document.to_dict() for document in entries]
                for node_id, entries in self.history.items()
            },
            "streaming_content": self.streaming_content,
            "streaming_source": self.streaming_source.value if self.streaming_source else None,
            "is_streaming": self.is_streaming,
            "user_feedback": dict(self.user_feedback),
            "feedback_history": {node_id: list(items) for node_id, items in self.feedback_history.items()},
            "epoch": self.epoch,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProjectState":
        source = payload.get("streaming_source")
        return cls(
            id=str(payload["id"]),
            description=str(payload.get("description", "")),
            language=str(payload.get("language", "en")),
            workflow=WorkflowGraph.from_dict(payload["workflow"]),
            documents=tuple(Document.from_dict(item) for item in payload.get("documents", [])),
            active_node_id=payload.get("active_node_id"),
            workflow_status=WorkflowStatus(payload.get("workflow_status", WorkflowStatus.IDLE.value)),
            history={
                str(node_id): tuple(Document.from_dict(item) for item in entries)
                for node_id, entries in (payload.get("history") or {}).items()
            },
            streaming_content=str(payload.get("streaming_content", "")),
            streaming_source=StreamingSource(source) if source else None,
            is_streaming=bool(payload.get("is_streaming", False)),
            user_feedback={str(k): str(v) for k, v in (payload.get("user_feedback") or {}).items()},
            feedback_history={
                str(k): tuple(str(item) for item in v) for k, v in (payload.get("feedback_history") or {}).items()
            },
            epoch=int(payload.get("epoch", 0)),
        )


def create_project_state(
    project_id: str,
    description: str,
    graph: WorkflowGraph,
    *,
    language: str = "en",
) -> ProjectState:
    """Return a fresh IDLE project whose nodes are all ``PENDING``."""

    return ProjectState(
        id=project_id,
        description=description,
        language=language,
        workflow=graph.with_all_status(NodeStatus.PENDING),
    )


@dataclass(frozen=True, slots=True)
class AppState:
    """Collection of independent projects plus the current selection."""

    projects: dict[str, ProjectState] = field(default_factory=dict)
    active_project_id: str | None = None

    @property
    def active_project(self) -> ProjectState | None:
        if self.active_project_id is None:
            return None
        return self.projects.get(self.active_project_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "projects": [project.to_dict() for project in self.projects.values()],
            "active_project_id": self.active_project_id,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AppState":
        projects = [ProjectState.from_dict(item) for item in payload.get("projects", [])]
        active = payload.get("active_project_id")
        by_id = {project.id: project for project in projects}
        return cls(projects=by_id, active_project_id=active if active in by_id else None)
