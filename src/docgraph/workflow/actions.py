"""Discrete actions accepted by the project and application reducers.

Every action is an immutable value. Actions that touch timestamps carry the
time explicitly so the reducers never read a clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Mapping, Union

from ..graph.model import WorkflowGraph
from ..status import NodeStatus, StreamingSource, WorkflowStatus
from .documents import ChatMessage, Source

__all__ = [
    "AbortStreaming",
    "AddChatMessage",
    "AppAction",
    "AppendStreamingContent",
    "CreateProject",
    "DeleteDocument",
    "DeleteProject",
    "DispatchToProject",
    "EndChatStream",
    "EndStreamingContent",
    "EndStreamingOutline",
    "EndStreamingSynthesis",
    "ProjectAction",
    "ResetWorkflow",
    "SelectProject",
    "SetActiveNode",
    "SetUserFeedback",
    "SetWorkflowStatus",
    "StartStreaming",
    "StartWorkflow",
    "UpdateDocument",
    "UpdateNodeStatus",
]


@dataclass(frozen=True, slots=True)
class StartWorkflow:
    type: ClassVar[str] = "START_WORKFLOW"


@dataclass(frozen=True, slots=True)
class ResetWorkflow:
    """Return the project to IDLE; ``graph`` replaces the topology when given."""

    graph: WorkflowGraph | None = None
    type: ClassVar[str] = "RESET_WORKFLOW"


@dataclass(frozen=True, slots=True)
class SetActiveNode:
    node_id: str | None
    type: ClassVar[str] = "SET_ACTIVE_NODE"


@dataclass(frozen=True, slots=True)
class UpdateNodeStatus:
    node_id: str
    status: NodeStatus
    type: ClassVar[str] = "UPDATE_NODE_STATUS"


@dataclass(frozen=True, slots=True)
class StartStreaming:
    node_id: str
    source: StreamingSource
    type: ClassVar[str] = "START_STREAMING"


@dataclass(frozen=True, slots=True)
class AppendStreamingContent:
    chunk: str
    type: ClassVar[str] = "APPEND_STREAMING_CONTENT"


@dataclass(frozen=True, slots=True)
class EndStreamingSynthesis:
    node_id: str
    content: str
    at: datetime
    type: ClassVar[str] = "END_STREAMING_SYNTHESIS"


@dataclass(frozen=True, slots=True)
class EndStreamingOutline:
    node_id: str
    outline: str
    at: datetime
    type: ClassVar[str] = "END_STREAMING_OUTLINE"


@dataclass(frozen=True, slots=True)
class EndStreamingContent:
    node_id: str
    content: str
    at: datetime
    sources: tuple[Source, ...] | None = None
    type: ClassVar[str] = "END_STREAMING_CONTENT"


@dataclass(frozen=True, slots=True)
class AbortStreaming:
    """Close a stream that ended in an error; the draft buffer is kept."""

    type: ClassVar[str] = "ABORT_STREAMING"


@dataclass(frozen=True, slots=True)
class SetWorkflowStatus:
    status: WorkflowStatus
    type: ClassVar[str] = "SET_WORKFLOW_STATUS"


@dataclass(frozen=True, slots=True)
class SetUserFeedback:
    node_id: str
    feedback: str
    type: ClassVar[str] = "SET_USER_FEEDBACK"


@dataclass(frozen=True, slots=True)
class AddChatMessage:
    node_id: str
    message: ChatMessage
    type: ClassVar[str] = "ADD_CHAT_MESSAGE"


@dataclass(frozen=True, slots=True)
class EndChatStream:
    node_id: str
    full_response: str
    type: ClassVar[str] = "END_CHAT_STREAM"


@dataclass(frozen=True, slots=True)
class DeleteDocument:
    document_id: str
    type: ClassVar[str] = "DELETE_DOCUMENT"


@dataclass(frozen=True, slots=True)
class UpdateDocument:
    document_id: str
    updates: Mapping[str, Any]
    at: datetime
    type: ClassVar[str] = "UPDATE_DOCUMENT"


ProjectAction = Union[
    StartWorkflow,
    ResetWorkflow,
    SetActiveNode,
    UpdateNodeStatus,
    StartStreaming,
    AppendStreamingContent,
    EndStreamingSynthesis,
    EndStreamingOutline,
    EndStreamingContent,
    AbortStreaming,
    SetWorkflowStatus,
    SetUserFeedback,
    AddChatMessage,
    EndChatStream,
    DeleteDocument,
    UpdateDocument,
]


# ----------------------------------------------------------------------
# Application-level actions
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CreateProject:
    project_id: str
    description: str
    graph: WorkflowGraph
    language: str = "en"
    type: ClassVar[str] = "CREATE_PROJECT"


@dataclass(frozen=True, slots=True)
class SelectProject:
    project_id: str | None
    type: ClassVar[str] = "SELECT_PROJECT"


@dataclass(frozen=True, slots=True)
class DeleteProject:
    project_id: str
    type: ClassVar[str] = "DELETE_PROJECT"


@dataclass(frozen=True, slots=True)
class DispatchToProject:
    project_id: str
    action: ProjectAction
    type: ClassVar[str] = "DISPATCH_TO_PROJECT"


AppAction = Union[CreateProject, SelectProject, DeleteProject, DispatchToProject]
