"""State, reducers, scheduling and execution for document workflows."""

from .actions import (
    AbortStreaming,
    AddChatMessage,
    AppendStreamingContent,
    CreateProject,
    DeleteDocument,
    DeleteProject,
    DispatchToProject,
    EndChatStream,
    EndStreamingContent,
    EndStreamingOutline,
    EndStreamingSynthesis,
    ResetWorkflow,
    SelectProject,
    SetActiveNode,
    SetUserFeedback,
    SetWorkflowStatus,
    StartStreaming,
    StartWorkflow,
    UpdateDocument,
    UpdateNodeStatus,
)
from .documents import ChatMessage, Document, Source, upsert_document
from .executor import NodeExecutor
from .orchestrator import WorkflowOrchestrator
from .reducer import reduce_app, reduce_project
from .scheduler import SchedulerDecision, advance
from .state import AppState, ProjectState, create_project_state
from .store import AppStore, BoundProjectStore, ProjectStore
from .streaming import ChunkChannel

__all__ = [
    "AbortStreaming",
    "AddChatMessage",
    "AppendStreamingContent",
    "CreateProject",
    "DeleteDocument",
    "DeleteProject",
    "DispatchToProject",
    "EndChatStream",
    "EndStreamingContent",
    "EndStreamingOutline",
    "EndStreamingSynthesis",
    "ResetWorkflow",
    "SelectProject",
    "SetActiveNode",
    "SetUserFeedback",
    "SetWorkflowStatus",
    "StartStreaming",
    "StartWorkflow",
    "UpdateDocument",
    "UpdateNodeStatus",
    "ChatMessage",
    "Document",
    "Source",
    "upsert_document",
    "NodeExecutor",
    "WorkflowOrchestrator",
    "reduce_app",
    "reduce_project",
    "SchedulerDecision",
    "advance",
    "AppState",
    "ProjectState",
    "create_project_state",
    "AppStore",
    "BoundProjectStore",
    "ProjectStore",
    "ChunkChannel",
]
