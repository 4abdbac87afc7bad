"""Graph-driven, human-in-the-loop document generation."""

from .config import DocGraphConfig, LLMConfig, WorkflowConfig
from .graph import (
    GraphValidationError,
    NodeType,
    SynthesisTemplate,
    TaskTemplate,
    TemplateError,
    WorkflowGraph,
    build_default_graph,
)
from .io import SnapshotError, SnapshotStore, export_documents
from .llm import GenerativeEngine, LangChainChatProvider, MockGenerativeEngine, ProviderError, build_provider
from .status import InvalidTransitionError, NodeStatus, ReviewStage, WorkflowStatus
from .workflow import (
    AppState,
    AppStore,
    NodeExecutor,
    ProjectState,
    ProjectStore,
    WorkflowOrchestrator,
    create_project_state,
    reduce_app,
    reduce_project,
)

__all__ = [
    "DocGraphConfig",
    "LLMConfig",
    "WorkflowConfig",
    "GraphValidationError",
    "NodeType",
    "SynthesisTemplate",
    "TaskTemplate",
    "TemplateError",
    "WorkflowGraph",
    "build_default_graph",
    "SnapshotError",
    "SnapshotStore",
    "export_documents",
    "GenerativeEngine",
    "LangChainChatProvider",
    "MockGenerativeEngine",
    "ProviderError",
    "build_provider",
    "InvalidTransitionError",
    "NodeStatus",
    "ReviewStage",
    "WorkflowStatus",
    "AppState",
    "AppStore",
    "NodeExecutor",
    "ProjectState",
    "ProjectStore",
    "WorkflowOrchestrator",
    "create_project_state",
    "reduce_app",
    "reduce_project",
]
