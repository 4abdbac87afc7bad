"""Node and workflow status enums with their legal transitions."""

from __future__ import annotations

from enum import Enum
from typing import Mapping

__all__ = [
    "NODE_TRANSITIONS",
    "WORKFLOW_TRANSITIONS",
    "InvalidTransitionError",
    "NodeStatus",
    "ReviewStage",
    "StreamingSource",
    "WorkflowStatus",
    "awaiting_status_for",
    "check_node_transition",
    "check_workflow_transition",
]


class InvalidTransitionError(RuntimeError):
    """Raised when an action would move a node or workflow along an illegal edge."""


class NodeStatus(str, Enum):
    PENDING = "PENDING"
    SYNTHESIZING = "SYNTHESIZING"
    GENERATING_OUTLINE = "GENERATING_OUTLINE"
    AWAITING_OUTLINE_REVIEW = "AWAITING_OUTLINE_REVIEW"
    GENERATING_CONTENT = "GENERATING_CONTENT"
    AWAITING_REVIEW = "AWAITING_REVIEW"
    REFINING = "REFINING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"

    @property
    def is_terminal(self) -> bool:
        return self in {NodeStatus.COMPLETED, NodeStatus.FAILED, NodeStatus.SKIPPED}


class WorkflowStatus(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class StreamingSource(str, Enum):
    OUTLINE = "outline"
    CONTENT = "content"
    SYNTHESIS = "synthesis"
    CHAT = "chat"


class ReviewStage(str, Enum):
    OUTLINE = "outline"
    CONTENT = "content"

    @property
    def streaming_source(self) -> StreamingSource:
        return StreamingSource(self.value)


_ACTIVE_TO_FAILED = frozenset({NodeStatus.FAILED})

NODE_TRANSITIONS: Mapping[NodeStatus, frozenset[NodeStatus]] = {
    NodeStatus.PENDING: frozenset(
        {
            NodeStatus.SYNTHESIZING,
            NodeStatus.GENERATING_OUTLINE,
            NodeStatus.GENERATING_CONTENT,
            NodeStatus.SKIPPED,
        }
    )
    | _ACTIVE_TO_FAILED,
    NodeStatus.SYNTHESIZING: frozenset({NodeStatus.COMPLETED}) | _ACTIVE_TO_FAILED,
    NodeStatus.GENERATING_OUTLINE: frozenset({NodeStatus.AWAITING_OUTLINE_REVIEW}) | _ACTIVE_TO_FAILED,
    NodeStatus.AWAITING_OUTLINE_REVIEW: frozenset({NodeStatus.GENERATING_CONTENT, NodeStatus.REFINING})
    | _ACTIVE_TO_FAILED,
    NodeStatus.GENERATING_CONTENT: frozenset({NodeStatus.AWAITING_REVIEW, NodeStatus.COMPLETED})
    | _ACTIVE_TO_FAILED,
    NodeStatus.AWAITING_REVIEW: frozenset({NodeStatus.COMPLETED, NodeStatus.REFINING}) | _ACTIVE_TO_FAILED,
    NodeStatus.REFINING: frozenset({NodeStatus.AWAITING_OUTLINE_REVIEW, NodeStatus.AWAITING_REVIEW})
    | _ACTIVE_TO_FAILED,
    NodeStatus.COMPLETED: frozenset(),
    NodeStatus.FAILED: frozenset(),
    NodeStatus.SKIPPED: frozenset(),
}

WORKFLOW_TRANSITIONS: Mapping[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.IDLE: frozenset({WorkflowStatus.RUNNING}),
    WorkflowStatus.RUNNING: frozenset({WorkflowStatus.PAUSED, WorkflowStatus.COMPLETED, WorkflowStatus.FAILED}),
    WorkflowStatus.PAUSED: frozenset({WorkflowStatus.RUNNING, WorkflowStatus.FAILED}),
    WorkflowStatus.COMPLETED: frozenset(),
    WorkflowStatus.FAILED: frozenset(),
}


def check_node_transition(node_id: str, current: NodeStatus, target: NodeStatus) -> None:
    if current is target:
        return
    if target not in NODE_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Node '{node_id}' cannot move from {current.value} to {target.value}"
        )


def check_workflow_transition(current: WorkflowStatus, target: WorkflowStatus) -> None:
    if current is target:
        return
    if target not in WORKFLOW_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Workflow cannot move from {current.value} to {target.value}"
        )


def awaiting_status_for(stage: ReviewStage) -> NodeStatus:
    if stage is ReviewStage.OUTLINE:
        return NodeStatus.AWAITING_OUTLINE_REVIEW
    return NodeStatus.AWAITING_REVIEW
