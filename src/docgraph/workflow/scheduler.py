"""Pick the next runnable node of a project."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..status import NodeStatus, WorkflowStatus
from .state import ProjectState

__all__ = ["SchedulerDecision", "advance", "ready_nodes"]

logger = logging.getLogger(__name__)

_DONE = frozenset({NodeStatus.COMPLETED, NodeStatus.SKIPPED})


@dataclass(frozen=True, slots=True)
class SchedulerDecision:
    next_node_id: str | None = None
    workflow_complete: bool = False
    stalled: bool = False


def ready_nodes(state: ProjectState) -> list[str]:
    """Return runnable PENDING nodes in declaration order.

    A node is runnable when it is the designated root or every predecessor
    has COMPLETED. Other nodes without predecessors never run.
    """

    graph = state.workflow
    ready: list[str] = []
    for node in graph.nodes:
        if node.status is not NodeStatus.PENDING:
            continue
        # an edge to a missing node raises GraphValidationError here
        predecessors = [graph.require(node_id) for node_id in graph.predecessors(node.id)]
        if not predecessors:
            if node.id == graph.root_id:
                ready.append(node.id)
            continue
        if all(predecessor.status is NodeStatus.COMPLETED for predecessor in predecessors):
            ready.append(node.id)
    return ready


def advance(state: ProjectState) -> SchedulerDecision:
    """Decide what happens next for a RUNNING workflow.

    Declaration order is the tie-break when several nodes are ready. The
    decision is empty for any other workflow status.
    """

    if state.workflow_status is not WorkflowStatus.RUNNING:
        return SchedulerDecision()

    ready = ready_nodes(state)
    if ready:
        return SchedulerDecision(next_node_id=ready[0])

    nodes = state.workflow.nodes
    if all(node.status in _DONE for node in nodes):
        return SchedulerDecision(workflow_complete=True)

    in_flight = [node.id for node in nodes if not node.status.is_terminal and node.status is not NodeStatus.PENDING]
    if in_flight:
        return SchedulerDecision()

    blocked = [node.id for node in nodes if node.status is NodeStatus.PENDING]
    logger.warning("Workflow %s cannot progress; blocked nodes: %s", state.id, ", ".join(blocked) or "none")
    return SchedulerDecision(stalled=True)
