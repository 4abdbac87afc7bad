"""LangGraph-powered driver loop that keeps a project moving.

The driver is a two-node LangGraph: ``schedule`` asks the scheduler for the
next ready node and ``execute`` runs it through the :class:`NodeExecutor`.
The loop ends when the workflow pauses for review, completes, fails or stalls.
Human intents (approve, reject, reset, skip, chat) are methods on the
orchestrator; approvals re-enter the driver loop so downstream nodes start
without further prompting.
"""

from __future__ import annotations

import asyncio
import logging
import operator
from datetime import datetime
from typing import TYPE_CHECKING, Annotated, Callable, TypedDict

from langgraph.graph import END, START, StateGraph

from ..graph.model import WorkflowGraph
from ..status import NodeStatus, ReviewStage, WorkflowStatus
from .actions import ResetWorkflow, SetWorkflowStatus, StartWorkflow, UpdateNodeStatus
from .executor import NodeExecutor
from .scheduler import advance
from .state import ProjectState
from .store import ProjectDispatcher

if TYPE_CHECKING:  # pragma: no cover
    from ..llm.providers import GenerativeEngine

__all__ = ["DriveState", "WorkflowOrchestrator"]

logger = logging.getLogger(__name__)

DEFAULT_RECURSION_LIMIT = 50


class DriveState(TypedDict, total=False):
    """State propagated through one run of the driver graph."""

    project_id: str
    next_node_id: str | None
    executed: Annotated[list[str], operator.add]
    halted_reason: str


class WorkflowOrchestrator:
    """Presentation-facing facade over one project's store."""

    def __init__(
        self,
        store: ProjectDispatcher,
        engine: "GenerativeEngine",
        *,
        clock: Callable[[], datetime] | None = None,
        recursion_limit: int = DEFAULT_RECURSION_LIMIT,
    ) -> None:
        self._store = store
        self.executor = NodeExecutor(store, engine, clock=clock)
        self.recursion_limit = recursion_limit
        self._lock = asyncio.Lock()
        self._workflow = self._build_workflow()
        self.last_drive: DriveState = {}

    @property
    def state(self) -> ProjectState:
        return self._store.state

    # ------------------------------------------------------------------
    # Public intents
    # ------------------------------------------------------------------
    async def start(self) -> ProjectState:
        """Start an IDLE workflow, or keep driving a RUNNING one."""

        async with self._lock:
            if self.state.workflow_status is WorkflowStatus.IDLE:
                self._store.dispatch(StartWorkflow())
                logger.info("Workflow %s started", self.state.id)
            await self._drive()
        return self.state

    async def approve(self, node_id: str, stage: ReviewStage | str) -> ProjectState:
        stage = ReviewStage(stage)
        async with self._lock:
            outcome = await self.executor.approve(node_id, stage)
            if outcome is not None:
                await self._drive()
        return self.state

    async def reject(self, node_id: str, stage: ReviewStage | str, feedback: str) -> ProjectState:
        stage = ReviewStage(stage)
        async with self._lock:
            await self.executor.reject(node_id, stage, feedback)
        return self.state

    async def send_message(self, node_id: str, message: str) -> str | None:
        async with self._lock:
            return await self.executor.send_message(node_id, message)

    async def skip(self, node_id: str) -> ProjectState:
        """Mark a PENDING node as SKIPPED.

        A skipped node counts towards completion but does not unblock its
        successors. Refused while the workflow is IDLE.
        """

        async with self._lock:
            if self.state.workflow_status is WorkflowStatus.IDLE:
                logger.warning("Start workflow %s before skipping nodes; ignoring %s", self.state.id, node_id)
                return self.state
            if self.state.node_status(node_id) is not NodeStatus.PENDING:
                logger.warning("Only PENDING nodes can be skipped; ignoring %s", node_id)
                return self.state
            self._store.dispatch(UpdateNodeStatus(node_id=node_id, status=NodeStatus.SKIPPED))
            logger.info("Node %s skipped", node_id)
            await self._drive()
        return self.state

    def reset(self, graph: WorkflowGraph | None = None) -> ProjectState:
        """Return the project to IDLE.

        Does not take the lock. A generation still in flight sees the new epoch
        and drops its result.
        """

        self._store.dispatch(ResetWorkflow(graph=graph))
        logger.info("Workflow %s reset (epoch %d)", self.state.id, self.state.epoch)
        return self.state

    def pending_review(self) -> list[tuple[str, ReviewStage]]:
        pending: list[tuple[str, ReviewStage]] = []
        for node in self.state.workflow.nodes:
            if node.status is NodeStatus.AWAITING_OUTLINE_REVIEW:
                pending.append((node.id, ReviewStage.OUTLINE))
            elif node.status is NodeStatus.AWAITING_REVIEW:
                pending.append((node.id, ReviewStage.CONTENT))
        return pending

    async def run_to_completion(self, *, auto_approve: bool = True) -> ProjectState:
        """Start the workflow and, when ``auto_approve`` is set, approve every review gate."""

        await self.start()
        while auto_approve and self.state.workflow_status is WorkflowStatus.PAUSED:
            pending = self.pending_review()
            if not pending:
                break
            node_id, stage = pending[0]
            logger.info("Auto-approving %s of node %s", stage.value, node_id)
            await self.approve(node_id, stage)
        return self.state

    # ------------------------------------------------------------------
    # LangGraph node implementations
    # ------------------------------------------------------------------
    def schedule(self, state: DriveState) -> DriveState:
        project = self.state
        decision = advance(project)
        if decision.next_node_id is not None:
            return {"next_node_id": decision.next_node_id}
        if decision.workflow_complete:
            self._store.dispatch(SetWorkflowStatus(status=WorkflowStatus.COMPLETED))
            logger.info("Workflow %s completed", project.id)
            return {"next_node_id": None, "halted_reason": "completed"}
        if decision.stalled:
            return {"next_node_id": None, "halted_reason": "stalled"}
        return {"next_node_id": None, "halted_reason": project.workflow_status.value.lower()}

    async def execute(self, state: DriveState) -> DriveState:
        node_id = state.get("next_node_id")
        if not node_id:
            return {}
        await self.executor.run_node(node_id)
        return {"next_node_id": None, "executed": [node_id]}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _build_workflow(self):
        graph = StateGraph(DriveState)
        graph.add_node("schedule", self.schedule)
        graph.add_node("execute", self.execute)

        graph.add_edge(START, "schedule")
        graph.add_conditional_edges("schedule", self._route, {"execute": "execute", END: END})
        graph.add_edge("execute", "schedule")
        return graph.compile()

    @staticmethod
    def _route(state: DriveState) -> str:
        return "execute" if state.get("next_node_id") else END

    def _recursion_limit(self) -> int:
        # every node needs one schedule and one execute step, plus the final schedule
        return max(self.recursion_limit, 2 * len(self.state.workflow.nodes) + 4)

    async def _drive(self) -> DriveState:
        initial: DriveState = {"project_id": self.state.id, "next_node_id": None, "executed": []}
        result = await self._workflow.ainvoke(initial, config={"recursion_limit": self._recursion_limit()})
        self.last_drive = result
        logger.info(
            "Driver halted (%s) after running %s",
            result.get("halted_reason", "unknown"),
            ", ".join(result.get("executed", [])) or "no nodes",
        )
        return result
