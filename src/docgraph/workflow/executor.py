"""Run one node's generation step against a store and a generative engine.

Each public coroutine corresponds to one user or scheduler intent. They share
the same protocol: validate against the current state, move the node into its
working status, open a stream, forward chunks through a :class:`ChunkChannel`,
close the stream with the produced artefact, and finally settle node and
workflow status. Engine failures come back as :class:`Err` values and are
turned into ``FAILED`` statuses; they never propagate to the caller.

The store is re-read after every ``await``. When the project's ``epoch`` moved
on in the meantime (a reset happened) the result is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Generic, TypeVar, Union

from ..graph.model import GraphNode, NodeType
from ..graph.templates import REFINE_TASK_LABELS, render_chat_prompt
from ..status import NodeStatus, ReviewStage, StreamingSource, WorkflowStatus, awaiting_status_for
from .actions import (
    AbortStreaming,
    AddChatMessage,
    AppendStreamingContent,
    EndChatStream,
    EndStreamingContent,
    EndStreamingOutline,
    EndStreamingSynthesis,
    SetUserFeedback,
    SetWorkflowStatus,
    StartStreaming,
    UpdateNodeStatus,
)
from .documents import ChatMessage, Source
from .state import ProjectState
from .store import ProjectDispatcher
from .streaming import ChunkChannel

if TYPE_CHECKING:  # pragma: no cover
    from ..llm.providers import GenerativeEngine

__all__ = ["Err", "Generated", "NodeExecutor", "Ok", "utc_now"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Err:
    error: Exception


Result = Union[Ok[T], Err]


@dataclass(frozen=True, slots=True)
class Generated:
    text: str
    sources: tuple[Source, ...] | None = None


class NodeExecutor:
    """Executes generation steps for the nodes of one project."""

    def __init__(
        self,
        store: ProjectDispatcher,
        engine: "GenerativeEngine",
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._clock = clock or utc_now

    @property
    def state(self) -> ProjectState:
        return self._store.state

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------
    async def run_node(self, node_id: str) -> NodeStatus | None:
        """Run the first stage of a PENDING node."""

        state = self.state
        node = state.node(node_id)
        if node is None:
            logger.warning("Cannot run unknown node %s", node_id)
            return None
        if node.status is not NodeStatus.PENDING:
            logger.warning("Node %s is %s, not PENDING; ignoring run", node_id, node.status.value)
            return None

        logger.info("Running node %s (%s)", node.id, node.node_type.value)
        if node.node_type is NodeType.SYNTHESIS:
            return await self._run_synthesis(node, state)
        if node.template.has_outline:
            return await self._run_outline(node, state)
        return await self._run_content(node, state)

    async def approve(self, node_id: str, stage: ReviewStage) -> NodeStatus | None:
        state = self.state
        node = self._awaiting(state, node_id, stage, "approve")
        if node is None:
            return None

        if stage is ReviewStage.OUTLINE:
            logger.info("Outline of node %s approved", node_id)
            return await self._run_content(node, state)

        logger.info("Content of node %s approved", node_id)
        self._set_node_status(node_id, NodeStatus.COMPLETED)
        self._resume_if_paused()
        return NodeStatus.COMPLETED

    async def reject(self, node_id: str, stage: ReviewStage, feedback: str) -> NodeStatus | None:
        state = self.state
        node = self._awaiting(state, node_id, stage, "reject")
        if node is None:
            return None
        if not node.template.has_refine:
            logger.warning("Node %s has no refine prompt; ignoring rejection", node_id)
            return None
        document = state.document_for(node_id)
        artifact = None
        if document is not None:
            artifact = document.outline if stage is ReviewStage.OUTLINE else document.content
        if not artifact:
            logger.warning("Node %s has no %s to refine; ignoring rejection", node_id, stage.value)
            return None

        epoch = state.epoch
        logger.info("Refining %s of node %s", stage.value, node_id)
        self._store.dispatch(SetUserFeedback(node_id=node_id, feedback=feedback))
        self._set_node_status(node_id, NodeStatus.REFINING)

        prompt = self._render(
            lambda: node.template.render_refine(REFINE_TASK_LABELS[stage.value], artifact, feedback, state.language)
        )
        if isinstance(prompt, Err):
            return self._fail(node_id, epoch, prompt.error)

        result = await self._generate(node_id, stage.streaming_source, prompt.value, epoch)
        if not self._is_current(epoch):
            return self._drop_stale(node_id)
        if isinstance(result, Err):
            return self._fail(node_id, epoch, result.error)

        at = self._clock()
        if stage is ReviewStage.OUTLINE:
            self._store.dispatch(EndStreamingOutline(node_id=node_id, outline=result.value.text, at=at))
        else:
            self._store.dispatch(EndStreamingContent(node_id=node_id, content=result.value.text, at=at))
        awaiting = awaiting_status_for(stage)
        self._set_node_status(node_id, awaiting)
        self._pause()
        return awaiting

    async def send_message(self, node_id: str, message: str) -> str | None:
        """Ask a question about a node's document; returns the model's answer."""

        state = self.state
        node = state.node(node_id)
        document = state.document_for(node_id)
        if node is None or document is None:
            logger.warning("Cannot chat about node %s without a document", node_id)
            return None
        if state.is_streaming:
            logger.warning("A stream is already active; ignoring chat message for %s", node_id)
            return None

        epoch = state.epoch
        graph = state.workflow
        parent_ids = graph.predecessors(node_id)
        sibling_ids = [
            edge.target for edge in graph.edges if edge.source in parent_ids and edge.target != node_id
        ]
        prompt = self._render(
            lambda: render_chat_prompt(
                description=state.description,
                document_title=document.title,
                document_content=document.content,
                parents=self._labelled_contents(state, parent_ids),
                siblings=self._labelled_contents(state, sibling_ids),
                question=message,
                language=state.language,
            )
        )
        if isinstance(prompt, Err):
            logger.warning("Chat prompt for node %s could not be rendered: %s", node_id, prompt.error)
            return None

        self._store.dispatch(AddChatMessage(node_id=node_id, message=ChatMessage(role="user", content=message)))
        result = await self._generate(
            node_id,
            StreamingSource.CHAT,
            prompt.value,
            epoch,
            before_stream=lambda: self._store.dispatch(
                AddChatMessage(node_id=node_id, message=ChatMessage(role="model", content=""))
            ),
        )
        if not self._is_current(epoch):
            self._drop_stale(node_id)
            return None
        if isinstance(result, Err):
            # chat failures never touch node or workflow status
            if self.state.is_streaming:
                self._store.dispatch(AbortStreaming())
            return None
        self._store.dispatch(EndChatStream(node_id=node_id, full_response=result.value.text))
        return result.value.text

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    async def _run_synthesis(self, node: GraphNode, state: ProjectState) -> NodeStatus | None:
        epoch = state.epoch
        self._set_node_status(node.id, NodeStatus.SYNTHESIZING)
        inputs = self._predecessor_outputs(state, node.id)
        prompt = self._render(lambda: node.template.render_synthesis(state.description, inputs, state.language))
        if isinstance(prompt, Err):
            return self._fail(node.id, epoch, prompt.error)

        result = await self._generate(node.id, StreamingSource.SYNTHESIS, prompt.value, epoch)
        if not self._is_current(epoch):
            return self._drop_stale(node.id)
        if isinstance(result, Err):
            return self._fail(node.id, epoch, result.error)

        self._store.dispatch(EndStreamingSynthesis(node_id=node.id, content=result.value.text, at=self._clock()))
        self._set_node_status(node.id, NodeStatus.COMPLETED)
        return NodeStatus.COMPLETED

    async def _run_outline(self, node: GraphNode, state: ProjectState) -> NodeStatus | None:
        epoch = state.epoch
        self._set_node_status(node.id, NodeStatus.GENERATING_OUTLINE)
        upstream = self._upstream(state, node.id)
        prompt = self._render(lambda: node.template.render_outline(state.description, upstream, state.language))
        if isinstance(prompt, Err):
            return self._fail(node.id, epoch, prompt.error)

        result = await self._generate(node.id, StreamingSource.OUTLINE, prompt.value, epoch)
        if not self._is_current(epoch):
            return self._drop_stale(node.id)
        if isinstance(result, Err):
            return self._fail(node.id, epoch, result.error)

        self._store.dispatch(EndStreamingOutline(node_id=node.id, outline=result.value.text, at=self._clock()))
        self._set_node_status(node.id, NodeStatus.AWAITING_OUTLINE_REVIEW)
        self._pause()
        return NodeStatus.AWAITING_OUTLINE_REVIEW

    async def _run_content(self, node: GraphNode, state: ProjectState) -> NodeStatus | None:
        epoch = state.epoch
        self._set_node_status(node.id, NodeStatus.GENERATING_CONTENT)
        upstream = self._upstream(state, node.id)
        document = state.document_for(node.id)
        outline = document.outline if document is not None and document.outline else ""
        prompt = self._render(
            lambda: node.template.render_task(state.description, upstream, outline, state.language)
        )
        if isinstance(prompt, Err):
            return self._fail(node.id, epoch, prompt.error)

        result = await self._generate(
            node.id,
            StreamingSource.CONTENT,
            prompt.value,
            epoch,
            grounded=node.use_search,
        )
        if not self._is_current(epoch):
            return self._drop_stale(node.id)
        if isinstance(result, Err):
            return self._fail(node.id, epoch, result.error)

        self._store.dispatch(
            EndStreamingContent(
                node_id=node.id,
                content=result.value.text,
                at=self._clock(),
                sources=result.value.sources,
            )
        )
        if node.is_human_in_loop:
            self._set_node_status(node.id, NodeStatus.AWAITING_REVIEW)
            self._pause()
            return NodeStatus.AWAITING_REVIEW
        self._set_node_status(node.id, NodeStatus.COMPLETED)
        self._resume_if_paused()
        return NodeStatus.COMPLETED

    # ------------------------------------------------------------------
    # Generation plumbing
    # ------------------------------------------------------------------
    async def _generate(
        self,
        node_id: str,
        source: StreamingSource,
        prompt: str,
        epoch: int,
        *,
        grounded: bool = False,
        before_stream: Callable[[], object] | None = None,
    ) -> Result[Generated]:
        self._store.dispatch(StartStreaming(node_id=node_id, source=source))
        if before_stream is not None:
            before_stream()

        if grounded:
            try:
                grounded_result = await self._engine.generate_with_grounding(prompt)
            except Exception as exc:
                logger.exception("Grounded generation failed for node %s", node_id)
                return Err(exc)
            if self._is_current(epoch):
                self._store.dispatch(AppendStreamingContent(chunk=grounded_result.text))
            return Ok(Generated(text=grounded_result.text, sources=tuple(grounded_result.sources)))

        channel = ChunkChannel()
        consumer = asyncio.create_task(channel.drain(lambda chunk: self._append(chunk, epoch)))
        try:
            text = await self._engine.stream_generate(prompt, channel.send)
        except Exception as exc:
            logger.exception("Streaming generation failed for node %s", node_id)
            return Err(exc)
        finally:
            channel.close()
            await consumer
        logger.debug("Node %s streamed %d chunks", node_id, channel.received)
        return Ok(Generated(text=text))

    def _append(self, chunk: str, epoch: int) -> None:
        if self._is_current(epoch):
            self._store.dispatch(AppendStreamingContent(chunk=chunk))

    @staticmethod
    def _render(build: Callable[[], str]) -> Result[str]:
        try:
            return Ok(build())
        except ValueError as exc:
            return Err(exc)

    # ------------------------------------------------------------------
    # Status helpers
    # ------------------------------------------------------------------
    def _awaiting(self, state: ProjectState, node_id: str, stage: ReviewStage, intent: str) -> GraphNode | None:
        node = state.node(node_id)
        if node is None:
            logger.warning("Cannot %s unknown node %s", intent, node_id)
            return None
        expected = awaiting_status_for(stage)
        if node.status is not expected:
            logger.warning(
                "Cannot %s %s of node %s while it is %s",
                intent,
                stage.value,
                node_id,
                node.status.value,
            )
            return None
        return node

    def _set_node_status(self, node_id: str, status: NodeStatus) -> None:
        self._store.dispatch(UpdateNodeStatus(node_id=node_id, status=status))
        logger.info("Node %s -> %s", node_id, status.value)

    def _pause(self) -> None:
        if self.state.workflow_status is WorkflowStatus.RUNNING:
            self._store.dispatch(SetWorkflowStatus(status=WorkflowStatus.PAUSED))
            logger.info("Workflow %s paused for review", self.state.id)

    def _resume_if_paused(self) -> None:
        if self.state.workflow_status is WorkflowStatus.PAUSED:
            self._store.dispatch(SetWorkflowStatus(status=WorkflowStatus.RUNNING))

    def _fail(self, node_id: str, epoch: int, error: Exception) -> NodeStatus | None:
        if not self._is_current(epoch):
            return self._drop_stale(node_id)
        state = self.state
        if state.is_streaming:
            self._store.dispatch(AbortStreaming())
        self._set_node_status(node_id, NodeStatus.FAILED)
        if state.workflow_status in (WorkflowStatus.RUNNING, WorkflowStatus.PAUSED):
            self._store.dispatch(SetWorkflowStatus(status=WorkflowStatus.FAILED))
        logger.error("Workflow %s failed at node %s: %s", state.id, node_id, error)
        return NodeStatus.FAILED

    def _is_current(self, epoch: int) -> bool:
        return self.state.epoch == epoch

    def _drop_stale(self, node_id: str) -> None:
        logger.warning("Discarding result for node %s: project was reset while it ran", node_id)
        return None

    # ------------------------------------------------------------------
    # Upstream resolution
    # ------------------------------------------------------------------
    @staticmethod
    def _predecessor_outputs(state: ProjectState, node_id: str) -> dict[str, str]:
        outputs: dict[str, str] = {}
        for predecessor_id in state.workflow.predecessors(node_id):
            document = state.document_for(predecessor_id)
            if document is not None:
                outputs[predecessor_id] = document.content or document.synthesis or ""
        return outputs

    @staticmethod
    def _upstream(state: ProjectState, node_id: str) -> str:
        predecessors = state.workflow.predecessors(node_id)
        if predecessors:
            document = state.document_for(predecessors[0])
            if document is not None and document.content:
                return document.content
        root_document = state.document_for(state.workflow.root_id)
        if root_document is not None and root_document.content:
            return root_document.content
        return ""

    @staticmethod
    def _labelled_contents(state: ProjectState, node_ids: list[str]) -> dict[str, str]:
        contents: dict[str, str] = {}
        for node_id in node_ids:
            node = state.node(node_id)
            document = state.document_for(node_id)
            label = node.label if node is not None else node_id
            contents[label] = document.content if document is not None else ""
        return contents
