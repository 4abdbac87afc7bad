"""Pure reducers mapping ``(state, action)`` to a new state value."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable

from ..status import (
    InvalidTransitionError,
    NodeStatus,
    WorkflowStatus,
    check_node_transition,
    check_workflow_transition,
)
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
from .documents import EDITABLE_FIELDS, upsert_document
from .state import AppState, ProjectState, create_project_state

__all__ = ["reduce_app", "reduce_project"]

logger = logging.getLogger(__name__)


def _start_workflow(state: ProjectState, action: StartWorkflow) -> ProjectState:
    check_workflow_transition(state.workflow_status, WorkflowStatus.RUNNING)
    return replace(
        state,
        workflow_status=WorkflowStatus.RUNNING,
        workflow=state.workflow.with_all_status(NodeStatus.PENDING),
    )


def _reset_workflow(state: ProjectState, action: ResetWorkflow) -> ProjectState:
    graph = action.graph if action.graph is not None else state.workflow
    fresh = create_project_state(state.id, state.description, graph, language=state.language)
    # the audit log survives resets
    return replace(fresh, history=dict(state.history), epoch=state.epoch + 1)


def _set_active_node(state: ProjectState, action: SetActiveNode) -> ProjectState:
    return replace(state, active_node_id=action.node_id)


def _update_node_status(state: ProjectState, action: UpdateNodeStatus) -> ProjectState:
    node = state.workflow.node(action.node_id)
    if node is None:
        return state
    check_node_transition(node.id, node.status, action.status)
    return replace(state, workflow=state.workflow.with_node_status(node.id, action.status))


def _start_streaming(state: ProjectState, action: StartStreaming) -> ProjectState:
    if state.is_streaming:
        raise InvalidTransitionError(
            f"Cannot start streaming for '{action.node_id}': "
            f"a stream is already active for '{state.active_node_id}'"
        )
    return replace(
        state,
        is_streaming=True,
        streaming_content="",
        active_node_id=action.node_id,
        streaming_source=action.source,
    )


def _append_streaming_content(state: ProjectState, action: AppendStreamingContent) -> ProjectState:
    return replace(state, streaming_content=state.streaming_content + action.chunk)


def _finish_stream(state: ProjectState, node_id: str, fields: dict[str, Any], at) -> ProjectState:
    if state.workflow.node(node_id) is None:
        return replace(state, is_streaming=False, streaming_source=None)
    documents = upsert_document(state.documents, node_id, fields, graph=state.workflow, at=at)
    return replace(state, is_streaming=False, streaming_source=None, documents=documents)


def _end_streaming_synthesis(state: ProjectState, action: EndStreamingSynthesis) -> ProjectState:
    return _finish_stream(
        state,
        action.node_id,
        {"content": action.content, "synthesis": action.content},
        action.at,
    )


def _end_streaming_outline(state: ProjectState, action: EndStreamingOutline) -> ProjectState:
    return _finish_stream(state, action.node_id, {"outline": action.outline}, action.at)


def _end_streaming_content(state: ProjectState, action: EndStreamingContent) -> ProjectState:
    fields: dict[str, Any] = {"content": action.content}
    if action.sources is not None:
        fields["sources"] = action.sources
    updated = _finish_stream(state, action.node_id, fields, action.at)
    document = updated.document_for(action.node_id)
    if document is None:
        return updated
    history = dict(updated.history)
    history[action.node_id] = history.get(action.node_id, ()) + (document,)
    return replace(updated, history=history)


def _abort_streaming(state: ProjectState, action: AbortStreaming) -> ProjectState:
    return replace(state, is_streaming=False, streaming_source=None)


def _set_workflow_status(state: ProjectState, action: SetWorkflowStatus) -> ProjectState:
    check_workflow_transition(state.workflow_status, action.status)
    return replace(state, workflow_status=action.status)


def _set_user_feedback(state: ProjectState, action: SetUserFeedback) -> ProjectState:
    feedback_history = dict(state.feedback_history)
    feedback_history[action.node_id] = feedback_history.get(action.node_id, ()) + (action.feedback,)
    user_feedback = dict(state.user_feedback)
    user_feedback[action.node_id] = action.feedback
    return replace(state, feedback_history=feedback_history, user_feedback=user_feedback)


def _add_chat_message(state: ProjectState, action: AddChatMessage) -> ProjectState:
    documents = tuple(
        replace(document, chat_history=document.chat_history + (action.message,))
        if document.node_id == action.node_id
        else document
        for document in state.documents
    )
    return replace(state, documents=documents)


def _end_chat_stream(state: ProjectState, action: EndChatStream) -> ProjectState:
    documents = []
    for document in state.documents:
        history = document.chat_history
        if document.node_id == action.node_id and history and history[-1].role == "model":
            history = history[:-1] + (replace(history[-1], content=action.full_response),)
            document = replace(document, chat_history=history)
        documents.append(document)
    return replace(state, documents=tuple(documents), is_streaming=False, streaming_source=None)


def _delete_document(state: ProjectState, action: DeleteDocument) -> ProjectState:
    documents = tuple(document for document in state.documents if document.id != action.document_id)
    return replace(state, documents=documents)


def _update_document(state: ProjectState, action: UpdateDocument) -> ProjectState:
    unknown = set(action.updates) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unsupported document fields: {', '.join(sorted(unknown))}")
    updates = dict(action.updates)
    if updates.get("sources") is not None:
        updates["sources"] = tuple(updates["sources"])
    documents = tuple(
        replace(document, **updates, updated_at=action.at) if document.id == action.document_id else document
        for document in state.documents
    )
    return replace(state, documents=documents)


_PROJECT_HANDLERS: dict[type, Callable[[ProjectState, Any], ProjectState]] = {
    StartWorkflow: _start_workflow,
    ResetWorkflow: _reset_workflow,
    SetActiveNode: _set_active_node,
    UpdateNodeStatus: _update_node_status,
    StartStreaming: _start_streaming,
    AppendStreamingContent: _append_streaming_content,
    EndStreamingSynthesis: _end_streaming_synthesis,
    EndStreamingOutline: _end_streaming_outline,
    EndStreamingContent: _end_streaming_content,
    AbortStreaming: _abort_streaming,
    SetWorkflowStatus: _set_workflow_status,
    SetUserFeedback: _set_user_feedback,
    AddChatMessage: _add_chat_message,
    EndChatStream: _end_chat_stream,
    DeleteDocument: _delete_document,
    UpdateDocument: _update_document,
}


def reduce_project(state: ProjectState, action: Any) -> ProjectState:
    """Apply one project action.

    Unknown actions leave the state untouched. Illegal status transitions raise
    :class:`InvalidTransitionError`.
    """

    handler = _PROJECT_HANDLERS.get(type(action))
    if handler is None:
        logger.debug("Ignoring unsupported project action %r", action)
        return state
    return handler(state, action)


def reduce_app(state: AppState, action: Any) -> AppState:
    """Apply one application action, routing project actions by id."""

    if isinstance(action, CreateProject):
        project = create_project_state(
            action.project_id,
            action.description,
            action.graph,
            language=action.language,
        )
        projects = dict(state.projects)
        projects[project.id] = project
        return replace(state, projects=projects, active_project_id=project.id)

    if isinstance(action, SelectProject):
        if action.project_id is not None and action.project_id not in state.projects:
            return state
        return replace(state, active_project_id=action.project_id)

    if isinstance(action, DeleteProject):
        if action.project_id not in state.projects:
            return state
        projects = {pid: project for pid, project in state.projects.items() if pid != action.project_id}
        active = None if state.active_project_id == action.project_id else state.active_project_id
        return replace(state, projects=projects, active_project_id=active)

    if isinstance(action, DispatchToProject):
        project = state.projects.get(action.project_id)
        if project is None:
            return state
        projects = dict(state.projects)
        projects[action.project_id] = reduce_project(project, action.action)
        return replace(state, projects=projects)

    logger.debug("Ignoring unsupported app action %r", action)
    return state
