"""Workflow graph model and prompt templates."""

from .defaults import DEFAULT_ROOT_ID, build_default_graph
from .model import GraphEdge, GraphNode, GraphValidationError, NodeType, WorkflowGraph
from .templates import (
    PromptTemplate,
    SynthesisTemplate,
    TaskTemplate,
    TemplateError,
    render_chat_prompt,
    template_from_dict,
)

__all__ = [
    "DEFAULT_ROOT_ID",
    "build_default_graph",
    "GraphEdge",
    "GraphNode",
    "GraphValidationError",
    "NodeType",
    "WorkflowGraph",
    "PromptTemplate",
    "SynthesisTemplate",
    "TaskTemplate",
    "TemplateError",
    "render_chat_prompt",
    "template_from_dict",
]
