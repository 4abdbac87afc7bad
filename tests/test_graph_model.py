from __future__ import annotations

import pytest

from docgraph.graph import (
    DEFAULT_ROOT_ID,
    GraphEdge,
    GraphNode,
    GraphValidationError,
    NodeType,
    SynthesisTemplate,
    TaskTemplate,
    TemplateError,
    WorkflowGraph,
    build_default_graph,
    render_chat_prompt,
    template_from_dict,
)
from docgraph.status import NodeStatus

SYNTH = SynthesisTemplate(synthesis="{description} {inputs} {language}")
TASK = TaskTemplate(task="{description} {upstream} {outline} {language}")


def _task(node_id: str) -> GraphNode:
    return GraphNode(id=node_id, label=node_id.upper(), node_type=NodeType.TASK, template=TASK)


def test_graph_defaults_root_to_first_node_and_orders_edges(small_graph: WorkflowGraph) -> None:
    graph = WorkflowGraph.build(
        [GraphNode(id="r", label="R", node_type=NodeType.SYNTHESIS, template=SYNTH), _task("b"), _task("a")],
        [("r", "b"), ("r", "a"), ("b", "a")],
    )

    assert graph.root_id == "r"
    assert graph.successors("r") == ["b", "a"]
    assert graph.predecessors("a") == ["r", "b"]
    assert graph.topological_order() == ["r", "b", "a"]
    assert graph.edges[0] == GraphEdge(id="er-b", source="r", target="b")


def test_graph_rejects_cycles() -> None:
    with pytest.raises(GraphValidationError, match="cycle"):
        WorkflowGraph.build(
            [_task("r"), _task("a"), _task("b")],
            [("r", "a"), ("a", "b"), ("b", "a")],
        )


def test_graph_rejects_unknown_edge_endpoints_and_duplicate_ids() -> None:
    with pytest.raises(GraphValidationError, match="unknown node 'ghost'"):
        WorkflowGraph.build([_task("r")], [("r", "ghost")])
    with pytest.raises(GraphValidationError, match="Duplicate"):
        WorkflowGraph.build([_task("r"), _task("r")], [])


def test_graph_root_must_not_have_predecessors() -> None:
    with pytest.raises(GraphValidationError, match="must not have predecessors"):
        WorkflowGraph.build([_task("a"), _task("b")], [("a", "b")], root_id="b")


def test_node_template_must_match_type() -> None:
    with pytest.raises(GraphValidationError):
        GraphNode(id="x", label="X", node_type=NodeType.SYNTHESIS, template=TASK)
    with pytest.raises(GraphValidationError):
        GraphNode(id="y", label="Y", node_type=NodeType.TASK, template=SYNTH)


def test_status_rewrites_leave_original_untouched(small_graph: WorkflowGraph) -> None:
    updated = small_graph.with_node_status("A", NodeStatus.GENERATING_OUTLINE)

    assert updated.node("A").status is NodeStatus.GENERATING_OUTLINE
    assert small_graph.node("A").status is NodeStatus.PENDING
    assert updated.node("root") is small_graph.node("root")
    assert small_graph.with_node_status("missing", NodeStatus.FAILED) is small_graph
    assert set(updated.with_all_status(NodeStatus.SKIPPED).statuses().values()) == {NodeStatus.SKIPPED}

    with pytest.raises(GraphValidationError):
        small_graph.require("missing")


def test_graph_dict_round_trip_preserves_templates(small_graph: WorkflowGraph) -> None:
    restored = WorkflowGraph.from_dict(small_graph.to_dict())

    assert restored == small_graph
    assert isinstance(restored.node("A").template, TaskTemplate)
    assert restored.node("A").is_human_in_loop is True


def test_synthesis_template_renders_inputs_in_order() -> None:
    prompt = SynthesisTemplate(synthesis="{description}|{inputs}|{language}").render_synthesis(
        "Idea", {"n2": "second", "n3": " third "}, "vi"
    )

    assert prompt == "Idea|--- Input from n2 ---\nsecond\n\n--- Input from n3 ---\nthird|Vietnamese"
    empty = SynthesisTemplate(synthesis="{inputs}").render_synthesis("Idea", {}, "en")
    assert empty == "(no upstream documents)"


def test_task_template_defaults_and_missing_prompts() -> None:
    template = TaskTemplate(task="{upstream}/{outline}")

    assert template.render_task("d", "", "", "en") == "(none)/(no outline)"
    assert template.has_outline is False
    assert template.has_refine is False
    with pytest.raises(TemplateError):
        template.render_outline("d", "u", "en")
    with pytest.raises(TemplateError):
        template.render_refine("t", "a", "f", "en")
    with pytest.raises(TemplateError):
        SYNTH.render_task("d", "u", "o", "en")


def test_template_with_unknown_placeholder_raises_template_error() -> None:
    with pytest.raises(TemplateError, match="placeholder"):
        TaskTemplate(task="{unknown}").render_task("d", "u", "o", "en")


def test_template_from_dict_rejects_unknown_kind() -> None:
    assert template_from_dict(TASK.to_dict()) == TASK
    with pytest.raises(TemplateError):
        template_from_dict({"kind": "poem", "text": "x"})


def test_chat_prompt_lists_parent_and_sibling_context() -> None:
    prompt = render_chat_prompt(
        description="Shop",
        document_title="Architecture",
        document_content="Use queues.",
        parents={"Requirements": "Must scale."},
        siblings={},
        question="Why queues?",
        language="en",
    )

    assert 'Current Document ("Architecture"):' in prompt
    assert '--- Document: "Requirements" ---\nMust scale.' in prompt
    assert "Sibling Document(s) Context:" not in prompt
    assert prompt.endswith('Question: "Why queues?"')
    assert "The response must be in English." in prompt


def test_default_graph_shape() -> None:
    graph = build_default_graph("vi")

    assert graph.root_id == DEFAULT_ROOT_ID
    assert graph.root.node_type is NodeType.SYNTHESIS
    assert graph.predecessors("n5") == ["n2", "n3", "n4"]
    assert graph.node("n3").use_search is True
    assert all(node.status is NodeStatus.PENDING for node in graph.nodes)
