"""Default documentation workflow used for new projects."""

from __future__ import annotations

import textwrap

from .model import GraphNode, NodeType, WorkflowGraph
from .templates import SynthesisTemplate, TaskTemplate

__all__ = ["DEFAULT_ROOT_ID", "build_default_graph"]

DEFAULT_ROOT_ID = "n1"

_REFINE_PROMPT = textwrap.dedent(
    """
    You are revising a project document after human review.

    Task: {task}

    Current version:
    ---
    {artifact}
    ---

    Reviewer feedback:
    {feedback}

    Rewrite the full artifact so it addresses every point of feedback while keeping
    what already works. Respond only with the revised Markdown, in {language}.
    """
)

_ROOT_SYNTHESIS = textwrap.dedent(
    """
    You are a principal product strategist. Turn the raw project idea below into a
    concise project brief: problem statement, target users, core value proposition,
    key features, constraints and open questions. Use Markdown headings.

    Project idea: {description}

    Existing material:
    {inputs}

    Write the brief in {language}.
    """
)

_REQUIREMENTS_OUTLINE = textwrap.dedent(
    """
    Draft a numbered outline for a Product Requirements Document.

    Project idea: {description}

    Project brief:
    {upstream}

    Keep the outline to 6-10 sections with one line of intent each. Respond in {language}.
    """
)

_REQUIREMENTS_TASK = textwrap.dedent(
    """
    Write the full Product Requirements Document for the project below, following the
    approved outline section by section. Include user stories and acceptance criteria.

    Project idea: {description}

    Project brief:
    {upstream}

    Approved outline:
    {outline}

    Respond in Markdown, in {language}.
    """
)

_RESEARCH_OUTLINE = textwrap.dedent(
    """
    Plan a market and competitor research report for the project below. List the
    questions the report must answer and the competitor categories to cover.

    Project idea: {description}

    Project brief:
    {upstream}

    Respond with a numbered outline in {language}.
    """
)

_RESEARCH_TASK = textwrap.dedent(
    """
    Research the current market for the project below using up-to-date web sources.
    Cover market size, target segments, direct and indirect competitors, and pricing.

    Project idea: {description}

    Project brief:
    {upstream}

    Research plan:
    {outline}

    Cite concrete products and figures. Respond in Markdown, in {language}.
    """
)

_ARCHITECTURE_OUTLINE = textwrap.dedent(
    """
    Outline a system architecture document derived from the requirements below.
    Name the components, data stores, integrations and deployment concerns to cover.

    Project idea: {description}

    Requirements:
    {upstream}

    Respond with a numbered outline in {language}.
    """
)

_ARCHITECTURE_TASK = textwrap.dedent(
    """
    Write the system architecture document for the project. Follow the approved
    outline, justify technology choices, and include a component diagram in Mermaid.

    Project idea: {description}

    Requirements:
    {upstream}

    Approved outline:
    {outline}

    Respond in Markdown, in {language}.
    """
)

_SUMMARY_SYNTHESIS = textwrap.dedent(
    """
    Combine the documents below into an executive summary and an implementation
    roadmap with milestones, risks and next steps.

    Project idea: {description}

    Documents:
    {inputs}

    Respond in Markdown, in {language}.
    """
)


def build_default_graph(language: str = "en") -> WorkflowGraph:
    """Return a fresh, all-``PENDING`` copy of the default documentation graph.

    ``language`` is accepted for parity with per-language graph variants; the
    templates themselves take the language at render time.
    """

    nodes = [
        GraphNode(
            id=DEFAULT_ROOT_ID,
            label="Project Brief",
            node_type=NodeType.SYNTHESIS,
            template=SynthesisTemplate(synthesis=_ROOT_SYNTHESIS),
            details="Synthesises the raw idea into a brief every other document builds on.",
        ),
        GraphNode(
            id="n2",
            label="Product Requirements",
            node_type=NodeType.TASK,
            template=TaskTemplate(task=_REQUIREMENTS_TASK, outline=_REQUIREMENTS_OUTLINE, refine=_REFINE_PROMPT),
            is_human_in_loop=True,
            details="PRD with user stories and acceptance criteria.",
        ),
        GraphNode(
            id="n3",
            label="Market Research",
            node_type=NodeType.TASK,
            template=TaskTemplate(task=_RESEARCH_TASK, outline=_RESEARCH_OUTLINE, refine=_REFINE_PROMPT),
            use_search=True,
            details="Web-grounded market and competitor research.",
        ),
        GraphNode(
            id="n4",
            label="System Architecture",
            node_type=NodeType.TASK,
            template=TaskTemplate(task=_ARCHITECTURE_TASK, outline=_ARCHITECTURE_OUTLINE, refine=_REFINE_PROMPT),
            is_human_in_loop=True,
            details="Architecture derived from the approved requirements.",
        ),
        GraphNode(
            id="n5",
            label="Executive Summary & Roadmap",
            node_type=NodeType.SYNTHESIS,
            template=SynthesisTemplate(synthesis=_SUMMARY_SYNTHESIS),
            details="Closing synthesis across all documents.",
        ),
    ]
    links = [
        (DEFAULT_ROOT_ID, "n2"),
        (DEFAULT_ROOT_ID, "n3"),
        ("n2", "n4"),
        ("n2", "n5"),
        ("n3", "n5"),
        ("n4", "n5"),
    ]
    return WorkflowGraph.build(nodes, links, root_id=DEFAULT_ROOT_ID)
