"""Serializable prompt templates bound to workflow graph nodes.

Templates are plain ``str.format`` strings so a graph can be written to a
snapshot and restored without losing its prompts. Each node variant carries
its own template class; rendering an unsupported stage raises
:class:`TemplateError`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Mapping

__all__ = [
    "LANGUAGE_NAMES",
    "REFINE_TASK_LABELS",
    "PromptTemplate",
    "SynthesisTemplate",
    "TaskTemplate",
    "TemplateError",
    "language_name",
    "render_chat_prompt",
    "template_from_dict",
]

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "vi": "Vietnamese",
}

REFINE_TASK_LABELS: dict[str, str] = {
    "outline": "Refine the outline.",
    "content": "Refine the document content.",
}


class TemplateError(ValueError):
    """Raised when a template cannot render the requested stage."""


def language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(language, language)


def _format(template: str, **values: Any) -> str:
    try:
        return template.format(**values).strip()
    except (KeyError, IndexError) as exc:
        raise TemplateError(f"Template references an unknown placeholder: {exc}") from exc


class PromptTemplate:
    """Base class for per-node prompt templates."""

    kind: ClassVar[str] = ""

    @property
    def has_outline(self) -> bool:
        return False

    @property
    def has_refine(self) -> bool:
        return False

    def render_synthesis(
        self,
        description: str,
        predecessor_outputs: Mapping[str, str],
        language: str,
    ) -> str:
        raise TemplateError(f"{type(self).__name__} cannot render a synthesis prompt")

    def render_outline(self, description: str, upstream: str, language: str) -> str:
        raise TemplateError(f"{type(self).__name__} cannot render an outline prompt")

    def render_task(self, description: str, upstream: str, outline: str, language: str) -> str:
        raise TemplateError(f"{type(self).__name__} cannot render a task prompt")

    def render_refine(self, task: str, artifact: str, feedback: str, language: str) -> str:
        raise TemplateError(f"{type(self).__name__} cannot render a refine prompt")

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)  # type: ignore[call-overload]
        payload["kind"] = self.kind
        return payload


@dataclass(frozen=True, slots=True)
class SynthesisTemplate(PromptTemplate):
    """Template for nodes that merge the outputs of their predecessors.

    Placeholders: ``{description}``, ``{inputs}``, ``{language}``.
    """

    synthesis: str

    kind: ClassVar[str] = "synthesis"

    def render_synthesis(
        self,
        description: str,
        predecessor_outputs: Mapping[str, str],
        language: str,
    ) -> str:
        blocks = [
            f"--- Input from {node_id} ---\n{text.strip()}"
            for node_id, text in predecessor_outputs.items()
        ]
        inputs = "\n\n".join(blocks) if blocks else "(no upstream documents)"
        return _format(
            self.synthesis,
            description=description,
            inputs=inputs,
            language=language_name(language),
        )


@dataclass(frozen=True, slots=True)
class TaskTemplate(PromptTemplate):
    """Template for outline → content task nodes.

    ``task`` is required; ``outline`` and ``refine`` are optional. Placeholders
    are ``{description}``, ``{upstream}``, ``{outline}`` and ``{language}`` for
    the generation prompts and ``{task}``, ``{artifact}``, ``{feedback}``,
    ``{language}`` for the refine prompt.
    """

    task: str
    outline: str | None = None
    refine: str | None = None

    kind: ClassVar[str] = "task"

    @property
    def has_outline(self) -> bool:
        return bool(self.outline)

    @property
    def has_refine(self) -> bool:
        return bool(self.refine)

    def render_outline(self, description: str, upstream: str, language: str) -> str:
        if not self.outline:
            return super(TaskTemplate, self).render_outline(description, upstream, language)
        return _format(
            self.outline,
            description=description,
            upstream=upstream or "(none)",
            language=language_name(language),
        )

    def render_task(self, description: str, upstream: str, outline: str, language: str) -> str:
        return _format(
            self.task,
            description=description,
            upstream=upstream or "(none)",
            outline=outline or "(no outline)",
            language=language_name(language),
        )

    def render_refine(self, task: str, artifact: str, feedback: str, language: str) -> str:
        if not self.refine:
            return super(TaskTemplate, self).render_refine(task, artifact, feedback, language)
        return _format(
            self.refine,
            task=task,
            artifact=artifact,
            feedback=feedback,
            language=language_name(language),
        )


_TEMPLATE_KINDS: dict[str, type[PromptTemplate]] = {
    SynthesisTemplate.kind: SynthesisTemplate,
    TaskTemplate.kind: TaskTemplate,
}


def template_from_dict(payload: Mapping[str, Any]) -> PromptTemplate:
    data = dict(payload)
    kind = data.pop("kind", None)
    template_cls = _TEMPLATE_KINDS.get(str(kind))
    if template_cls is None:
        raise TemplateError(f"Unknown template kind: {kind!r}")
    try:
        return template_cls(**data)
    except TypeError as exc:
        raise TemplateError(f"Invalid {kind} template payload: {exc}") from exc


def render_chat_prompt(
    *,
    description: str,
    document_title: str,
    document_content: str,
    parents: Mapping[str, str],
    siblings: Mapping[str, str],
    question: str,
    language: str,
) -> str:
    """Build the context-rich prompt used for document chat."""

    lines = [
        "CONTEXT:",
        f'Project Description: "{description}"',
        "",
        f'Current Document ("{document_title}"):',
        "---",
        document_content,
        "---",
    ]
    if parents:
        lines.append("")
        lines.append("Parent Document(s) Context:")
        for label, content in parents.items():
            lines.append(f'--- Document: "{label}" ---')
            lines.append(content)
    if siblings:
        lines.append("")
        lines.append("Sibling Document(s) Context:")
        for label, content in siblings.items():
            lines.append(f'--- Document: "{label}" ---')
            lines.append(content)
    lines.extend(
        [
            "",
            f'Based on ALL of the context above, answer the following question about the "{document_title}" document.',
            f"The response must be in {language_name(language)}.",
            "",
            f'Question: "{question}"',
        ]
    )
    return "\n".join(lines)
