"""Shared fixtures for the test suite."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

import pytest

from docgraph.graph import GraphNode, NodeType, SynthesisTemplate, TaskTemplate, WorkflowGraph
from docgraph.llm import GroundedResult
from docgraph.workflow import ProjectStore, Source, create_project_state

ENV_VARS = {
    "DOCGRAPH_PROVIDER",
    "DOCGRAPH_MODEL",
    "OPENAI_MODEL",
    "DOCGRAPH_API_KEY",
    "DOCGRAPH_API_KEY_ENV",
    "OPENAI_API_KEY",
    "DOCGRAPH_BASE_URL",
    "OPENAI_BASE_URL",
    "DOCGRAPH_TEMPERATURE",
    "DOCGRAPH_MAX_TOKENS",
    "DOCGRAPH_LANGUAGE",
    "DOCGRAPH_AUTO_APPROVE",
    "DOCGRAPH_RECURSION_LIMIT",
    "DOCGRAPH_STATE_ROOT",
    "DOCGRAPH_EXPORT_ROOT",
}

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _clear_llm_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure docgraph environment variables do not leak between tests."""

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class ScriptedEngine:
    """Engine double that replays canned responses and can fail on demand."""

    def __init__(
        self,
        responses: Iterable[str] = (),
        *,
        fail_when: Callable[[str], bool] | None = None,
        partial: str = "",
        before: Callable[[str], Any] | None = None,
        sources: Iterable[Source] = (),
    ) -> None:
        self.responses = list(responses)
        self.fail_when = fail_when
        self.partial = partial
        self.before = before
        self.sources = tuple(sources)
        self.prompts: list[str] = []
        self.grounded_prompts: list[str] = []

    async def stream_generate(self, prompt: str, on_chunk) -> str:
        self.prompts.append(prompt)
        if self.before is not None:
            self.before(prompt)
        if self.fail_when is not None and self.fail_when(prompt):
            for piece in _pieces(self.partial):
                on_chunk(piece)
                await asyncio.sleep(0)
            raise RuntimeError("engine exploded")
        text = self.responses.pop(0) if self.responses else f"generated #{len(self.prompts)}"
        for piece in _pieces(text):
            on_chunk(piece)
            await asyncio.sleep(0)
        return text

    async def generate_with_grounding(self, prompt: str) -> GroundedResult:
        self.grounded_prompts.append(prompt)
        if self.fail_when is not None and self.fail_when(prompt):
            raise RuntimeError("search exploded")
        text = self.responses.pop(0) if self.responses else "grounded answer"
        return GroundedResult(text=text, sources=self.sources)


def _pieces(text: str, size: int = 4) -> list[str]:
    return [text[idx : idx + size] for idx in range(0, len(text), size)]


class FixedClock:
    """Clock advancing one second per call."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


ROOT_TEMPLATE = SynthesisTemplate(synthesis="SYNTH {description}\n{inputs}\nLANG {language}")
A_TEMPLATE = TaskTemplate(
    task="TASK A {description}\nUP {upstream}\nOUTLINE {outline}\nLANG {language}",
    outline="OUTLINE A {description}\nUP {upstream}\nLANG {language}",
    refine="REFINE {task}\nART {artifact}\nFB {feedback}\nLANG {language}",
)


def make_small_graph() -> WorkflowGraph:
    """``root`` (SYNTHESIS) -> ``A`` (TASK with outline and refine, human in the loop)."""

    nodes = [
        GraphNode(id="root", label="Root Brief", node_type=NodeType.SYNTHESIS, template=ROOT_TEMPLATE),
        GraphNode(id="A", label="Doc A", node_type=NodeType.TASK, template=A_TEMPLATE, is_human_in_loop=True),
    ]
    return WorkflowGraph.build(nodes, [("root", "A")], root_id="root")


@pytest.fixture
def small_graph() -> WorkflowGraph:
    return make_small_graph()


@pytest.fixture
def project_store(small_graph: WorkflowGraph) -> ProjectStore:
    return ProjectStore(create_project_state("p1", "A todo app", small_graph))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def dummy_chat_model(monkeypatch: pytest.MonkeyPatch):
    """Patch the LangChain chat client used by the provider abstraction."""

    from docgraph.llm import providers

    class DummyMessage:
        def __init__(self, content: Any) -> None:
            self.content = content

    class DummyChatModel:
        stream_chunks: list[Any] = ["Hel", "", "lo"]
        grounded_content: Any = "grounded"
        fail = False

        def __init__(self, **kwargs: Any) -> None:
            self.kwargs = kwargs
            self.invocations: list[tuple[str, Any]] = []
            self.bound_tools: list[Any] = []

        async def astream(self, messages: Iterable[Any], **kwargs: Any):
            self.invocations.append(("astream", tuple(messages)))
            for chunk in self.stream_chunks:
                if self.fail:
                    raise ConnectionError("socket closed")
                yield DummyMessage(chunk)

        def bind_tools(self, tools: list[Any]):
            self.bound_tools.extend(tools)
            return self

        async def ainvoke(self, messages: Iterable[Any], **kwargs: Any):
            self.invocations.append(("ainvoke", tuple(messages)))
            return DummyMessage(self.grounded_content)

    monkeypatch.setattr(providers, "ChatOpenAI", DummyChatModel)
    return DummyChatModel


@pytest.fixture
def make_engine() -> type[ScriptedEngine]:
    return ScriptedEngine
