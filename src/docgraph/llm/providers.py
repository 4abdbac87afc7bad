"""LangChain chat provider used as the generative engine of the workflow."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence, Tuple

from langchain_core.messages import HumanMessage

from ..workflow.documents import Source

try:  # pragma: no cover - import guard for optional dependency
    from langchain_openai import ChatOpenAI
except ImportError:  # pragma: no cover - gracefully degrade when dependency missing
    ChatOpenAI = None  # type: ignore[assignment]

__all__ = [
    "ChunkCallback",
    "GenerativeEngine",
    "GroundedResult",
    "LangChainChatProvider",
    "ProviderDependencyError",
    "ProviderError",
    "ProviderSettings",
    "build_provider",
]

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Any]

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MODEL_ENVS: Tuple[str, ...] = ("DOCGRAPH_MODEL", "OPENAI_MODEL")
DEFAULT_API_KEY_ENVS: Tuple[str, ...] = ("DOCGRAPH_API_KEY", "OPENAI_API_KEY")
DEFAULT_BASE_URL_ENVS: Tuple[str, ...] = ("DOCGRAPH_BASE_URL", "OPENAI_BASE_URL")
DEFAULT_TEMPERATURE_ENV = "DOCGRAPH_TEMPERATURE"
DEFAULT_MAX_TOKEN_ENV = "DOCGRAPH_MAX_TOKENS"

WEB_SEARCH_TOOL: Mapping[str, str] = {"type": "web_search_preview"}


class ProviderError(RuntimeError):
    """Base error raised when interacting with a chat provider."""


class ProviderDependencyError(ProviderError):
    """Raised when required dependencies are unavailable."""


@dataclass(frozen=True, slots=True)
class GroundedResult:
    """Full text of a web-grounded generation plus its deduplicated citations."""

    text: str
    sources: tuple[Source, ...] = field(default_factory=tuple)


class GenerativeEngine(Protocol):
    """Contract between the node executor and a language model backend."""

    async def stream_generate(self, prompt: str, on_chunk: ChunkCallback) -> str:  # pragma: no cover - interface
        ...

    async def generate_with_grounding(self, prompt: str) -> GroundedResult:  # pragma: no cover - interface
        ...


@dataclass(slots=True)
class ProviderSettings:
    """Mutable settings bundle for a chat provider."""

    model: str = DEFAULT_MODEL
    base_url: str | None = None
    api_key: str | None = None
    temperature: float = 0.0
    max_tokens: int | None = None
    timeout: float | None = None

    def as_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
        }
        if self.base_url:
            kwargs["base_url"] = self.base_url
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs


class LangChainChatProvider:
    """``GenerativeEngine`` backed by ``langchain_openai.ChatOpenAI``."""

    def __init__(self, settings: ProviderSettings):
        if ChatOpenAI is None:
            raise ProviderDependencyError(
                "langchain-openai is required to instantiate LangChainChatProvider"
            )
        self.settings = settings
        self._client = self._build_client(settings)

    def _build_client(self, settings: ProviderSettings):
        try:
            return ChatOpenAI(**settings.as_kwargs())  # type: ignore[arg-type]
        except Exception as exc:  # pragma: no cover - passthrough
            raise ProviderError(f"Failed to initialise chat model '{settings.model}': {exc}") from exc

    @property
    def model(self) -> str:
        return self.settings.model

    async def stream_generate(self, prompt: str, on_chunk: ChunkCallback) -> str:
        """Stream a completion, handing every non-empty text delta to ``on_chunk``."""

        parts: list[str] = []
        try:
            async for chunk in self._client.astream([HumanMessage(content=prompt)]):
                text = _content_text(getattr(chunk, "content", chunk))
                if not text:
                    continue
                parts.append(text)
                result = on_chunk(text)
                if result is not None:
                    await result
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(f"Streaming failed for model '{self.settings.model}': {exc}") from exc
        return "".join(parts)

    async def generate_with_grounding(self, prompt: str) -> GroundedResult:
        """Run one web-search grounded completion and collect its URL citations."""

        try:
            client = self._client.bind_tools([dict(WEB_SEARCH_TOOL)])
            message = await client.ainvoke([HumanMessage(content=prompt)])
        except Exception as exc:
            raise ProviderError(f"Grounded generation failed for model '{self.settings.model}': {exc}") from exc

        content = getattr(message, "content", message)
        sources = _dedupe_sources(_iter_citations(content))
        logger.debug("Grounded generation returned %d sources", len(sources))
        return GroundedResult(text=_content_text(content), sources=sources)


def _content_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, Mapping):
        return str(content.get("text") or "")
    if isinstance(content, Iterable):
        return "".join(_content_text(block) for block in content)
    return str(content)


def _iter_citations(content: Any) -> Iterable[Mapping[str, Any]]:
    if not isinstance(content, list):
        return
    for block in content:
        if not isinstance(block, Mapping):
            continue
        for annotation in block.get("annotations") or ():
            if isinstance(annotation, Mapping) and annotation.get("type") == "url_citation":
                yield annotation


def _dedupe_sources(citations: Iterable[Mapping[str, Any]]) -> tuple[Source, ...]:
    seen: dict[str, Source] = {}
    for citation in citations:
        uri = str(citation.get("url") or "").strip()
        if not uri or uri in seen:
            continue
        seen[uri] = Source(uri=uri, title=str(citation.get("title") or uri))
    return tuple(seen.values())


def build_provider(
    *,
    model: str | None = None,
    model_envs: Sequence[str] | None = None,
    base_url: str | None = None,
    api_key: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    timeout: float | None = None,
    api_key_envs: Sequence[str] | None = None,
    base_url_envs: Sequence[str] | None = None,
) -> LangChainChatProvider:
    """Factory that mirrors CLI/env resolution for provider credentials."""

    model_env_value = _resolve_from_env(model_envs or DEFAULT_MODEL_ENVS)
    resolved_model = model or model_env_value or DEFAULT_MODEL
    resolved_base_url = base_url or _resolve_from_env(base_url_envs or DEFAULT_BASE_URL_ENVS)
    resolved_api_key = api_key or _resolve_from_env(api_key_envs or DEFAULT_API_KEY_ENVS)

    resolved_temperature = _coerce_float(temperature, os.getenv(DEFAULT_TEMPERATURE_ENV), default=0.0)
    resolved_max_tokens = _coerce_int(max_tokens, os.getenv(DEFAULT_MAX_TOKEN_ENV))

    settings = ProviderSettings(
        model=resolved_model,
        base_url=resolved_base_url,
        api_key=resolved_api_key,
        temperature=resolved_temperature,
        max_tokens=resolved_max_tokens,
        timeout=timeout,
    )
    return LangChainChatProvider(settings)


def _resolve_from_env(envs: Sequence[str]) -> str | None:
    for env_name in envs:
        value = os.getenv(env_name)
        if value:
            return value
    return None


def _coerce_float(explicit: float | None, env_value: str | None, *, default: float) -> float:
    if explicit is not None:
        return explicit
    if env_value is None:
        return default
    try:
        return float(env_value)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", DEFAULT_TEMPERATURE_ENV, env_value)
        return default


def _coerce_int(explicit: int | None, env_value: str | None) -> int | None:
    if explicit is not None:
        return explicit
    if env_value is None:
        return None
    try:
        return int(env_value)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", DEFAULT_MAX_TOKEN_ENV, env_value)
        return None
