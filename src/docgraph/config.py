"""Dataclass-driven configuration for the docgraph package."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable

from .llm import GenerativeEngine, MockGenerativeEngine, build_provider
from .paths import DocGraphPathConfig, resolve_export_path, resolve_state_file

__all__ = [
    "DocGraphConfig",
    "LLMConfig",
    "MOCK_PROVIDERS",
    "WorkflowConfig",
]

logger = logging.getLogger(__name__)

MOCK_PROVIDERS = frozenset({"mock", "test", "stub"})


def _env_int(name: str, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class LLMConfig:
    """Configuration for the generative engine."""

    provider: str = field(default_factory=lambda: os.getenv("DOCGRAPH_PROVIDER", "openai"))
    # unset values fall back to the environment inside build_provider
    model: str | None = None
    base_url: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    api_key_env: str = field(default_factory=lambda: os.getenv("DOCGRAPH_API_KEY_ENV", "DOCGRAPH_API_KEY"))
    fallback_api_key_envs: tuple[str, ...] = ("OPENAI_API_KEY",)

    @property
    def is_mock(self) -> bool:
        return self.provider.lower() in MOCK_PROVIDERS

    def resolve_api_key(self, override: str | None = None) -> str | None:
        if override:
            return override
        env_candidates: Iterable[str | None] = (self.api_key_env, *self.fallback_api_key_envs)
        for name in env_candidates:
            if not name:
                continue
            value = os.getenv(name)
            if value:
                return value
        return None

    def provider_kwargs(
        self,
        *,
        model: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, object | None]:
        return {
            "model": model or self.model,
            "base_url": base_url or self.base_url,
            "api_key": api_key if api_key is not None else self.resolve_api_key(),
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
        }

    def create_engine(self, **overrides: object) -> GenerativeEngine:
        if self.is_mock:
            logger.info("Using the offline mock engine")
            return MockGenerativeEngine()
        return build_provider(**self.provider_kwargs(**overrides))  # type: ignore[arg-type]


@dataclass(slots=True)
class WorkflowConfig:
    """Knobs for the orchestration loop."""

    language: str = field(default_factory=lambda: os.getenv("DOCGRAPH_LANGUAGE", "en"))
    auto_approve: bool = field(default_factory=lambda: _env_bool("DOCGRAPH_AUTO_APPROVE"))
    recursion_limit: int = field(default_factory=lambda: _env_int("DOCGRAPH_RECURSION_LIMIT", 50) or 50)


@dataclass(slots=True)
class DocGraphConfig:
    """Primary configuration entry point."""

    paths: DocGraphPathConfig = field(default_factory=DocGraphPathConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)

    def with_paths(
        self,
        *,
        state_file: Path | str | None = None,
        export_root: Path | str | None = None,
    ) -> "DocGraphConfig":
        new_paths = replace(
            self.paths,
            state_file=resolve_state_file(state_file or self.paths.state_file),
            export_root=resolve_export_path(export_root or self.paths.export_root, create=False),
        )
        return replace(self, paths=new_paths)

    @property
    def state_file(self) -> Path:
        return resolve_state_file(self.paths.state_file)

    @property
    def export_root(self) -> Path:
        return resolve_export_path(self.paths.export_root, create=False)

    def ensure_directories(self) -> "DocGraphConfig":
        self.paths = self.paths.ensure()
        return self

    def create_engine(self, **overrides: object) -> GenerativeEngine:
        return self.llm.create_engine(**overrides)
