"""Generative engines for the docgraph workflow."""

from .mock import MockGenerativeEngine
from .providers import (
    GenerativeEngine,
    GroundedResult,
    LangChainChatProvider,
    ProviderDependencyError,
    ProviderError,
    ProviderSettings,
    build_provider,
)

__all__ = [
    "GenerativeEngine",
    "GroundedResult",
    "LangChainChatProvider",
    "MockGenerativeEngine",
    "ProviderError",
    "ProviderDependencyError",
    "ProviderSettings",
    "build_provider",
]
