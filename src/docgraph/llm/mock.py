"""Deterministic offline engine used for demos, the CLI ``--provider mock`` and tests."""

from __future__ import annotations

import asyncio
import hashlib
import textwrap

from ..workflow.documents import Source
from .providers import ChunkCallback, GroundedResult

__all__ = ["MockGenerativeEngine"]


class MockGenerativeEngine:
    """Echo-style engine whose output depends only on the prompt.

    Every call is recorded in :attr:`calls` as ``(kind, prompt)`` so callers can
    assert which prompts were rendered.
    """

    def __init__(self, *, chunk_words: int = 8, source_count: int = 2) -> None:
        self.chunk_words = max(1, chunk_words)
        self.source_count = source_count
        self.calls: list[tuple[str, str]] = []

    async def stream_generate(self, prompt: str, on_chunk: ChunkCallback) -> str:
        self.calls.append(("stream", prompt))
        text = self._build_response(prompt)
        for chunk in self._chunks(text):
            result = on_chunk(chunk)
            if result is not None:
                await result
            # let the chunk consumer run between deltas
            await asyncio.sleep(0)
        return text

    async def generate_with_grounding(self, prompt: str) -> GroundedResult:
        self.calls.append(("grounded", prompt))
        digest = self._digest(prompt)
        sources = tuple(
            Source(uri=f"https://example.com/mock/{digest}/{index}", title=f"Mock reference {index}")
            for index in range(1, self.source_count + 1)
        )
        return GroundedResult(text=self._build_response(prompt), sources=sources)

    def _build_response(self, prompt: str) -> str:
        heading = self._first_line(prompt)
        excerpt = " ".join(prompt.split())[:240]
        return textwrap.dedent(
            f"""
            # {heading}

            Draft {self._digest(prompt)} generated offline.

            > {excerpt}
            """
        ).strip()

    def _chunks(self, text: str) -> list[str]:
        words = text.split(" ")
        chunks = []
        for start in range(0, len(words), self.chunk_words):
            piece = " ".join(words[start : start + self.chunk_words])
            if start + self.chunk_words < len(words):
                piece += " "
            chunks.append(piece)
        return chunks

    @staticmethod
    def _first_line(prompt: str) -> str:
        for line in prompt.splitlines():
            stripped = line.strip().lstrip("#").strip()
            if stripped:
                return stripped[:80]
        return "Untitled"

    @staticmethod
    def _digest(prompt: str) -> str:
        return hashlib.sha1(prompt.encode("utf-8")).hexdigest()[:8]
