"""
Test doubles and canned data for Mock Interviewer tests.

Provides completion services that stream scripted deltas, fail on demand,
or block until released so concurrency rules can be observed.

Last Grunted: 10/18/2026
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from types import SimpleNamespace
from typing import Any

from mock_interviewer.models import HistoryMessage


# =============================================================================
# Canned replies
# =============================================================================

WELCOME_DELTAS = ["Hello", " there, welcome..."]
ELABORATE_DELTAS = ["Could you", " elaborate?"]
SUCCESS_DELTAS = ["Best of luck", ", Jane!"]
EXIT_DELTAS = ["Ending interview.", " Try again with a valid job title."]

FEEDBACK_WITH_ERROR_WORD = (
    "Your answer on Error handling was thorough. What would you monitor first?"
)


class StreamFailure(ConnectionError):
    """Simulated transport failure raised from inside a delta stream."""


# =============================================================================
# Completion services
# =============================================================================

class RecordingCompletionService:
    """
    Streams one scripted reply per call and records what it was asked.

    Each reply is a list of deltas. A delta that is an exception instance
    is raised at that point in the stream.
    """

    def __init__(self, *replies: Sequence[Any]) -> None:
        self._replies = list(replies)
        self.calls: list[tuple[list[HistoryMessage], str]] = []

    async def stream(
        self,
        history: Sequence[HistoryMessage],
        new_input: str,
    ) -> AsyncIterator[str]:
        self.calls.append((list(history), new_input))
        deltas = self._replies.pop(0) if self._replies else []
        for delta in deltas:
            await asyncio.sleep(0)
            if isinstance(delta, BaseException):
                raise delta
            yield delta


class GatedCompletionService:
    """
    Streams one delta, then waits for ``release()`` before finishing.

    Lets a test start an exchange, observe the session mid-stream, and
    attempt overlapping operations.
    """

    def __init__(self, first: str = "Partial", rest: str = " reply.") -> None:
        self.first = first
        self.rest = rest
        self.started = asyncio.Event()
        self._gate = asyncio.Event()
        self.calls = 0

    def release(self) -> None:
        self._gate.set()

    async def stream(
        self,
        history: Sequence[HistoryMessage],
        new_input: str,
    ) -> AsyncIterator[str]:
        self.calls += 1
        yield self.first
        self.started.set()
        await self._gate.wait()
        yield self.rest


class OpeningFailureService:
    """Fails when the stream is requested, before any delta exists."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or StreamFailure("connection refused")

    def stream(
        self,
        history: Sequence[HistoryMessage],
        new_input: str,
    ) -> AsyncIterator[str]:
        raise self.exc


async def iterate(deltas: Sequence[Any]) -> AsyncIterator[Any]:
    """Async generator over ``deltas``, raising any exception entries."""
    for delta in deltas:
        await asyncio.sleep(0)
        if isinstance(delta, BaseException):
            raise delta
        yield delta


# =============================================================================
# OpenAI client doubles
# =============================================================================

def make_chunk(content: str | None, *, empty_choices: bool = False) -> SimpleNamespace:
    """Build an object shaped like a streamed chat completion chunk."""
    if empty_choices:
        return SimpleNamespace(choices=[])
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=content))]
    )


def make_completion(content: str | None) -> SimpleNamespace:
    """Build an object shaped like a non-streamed chat completion."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


class FakeAsyncStream:
    """Async iterator over prepared chunks, like the SDK's AsyncStream."""

    def __init__(self, chunks: Sequence[SimpleNamespace]) -> None:
        self._chunks = list(chunks)

    def __aiter__(self) -> FakeAsyncStream:
        return self

    async def __anext__(self) -> SimpleNamespace:
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


class FakeOpenAIClient:
    """
    Minimal stand-in for ``AsyncOpenAI``: only ``chat.completions.create``.

    Records every request's keyword arguments in ``requests``.
    """

    def __init__(
        self,
        chunks: Sequence[SimpleNamespace] = (),
        completion: SimpleNamespace | None = None,
    ) -> None:
        self._chunks = chunks
        self._completion = completion or make_completion("")
        self.requests: list[dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs: Any) -> Any:
        self.requests.append(kwargs)
        if kwargs.get("stream"):
            return FakeAsyncStream(self._chunks)
        return self._completion
