"""
Streaming aggregator.

Folds the delta stream of one exchange into the transcript. Deltas are
concatenated raw in arrival order; chunk boundaries can fall mid-word and
are never re-split.

Last Grunted: 10/18/2026
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Final

from .models import Turn
from .transcript import Transcript


__all__ = [
    "AI_ERROR_TEXT",
    "CompletionStreamError",
    "ExchangeResult",
    "StreamingAggregator",
]


logger = logging.getLogger(__name__)

AI_ERROR_TEXT: Final[str] = "Error: unable to get a response from AI."

StreamFactory = Callable[[], AsyncIterator[str]]
UpdateCallback = Callable[[tuple[Turn, ...]], Awaitable[None]]


class CompletionStreamError(Exception):
    """Raised for a chunk the aggregator cannot apply (for example a non-string)."""


@dataclass(frozen=True)
class ExchangeResult:
    """
    Result of folding one delta stream into the transcript.

    Attributes:
        text: Final content of the assistant turn. On failure this is the
            partial content, or ``AI_ERROR_TEXT`` if nothing had arrived.
        deltas: Number of non-empty deltas applied.
        error: Description of the stream failure, None on success.
    """

    text: str
    deltas: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StreamingAggregator:
    """
    Consumes one completion stream into a transcript.

    The aggregator holds the turn handle only for the duration of ``run``.

    Example:
        >>> aggregator = StreamingAggregator(transcript, on_update=publish)
        >>> result = await aggregator.run(lambda: service.stream(history, "backend engineer"))
        >>> result.text
        'Hello there, welcome...'
    """

    def __init__(
        self,
        transcript: Transcript,
        on_update: UpdateCallback | None = None,
    ) -> None:
        self._transcript = transcript
        self._on_update = on_update

    async def _publish(self) -> None:
        if self._on_update is not None:
            await self._on_update(self._transcript.snapshot())

    async def run(self, open_stream: StreamFactory) -> ExchangeResult:
        """
        Run one exchange.

        Args:
            open_stream: Zero-argument callable returning the delta stream.
                It is invoked after the assistant turn exists, so a failure
                to even open the stream still lands in that turn.

        Returns:
            ExchangeResult describing the final assistant text.

        Raises:
            TranscriptInvariantError: If the transcript refuses a mutation.
                That is a sequencing bug in the caller and aborts the exchange.
            asyncio.CancelledError: If the surrounding task is cancelled. The
                turn is completed with whatever content had arrived.
        """
        handle = self._transcript.begin_assistant_turn()
        await self._publish()

        applied = 0
        failure: Exception | None = None
        stream: AsyncIterator[str] | None = None
        try:
            try:
                stream = open_stream()
            except Exception as exc:
                failure = exc
            while stream is not None and failure is None:
                try:
                    delta = await stream.__anext__()
                except StopAsyncIteration:
                    break
                except Exception as exc:
                    failure = exc
                    break
                if not isinstance(delta, str):
                    failure = CompletionStreamError(
                        f"Malformed chunk of type {type(delta).__name__}"
                    )
                    break
                if not delta:
                    continue
                self._transcript.append_delta(handle, delta)
                applied += 1
                logger.debug("Applied delta #%d (len=%d)", applied, len(delta))
                await self._publish()
        except BaseException:
            # Cancelled or aborted: the tail must not stay streaming.
            logger.warning("Exchange aborted after %d deltas", applied)
            self._transcript.complete_assistant_turn(handle)
            raise
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as exc:
                    logger.warning("Failed to close completion stream: %s", exc)

        if failure is not None:
            logger.error(
                "Completion stream failed after %d deltas: %s",
                applied,
                failure,
                exc_info=failure,
            )
            if applied == 0:
                self._transcript.append_delta(handle, AI_ERROR_TEXT)

        self._transcript.complete_assistant_turn(handle)
        await self._publish()

        final = self._transcript.snapshot()[handle.index]
        return ExchangeResult(
            text=final.content,
            deltas=applied,
            error=None if failure is None else f"{type(failure).__name__}: {failure}",
        )
