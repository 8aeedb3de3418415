"""
Interview transcript.

Ordered, append-mostly log of turns with at most one streaming tail.

Thread Safety:
    Not thread-safe. The transcript belongs to a single session controller
    running on one event loop; the only code allowed to touch the streaming
    tail is whoever holds the live ``TurnHandle``.

Last Grunted: 10/18/2026
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import count

from .models import Speaker, Turn, TurnStatus


__all__ = ["Transcript", "TurnHandle", "TranscriptInvariantError"]


logger = logging.getLogger(__name__)

_handle_ids = count(1)


class TranscriptInvariantError(RuntimeError):
    """Raised when a transcript operation would break ordering or streaming rules."""


@dataclass(frozen=True)
class TurnHandle:
    """
    Capability to mutate the streaming assistant turn.

    Returned by ``Transcript.begin_assistant_turn`` and valid until the turn
    is completed or the transcript is cleared.
    """

    index: int
    handle_id: int = field(default_factory=lambda: next(_handle_ids))


class Transcript:
    """
    Ordered sequence of turns for one interview.

    Example:
        >>> transcript = Transcript()
        >>> handle = transcript.begin_assistant_turn()
        >>> transcript.append_delta(handle, "Welcome")
        >>> transcript.append_delta(handle, " aboard.")
        >>> transcript.complete_assistant_turn(handle)
        True
        >>> transcript.snapshot()[0].content
        'Welcome aboard.'
    """

    def __init__(self) -> None:
        self._turns: list[Turn] = []
        self._live: TurnHandle | None = None

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def has_streaming_turn(self) -> bool:
        return self._live is not None

    @property
    def last_turn(self) -> Turn | None:
        return self._turns[-1] if self._turns else None

    def snapshot(self) -> tuple[Turn, ...]:
        """
        Read-only view of every turn, in conversation order.

        Safe to call mid-stream; the streaming tail carries whatever deltas
        have been applied so far.
        """
        return tuple(self._turns)

    def append_user(self, text: str) -> Turn:
        """
        Append a complete user turn.

        Args:
            text: The user's message. Must be non-empty after trimming.

        Returns:
            The appended turn.

        Raises:
            TranscriptInvariantError: If the text is blank, an assistant turn
                is still streaming, or the previous user turn has no reply yet.
        """
        if not text or not text.strip():
            raise TranscriptInvariantError("User turn text must not be empty")
        if self._live is not None:
            raise TranscriptInvariantError(
                "Cannot append a user turn while an assistant turn is streaming"
            )
        last = self.last_turn
        if last is not None and last.speaker is Speaker.USER:
            raise TranscriptInvariantError(
                "Previous user turn has not been answered yet"
            )

        turn = Turn(speaker=Speaker.USER, content=text, status=TurnStatus.COMPLETE)
        self._turns.append(turn)
        logger.debug("Appended user turn #%d (len=%d)", len(self._turns) - 1, len(text))
        return turn

    def begin_assistant_turn(self) -> TurnHandle:
        """
        Append an empty streaming assistant turn.

        Returns:
            Handle required by ``append_delta`` and ``complete_assistant_turn``.

        Raises:
            TranscriptInvariantError: If the last turn is still streaming.
        """
        if self._live is not None:
            raise TranscriptInvariantError("An assistant turn is already streaming")

        self._turns.append(
            Turn(speaker=Speaker.ASSISTANT, content="", status=TurnStatus.STREAMING)
        )
        self._live = TurnHandle(index=len(self._turns) - 1)
        logger.debug("Began assistant turn #%d", self._live.index)
        return self._live

    def append_delta(self, handle: TurnHandle, text: str) -> None:
        """
        Concatenate a delta onto the streaming turn.

        Args:
            handle: The live handle from ``begin_assistant_turn``.
            text: Delta text. Empty strings are accepted and ignored.

        Raises:
            TranscriptInvariantError: If ``handle`` is not the live handle.
            TypeError: If ``text`` is not a string.
        """
        if handle is not self._live:
            raise TranscriptInvariantError(
                f"Handle {handle!r} does not refer to the streaming turn"
            )
        if not isinstance(text, str):
            raise TypeError(f"Delta must be str, got {type(text).__name__}")
        if not text:
            return
        self._turns[handle.index] = self._turns[handle.index].with_appended(text)

    def complete_assistant_turn(self, handle: TurnHandle) -> bool:
        """
        Mark the streaming turn complete.

        A stale or foreign handle means two exchanges overlapped. That is
        logged and reported, not raised, so the caller can finish cleanly.

        Returns:
            True if the turn was completed, False if the handle was not live.
        """
        if handle is not self._live:
            logger.error(
                "complete_assistant_turn called with stale handle %r (live=%r)",
                handle,
                self._live,
            )
            return False

        self._turns[handle.index] = self._turns[handle.index].completed()
        self._live = None
        logger.debug(
            "Completed assistant turn #%d (len=%d)",
            handle.index,
            len(self._turns[handle.index].content),
        )
        return True

    def clear(self) -> None:
        """
        Drop every turn.

        Raises:
            TranscriptInvariantError: If an assistant turn is still streaming.
        """
        if self._live is not None:
            raise TranscriptInvariantError("Cannot clear while an assistant turn is streaming")
        self._turns.clear()
