"""
Pydantic models for the Mock Interviewer.

Defines the transcript turn, the enums that describe speakers, turn status,
session phase and termination outcome, and the history message shape handed
to the completion service.

Last Grunted: 10/18/2026
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Speaker(str, Enum):
    """Who authored a turn."""

    USER = "user"
    ASSISTANT = "assistant"


class TurnStatus(str, Enum):
    """
    Lifecycle of a single turn.

    Attributes:
        STREAMING: Content is still arriving from the completion service.
        COMPLETE: Content is final and will never change again.
    """

    STREAMING = "streaming"
    COMPLETE = "complete"


class SessionPhase(str, Enum):
    """Phases of one interview attempt."""

    AWAITING_TOPIC = "awaiting_topic"
    ACTIVE = "active"
    ENDED = "ended"


class TerminationOutcome(str, Enum):
    """
    Lifecycle signal derived from a completed assistant reply.

    Attributes:
        CONTINUE: No sentinel phrase found, the interview goes on.
        ENDED_BY_EXIT: The interviewer rejected the job title and quit early.
        ENDED_BY_SUCCESS: The interviewer closed the interview normally.
        ENDED_BY_ERROR: The reply carried an error marker.
    """

    CONTINUE = "continue"
    ENDED_BY_EXIT = "ended_by_exit"
    ENDED_BY_SUCCESS = "ended_by_success"
    ENDED_BY_ERROR = "ended_by_error"

    @property
    def ends_session(self) -> bool:
        """Whether this outcome terminates the interview."""
        return self is not TerminationOutcome.CONTINUE


class Turn(BaseModel):
    """
    One message in the transcript.

    Turns are immutable values. While a turn is streaming the transcript
    swaps in a new ``Turn`` for every delta, so any snapshot handed out
    earlier keeps the content it was taken with.

    Example:
        >>> turn = Turn(speaker=Speaker.ASSISTANT, content="Hello", status=TurnStatus.STREAMING)
        >>> turn.is_streaming
        True
    """

    model_config = ConfigDict(frozen=True)

    speaker: Speaker = Field(..., description="Author of the turn")
    content: str = Field(default="", description="Markdown text of the turn")
    status: TurnStatus = Field(
        default=TurnStatus.COMPLETE,
        description="'streaming' while deltas are arriving, then 'complete'",
    )

    @property
    def is_streaming(self) -> bool:
        return self.status is TurnStatus.STREAMING

    def with_appended(self, delta: str) -> Turn:
        """Return a copy of this turn with ``delta`` appended to its content."""
        return self.model_copy(update={"content": self.content + delta})

    def completed(self) -> Turn:
        """Return a copy of this turn marked complete."""
        return self.model_copy(update={"status": TurnStatus.COMPLETE})


class HistoryMessage(BaseModel):
    """
    One prior message sent to the completion service as context.

    The service sees speaker and content only; streaming status is a
    transcript concern.
    """

    model_config = ConfigDict(frozen=True)

    speaker: Speaker = Field(..., description="Author of the message")
    content: str = Field(..., description="Message text")

    @classmethod
    def from_turn(cls, turn: Turn) -> HistoryMessage:
        return cls(speaker=turn.speaker, content=turn.content)


class SessionState(BaseModel):
    """
    Mutable lifecycle state for one interview attempt.

    Example:
        >>> state = SessionState()
        >>> state.phase
        <SessionPhase.AWAITING_TOPIC: 'awaiting_topic'>
    """

    phase: SessionPhase = Field(
        default=SessionPhase.AWAITING_TOPIC,
        description="Current lifecycle phase",
    )
    topic: str = Field(default="", description="Job title the interview is about")
    session_id: str | None = Field(
        default=None,
        description="Identifier generated when a topic is submitted",
    )
    started_at: str | None = Field(
        default=None,
        description="ISO 8601 UTC timestamp when the topic was submitted",
    )


def utc_timestamp(dt: datetime | None = None) -> str:
    """
    Format a datetime as ISO 8601 UTC string with 'Z' suffix.

    Args:
        dt: Timezone-aware datetime. Defaults to now.

    Returns:
        ISO 8601 formatted string ending with 'Z'.
    """
    dt = dt or datetime.now(timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")
