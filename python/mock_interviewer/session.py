"""
Interview Session Controller.

Owns the session state and transcript for one interview at a time, runs each
exchange against the completion service, and applies lifecycle transitions
from the termination detector.

Thread Safety:
    This class is NOT thread-safe. It assumes a single asyncio event loop.
    At most one exchange runs at a time; a second request while one is in
    flight is rejected, never queued.

Last Grunted: 10/18/2026
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .completion import CompletionService
from .models import (
    HistoryMessage,
    SessionPhase,
    SessionState,
    Speaker,
    TerminationOutcome,
    Turn,
    utc_timestamp,
)
from .pubsub import TranscriptPublisher, TranscriptUpdate
from .streaming import ExchangeResult, StreamingAggregator
from .termination import classify
from .transcript import Transcript


__all__ = [
    "EmptyInputError",
    "ExchangeInProgressError",
    "ExchangeOutcome",
    "InterviewSessionController",
    "InvalidPhaseError",
    "SessionError",
]


logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================

class SessionError(Exception):
    """Base exception for rejected session operations."""

    error_code = "SESSION_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EmptyInputError(SessionError):
    """Raised when a topic or message is empty after trimming."""

    error_code = "EMPTY_INPUT"


class InvalidPhaseError(SessionError):
    """Raised when an operation is not allowed in the current phase."""

    error_code = "INVALID_PHASE"


class ExchangeInProgressError(SessionError):
    """Raised when an exchange is requested while another is streaming."""

    error_code = "EXCHANGE_IN_PROGRESS"


@dataclass(frozen=True)
class ExchangeOutcome:
    """
    What one exchange produced.

    Attributes:
        result: Final assistant text and any stream error.
        outcome: Termination classification of ``result.text``.
        phase: Session phase after lifecycle transitions were applied.
    """

    result: ExchangeResult
    outcome: TerminationOutcome
    phase: SessionPhase


def _new_session_id(now: datetime) -> str:
    return f"int_{now.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"


# =============================================================================
# Controller
# =============================================================================

class InterviewSessionController:
    """
    Drives one scripted interview against a completion service.

    Responsibilities:
        - Validate topics and messages before anything is sent
        - Keep a single exchange in flight
        - Build history for the completion service
        - End and reset the session when the interviewer signs off

    Example:
        >>> controller = InterviewSessionController(service)
        >>> await controller.submit_topic("backend engineer")
        >>> outcome = await controller.send_message("I'm Jane, five years of Go.")
        >>> outcome.phase
        <SessionPhase.ACTIVE: 'active'>
    """

    def __init__(
        self,
        completion_service: CompletionService,
        publisher: TranscriptPublisher | None = None,
    ) -> None:
        self._service = completion_service
        self._publisher = publisher
        self._state = SessionState()
        self._transcript = Transcript()
        self._in_flight = False
        self._last_outcome: TerminationOutcome | None = None
        logger.debug("InterviewSessionController initialized")

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def topic(self) -> str:
        return self._state.topic

    @property
    def session_id(self) -> str | None:
        return self._state.session_id

    @property
    def exchange_in_progress(self) -> bool:
        return self._in_flight

    @property
    def last_outcome(self) -> TerminationOutcome | None:
        """Classification of the most recent exchange, kept across resets."""
        return self._last_outcome

    def snapshot(self) -> tuple[Turn, ...]:
        return self._transcript.snapshot()

    def status(self) -> dict[str, Any]:
        """
        Summarize the session for status endpoints and logs.

        Returns:
            Dictionary with phase, topic, ids and the serialized transcript.
        """
        turns = self._transcript.snapshot()
        return {
            "phase": self._state.phase.value,
            "topic": self._state.topic,
            "session_id": self._state.session_id,
            "started_at": self._state.started_at,
            "exchange_in_progress": self._in_flight,
            "last_outcome": self._last_outcome.value if self._last_outcome else None,
            "turn_count": len(turns),
            "turns": [turn.model_dump(mode="json") for turn in turns],
        }

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def ensure_can_submit_topic(self, text: str) -> str:
        """
        Check that ``submit_topic(text)`` would be accepted.

        Returns:
            The trimmed topic.

        Raises:
            ExchangeInProgressError: If an exchange is streaming.
            InvalidPhaseError: If the session is not awaiting a topic.
            EmptyInputError: If the text is blank.
        """
        if self._in_flight:
            raise ExchangeInProgressError("An interviewer reply is still in progress.")
        if self._state.phase is not SessionPhase.AWAITING_TOPIC:
            raise InvalidPhaseError(
                f"Cannot submit a job title while the session is {self._state.phase.value}."
            )
        topic = (text or "").strip()
        if not topic:
            raise EmptyInputError("Job title must not be empty.")
        return topic

    def ensure_can_send(self, text: str) -> str:
        """
        Check that ``send_message(text)`` would be accepted.

        Returns:
            The trimmed message.

        Raises:
            ExchangeInProgressError: If an exchange is streaming.
            InvalidPhaseError: If the session is not active.
            EmptyInputError: If the text is blank.
        """
        if self._in_flight:
            raise ExchangeInProgressError("An interviewer reply is still in progress.")
        if self._state.phase is not SessionPhase.ACTIVE:
            raise InvalidPhaseError(
                f"Cannot send a message while the session is {self._state.phase.value}."
            )
        message = (text or "").strip()
        if not message:
            raise EmptyInputError("Message must not be empty.")
        return message

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def submit_topic(self, text: str) -> ExchangeOutcome:
        """
        Start an interview for a job title.

        The topic is sent as the opening input and is not shown as a user
        turn.

        Args:
            text: Job title.

        Returns:
            Outcome of the opening exchange.

        Raises:
            SessionError: If the topic is rejected. Nothing changes.
        """
        try:
            topic = self.ensure_can_submit_topic(text)
        except SessionError as exc:
            logger.warning("Rejected job title: %s", exc.message)
            raise

        self._in_flight = True
        try:
            now = datetime.now(timezone.utc)
            self._transcript.clear()
            self._last_outcome = None
            self._state = SessionState(
                phase=SessionPhase.ACTIVE,
                topic=topic,
                session_id=_new_session_id(now),
                started_at=utc_timestamp(now),
            )
            logger.info(
                "Started session %s for job title '%s'",
                self._state.session_id,
                topic,
            )
            return await self._run_exchange(history=[], new_input=topic)
        finally:
            self._in_flight = False
            await self._publish()

    async def send_message(self, text: str) -> ExchangeOutcome:
        """
        Send a candidate message and stream the interviewer's reply.

        Args:
            text: Candidate message.

        Returns:
            Outcome of the exchange.

        Raises:
            SessionError: If the message is rejected. Nothing changes.
        """
        try:
            message = self.ensure_can_send(text)
        except SessionError as exc:
            logger.warning("Rejected message: %s", exc.message)
            raise

        self._in_flight = True
        try:
            history = self._history()
            self._transcript.append_user(message)
            await self._publish()
            return await self._run_exchange(history=history, new_input=message)
        finally:
            self._in_flight = False
            await self._publish()

    async def reset(self) -> None:
        """
        Abandon the current interview and wait for a new job title.

        Raises:
            ExchangeInProgressError: If an exchange is streaming.
        """
        if self._in_flight:
            raise ExchangeInProgressError("Cannot reset while an interviewer reply is in progress.")
        logger.info("Session %s reset on request", self._state.session_id)
        self._state = SessionState()
        self._transcript.clear()
        self._last_outcome = None
        await self._publish()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _history(self) -> list[HistoryMessage]:
        """Opening topic plus every turn already in the transcript."""
        history = [HistoryMessage(speaker=Speaker.USER, content=self._state.topic)]
        history.extend(HistoryMessage.from_turn(turn) for turn in self._transcript.snapshot())
        return history

    async def _run_exchange(
        self,
        history: list[HistoryMessage],
        new_input: str,
    ) -> ExchangeOutcome:
        aggregator = StreamingAggregator(self._transcript, on_update=self._publish_turns)
        result = await aggregator.run(lambda: self._service.stream(history, new_input))

        outcome = classify(result.text)
        self._last_outcome = outcome
        if outcome.ends_session:
            self._end_session(outcome)
            await self._publish()
            self._reset_after_end()

        return ExchangeOutcome(result=result, outcome=outcome, phase=self._state.phase)

    def _end_session(self, outcome: TerminationOutcome) -> None:
        self._state.phase = SessionPhase.ENDED
        logger.info(
            "Session %s ended: %s (turns=%d)",
            self._state.session_id,
            outcome.value,
            len(self._transcript),
        )

    def _reset_after_end(self) -> None:
        # The finished transcript stays readable until the next topic clears it.
        self._state = SessionState()
        logger.info("Session reset, awaiting a new job title")

    async def _publish_turns(self, turns: tuple[Turn, ...]) -> None:
        await self._publish(turns)

    async def _publish(self, turns: tuple[Turn, ...] | None = None) -> None:
        if self._publisher is None:
            return
        await self._publisher.publish(
            TranscriptUpdate.from_snapshot(
                turns if turns is not None else self._transcript.snapshot(),
                exchange_in_progress=self._in_flight,
                phase=self._state.phase,
                topic=self._state.topic,
                session_id=self._state.session_id,
                outcome=self._last_outcome,
            )
        )
