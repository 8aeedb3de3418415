"""
Real-time Pub/Sub for transcript updates.

Provides an in-memory pub/sub system that feeds renderers (the Streamlit UI,
the NDJSON streaming endpoints, the terminal runner) with a fresh transcript
snapshot every time the session mutates.

Uses asyncio queues, one per subscriber. The latest update is retained so a
subscriber that joins mid-interview can render immediately.

Example usage:
    publisher = TranscriptPublisher()
    queue = await publisher.subscribe()
    update = await queue.get()
    print(update.turns[-1]["content"])
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .models import SessionPhase, TerminationOutcome, Turn, utc_timestamp

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass
class TranscriptUpdate:
    """
    One published view of the session.

    Attributes:
        sequence: Monotonic counter assigned by the publisher.
        turns: Serialized turns in display order.
        exchange_in_progress: Whether an assistant reply is being generated.
        phase: Session phase at publish time.
        topic: Current job title ("" when awaiting one).
        session_id: Identifier of the interview attempt, if any.
        outcome: Termination outcome of the last exchange, if any.
        timestamp: UTC timestamp when the update was created.
    """

    turns: list[dict[str, str]]
    exchange_in_progress: bool
    phase: SessionPhase
    topic: str = ""
    session_id: str | None = None
    outcome: TerminationOutcome | None = None
    sequence: int = 0
    timestamp: str = field(default_factory=utc_timestamp)

    @classmethod
    def from_snapshot(
        cls,
        turns: Sequence[Turn],
        *,
        exchange_in_progress: bool,
        phase: SessionPhase,
        topic: str = "",
        session_id: str | None = None,
        outcome: TerminationOutcome | None = None,
    ) -> TranscriptUpdate:
        return cls(
            turns=[turn.model_dump(mode="json") for turn in turns],
            exchange_in_progress=exchange_in_progress,
            phase=phase,
            topic=topic,
            session_id=session_id,
            outcome=outcome,
        )

    def to_dict(self) -> dict[str, object]:
        """
        Convert update to dictionary for JSON serialization.

        Returns:
            Dictionary representation of the update.
        """
        return {
            "type": "transcript",
            "sequence": self.sequence,
            "turns": self.turns,
            "exchange_in_progress": self.exchange_in_progress,
            "phase": self.phase.value,
            "topic": self.topic,
            "session_id": self.session_id,
            "outcome": self.outcome.value if self.outcome else None,
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class TranscriptPublisher:
    """
    Publisher for transcript updates.

    Manages subscriber queues and broadcasts every update to all of them.
    Async-safe through a single asyncio lock.

    Example:
        publisher = TranscriptPublisher()

        queue = await publisher.subscribe()
        await publisher.publish(update)
        received = await queue.get()
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[TranscriptUpdate]] = []
        self._latest: TranscriptUpdate | None = None
        self._sequence = 0
        self._lock = asyncio.Lock()
        logger.info("TranscriptPublisher initialized")

    @property
    def latest(self) -> TranscriptUpdate | None:
        """Most recently published update, if any."""
        return self._latest

    async def subscribe(self, replay: bool = True) -> asyncio.Queue[TranscriptUpdate]:
        """
        Subscribe to transcript updates.

        Caller is responsible for calling unsubscribe when done.

        Args:
            replay: Push the latest update into the new queue right away.

        Returns:
            Queue that will receive published updates.
        """
        queue: asyncio.Queue[TranscriptUpdate] = asyncio.Queue()
        async with self._lock:
            self._subscribers.append(queue)
            if replay and self._latest is not None:
                await queue.put(self._latest)
        logger.debug("New subscriber added. Total: %d", len(self._subscribers))
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[TranscriptUpdate]) -> None:
        async with self._lock:
            if queue in self._subscribers:
                self._subscribers.remove(queue)
        logger.debug("Subscriber removed. Total: %d", len(self._subscribers))

    async def publish(self, update: TranscriptUpdate) -> TranscriptUpdate:
        """
        Stamp an update with the next sequence number and broadcast it.

        Args:
            update: The update to publish.

        Returns:
            The published update.
        """
        async with self._lock:
            self._sequence += 1
            update.sequence = self._sequence
            self._latest = update
            for queue in self._subscribers:
                await queue.put(update)

        logger.debug(
            "Published update #%d (turns=%d, in_progress=%s)",
            update.sequence,
            len(update.turns),
            update.exchange_in_progress,
        )
        return update

    async def get_subscriber_count(self) -> int:
        async with self._lock:
            return len(self._subscribers)
