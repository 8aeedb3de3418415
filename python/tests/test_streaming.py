"""
Tests for the streaming aggregator.

Covers delta folding, the in-band error text and stream cleanup.
"""

from __future__ import annotations

import asyncio

import pytest

from mock_interviewer.models import Speaker, TurnStatus
from mock_interviewer.streaming import (
    AI_ERROR_TEXT,
    StreamingAggregator,
)
from mock_interviewer.transcript import Transcript, TranscriptInvariantError
from tests.mock_data import (
    WELCOME_DELTAS,
    GatedCompletionService,
    StreamFailure,
    iterate,
)


class SnapshotRecorder:
    """Collects every snapshot the aggregator publishes."""

    def __init__(self) -> None:
        self.snapshots = []

    async def __call__(self, turns) -> None:
        self.snapshots.append(turns)


class ClosableStream:
    """Async iterator that records whether ``aclose`` was awaited."""

    def __init__(self, deltas) -> None:
        self._deltas = list(deltas)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._deltas:
            raise StopAsyncIteration
        return self._deltas.pop(0)

    async def aclose(self) -> None:
        self.closed = True


class TestSuccessfulStream:
    """Streams that end normally."""

    @pytest.mark.asyncio
    async def test_concatenates_deltas_into_one_turn(self):
        transcript = Transcript()
        aggregator = StreamingAggregator(transcript)

        result = await aggregator.run(lambda: iterate(WELCOME_DELTAS))

        assert result.ok
        assert result.text == "Hello there, welcome..."
        assert result.deltas == 2
        (turn,) = transcript.snapshot()
        assert turn.speaker is Speaker.ASSISTANT
        assert turn.status is TurnStatus.COMPLETE
        assert turn.content == "Hello there, welcome..."

    @pytest.mark.asyncio
    async def test_mid_word_boundaries_are_kept_raw(self):
        transcript = Transcript()
        deltas = ["Wha", "t is y", "our na", "me?"]

        result = await StreamingAggregator(transcript).run(lambda: iterate(deltas))

        assert result.text == "What is your name?"

    @pytest.mark.asyncio
    async def test_empty_stream_completes_empty_turn(self):
        """Zero deltas is a success with empty content."""
        transcript = Transcript()

        result = await StreamingAggregator(transcript).run(lambda: iterate([]))

        assert result.ok
        assert result.text == ""
        assert transcript.snapshot()[-1].status is TurnStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_empty_deltas_are_skipped(self):
        transcript = Transcript()

        result = await StreamingAggregator(transcript).run(
            lambda: iterate(["", "Hi", "", "!"])
        )

        assert result.text == "Hi!"
        assert result.deltas == 2

    @pytest.mark.asyncio
    async def test_publishes_prefix_snapshots_in_order(self):
        """Each published snapshot is the prefix of deltas received so far."""
        transcript = Transcript()
        recorder = SnapshotRecorder()

        await StreamingAggregator(transcript, on_update=recorder).run(
            lambda: iterate(["A", "B", "C"])
        )

        contents = [snap[-1].content for snap in recorder.snapshots]
        statuses = [snap[-1].status for snap in recorder.snapshots]
        assert contents == ["", "A", "AB", "ABC", "ABC"]
        assert statuses[:-1] == [TurnStatus.STREAMING] * 4
        assert statuses[-1] is TurnStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_stream_is_closed(self):
        stream = ClosableStream(["done"])

        await StreamingAggregator(Transcript()).run(lambda: stream)

        assert stream.closed


class TestFailedStream:
    """Transport failures become in-band content."""

    @pytest.mark.asyncio
    async def test_failure_before_content_writes_error_text(self):
        transcript = Transcript()

        result = await StreamingAggregator(transcript).run(
            lambda: iterate([StreamFailure("reset by peer")])
        )

        assert not result.ok
        assert "StreamFailure" in result.error
        assert result.text == AI_ERROR_TEXT
        turn = transcript.snapshot()[-1]
        assert turn.content == AI_ERROR_TEXT
        assert turn.status is TurnStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_failure_after_content_keeps_partial_text(self):
        transcript = Transcript()

        result = await StreamingAggregator(transcript).run(
            lambda: iterate(["Partial", StreamFailure("reset by peer")])
        )

        assert not result.ok
        assert result.text == "Partial"
        assert transcript.snapshot()[-1].content == "Partial"
        assert not transcript.has_streaming_turn

    @pytest.mark.asyncio
    async def test_failure_to_open_stream_lands_in_turn(self):
        """The turn exists before the stream is requested."""
        transcript = Transcript()

        def open_stream():
            raise StreamFailure("connection refused")

        result = await StreamingAggregator(transcript).run(open_stream)

        assert result.text == AI_ERROR_TEXT
        assert len(transcript) == 1

    @pytest.mark.asyncio
    async def test_non_string_chunk_is_a_stream_error(self):
        transcript = Transcript()

        result = await StreamingAggregator(transcript).run(
            lambda: iterate(["Hi", None])
        )

        assert "CompletionStreamError" in result.error
        assert result.text == "Hi"

    @pytest.mark.asyncio
    async def test_failure_logs_error(self, caplog):
        await StreamingAggregator(Transcript()).run(
            lambda: iterate([StreamFailure("boom")])
        )

        assert "Completion stream failed after 0 deltas" in caplog.text

    @pytest.mark.asyncio
    async def test_stream_closed_after_failure(self):
        stream = ClosableStream(["ok", 42])

        await StreamingAggregator(Transcript()).run(lambda: stream)

        assert stream.closed


class TestSequencingErrors:
    @pytest.mark.asyncio
    async def test_refuses_to_start_over_streaming_turn(self):
        """A second aggregator cannot open a turn while one streams."""
        transcript = Transcript()
        transcript.begin_assistant_turn()

        with pytest.raises(TranscriptInvariantError):
            await StreamingAggregator(transcript).run(lambda: iterate(["x"]))


class TestCancelledStream:
    """Cancellation never leaves a streaming tail behind."""

    @pytest.mark.asyncio
    async def test_cancel_mid_stream_completes_turn(self):
        transcript = Transcript()
        service = GatedCompletionService()
        aggregator = StreamingAggregator(transcript)

        task = asyncio.create_task(aggregator.run(lambda: service.stream([], "x")))
        await asyncio.wait_for(service.started.wait(), timeout=1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        turn = transcript.snapshot()[-1]
        assert turn.content == "Partial"
        assert turn.status is TurnStatus.COMPLETE
        assert not transcript.has_streaming_turn

    @pytest.mark.asyncio
    async def test_transcript_usable_after_cancel(self):
        transcript = Transcript()
        service = GatedCompletionService()

        task = asyncio.create_task(
            StreamingAggregator(transcript).run(lambda: service.stream([], "x"))
        )
        await asyncio.wait_for(service.started.wait(), timeout=1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        transcript.append_user("hello again")
        transcript.clear()

        assert len(transcript) == 0
