"""
Tests for completion service adapters and runtime configuration.

The OpenAI adapter is exercised against a fake client, so no network
access or credentials are needed.
"""

from __future__ import annotations

import pytest

from mock_interviewer.completion import (
    OpenAICompletionService,
    ScriptedCompletionService,
    build_interviewer_instructions,
    create_completion_service,
)
from mock_interviewer.config import load_config
from mock_interviewer.models import HistoryMessage, Speaker
from tests.mock_data import (
    FakeOpenAIClient,
    make_chunk,
    make_completion,
)


async def collect(stream) -> list[str]:
    return [delta async for delta in stream]


HISTORY = [
    HistoryMessage(speaker=Speaker.USER, content="backend engineer"),
    HistoryMessage(speaker=Speaker.ASSISTANT, content="Welcome! What's your name?"),
]


# =============================================================================
# Instructions
# =============================================================================


class TestInstructions:
    def test_mentions_question_count(self):
        assert "Ask 3 questions" in build_interviewer_instructions(3)

    def test_contains_sign_off_phrases(self):
        """The phrases the termination detector looks for are requested."""
        instructions = build_interviewer_instructions(2)

        assert "Ending interview" in instructions
        assert "Best of luck" in instructions


# =============================================================================
# OpenAI adapter
# =============================================================================


class TestOpenAICompletionService:
    """Chat completions request shape and delta extraction."""

    @pytest.mark.asyncio
    async def test_streams_delta_content(self):
        client = FakeOpenAIClient(
            chunks=[
                make_chunk(None),
                make_chunk("Hel"),
                make_chunk(None, empty_choices=True),
                make_chunk("lo"),
                make_chunk(""),
            ]
        )
        service = OpenAICompletionService(client, "gpt-4o-mini")

        deltas = await collect(service.stream([], "backend engineer"))

        assert deltas == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_request_carries_history_and_limits(self):
        client = FakeOpenAIClient(chunks=[make_chunk("ok")])
        service = OpenAICompletionService(
            client,
            "gpt-4o-mini",
            instructions="Be an interviewer.",
            max_output_tokens=321,
        )

        await collect(service.stream(HISTORY, "I'm Jane"))

        (request,) = client.requests
        assert request["model"] == "gpt-4o-mini"
        assert request["stream"] is True
        assert request["max_completion_tokens"] == 321
        assert request["messages"] == [
            {"role": "system", "content": "Be an interviewer."},
            {"role": "user", "content": "backend engineer"},
            {"role": "assistant", "content": "Welcome! What's your name?"},
            {"role": "user", "content": "I'm Jane"},
        ]

    @pytest.mark.asyncio
    async def test_non_streaming_yields_single_delta(self):
        client = FakeOpenAIClient(completion=make_completion("Hello there, welcome..."))
        service = OpenAICompletionService(client, "gpt-4o-mini", streaming=False)

        deltas = await collect(service.stream([], "backend engineer"))

        assert deltas == ["Hello there, welcome..."]
        assert "stream" not in client.requests[0]

    @pytest.mark.asyncio
    async def test_non_streaming_empty_content(self):
        client = FakeOpenAIClient(completion=make_completion(None))
        service = OpenAICompletionService(client, "gpt-4o-mini", streaming=False)

        assert await service.complete([], "x") == ""


class TestCreateCompletionService:
    def test_openai_backend_from_config(self):
        config = load_config(
            {
                "OPENAI_API_KEY": "sk-test",
                "INTERVIEW_QUESTION_COUNT": "4",
                "INTERVIEW_MAX_OUTPUT_TOKENS": "200",
            }
        )

        service = create_completion_service(config)

        assert service.model == "gpt-4o-mini"
        assert service.max_output_tokens == 200
        assert "Ask 4 questions" in service.instructions


# =============================================================================
# Scripted service
# =============================================================================


class TestScriptedCompletionService:
    @pytest.mark.asyncio
    async def test_splits_reply_into_word_deltas(self):
        service = ScriptedCompletionService(["Hello there, welcome!"])

        deltas = await collect(service.stream([], "backend engineer"))

        assert deltas == ["Hello", " there,", " welcome!"]
        assert "".join(deltas) == "Hello there, welcome!"
        assert service.remaining == 0

    @pytest.mark.asyncio
    async def test_records_calls(self):
        service = ScriptedCompletionService(["One", "Two"])

        await collect(service.stream(HISTORY, "I'm Jane"))

        assert service.calls == [(HISTORY, "I'm Jane")]

    @pytest.mark.asyncio
    async def test_exception_reply_is_raised(self):
        service = ScriptedCompletionService([ConnectionError("down")])

        with pytest.raises(ConnectionError):
            await collect(service.stream([], "x"))

    @pytest.mark.asyncio
    async def test_out_of_replies(self):
        service = ScriptedCompletionService([])

        with pytest.raises(RuntimeError, match="no replies left"):
            await collect(service.stream([], "x"))


# =============================================================================
# Configuration
# =============================================================================


class TestLoadConfig:
    """Strict environment validation."""

    def test_openai_defaults(self):
        config = load_config({"OPENAI_API_KEY": "sk-test"})

        assert not config.use_azure
        assert config.model == "gpt-4o-mini"
        assert config.question_count == 2
        assert config.max_output_tokens == 500
        assert config.streaming is True
        assert config.service_host == "0.0.0.0"
        assert config.service_port == 8765
        assert config.service_url == "http://127.0.0.1:8765"

    def test_azure_trio(self):
        config = load_config(
            {
                "AZURE_OPENAI_ENDPOINT": "https://example.openai.azure.com",
                "AZURE_OPENAI_KEY": "key",
                "AZURE_OPENAI_DEPLOYMENT": "interviewer",
            }
        )

        assert config.use_azure
        assert config.model == "interviewer"
        assert config.azure_api_version == "2024-08-01-preview"
        assert config.openai_api_key is None

    def test_missing_credential_is_fatal(self):
        with pytest.raises(RuntimeError, match="No model credential"):
            load_config({})

    def test_incomplete_azure_config_is_fatal(self):
        with pytest.raises(RuntimeError, match="AZURE_OPENAI_DEPLOYMENT"):
            load_config({"OPENAI_API_TYPE": "azure", "AZURE_OPENAI_KEY": "key"})

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("INTERVIEW_QUESTION_COUNT", "two"),
            ("INTERVIEW_QUESTION_COUNT", "0"),
            ("INTERVIEW_MAX_OUTPUT_TOKENS", "-5"),
            ("SERVICE_PORT", "70000"),
        ],
    )
    def test_bad_integers_are_fatal(self, name, value):
        with pytest.raises(RuntimeError, match=name):
            load_config({"OPENAI_API_KEY": "sk-test", name: value})

    @pytest.mark.parametrize(("raw", "expected"), [("false", False), ("0", False), ("YES", True)])
    def test_streaming_flag(self, raw, expected):
        config = load_config({"OPENAI_API_KEY": "sk-test", "INTERVIEW_STREAMING": raw})

        assert config.streaming is expected

    def test_bad_streaming_flag_is_fatal(self):
        with pytest.raises(RuntimeError, match="INTERVIEW_STREAMING"):
            load_config({"OPENAI_API_KEY": "sk-test", "INTERVIEW_STREAMING": "maybe"})
