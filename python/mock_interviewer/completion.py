"""
Completion service adapters.

Defines the ``CompletionService`` protocol the session controller talks to,
an OpenAI / Azure OpenAI implementation with streaming chat completions,
and a scripted in-memory implementation for demos.

Supports both OpenAI and Azure OpenAI backends:
  - OpenAI: Set OPENAI_API_KEY
  - Azure OpenAI: Set AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, AZURE_OPENAI_DEPLOYMENT

Last Grunted: 10/18/2026
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Any, Protocol

from openai import AsyncAzureOpenAI, AsyncOpenAI

from .config import InterviewerConfig
from .models import HistoryMessage, Speaker


__all__ = [
    "CompletionService",
    "OpenAICompletionService",
    "ScriptedCompletionService",
    "build_interviewer_instructions",
    "create_completion_service",
]


logger = logging.getLogger(__name__)


# =============================================================================
# Interviewer Instructions
# =============================================================================

def build_interviewer_instructions(question_count: int) -> str:
    """
    Build the system prompt for the interviewer.

    The closing phrases here are the same ones ``termination.classify``
    looks for; change them together.
    """
    lines = [
        "You are an Interviewer.",
        "Job role will be entered in the first user input.",
        "Ignore the greetings. If the first input is not a valid job role, send a "
        "message to the user and say 'Ending interview. Try again with a valid job title.'.",
        "Start by welcoming to the interview and asking the user's name and their background.",
        f"Ask {question_count} questions. One question at a time.",
        "Don't mark the question like 'question 1' etc.",
        "If the user doesn't answer the questions accordingly, ask the question again.",
        "Provide feedback about quality of the answers and where the user can improve.",
        "End with 'Best of luck' and the name of the user.",
    ]
    return "\n".join(lines)


# =============================================================================
# Protocol
# =============================================================================

class CompletionService(Protocol):
    """
    Anything that can answer the next interview input as a delta stream.

    Deltas arrive in order, each is a ``str``, and the stream ends exactly
    once, either by exhaustion or by raising.
    """

    def stream(
        self,
        history: Sequence[HistoryMessage],
        new_input: str,
    ) -> AsyncIterator[str]:
        ...


def _role(speaker: Speaker) -> str:
    return "user" if speaker is Speaker.USER else "assistant"


# =============================================================================
# OpenAI
# =============================================================================

class OpenAICompletionService:
    """
    Completion service backed by OpenAI chat completions.

    Example:
        >>> service = OpenAICompletionService(client=AsyncOpenAI(), model="gpt-4o-mini")
        >>> async for delta in service.stream([], "backend engineer"):
        ...     print(delta, end="")
    """

    def __init__(
        self,
        client: AsyncOpenAI | AsyncAzureOpenAI,
        model: str,
        *,
        instructions: str | None = None,
        max_output_tokens: int = 500,
        streaming: bool = True,
    ) -> None:
        """
        Args:
            client: Configured async OpenAI or Azure OpenAI client.
            model: Model name, or deployment name for Azure.
            instructions: System prompt. Defaults to the two-question interviewer.
            max_output_tokens: Cap on each reply.
            streaming: Request streamed deltas. When False each reply arrives
                as a single delta.
        """
        self._client = client
        self.model = model
        self.instructions = instructions or build_interviewer_instructions(2)
        self.max_output_tokens = max_output_tokens
        self.streaming = streaming
        logger.info(
            "OpenAICompletionService initialized with model: %s (streaming=%s)",
            model,
            streaming,
        )

    def _build_messages(
        self,
        history: Sequence[HistoryMessage],
        new_input: str,
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": self.instructions}]
        messages.extend(
            {"role": _role(message.speaker), "content": message.content}
            for message in history
        )
        messages.append({"role": "user", "content": new_input})
        return messages

    async def complete(self, history: Sequence[HistoryMessage], new_input: str) -> str:
        """Request one reply without streaming and return its text."""
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=self._build_messages(history, new_input),
            max_completion_tokens=self.max_output_tokens,
        )
        return response.choices[0].message.content or ""

    async def stream(
        self,
        history: Sequence[HistoryMessage],
        new_input: str,
    ) -> AsyncIterator[str]:
        logger.debug(
            "Requesting completion (history=%d, input_len=%d)",
            len(history),
            len(new_input),
        )
        if not self.streaming:
            yield await self.complete(history, new_input)
            return

        response = await self._client.chat.completions.create(
            model=self.model,
            messages=self._build_messages(history, new_input),
            max_completion_tokens=self.max_output_tokens,
            stream=True,
        )
        async for chunk in response:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content


def create_completion_service(config: InterviewerConfig) -> OpenAICompletionService:
    """
    Factory function to create the configured OpenAI completion service.

    Args:
        config: Loaded runtime configuration.

    Returns:
        Service using Azure OpenAI when configured, standard OpenAI otherwise.
    """
    client: AsyncOpenAI | AsyncAzureOpenAI
    if config.use_azure:
        logger.info("Using Azure OpenAI: %s, deployment: %s", config.azure_endpoint, config.model)
        client = AsyncAzureOpenAI(
            azure_endpoint=config.azure_endpoint,
            api_key=config.azure_key,
            api_version=config.azure_api_version,
        )
    else:
        logger.info("Using OpenAI: model %s", config.model)
        client = AsyncOpenAI(api_key=config.openai_api_key)

    return OpenAICompletionService(
        client=client,
        model=config.model,
        instructions=build_interviewer_instructions(config.question_count),
        max_output_tokens=config.max_output_tokens,
        streaming=config.streaming,
    )


# =============================================================================
# Scripted
# =============================================================================

class ScriptedCompletionService:
    """
    Plays back canned replies, one per call, split into word-sized deltas.

    Used by ``run_interview.py --scripted`` and by tests. An entry that is an
    exception instance is raised instead of streamed.
    """

    def __init__(
        self,
        replies: Iterable[Sequence[str] | str | BaseException],
        delay_seconds: float = 0.0,
    ) -> None:
        self._replies: list[Any] = list(replies)
        self.delay_seconds = delay_seconds
        self.calls: list[tuple[list[HistoryMessage], str]] = []

    @property
    def remaining(self) -> int:
        return len(self._replies)

    async def stream(
        self,
        history: Sequence[HistoryMessage],
        new_input: str,
    ) -> AsyncIterator[str]:
        self.calls.append((list(history), new_input))
        if not self._replies:
            raise RuntimeError("Scripted completion service has no replies left")

        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply

        deltas = _split_words(reply) if isinstance(reply, str) else list(reply)
        for delta in deltas:
            if self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            if isinstance(delta, BaseException):
                raise delta
            yield delta


def _split_words(text: str) -> list[str]:
    """Split text into deltas that keep their leading whitespace."""
    parts: list[str] = []
    for index, word in enumerate(text.split(" ")):
        parts.append(word if index == 0 else " " + word)
    return [part for part in parts if part]
