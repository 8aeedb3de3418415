"""
Mock Interviewer Package.

Runs a scripted job interview against a chat completion service and keeps
the conversation as a streaming-aware transcript.

Components:
    - Transcript: Ordered turn log with a single streaming tail
    - StreamingAggregator: Folds completion deltas into the transcript
    - classify: Detects sign-off phrases in interviewer replies
    - InterviewSessionController: Lifecycle and single-flight exchanges
    - TranscriptPublisher: Real-time pub/sub feeding renderers
    - OpenAICompletionService: Streaming OpenAI / Azure OpenAI backend
    - Models: Pydantic models for turns, history and session state

Example:
    >>> from mock_interviewer import InterviewSessionController, create_completion_service, load_config
    >>>
    >>> controller = InterviewSessionController(create_completion_service(load_config()))
    >>> outcome = await controller.submit_topic("backend engineer")
    >>> print(controller.snapshot()[-1].content)

Last Grunted: 10/18/2026
"""

from .models import (
    HistoryMessage,
    SessionPhase,
    SessionState,
    Speaker,
    TerminationOutcome,
    Turn,
    TurnStatus,
)

from .transcript import Transcript, TranscriptInvariantError, TurnHandle

from .streaming import (
    AI_ERROR_TEXT,
    CompletionStreamError,
    ExchangeResult,
    StreamingAggregator,
)

from .termination import classify

from .pubsub import TranscriptPublisher, TranscriptUpdate

from .config import InterviewerConfig, load_config

from .completion import (
    CompletionService,
    OpenAICompletionService,
    ScriptedCompletionService,
    build_interviewer_instructions,
    create_completion_service,
)

from .session import (
    EmptyInputError,
    ExchangeInProgressError,
    ExchangeOutcome,
    InterviewSessionController,
    InvalidPhaseError,
    SessionError,
)


__all__ = [
    # Models
    "HistoryMessage",
    "SessionPhase",
    "SessionState",
    "Speaker",
    "TerminationOutcome",
    "Turn",
    "TurnStatus",
    # Transcript
    "Transcript",
    "TranscriptInvariantError",
    "TurnHandle",
    # Streaming
    "AI_ERROR_TEXT",
    "CompletionStreamError",
    "ExchangeResult",
    "StreamingAggregator",
    # Termination
    "classify",
    # Pub/Sub
    "TranscriptPublisher",
    "TranscriptUpdate",
    # Config
    "InterviewerConfig",
    "load_config",
    # Completion
    "CompletionService",
    "OpenAICompletionService",
    "ScriptedCompletionService",
    "build_interviewer_instructions",
    "create_completion_service",
    # Session
    "EmptyInputError",
    "ExchangeInProgressError",
    "ExchangeOutcome",
    "InterviewSessionController",
    "InvalidPhaseError",
    "SessionError",
]

__version__ = "0.1.0"
