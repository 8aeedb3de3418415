"""
Mock Interviewer Service

Hosts one interview session over HTTP. Exchanges can be awaited as a single
JSON response or streamed as NDJSON transcript updates for live rendering.

Endpoints:
    POST /session/topic           - Submit job title, run opening exchange
    POST /session/topic/stream    - Same, streamed as NDJSON
    POST /session/message         - Send candidate message
    POST /session/message/stream  - Same, streamed as NDJSON
    POST /session/reset           - Abandon interview, await new job title
    GET  /session                 - Current session and transcript
    GET  /health                  - Health check
    GET  /stats                   - Statistics

Internal binding: configured by SERVICE_HOST/SERVICE_PORT (default 0.0.0.0:8765)
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any, AsyncIterator, TypedDict

import uvicorn
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from mock_interviewer import (
    CompletionService,
    EmptyInputError,
    ExchangeOutcome,
    InterviewSessionController,
    SessionError,
    TranscriptPublisher,
    create_completion_service,
    load_config,
)

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "Mock Interviewer Service"
SERVICE_VERSION = "0.1.0"

# CORS configuration - modify for production
CORS_ORIGINS: list[str] = [
    "http://localhost:8501",  # Streamlit default
    "http://localhost:3000",  # Common React dev port
]


# =============================================================================
# Request / Response Models
# =============================================================================


class TextRequest(BaseModel):
    """Job title or candidate message."""

    text: str = Field(..., description="Input text; must be non-empty after trimming")


class BaseResponse(BaseModel):
    """Base response model with common fields."""

    ok: bool = Field(..., description="Whether the operation succeeded")
    message: str | None = Field(default=None, description="Optional status message")


class ErrorResponse(BaseModel):
    """Standard error response."""

    ok: bool = Field(default=False)
    error: str = Field(..., description="Error description")
    error_code: str | None = Field(default=None, description="Machine-readable error code")


class ExchangeResponse(BaseResponse):
    """Result of one completed exchange."""

    reply: str = Field(..., description="Final interviewer reply text")
    outcome: str = Field(..., description="Termination outcome of the reply")
    phase: str = Field(..., description="Session phase after the exchange")
    stream_error: str | None = Field(
        default=None, description="Completion stream failure, if any"
    )
    session: dict[str, Any] = Field(..., description="Session status and transcript")


class SessionResponse(BaseModel):
    """Session status wrapper."""

    session: dict[str, Any]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: str = Field(..., description="Current server timestamp")
    phase: str = Field(..., description="Current session phase")
    exchange_in_progress: bool = Field(..., description="Whether a reply is streaming")


class StatsResponse(BaseModel):
    """Statistics response."""

    stats: dict[str, Any] = Field(..., description="Service statistics")
    subscribers: int = Field(..., description="Connected transcript subscribers")


# =============================================================================
# Application State (Type-safe Lifespan State)
# =============================================================================


class AppStats(TypedDict):
    """Application statistics tracking."""

    exchanges: int
    rejected_inputs: int
    stream_errors: int
    sessions_started: int
    sessions_ended: dict[str, int]
    started_at: str


class AppState(TypedDict):
    """Type-safe application state managed by lifespan."""

    controller: InterviewSessionController
    publisher: TranscriptPublisher
    stats: AppStats
    background: set[asyncio.Task[ExchangeOutcome]]


def get_initial_stats() -> AppStats:
    """Create initial statistics dictionary."""
    return AppStats(
        exchanges=0,
        rejected_inputs=0,
        stream_errors=0,
        sessions_started=0,
        sessions_ended={},
        started_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


def record_outcome(stats: AppStats, exchange: ExchangeOutcome) -> None:
    """Update counters after an exchange."""
    stats["exchanges"] += 1
    if not exchange.result.ok:
        stats["stream_errors"] += 1
    if exchange.outcome.ends_session:
        key = exchange.outcome.value
        stats["sessions_ended"][key] = stats["sessions_ended"].get(key, 0) + 1


# =============================================================================
# Dependencies
# =============================================================================


def get_app_state(request: Request) -> AppState:
    """
    Dependency to retrieve application state from request.

    Raises:
        RuntimeError: If state is not properly initialized.
    """
    state = getattr(request, "state", None)
    if state is None:
        raise RuntimeError("Application state not initialized")
    return AppState(
        controller=state.controller,
        publisher=state.publisher,
        stats=state.stats,
        background=state.background,
    )


# Type alias for dependency injection
AppStateDep = Annotated[AppState, Depends(get_app_state)]


# =============================================================================
# Exception Handlers
# =============================================================================

_STATUS_BY_ERROR: dict[str, int] = {
    EmptyInputError.error_code: status.HTTP_400_BAD_REQUEST,
}


async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    """Map rejected session operations to 400/409 responses."""
    stats = getattr(request.app.state, "stats", None)
    if stats is not None:
        stats["rejected_inputs"] += 1
    return JSONResponse(
        status_code=_STATUS_BY_ERROR.get(exc.error_code, status.HTTP_409_CONFLICT),
        content=ErrorResponse(
            ok=False,
            error=exc.message,
            error_code=exc.error_code,
        ).model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            ok=False,
            error="Internal server error",
            error_code="INTERNAL_ERROR",
        ).model_dump(),
    )


# =============================================================================
# Exchange helpers
# =============================================================================


def exchange_response(exchange: ExchangeOutcome, controller: InterviewSessionController) -> ExchangeResponse:
    return ExchangeResponse(
        ok=True,
        reply=exchange.result.text,
        outcome=exchange.outcome.value,
        phase=exchange.phase.value,
        stream_error=exchange.result.error,
        session=controller.status(),
    )


def _error_line(error: str, error_code: str) -> str:
    return json.dumps({"type": "error", "error": error, "error_code": error_code}) + "\n"


def _finish_detached(state: AppState, task: asyncio.Task[ExchangeOutcome]) -> None:
    """Done callback for an exchange whose client went away mid-stream."""
    state["background"].discard(task)
    if task.cancelled():
        logger.warning("Detached exchange was cancelled")
        return
    exc = task.exception()
    if isinstance(exc, SessionError):
        state["stats"]["rejected_inputs"] += 1
    elif exc is not None:
        logger.error("Detached exchange failed: %s", exc, exc_info=exc)
    else:
        exchange = task.result()
        record_outcome(state["stats"], exchange)
        logger.info("Detached exchange finished: %s", exchange.outcome.value)


async def stream_exchange(
    state: AppState,
    run: Callable[[], Awaitable[ExchangeOutcome]],
) -> AsyncIterator[str]:
    """
    Run one exchange and yield every transcript update as an NDJSON line.

    The final line is ``{"type": "outcome", ...}``, or ``{"type": "error", ...}``
    if the exchange was rejected after the response had started or failed
    unexpectedly.

    If the client disconnects, the exchange keeps running in the background
    until its stream completes; only the subscription is dropped.
    """
    publisher = state["publisher"]
    controller = state["controller"]
    queue = await publisher.subscribe(replay=False)
    task = asyncio.create_task(run())
    getter: asyncio.Future[Any] | None = None
    try:
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait(
                {getter, task}, return_when=asyncio.FIRST_COMPLETED
            )
            if getter in done:
                yield getter.result().to_json() + "\n"
                continue
            getter.cancel()
            break

        while not queue.empty():
            yield queue.get_nowait().to_json() + "\n"

        try:
            exchange = task.result()
        except SessionError as exc:
            state["stats"]["rejected_inputs"] += 1
            yield _error_line(exc.message, exc.error_code)
            return
        except Exception as exc:
            logger.error("Exchange failed: %s", exc, exc_info=True)
            yield _error_line("Internal server error", "INTERNAL_ERROR")
            return

        record_outcome(state["stats"], exchange)
        payload = exchange_response(exchange, controller).model_dump()
        payload["type"] = "outcome"
        yield json.dumps(payload) + "\n"
    finally:
        if getter is not None and not getter.done():
            getter.cancel()
        if not task.done():
            logger.info("Client disconnected mid-exchange; finishing in background")
            state["background"].add(task)
            task.add_done_callback(lambda done: _finish_detached(state, done))
        await publisher.unsubscribe(queue)


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    service_factory: Callable[[], CompletionService] | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service_factory: Builds the completion service at startup. Defaults
            to the OpenAI service from environment configuration, which fails
            fast when no credential is set.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[dict[str, Any]]:
        logger.info("Starting %s v%s", SERVICE_NAME, SERVICE_VERSION)
        if service_factory is not None:
            completion_service = service_factory()
        else:
            completion_service = create_completion_service(load_config())

        publisher = TranscriptPublisher()
        controller = InterviewSessionController(completion_service, publisher=publisher)
        stats = get_initial_stats()
        app.state.stats = stats
        background: set[asyncio.Task[ExchangeOutcome]] = set()

        yield {
            "controller": controller,
            "publisher": publisher,
            "stats": stats,
            "background": background,
        }

        logger.info("Shutting down...")
        if background:
            logger.info("Waiting for %d detached exchange(s)", len(background))
            await asyncio.gather(*background, return_exceptions=True)

    app = FastAPI(
        title=SERVICE_NAME,
        version=SERVICE_VERSION,
        description="Scripted job interviews against a streaming chat completion service",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        max_age=3600,
    )

    app.add_exception_handler(SessionError, session_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # =========================================================================
    # Endpoints
    # =========================================================================

    @app.post("/session/topic", response_model=ExchangeResponse)
    async def submit_topic(request: TextRequest, state: AppStateDep) -> ExchangeResponse:
        """Start an interview for a job title and return the opening reply."""
        controller = state["controller"]
        exchange = await controller.submit_topic(request.text)
        state["stats"]["sessions_started"] += 1
        record_outcome(state["stats"], exchange)
        return exchange_response(exchange, controller)

    @app.post("/session/topic/stream")
    async def submit_topic_stream(request: TextRequest, state: AppStateDep) -> StreamingResponse:
        """Start an interview and stream the opening reply as NDJSON."""
        controller = state["controller"]
        controller.ensure_can_submit_topic(request.text)
        state["stats"]["sessions_started"] += 1
        return StreamingResponse(
            stream_exchange(state, lambda: controller.submit_topic(request.text)),
            media_type="application/x-ndjson",
        )

    @app.post("/session/message", response_model=ExchangeResponse)
    async def send_message(request: TextRequest, state: AppStateDep) -> ExchangeResponse:
        """Send a candidate message and return the interviewer's reply."""
        controller = state["controller"]
        exchange = await controller.send_message(request.text)
        record_outcome(state["stats"], exchange)
        return exchange_response(exchange, controller)

    @app.post("/session/message/stream")
    async def send_message_stream(request: TextRequest, state: AppStateDep) -> StreamingResponse:
        """Send a candidate message and stream the reply as NDJSON."""
        controller = state["controller"]
        controller.ensure_can_send(request.text)
        return StreamingResponse(
            stream_exchange(state, lambda: controller.send_message(request.text)),
            media_type="application/x-ndjson",
        )

    @app.post("/session/reset", response_model=BaseResponse)
    async def reset_session(state: AppStateDep) -> BaseResponse:
        """Abandon the current interview."""
        await state["controller"].reset()
        return BaseResponse(ok=True, message="Session reset")

    @app.get("/session", response_model=SessionResponse)
    async def get_session(state: AppStateDep) -> SessionResponse:
        """Current session status and transcript."""
        return SessionResponse(session=state["controller"].status())

    @app.get("/health", response_model=HealthResponse)
    async def health(state: AppStateDep) -> HealthResponse:
        controller = state["controller"]
        return HealthResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=SERVICE_VERSION,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            phase=controller.phase.value,
            exchange_in_progress=controller.exchange_in_progress,
        )

    @app.get("/stats", response_model=StatsResponse)
    async def get_stats(state: AppStateDep) -> StatsResponse:
        return StatsResponse(
            stats=dict(state["stats"]),
            subscribers=await state["publisher"].get_subscriber_count(),
        )

    return app


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    config = load_config()
    logger.info("=" * 60)
    logger.info("%s v%s", SERVICE_NAME, SERVICE_VERSION)
    logger.info("=" * 60)
    logger.info("Binding to: http://%s:%d", config.service_host, config.service_port)
    logger.info("Model: %s (streaming=%s)", config.model, config.streaming)
    logger.info("=" * 60)

    uvicorn.run(
        app,
        host=config.service_host,
        port=config.service_port,
        log_level="info",
    )
