#!/usr/bin/env python3
"""
Streamlit UI for the Mock Interviewer.

Renders the interview transcript as chat bubbles and streams the
interviewer's replies live from the interview service.

Usage:
    uv run python interview_service.py  # Terminal 1
    uv run streamlit run streamlit_ui.py  # Terminal 2
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from typing import Final

import httpx
import streamlit as st

# =============================================================================
# Logging Configuration
# =============================================================================

logger: logging.Logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================

SERVICE_URL: Final[str] = os.environ.get("SERVICE_URL", "http://127.0.0.1:8765").rstrip("/")

# Completion replies can take a while; only connecting is bounded tightly.
HTTP_TIMEOUT: Final[httpx.Timeout] = httpx.Timeout(120.0, connect=5.0)
HEALTH_CHECK_TIMEOUT_SECONDS: Final[float] = 2.0

END_REASONS: Final[dict[str, str]] = {
    "ended_by_exit": "The interviewer ended the interview. Try again with a valid job title.",
    "ended_by_success": "Interview complete.",
    "ended_by_error": "The interview stopped because of an error.",
}


# =============================================================================
# Page Configuration
# =============================================================================

st.set_page_config(
    page_title="Mock Interviewer",
    page_icon="🎙️",
    layout="centered",
)

st.markdown("""
<style>
#MainMenu {visibility: hidden;}
footer {visibility: hidden;}
.stDeployButton {display: none;}

.typing-indicator {
    color: #64748B;
    font-size: 0.85rem;
    font-style: italic;
}
</style>
""", unsafe_allow_html=True)


# =============================================================================
# State
# =============================================================================

def init_state() -> None:
    """Initialize session state keys once per browser session."""
    if "init" not in st.session_state:
        st.session_state.init = True
        st.session_state.turns = []
        st.session_state.phase = "awaiting_topic"
        st.session_state.outcome = None
        st.session_state.error = None


def apply_session(session: dict[str, object]) -> None:
    """Copy a service session status into local state."""
    st.session_state.turns = list(session.get("turns", []))
    st.session_state.phase = session.get("phase", "awaiting_topic")
    st.session_state.outcome = session.get("last_outcome")


# =============================================================================
# Service calls
# =============================================================================

def check_service() -> bool:
    try:
        response = httpx.get(f"{SERVICE_URL}/health", timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
        return response.status_code == 200
    except httpx.HTTPError:
        return False


def fetch_session() -> dict[str, object] | None:
    try:
        response = httpx.get(f"{SERVICE_URL}/session", timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()["session"]
    except httpx.HTTPError as exc:
        logger.warning("Failed to fetch session: %s", exc)
        return None


def stream_exchange(path: str, text: str) -> Iterator[dict[str, object]]:
    """
    POST to a streaming endpoint and yield each NDJSON line.

    Raises:
        RuntimeError: With the service's error message if it rejected the input.
    """
    with httpx.stream(
        "POST",
        f"{SERVICE_URL}{path}",
        json={"text": text},
        timeout=HTTP_TIMEOUT,
    ) as response:
        if response.status_code != 200:
            response.read()
            try:
                detail = response.json().get("error", response.text)
            except json.JSONDecodeError:
                detail = response.text
            raise RuntimeError(detail)
        for line in response.iter_lines():
            if line.strip():
                yield json.loads(line)


# =============================================================================
# Rendering
# =============================================================================

def render_turn(turn: dict[str, str]) -> None:
    role = "user" if turn.get("speaker") == "user" else "assistant"
    with st.chat_message(role):
        st.markdown(turn.get("content", ""))


def draw_transcript(area, turns: list[dict[str, str]], typing: bool = False) -> None:
    """Replace everything in ``area`` with the given turns."""
    with area.container():
        for turn in turns:
            render_turn(turn)
        if typing:
            st.markdown(
                '<div class="typing-indicator">Interviewer is typing…</div>',
                unsafe_allow_html=True,
            )


def run_exchange(area, path: str, text: str) -> None:
    """Stream one exchange, redrawing the transcript in ``area`` as deltas arrive."""
    st.session_state.error = None
    try:
        for event in stream_exchange(path, text):
            if event.get("type") == "transcript":
                st.session_state.turns = event["turns"]
                draw_transcript(area, event["turns"], typing=bool(event.get("exchange_in_progress")))
            elif event.get("type") == "outcome":
                apply_session(event["session"])
            elif event.get("type") == "error":
                st.session_state.error = event.get("error")
    except (httpx.HTTPError, RuntimeError) as exc:
        logger.warning("Exchange failed: %s", exc)
        st.session_state.error = str(exc)
    st.rerun()


def main() -> None:
    init_state()

    st.markdown("### 🎙️ Mock Interviewer")

    if not check_service():
        st.error(f"Interview service is not reachable at {SERVICE_URL}.")
        return

    if st.session_state.error:
        st.warning(st.session_state.error)

    awaiting_topic = st.session_state.phase == "awaiting_topic"

    if awaiting_topic:
        with st.form("topic_form", clear_on_submit=False):
            job_title = st.text_input("Job Title", placeholder="Enter job title")
            start = st.form_submit_button("Start Interview", type="primary")
        if st.session_state.outcome in END_REASONS:
            st.info(END_REASONS[st.session_state.outcome])
    else:
        job_title, start = "", False

    # Single slot for the transcript; live updates replace it in place.
    transcript_area = st.empty()
    draw_transcript(transcript_area, st.session_state.turns)

    if awaiting_topic:
        if start:
            if not job_title.strip():
                st.session_state.error = "Please enter a job title."
                st.rerun()
            st.session_state.turns = []
            draw_transcript(transcript_area, [], typing=True)
            run_exchange(transcript_area, "/session/topic/stream", job_title)
        return

    if st.button("Restart"):
        try:
            httpx.post(f"{SERVICE_URL}/session/reset", timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
        except httpx.HTTPError as exc:
            st.session_state.error = str(exc)
        session = fetch_session()
        if session is not None:
            apply_session(session)
        st.rerun()

    message = st.chat_input("Type your message...")
    if message:
        if not message.strip():
            st.rerun()
        pending = [*st.session_state.turns, {"speaker": "user", "content": message, "status": "complete"}]
        draw_transcript(transcript_area, pending, typing=True)
        run_exchange(transcript_area, "/session/message/stream", message)


main()
