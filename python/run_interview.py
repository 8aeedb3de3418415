#!/usr/bin/env python3
"""
Terminal Interview Runner.

Runs an interview in-process and prints the interviewer's replies as they
stream in.

Usage:
    # Against the configured OpenAI / Azure OpenAI model:
    uv run python run_interview.py

    # Against canned replies, no credentials needed:
    uv run python run_interview.py --scripted --job-title "backend engineer"
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Final

from mock_interviewer import (
    InterviewSessionController,
    ScriptedCompletionService,
    SessionError,
    SessionPhase,
    TranscriptPublisher,
    create_completion_service,
    load_config,
)

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger: logging.Logger = logging.getLogger(__name__)


# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS: Final[int] = 0
EXIT_CONFIG_ERROR: Final[int] = 2
EXIT_INTERRUPTED: Final[int] = 130  # Standard SIGINT exit code


# =============================================================================
# Canned Interview
# =============================================================================

SCRIPTED_REPLIES: Final[list[str]] = [
    "Welcome to the interview! Before we begin, could you tell me your name and a bit about your background?",
    "Thanks for sharing. Can you describe a project where you had to make an important technical trade-off?",
    "That's a solid example. How do you make sure the systems you build stay reliable under load?",
    "Thank you for your answers. Your examples were concrete; next time, quantify the impact a little more. Best of luck, and thanks for your time!",
]


async def print_deltas(queue: asyncio.Queue, stop: asyncio.Event) -> None:
    """Print new assistant text from transcript updates as it arrives."""
    printed = 0
    turn_count = 0
    finished = False
    while not stop.is_set():
        update = await queue.get()
        if not update.turns:
            continue
        if len(update.turns) != turn_count:
            turn_count = len(update.turns)
            printed = 0
            finished = False
        last = update.turns[-1]
        if last["speaker"] != "assistant" or finished:
            continue
        content = last["content"]
        if printed == 0 and content:
            print("\nInterviewer: ", end="", flush=True)
        print(content[printed:], end="", flush=True)
        printed = len(content)
        if last["status"] == "complete":
            finished = True
            print()


async def run(scripted: bool, job_title: str | None, delay: float) -> int:
    if scripted:
        service = ScriptedCompletionService(SCRIPTED_REPLIES, delay_seconds=delay)
    else:
        try:
            service = create_completion_service(load_config())
        except RuntimeError as exc:
            print(f"Configuration error: {exc}", file=sys.stderr)
            return EXIT_CONFIG_ERROR

    publisher = TranscriptPublisher()
    controller = InterviewSessionController(service, publisher=publisher)
    queue = await publisher.subscribe(replay=False)
    stop = asyncio.Event()
    printer = asyncio.create_task(print_deltas(queue, stop))

    try:
        title = job_title or await asyncio.to_thread(input, "Job title: ")
        try:
            outcome = await controller.submit_topic(title)
        except SessionError as exc:
            print(exc.message, file=sys.stderr)
            return EXIT_SUCCESS

        while controller.phase is SessionPhase.ACTIVE:
            await asyncio.sleep(0)
            message = await asyncio.to_thread(input, "\nYou: ")
            try:
                outcome = await controller.send_message(message)
            except SessionError as exc:
                print(exc.message)
                continue

        await asyncio.sleep(0)
        print(f"\n[interview ended: {outcome.outcome.value}]")
        return EXIT_SUCCESS
    finally:
        stop.set()
        printer.cancel()
        await publisher.unsubscribe(queue)


def cli() -> None:
    """Command-line entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Run a mock job interview in the terminal.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--scripted",
        action="store_true",
        help="Use canned interviewer replies instead of a model",
    )
    parser.add_argument(
        "--job-title",
        type=str,
        default=None,
        help="Job title to interview for (prompted if omitted)",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=0.05,
        help="Seconds between scripted deltas (default: 0.05)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        exit_code = asyncio.run(run(args.scripted, args.job_title, args.delay))
    except (KeyboardInterrupt, EOFError):
        print("\nInterrupted")
        exit_code = EXIT_INTERRUPTED
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
