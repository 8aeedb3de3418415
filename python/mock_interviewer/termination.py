"""
Termination detection for interviewer replies.

The interviewer is instructed to say fixed phrases when the interview is
over. ``classify`` scans a completed reply for those phrases. Matching is a
plain case-sensitive substring search, so a reply that merely mentions one
of them (for example feedback that says "Error handling was weak") also
ends the interview. Keep every such rule in this module.
"""

from __future__ import annotations

from typing import Final

from .models import TerminationOutcome


__all__ = [
    "ERROR_MARKER",
    "EXIT_MARKER",
    "SUCCESS_MARKER",
    "classify",
]


EXIT_MARKER: Final[str] = "Ending interview"
SUCCESS_MARKER: Final[str] = "Best of luck"
ERROR_MARKER: Final[str] = "Error"

# Checked in order; first hit wins.
_RULES: Final[tuple[tuple[str, TerminationOutcome], ...]] = (
    (EXIT_MARKER, TerminationOutcome.ENDED_BY_EXIT),
    (SUCCESS_MARKER, TerminationOutcome.ENDED_BY_SUCCESS),
    (ERROR_MARKER, TerminationOutcome.ENDED_BY_ERROR),
)


def classify(final_text: str) -> TerminationOutcome:
    """
    Classify a completed assistant reply.

    Args:
        final_text: Full text of the reply. Must not be a partial stream.

    Returns:
        The first matching outcome by precedence exit > success > error,
        or ``TerminationOutcome.CONTINUE`` when no marker is present.

    Example:
        >>> classify("Great answers. Best of luck, Jane!")
        <TerminationOutcome.ENDED_BY_SUCCESS: 'ended_by_success'>
    """
    for marker, outcome in _RULES:
        if marker in final_text:
            return outcome
    return TerminationOutcome.CONTINUE
