# =============================================================================
# gemini_core/compactor.py  —  Context Compactor
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Turns the list of completed research steps into bounded-size text for
#   the next prompt.  Token counts are estimated at 4 characters per token.
#
#   build_smart_context()      → for the NEXT research iteration
#       Walks the steps from newest to oldest, adding a 1000-character
#       excerpt of each, until the next excerpt would overflow 80% of the
#       remaining token allowance.  Older steps past that point are left out
#       entirely (never cut mid-excerpt).
#
#   build_synthesis_context()  → for the FINAL synthesis call
#       Gives every step an equal slice of the allowance and truncates each
#       one to its slice.  No step is ever dropped.
# =============================================================================

import logging
from typing import Sequence

from gemini_core.models import ResearchStep

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
CONTEXT_BUDGET_FRACTION = 0.8
STEP_EXCERPT_CHARS = 1000
ELLIPSIS = "..."


def _excerpt(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


def build_smart_context(steps: Sequence[ResearchStep], remaining_tokens: int) -> str:
    """Recency-biased summary of ``steps`` sized for ``remaining_tokens``."""
    if not steps:
        return ""

    max_chars = remaining_tokens * CHARS_PER_TOKEN * CONTEXT_BUDGET_FRACTION
    pieces: list[str] = []
    length = 0

    for index in range(len(steps) - 1, -1, -1):
        summary = f"Previous finding {index + 1}: {_excerpt(steps[index].response, STEP_EXCERPT_CHARS)}\n\n"
        if length + len(summary) > max_chars:
            logger.info(
                "Context budget reached, including most recent research only: included=%d total=%d",
                len(pieces), len(steps),
            )
            break
        pieces.append(summary)
        length += len(summary)

    return "".join(reversed(pieces))


def build_synthesis_context(steps: Sequence[ResearchStep], max_tokens: int) -> str:
    """Every step, each truncated to an equal share of ``max_tokens``."""
    if not steps:
        return ""

    per_step = max(max_tokens, 0) * CHARS_PER_TOKEN // len(steps)

    return "\n\n".join(
        f"Research Iteration {index + 1}:\n{_excerpt(step.response, per_step)}"
        for index, step in enumerate(steps)
    )
