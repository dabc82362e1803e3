# =============================================================================
# gemini_core/budget.py  —  Token Budget Tracker
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Splits a model's context window into the share research iterations may
#   spend and the share held back for the final synthesis, and keeps the
#   running token total for one research run.
#
#       context window  ─┬─ 75%  research budget   (iterations)
#                        ├─ 20%  synthesis reserve (final synthesis call)
#                        └─  5%  buffer
#
# WHEN THE BUDGET IS CHECKED:
#   Only before an iteration starts.  A single iteration can therefore push
#   the running total past the research budget by at most its own usage.
#
# TOKEN COUNTING:
#   The only token counts the orchestrator ever sees are the usage metadata
#   returned after a call.  A call without usage metadata counts as zero.
# =============================================================================

from dataclasses import dataclass
from typing import Optional

from gemini_core.models import UsageMetadata

RESEARCH_BUDGET_PERCENT = 75
SYNTHESIS_RESERVE_PERCENT = 20

# Held back from the synthesis allowance to absorb estimation error.
SYNTHESIS_SAFETY_MARGIN = 10_000


def research_budget(context_window: int) -> int:
    return context_window * RESEARCH_BUDGET_PERCENT // 100


def synthesis_reserve(context_window: int) -> int:
    return context_window * SYNTHESIS_RESERVE_PERCENT // 100


@dataclass
class TokenBudget:
    """Running token account for one research run."""

    context_window: int
    cumulative_tokens: int = 0

    @property
    def research_budget(self) -> int:
        return research_budget(self.context_window)

    @property
    def synthesis_reserve(self) -> int:
        return synthesis_reserve(self.context_window)

    @property
    def buffer(self) -> int:
        return self.context_window - self.research_budget - self.synthesis_reserve

    @property
    def remaining(self) -> int:
        """Research tokens left; negative once the budget is overshot."""
        return self.research_budget - self.cumulative_tokens

    @property
    def exhausted(self) -> bool:
        return self.cumulative_tokens >= self.research_budget

    def record(self, usage: Optional[UsageMetadata]) -> int:
        """Add one call's total tokens and return the amount added."""
        spent = usage.total_token_count if usage is not None else 0
        self.cumulative_tokens += max(spent, 0)
        return spent

    def synthesis_allowance(self) -> int:
        """Tokens available to the synthesis prompt.  May be negative."""
        return min(
            self.synthesis_reserve,
            self.context_window - self.cumulative_tokens - SYNTHESIS_SAFETY_MARGIN,
        )

    def utilization(self) -> float:
        """Share of the context window spent so far, in percent."""
        if self.context_window <= 0:
            return 0.0
        return self.cumulative_tokens / self.context_window * 100
