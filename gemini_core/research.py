# =============================================================================
# gemini_core/research.py  —  Deep-Research Orchestrator
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Runs a bounded, strictly sequential loop of grounded model calls on one
#   research question, then one synthesis call, and assembles a Markdown
#   report.
#
# THE STATE MACHINE:
#
#     INIT ──▶ ITERATING ──┬──▶ SYNTHESIZING ──▶ DONE    (≥ 2 steps succeeded)
#                          ├──────────────────▶ DONE    (exactly 1 step)
#                          └──────────────────▶ FAILED  (0 steps)
#
# ONE ITERATION:
#   1. Stop early (normal termination) if the research budget is spent
#   2. Build the prompt: question, optional focus-area directive, and from
#      the second iteration on, a recency-biased summary of prior findings
#   3. Call the backend with grounding on, temperature 0.5, 8192 max tokens
#   4. Success → count tokens, check that grounding actually searched,
#      record the step, append the answer to the report
#   5. Failure → note it in the report and move on, unless this is the
#      second failure in a row and nothing has succeeded yet (fail fast)
#
# FAILURE POLICY:
#   - Two consecutive failures with zero successes  → ResearchError
#     (RESEARCH_ITERATIONS_FAILING), raised before a third call is made
#   - Loop ends with zero successes                 → ResearchError
#     (ALL_ITERATIONS_FAILED); catches non-consecutive failure patterns
#   - Synthesis failure                             → a note in the report,
#     the run still succeeds
# =============================================================================

import logging
from enum import Enum
from typing import Optional, Protocol, Sequence

from gemini_core.budget import TokenBudget
from gemini_core.citations import extract_sources
from gemini_core.compactor import build_smart_context, build_synthesis_context
from gemini_core.errors import InvalidParamsError, ResearchError
from gemini_core.models import ChatRequest, ChatResponse, ResearchRequest, ResearchStep, UsageMetadata

logger = logging.getLogger(__name__)

MIN_ITERATIONS = 3
MAX_ITERATIONS = 10
DEFAULT_ITERATIONS = 5

RESEARCH_TEMPERATURE = 0.5
RESEARCH_MAX_TOKENS = 8192
SYNTHESIS_TEMPERATURE = 0.6
SYNTHESIS_MAX_TOKENS = 16384

# Consecutive failures (with no success yet) that abort the run.
FAIL_FAST_THRESHOLD = 2

SYNTHESIS_UNAVAILABLE = "Synthesis unavailable. Please review the individual research findings above."

ITERATIONS_FAILING_MESSAGE = (
    "Multiple research iterations failing consecutively.\n\n"
    "Error: {error}\n\n"
    "This usually means:\n"
    "1. The question may be too broad or ambiguous\n"
    "2. API rate limits or quota exceeded\n"
    "3. Content filtering or safety blocks\n"
    "4. Network or connectivity issues\n\n"
    "Try:\n"
    "- Breaking the question into smaller, more specific queries\n"
    "- Checking your API quota and rate limits\n"
    "- Simplifying the research question\n"
    "- Waiting a few moments before retrying"
)

ALL_ITERATIONS_FAILED_MESSAGE = (
    "All research iterations failed.\n\n"
    "Possible causes:\n"
    "1. The question format may not be suitable for research\n"
    "2. Google Search grounding is not responding\n"
    "3. API rate limits or quota exceeded\n"
    "4. Network or connectivity issues\n\n"
    "Try:\n"
    "- Rephrasing the question more clearly\n"
    "- Reducing max_iterations to 3\n"
    "- Checking your internet connection and API status\n"
    "- Waiting a few minutes before retrying"
)


class ResearchState(str, Enum):
    INIT = "init"
    ITERATING = "iterating"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


class ResearchBackend(Protocol):
    """The part of GeminiBackend the orchestrator depends on."""

    async def ensure_models_initialized(self) -> None: ...

    async def chat(self, request: ChatRequest) -> ChatResponse: ...

    def get_default_model(self) -> str: ...

    def get_model_context_window(self, model_name: str) -> int: ...


def clamp_iterations(value: Optional[int]) -> int:
    """Out-of-range iteration counts are clamped into [3, 10], not rejected."""
    if value is None:
        return DEFAULT_ITERATIONS
    return max(MIN_ITERATIONS, min(int(value), MAX_ITERATIONS))


def _error_text(exc: Exception) -> str:
    return getattr(exc, "message", None) or str(exc)


def build_synthesis_prompt(question: str, synthesis_context: str) -> str:
    return (
        f'Based on the research conducted, provide a comprehensive synthesis answering: "{question}"\n\n'
        f"Research findings:\n{synthesis_context}\n\n"
        "Create a synthesis that:\n"
        "1. Directly answers the research question\n"
        "2. Integrates findings from all iterations\n"
        "3. Highlights key insights and patterns\n"
        "4. Notes any contradictions or gaps\n"
        "5. Provides actionable conclusions"
    )


# =============================================================================
# ReportBuilder: the Markdown document, built section by section
# =============================================================================
class ReportBuilder:
    def __init__(self) -> None:
        self._parts: list[str] = []

    def add(self, text: str) -> None:
        self._parts.append(text)

    def header(self, question: str, focus_areas: Sequence[str], iterations: int) -> None:
        self.add("# Deep Research Report\n\n")
        self.add(f"## Research Question\n{question}\n\n")
        if focus_areas:
            bullets = "\n".join(f"- {area}" for area in focus_areas)
            self.add(f"## Focus Areas\n{bullets}\n\n")
        self.add("## Research Process\n\n")
        plural = "s" if iterations > 1 else ""
        self.add(f"*Conducting {iterations} research iteration{plural} with Google Search grounding...*\n\n")

    def iteration_heading(self, number: int, focus_area: Optional[str] = None) -> None:
        if focus_area:
            self.add(f"### Iteration {number}: {focus_area}\n\n")
        else:
            self.add(f"### Iteration {number}\n\n")

    def budget_stop(self, number: int) -> None:
        self.add(f"\n*Note: Research stopped at iteration {number} due to token budget limits.*\n\n")

    def iteration_failed(self, number: int, error: str) -> None:
        self.add(f"*Iteration {number} failed: {error}*\n\n")

    def finding(self, content: str) -> None:
        self.add(content + "\n\n")

    def synthesis_heading(self) -> None:
        self.add("### Synthesis\n\n")

    def synthesis_failed(self, error: str) -> None:
        self.add(
            f"*Note: Synthesis phase encountered an error ({error}). "
            "Individual research findings are provided above.*\n\n"
        )

    def sources(self, sources: Sequence[str]) -> None:
        self.add("### Sources Consulted\n\n")
        if not sources:
            self.add("*Note: No external sources were cited. "
                     "This may indicate grounding did not function properly.*\n")
            return
        for number, source in enumerate(sources, start=1):
            self.add(f"{number}. {source}\n")

    def statistics(self, steps: int, model: str, budget: TokenBudget) -> None:
        plural = "s" if steps > 1 else ""
        self.add(f"\n---\n\n*Research completed with {steps} successful iteration{plural} using {model}*\n")
        self.add(f"*Total tokens used: {budget.cumulative_tokens:,} / {budget.context_window:,} available*\n")
        self.add(f"*Context window utilization: {budget.utilization():.1f}%*\n")

    def render(self) -> str:
        return "".join(self._parts)


# =============================================================================
# DeepResearchOrchestrator
# =============================================================================
class DeepResearchOrchestrator:
    """Drives one research run.  Create a new instance per invocation."""

    def __init__(self, backend: ResearchBackend):
        self.backend = backend
        self.state = ResearchState.INIT
        self.steps: list[ResearchStep] = []
        self.budget: Optional[TokenBudget] = None

    async def run(self, request: ResearchRequest) -> str:
        """Research ``request`` and return the Markdown report.

        Raises InvalidParamsError for an empty question and ResearchError
        when no iteration succeeds.  Backend failures of individual
        iterations and of the synthesis call are absorbed into the report.
        """
        question = (request.research_question or "").strip()
        if not question:
            raise InvalidParamsError("research_question is required")

        await self.backend.ensure_models_initialized()

        iterations = clamp_iterations(request.max_iterations)
        model = request.model or self.backend.get_default_model()
        focus_areas = list(request.focus_areas or [])
        self.budget = TokenBudget(self.backend.get_model_context_window(model))

        logger.info(
            "Token budget allocation: model=%s context_window=%d research_budget=%d "
            "synthesis_reserve=%d buffer=%d",
            model, self.budget.context_window, self.budget.research_budget,
            self.budget.synthesis_reserve, self.budget.buffer,
        )

        report = ReportBuilder()
        report.header(question, focus_areas, iterations)

        self.state = ResearchState.ITERATING
        try:
            await self._iterate(question, model, focus_areas, iterations, report)
        except ResearchError:
            self.state = ResearchState.FAILED
            raise

        if not self.steps:
            self.state = ResearchState.FAILED
            raise ResearchError(ALL_ITERATIONS_FAILED_MESSAGE, "ALL_ITERATIONS_FAILED")

        if len(self.steps) > 1:
            self.state = ResearchState.SYNTHESIZING
            await self._synthesize(question, model, report)

        sources = list(dict.fromkeys(source for step in self.steps for source in step.sources))
        report.sources(sources)
        report.statistics(len(self.steps), model, self.budget)

        self.state = ResearchState.DONE
        logger.info(
            "Deep research completed successfully: iterations=%d sources=%d tokens=%d "
            "context_window=%d utilization=%.1f%%",
            len(self.steps), len(sources), self.budget.cumulative_tokens,
            self.budget.context_window, self.budget.utilization(),
        )
        return report.render()

    # -------------------------------------------------------------------------
    # Research iterations
    # -------------------------------------------------------------------------
    def _iteration_prompt(self, question: str, focus_area: Optional[str], index: int) -> str:
        prompt = question
        if focus_area:
            prompt = f"{question}\n\nFocus specifically on: {focus_area}"

        if index > 0:
            context = build_smart_context(self.steps, self.budget.remaining)
            if context:
                prompt += f"\n\nContext from previous research:\n{context}"
        return prompt

    async def _iterate(
        self,
        question: str,
        model: str,
        focus_areas: list[str],
        iterations: int,
        report: ReportBuilder,
    ) -> None:
        consecutive_failures = 0

        for index in range(iterations):
            number = index + 1
            if self.budget.exhausted:
                logger.warning(
                    "Approaching token budget, stopping research iterations: cumulative=%d budget=%d",
                    self.budget.cumulative_tokens, self.budget.research_budget,
                )
                report.budget_stop(number)
                break

            logger.info(
                "Research iteration %d/%d: tokens_used=%d budget=%d",
                number, iterations, self.budget.cumulative_tokens, self.budget.research_budget,
            )

            focus_area = focus_areas[index] if index < len(focus_areas) else None
            report.iteration_heading(number, focus_area)
            prompt = self._iteration_prompt(question, focus_area, index)

            try:
                response = await self.backend.chat(ChatRequest(
                    message=prompt,
                    model=model,
                    temperature=RESEARCH_TEMPERATURE,
                    max_tokens=RESEARCH_MAX_TOKENS,
                    grounding=True,
                ))
            except Exception as exc:
                error_text = _error_text(exc)
                consecutive_failures += 1
                logger.error(
                    "Research iteration %d failed: %s (consecutive_failures=%d)",
                    number, error_text, consecutive_failures,
                )
                if consecutive_failures >= FAIL_FAST_THRESHOLD and not self.steps:
                    raise ResearchError(
                        ITERATIONS_FAILING_MESSAGE.format(error=error_text),
                        "RESEARCH_ITERATIONS_FAILING",
                    ) from exc
                report.iteration_failed(number, error_text)
                continue

            consecutive_failures = 0
            self._record_step(number, prompt, response)
            report.finding(response.content)

    def _record_step(self, number: int, prompt: str, response: ChatResponse) -> None:
        if response.usage_metadata is not None:
            spent = self.budget.record(response.usage_metadata)
            logger.info(
                "Iteration %d token usage: iteration=%d cumulative=%d remaining=%d",
                number, spent, self.budget.cumulative_tokens, self.budget.remaining,
            )

        self._check_grounding(number, response)

        self.steps.append(ResearchStep(
            query=prompt,
            response=response.content,
            sources=extract_sources(response.content),
            usage_metadata=response.usage_metadata or UsageMetadata(),
        ))

    @staticmethod
    def _check_grounding(number: int, response: ChatResponse) -> None:
        grounding = response.grounding_metadata
        if grounding is None:
            logger.warning("Iteration %d: No grounding metadata returned (grounding requested)", number)
            return

        searches = len(grounding.web_search_queries)
        supports = len(grounding.grounding_supports)
        if not searches and not supports:
            logger.warning(
                "Iteration %d: Grounding enabled but no searches performed: %r",
                number, response.content[:200],
            )
        else:
            logger.info(
                "Iteration %d: Grounding successful: search_queries=%d supports=%d",
                number, searches, supports,
            )

    # -------------------------------------------------------------------------
    # Synthesis
    # -------------------------------------------------------------------------
    async def _synthesize(self, question: str, model: str, report: ReportBuilder) -> None:
        report.synthesis_heading()

        allowance = self.budget.synthesis_allowance()
        logger.info(
            "Synthesis phase: tokens_used=%d synthesis_reserve=%d available=%d steps=%d",
            self.budget.cumulative_tokens, self.budget.synthesis_reserve, allowance, len(self.steps),
        )

        prompt = build_synthesis_prompt(question, build_synthesis_context(self.steps, allowance))

        try:
            response = await self.backend.chat(ChatRequest(
                message=prompt,
                model=model,
                temperature=SYNTHESIS_TEMPERATURE,
                max_tokens=SYNTHESIS_MAX_TOKENS,
                grounding=False,
            ))
        except Exception as exc:
            error_text = _error_text(exc)
            logger.error("Synthesis phase failed: %s", error_text)
            report.synthesis_failed(error_text)
            report.finding(SYNTHESIS_UNAVAILABLE)
            return

        if response.usage_metadata is not None:
            spent = self.budget.record(response.usage_metadata)
            logger.info("Synthesis tokens: used=%d total=%d", spent, self.budget.cumulative_tokens)

        report.finding(response.content)
