"""Tests for prior-findings context and synthesis context construction."""

from __future__ import annotations

from gemini_core.compactor import build_smart_context, build_synthesis_context


class TestSmartContext:
    def test_empty_steps(self) -> None:
        assert build_smart_context([], 10_000) == ""

    def test_includes_all_steps_oldest_first_when_budget_allows(self, make_steps) -> None:
        steps = make_steps("alpha", "beta", "gamma")
        context = build_smart_context(steps, 10_000)
        assert context == (
            "Previous finding 1: alpha\n\n"
            "Previous finding 2: beta\n\n"
            "Previous finding 3: gamma\n\n"
        )

    def test_long_responses_are_cut_to_1000_chars(self, make_steps) -> None:
        steps = make_steps("x" * 1500)
        context = build_smart_context(steps, 10_000)
        assert context == "Previous finding 1: " + "x" * 1000 + "...\n\n"

    def test_older_steps_dropped_whole_when_budget_runs_out(self, make_steps) -> None:
        steps = make_steps("a" * 100, "b" * 100, "c" * 100)
        # Each summary is len("Previous finding N: ") + 100 + 2 = 122 chars.
        # 80 tokens * 4 * 0.8 = 256 chars → room for exactly two summaries.
        context = build_smart_context(steps, 80)
        assert "Previous finding 1" not in context
        assert "a" not in context
        assert context.startswith("Previous finding 2: ")
        assert context.endswith("c" * 100 + "\n\n")
        assert len(context) <= 80 * 4 * 0.8

    def test_never_exceeds_budget(self, make_steps) -> None:
        steps = make_steps(*("finding %d " % i * 50 for i in range(8)))
        for remaining in (0, 50, 200, 400, 1_000):
            assert len(build_smart_context(steps, remaining)) <= remaining * 4 * 0.8

    def test_non_positive_budget_yields_nothing(self, make_steps) -> None:
        steps = make_steps("alpha")
        assert build_smart_context(steps, 0) == ""
        assert build_smart_context(steps, -5_000) == ""

    def test_deterministic(self, make_steps) -> None:
        steps = make_steps("one " * 300, "two " * 300, "three " * 300)
        assert build_smart_context(steps, 500) == build_smart_context(steps, 500)


class TestSynthesisContext:
    def test_every_step_present_and_truncated_equally(self, make_steps) -> None:
        steps = make_steps("a" * 500, "b" * 10, "c" * 500)
        # 100 tokens * 4 / 3 steps = 133 chars per step
        context = build_synthesis_context(steps, 100)
        blocks = context.split("\n\n")
        assert blocks == [
            "Research Iteration 1:\n" + "a" * 133 + "...",
            "Research Iteration 2:\n" + "b" * 10,
            "Research Iteration 3:\n" + "c" * 133 + "...",
        ]

    def test_negative_allowance_clamped_to_zero(self, make_steps) -> None:
        steps = make_steps("alpha", "beta")
        context = build_synthesis_context(steps, -1_000)
        assert context == "Research Iteration 1:\n...\n\nResearch Iteration 2:\n..."

    def test_no_steps(self) -> None:
        assert build_synthesis_context([], 1_000) == ""
