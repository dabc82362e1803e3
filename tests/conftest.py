"""Shared fixtures for the gemini-research-mcp test suite."""

from __future__ import annotations

import pytest

from gemini_core.config import GeminiConfig
from gemini_core.models import ResearchStep


@pytest.fixture
def gemini_config() -> GeminiConfig:
    return GeminiConfig(api_key="test-key")


@pytest.fixture
def make_steps():
    """Factory: one ResearchStep per response text."""

    def _make(*responses: str) -> list[ResearchStep]:
        return [ResearchStep(query=f"q{i}", response=text) for i, text in enumerate(responses)]

    return _make
