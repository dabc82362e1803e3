"""Tests for environment-based configuration."""

from __future__ import annotations

import pytest

from gemini_core.config import (
    DEFAULT_THRESHOLD,
    HARM_CATEGORIES,
    AppConfig,
    load_config,
    validate_config,
)
from gemini_core.errors import ConfigurationError


def test_defaults() -> None:
    config = load_config({"GEMINI_API_KEY": "abc"})
    assert config.gemini.api_key == "abc"
    assert config.gemini.default_model == "gemini-2.5-flash"
    assert config.gemini.temperature == 0.7
    assert config.gemini.max_tokens == 16384
    assert config.gemini.default_grounding is True
    assert config.gemini.allow_experimental_models is False
    assert [s.category for s in config.gemini.safety_settings] == list(HARM_CATEGORIES)
    assert all(s.threshold == DEFAULT_THRESHOLD for s in config.gemini.safety_settings)
    assert config.server.name == "gemini-mcp"
    assert config.logging.level == "INFO"
    assert config.logging.log_to_file is False


def test_overrides() -> None:
    config = load_config({
        "GEMINI_API_KEY": "abc",
        "GEMINI_DEFAULT_MODEL": "gemini-1.5-pro",
        "GEMINI_TEMPERATURE": "0.2",
        "GEMINI_MAX_TOKENS": "2048",
        "GEMINI_DEFAULT_GROUNDING": "false",
        "GEMINI_ALLOW_EXPERIMENTAL": "TRUE",
        "GEMINI_SAFETY_HATE_SPEECH": "block_only_high",
        "LOG_LEVEL": "debug",
        "GEMINI_MCP_LOG_FILE": "true",
    })
    assert config.gemini.default_model == "gemini-1.5-pro"
    assert config.gemini.temperature == 0.2
    assert config.gemini.max_tokens == 2048
    assert config.gemini.default_grounding is False
    assert config.gemini.allow_experimental_models is True
    thresholds = {s.category: s.threshold for s in config.gemini.safety_settings}
    assert thresholds["HARM_CATEGORY_HATE_SPEECH"] == "BLOCK_ONLY_HIGH"
    assert thresholds["HARM_CATEGORY_HARASSMENT"] == DEFAULT_THRESHOLD
    assert config.logging.level == "DEBUG"
    assert config.logging.log_to_file is True


def test_only_literal_true_enables_experimental() -> None:
    assert load_config({"GEMINI_ALLOW_EXPERIMENTAL": "1"}).gemini.allow_experimental_models is False


@pytest.mark.parametrize(
    "env",
    [
        {"GEMINI_TEMPERATURE": "hot"},
        {"GEMINI_TEMPERATURE": "1.5"},
        {"GEMINI_MAX_TOKENS": "0"},
        {"GEMINI_SAFETY_HARASSMENT": "BLOCK_EVERYTHING"},
    ],
)
def test_invalid_values(env) -> None:
    with pytest.raises(ConfigurationError):
        load_config(env)


def test_validate_requires_api_key() -> None:
    with pytest.raises(ConfigurationError, match="export GEMINI_API_KEY"):
        validate_config(load_config({}))
    validate_config(load_config({"GEMINI_API_KEY": "abc"}))


def test_config_is_immutable() -> None:
    config = AppConfig()
    with pytest.raises(AttributeError):
        config.gemini = None  # type: ignore[misc]
