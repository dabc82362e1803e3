"""Tests for error classification and tool results."""

from __future__ import annotations

from gemini_core.errors import (
    ConfigurationError,
    GeminiError,
    McpError,
    ResearchError,
    classify_error,
    tool_result,
)


def test_mcp_errors_pass_through() -> None:
    error = ResearchError("nothing worked", "ALL_ITERATIONS_FAILED")
    assert classify_error(error, "ctx") is error


def test_api_key_messages_become_configuration_errors() -> None:
    error = classify_error(ValueError("API key not valid"), "gemini_chat")
    assert isinstance(error, ConfigurationError)
    assert error.message == "[gemini_chat] API key not valid"


def test_provider_messages_become_gemini_errors() -> None:
    assert isinstance(classify_error(RuntimeError("Gemini returned 500")), GeminiError)


def test_other_errors_become_plain_mcp_errors() -> None:
    error = classify_error(RuntimeError("disk full"))
    assert type(error) is McpError
    assert error.code == "UNKNOWN_ERROR"


def test_tool_result_shapes() -> None:
    assert tool_result(True, "report") == {"content": "report", "success": True}
    failed = tool_result(False, "quota", GeminiError("quota"))
    assert failed == {"content": "Error: quota", "success": False, "error_code": "GEMINI_ERROR"}
