"""Tests for the MCP tool layer."""

from __future__ import annotations

import pytest
from fastmcp import Client

from gemini_core.errors import GeminiError
from gemini_tools.mcp_server import (
    create_server,
    format_model_list,
    run_chat,
    run_deep_research,
    run_list_models,
)
from tests.helpers.fake_backend import ScriptedBackend, grounded_response, model_info, plain_response


@pytest.mark.asyncio
async def test_chat_success() -> None:
    backend = ScriptedBackend([plain_response("Hello there")])
    result = await run_chat(backend, "Hi", temperature=0.3, max_tokens=64, system_prompt="Be kind",
                            grounding=False)

    assert result == {"content": "Hello there", "success": True}
    request = backend.requests[0]
    assert request.temperature == 0.3
    assert request.max_tokens == 64
    assert request.system_prompt == "Be kind"
    assert request.grounding is False


@pytest.mark.asyncio
async def test_chat_requires_message() -> None:
    backend = ScriptedBackend()
    result = await run_chat(backend, "")
    assert result["success"] is False
    assert result["content"] == "Error: Message is required"
    assert result["error_code"] == "INVALID_PARAMS"
    assert backend.requests == []


@pytest.mark.asyncio
async def test_chat_backend_failure() -> None:
    backend = ScriptedBackend([GeminiError("Response was blocked by safety filters. Reason: SAFETY.")])
    result = await run_chat(backend, "Hi")
    assert result["success"] is False
    assert result["content"].startswith("Error: Response was blocked by safety filters")


@pytest.mark.asyncio
async def test_chat_unexpected_failure() -> None:
    backend = ScriptedBackend([KeyError("boom")])
    result = await run_chat(backend, "Hi")
    assert result["success"] is False
    assert result["content"].startswith("Error: Unexpected error:")


def test_format_model_list() -> None:
    text = format_model_list([model_info("gemini-2.5-flash"), model_info("gemini-pro")], "2026-01-01")
    assert text == (
        "Available Gemini Models:\n\n"
        "• **gemini-2.5-flash**: gemini-2.5-flash model\n"
        "• **gemini-pro**: gemini-pro model\n\n"
        "Last updated: 2026-01-01"
    )


@pytest.mark.asyncio
async def test_list_models() -> None:
    result = await run_list_models(ScriptedBackend())
    assert result["success"] is True
    assert "• **gemini-1.5-pro**: Gemini 1.5 Pro - Advanced reasoning" in result["content"]


@pytest.mark.asyncio
async def test_deep_research_success() -> None:
    backend = ScriptedBackend([grounded_response(f"finding {i}") for i in range(3)] + [plain_response("s")])
    result = await run_deep_research(backend, "question", max_iterations=3)
    assert result["success"] is True
    assert result["content"].startswith("# Deep Research Report")


@pytest.mark.asyncio
async def test_deep_research_failure_is_rendered() -> None:
    backend = ScriptedBackend([GeminiError("quota"), GeminiError("quota")])
    result = await run_deep_research(backend, "question", focus_areas=["a"])
    assert result["success"] is False
    assert result["error_code"] == "RESEARCH_ITERATIONS_FAILING"
    assert "Checking your API quota" in result["content"]
    assert len(backend.requests) == 2


@pytest.mark.asyncio
async def test_deep_research_unexpected_failure() -> None:
    backend = ScriptedBackend()

    async def broken_init() -> None:
        raise ZeroDivisionError("bad math")

    backend.ensure_models_initialized = broken_init
    result = await run_deep_research(backend, "question", max_iterations=3)
    assert result["success"] is False
    assert result["content"].startswith("Error: Deep research failed: bad math")
    assert "Reducing max_iterations" in result["content"]
    assert backend.requests == []


@pytest.mark.asyncio
async def test_deep_research_survives_unclassified_iteration_error() -> None:
    backend = ScriptedBackend([grounded_response("one"), RuntimeError("raw"), grounded_response("two"),
                               grounded_response("three"), plain_response("synth")])
    result = await run_deep_research(backend, "question", max_iterations=4)
    assert result["success"] is True
    assert "*Iteration 2 failed: raw*" in result["content"]


@pytest.mark.asyncio
async def test_server_registers_tools() -> None:
    server = create_server(ScriptedBackend())
    async with Client(server) as client:
        tools = {tool.name: tool for tool in await client.list_tools()}

    assert set(tools) == {"gemini_chat", "gemini_list_models", "gemini_deep_research"}
    assert "[MCP_RECOMMENDED_TIMEOUT_MS: 900000]" in tools["gemini_deep_research"].description
    assert tools["gemini_chat"].inputSchema["required"] == ["message"]
