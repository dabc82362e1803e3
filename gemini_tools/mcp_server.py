# =============================================================================
# gemini_tools/mcp_server.py  —  FastMCP Tool Server (ALL tools in one place)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Defines the three MCP tools this server exposes.  Each tool is a thin
#   wrapper around gemini_core: it logs the call, runs the core operation,
#   and turns the outcome (or the failure) into a {"content", "success"}
#   dict.
#
#     gemini_chat           → GeminiBackend.chat()
#     gemini_list_models    → GeminiBackend.list_models()
#     gemini_deep_research  → DeepResearchOrchestrator.run()
#
# HOW IT WORKS (the flow):
#   1. An MCP client calls a tool by name (e.g. "gemini_deep_research")
#   2. FastMCP validates the arguments against the annotated signature
#   3. The tool delegates to a run_* coroutine below
#   4. run_* calls gemini_core and formats the result
#   5. Any exception is classified and rendered as success=False
#
# WHY run_* FUNCTIONS SEPARATE FROM THE DECORATED TOOLS?
#   The decorated functions are closures over one GeminiBackend created by
#   create_server().  The run_* coroutines take the backend explicitly, so
#   tests call them with a fake backend and no MCP transport.
# =============================================================================

import json
import logging
from typing import Annotated, Optional

from fastmcp import FastMCP
from pydantic import Field

from gemini_core.backend import GeminiBackend
from gemini_core.config import ServerConfig
from gemini_core.errors import InvalidParamsError, McpError, classify_error, tool_result
from gemini_core.models import ChatRequest, ResearchRequest
from gemini_core.research import DEFAULT_ITERATIONS, DeepResearchOrchestrator

# =============================================================================
# Logging helpers
# =============================================================================
# ANSI color codes make tool calls easy to scan in the terminal:
#     CYAN   incoming requests (tool name + parameters)
#     YELLOW intermediate status
#     GREEN  responses
# All of it goes to STDERR (see gemini_core/logging_setup.py).
# =============================================================================
_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RESET = "\033[0m"

# Responses can be whole research reports; log only the head of them.
_LOG_PREVIEW_CHARS = 300


def _log_request(tool_name: str, **params) -> None:
    """Log an incoming tool call with its parameters in CYAN."""
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items())
    logging.info(f"{_CYAN}{tool_name} called with: {param_str}{_RESET}")


def _log_status(message: str) -> None:
    """Log an intermediate status message in YELLOW."""
    logging.info(f"{_YELLOW}  → {message}{_RESET}")


def _log_response(tool_name: str, result: dict) -> dict:
    """Log the (truncated) tool response in GREEN, then return it."""
    preview = dict(result)
    content = preview.get("content", "")
    if len(content) > _LOG_PREVIEW_CHARS:
        preview["content"] = content[:_LOG_PREVIEW_CHARS] + f"... ({len(content)} chars)"
    logging.info(f"{_GREEN}  ← {tool_name} response: {json.dumps(preview, separators=(',', ':'))}{_RESET}")
    return result


def _failure(tool_name: str, exc: Exception, message: str) -> dict:
    error = classify_error(exc, tool_name)
    return _log_response(tool_name, tool_result(False, message, error))


# =============================================================================
# Tool implementations
# =============================================================================
async def run_chat(
    backend: GeminiBackend,
    message: str,
    model: Optional[str] = None,
    temperature: Optional[float] = 0.7,
    max_tokens: Optional[int] = 8192,
    system_prompt: Optional[str] = None,
    grounding: Optional[bool] = True,
) -> dict:
    _log_request("gemini_chat", model=model, message_length=len(message or ""),
                 temperature=temperature, max_tokens=max_tokens, grounding=grounding)
    try:
        if not message:
            raise InvalidParamsError("Message is required")

        response = await backend.chat(ChatRequest(
            message=message,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            system_prompt=system_prompt,
            grounding=grounding,
        ))
        _log_status(f"model={response.model} finish_reason={response.finish_reason}")
        return _log_response("gemini_chat", tool_result(True, response.content))

    except McpError as exc:
        return _failure("gemini_chat", exc, exc.message)
    except Exception as exc:
        return _failure("gemini_chat", exc, f"Unexpected error: {exc}")


def format_model_list(models, timestamp: str) -> str:
    lines = ["Available Gemini Models:", ""]
    lines.extend(f"• **{model.name}**: {model.description}" for model in models)
    lines.extend(["", f"Last updated: {timestamp}"])
    return "\n".join(lines)


async def run_list_models(backend: GeminiBackend) -> dict:
    _log_request("gemini_list_models")
    try:
        response = await backend.list_models()
        _log_status(f"{len(response.models)} models available")
        return _log_response("gemini_list_models",
                             tool_result(True, format_model_list(response.models, response.timestamp)))
    except Exception as exc:
        return _failure("gemini_list_models", exc, f"Error listing models: {exc}")


async def run_deep_research(
    backend: GeminiBackend,
    research_question: str,
    model: Optional[str] = None,
    max_iterations: Optional[int] = DEFAULT_ITERATIONS,
    focus_areas: Optional[list[str]] = None,
) -> dict:
    _log_request("gemini_deep_research", question=research_question, model=model,
                 max_iterations=max_iterations, focus_areas=focus_areas)
    orchestrator = DeepResearchOrchestrator(backend)
    try:
        report = await orchestrator.run(ResearchRequest(
            research_question=research_question,
            model=model,
            max_iterations=max_iterations if max_iterations is not None else DEFAULT_ITERATIONS,
            focus_areas=list(focus_areas or []),
        ))
        _log_status(f"Research finished with {len(orchestrator.steps)} steps")
        return _log_response("gemini_deep_research", tool_result(True, report))

    except McpError as exc:
        return _failure("gemini_deep_research", exc, exc.message)
    except Exception as exc:
        return _failure(
            "gemini_deep_research", exc,
            f"Deep research failed: {exc}\n\n"
            "Try:\n"
            "- Simplifying or rephrasing the question\n"
            "- Reducing max_iterations\n"
            "- Breaking it into smaller, more focused queries",
        )


# =============================================================================
# Server factory
# =============================================================================
def create_server(backend: GeminiBackend, server_config: Optional[ServerConfig] = None) -> FastMCP:
    """Create the FastMCP server and register all tools against ``backend``."""
    server_config = server_config or ServerConfig()
    mcp = FastMCP(server_config.name)

    @mcp.tool()
    async def gemini_chat(
        message: Annotated[str, Field(description="The message to send")],
        model: Annotated[Optional[str], Field(
            description="Model to use (defaults to latest available)")] = None,
        temperature: Annotated[float, Field(
            ge=0.0, le=1.0, description="Controls randomness (0.0 to 1.0)")] = 0.7,
        max_tokens: Annotated[int, Field(
            ge=1, le=32768, description="Maximum tokens in response")] = 8192,
        system_prompt: Annotated[Optional[str], Field(
            description="Optional system instruction")] = None,
        grounding: Annotated[bool, Field(
            description="Enable Google Search grounding for real-time information")] = True,
    ) -> dict:
        """Chat with Google Gemini models.

        With grounding enabled (the default) the answer is backed by live
        Google Search results and ends with a "Sources:" line listing the
        cited URLs and a "Search queries used:" line.

        Returns:
            A dict with:
              - content: The model's answer, or "Error: ..." on failure
              - success: Whether the call succeeded
        """
        return await run_chat(backend, message, model, temperature, max_tokens, system_prompt, grounding)

    @mcp.tool()
    async def gemini_list_models() -> dict:
        """List available Gemini models and their descriptions.

        Returns:
            A dict with:
              - content: One bullet per model plus a "Last updated" timestamp
              - success: Whether the listing succeeded
        """
        return await run_list_models(backend)

    @mcp.tool()
    async def gemini_deep_research(
        research_question: Annotated[str, Field(
            description="The complex research question or topic to investigate deeply")],
        model: Annotated[Optional[str], Field(
            description="Model to use for deep research (defaults to latest available)")] = None,
        max_iterations: Annotated[int, Field(
            description="Number of research iterations (3-10, default 5; values outside the "
                        "range are clamped). Environment guidance: Claude Desktop: use 3-4 "
                        "(4-min timeout). Agent SDK/IDEs (VSCode, Cursor, Windsurf)/AI platforms "
                        "(Cline, Roo-Cline): can use 7-10 (longer timeout tolerance)")] = DEFAULT_ITERATIONS,
        focus_areas: Annotated[Optional[list[str]], Field(
            description="Optional: specific areas to focus the research on")] = None,
    ) -> dict:
        """Conduct deep research on complex topics using iterative multi-step analysis with Gemini.

        This performs multiple grounded searches and synthesizes a
        comprehensive research report (takes several minutes).
        [MCP_RECOMMENDED_TIMEOUT_MS: 900000]

        Returns:
            A dict with:
              - content: The Markdown report (iterations, synthesis, sources,
                token statistics), or "Error: ..." with remediation steps
              - success: Whether the research produced a report
        """
        return await run_deep_research(backend, research_question, model, max_iterations, focus_areas)

    logging.info(
        "Tools registered for %s %s: gemini_chat, gemini_list_models, gemini_deep_research",
        server_config.name, server_config.version,
    )
    return mcp
