# =============================================================================
# gemini_core/errors.py  —  Error Taxonomy & Tool-Boundary Results
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Defines the exception classes every core component raises, and the two
#   helpers the tool layer uses at the MCP boundary:
#     - classify_error() turns any exception into an McpError (and logs it)
#     - tool_result() renders the {"content", "success"} dict a tool returns
#
# THE TAXONOMY:
#   McpError                     base class, carries a machine-readable code
#   ├── ConfigurationError       missing/invalid credential or setting (fatal)
#   ├── InvalidParamsError       bad tool arguments
#   ├── GeminiError              any classified backend failure
#   │   └── SafetyBlockError     prompt blocked by safety filters (no retry)
#   └── ResearchError            research-exhaustion (fail-fast / all failed)
#
#   Model discovery failure and synthesis failure are NOT in this list: both
#   degrade softly and are only logged.
# =============================================================================

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class McpError(Exception):
    """Base class for every error that may reach the tool boundary."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class GeminiError(McpError):
    def __init__(self, message: str, code: str = "GEMINI_ERROR"):
        super().__init__(message, code, 500)


class SafetyBlockError(GeminiError):
    """The provider refused the prompt.  Callers must not retry this."""

    def __init__(self, message: str):
        super().__init__(message, "SAFETY_BLOCKED")


class ConfigurationError(McpError):
    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR", 500)


class InvalidParamsError(McpError):
    def __init__(self, message: str):
        super().__init__(message, "INVALID_PARAMS", 400)


class ResearchError(McpError):
    """Research could not produce any findings.

    ``code`` is RESEARCH_ITERATIONS_FAILING for the fail-fast guard and
    ALL_ITERATIONS_FAILED for the terminal zero-success check.
    """

    def __init__(self, message: str, code: str):
        super().__init__(message, code, 500)


def classify_error(error: BaseException, context: Optional[str] = None) -> McpError:
    """Log ``error`` and return it as an McpError.

    McpErrors pass through untouched.  Anything else is classified from its
    message text: credential problems become ConfigurationError, provider
    failures become GeminiError, the rest a plain McpError.
    """
    prefix = f"[{context}] " if context else ""
    full_message = f"{prefix}{error}"
    logger.error(full_message, exc_info=error)

    if isinstance(error, McpError):
        return error

    text = str(error)
    if "API key" in text:
        return ConfigurationError(full_message)
    if "Gemini" in text or "generative" in text:
        return GeminiError(full_message)
    return McpError(full_message)


def tool_result(success: bool, content: str, error: Optional[McpError] = None) -> dict:
    """Build the dict every MCP tool in this project returns."""
    if success:
        return {"content": content, "success": True}

    result = {"content": f"Error: {content}", "success": False}
    if error is not None:
        result["error_code"] = error.code
    return result
