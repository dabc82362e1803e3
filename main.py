# =============================================================================
# main.py  —  Entry Point for the Gemini MCP Server
# =============================================================================
#
# HOW TO RUN:
#   uv run python main.py          (or the installed `gemini-mcp` script)
#
# WHAT HAPPENS:
#   1. Loads .env into the environment (GEMINI_API_KEY, LOG_LEVEL, ...)
#   2. Builds and validates the AppConfig; a missing API key exits with 1
#   3. Configures logging (stderr, optional file)
#   4. Creates the GeminiBackend and checks the key against the model list
#   5. Registers the MCP tools and serves them over stdio
#
# MCP CLIENT CONFIGURATION (e.g. Claude Desktop):
#   {
#     "mcpServers": {
#       "gemini": {
#         "command": "uv",
#         "args": ["run", "--directory", "/path/to/repo", "python", "main.py"],
#         "env": {"GEMINI_API_KEY": "..."}
#       }
#     }
#   }
# =============================================================================

import asyncio
import logging
import sys

from dotenv import load_dotenv

from gemini_core.backend import GeminiBackend
from gemini_core.config import AppConfig, load_config, validate_config
from gemini_core.errors import ConfigurationError
from gemini_core.logging_setup import configure_logging
from gemini_tools.mcp_server import create_server


async def serve(config: AppConfig) -> None:
    """Create the backend and run the MCP server until the client disconnects."""
    backend = GeminiBackend(config.gemini)

    # Not fatal: chat may still work when model listing does not.
    if not await backend.validate_config():
        logging.warning("Gemini API key could not be verified; continuing anyway")

    server = create_server(backend, config.server)
    logging.info("Gemini MCP Server initialized: %s %s", config.server.name, config.server.version)
    await server.run_async(transport="stdio")


def cli() -> None:
    load_dotenv()

    try:
        config = load_config()
        configure_logging(config.logging)
        validate_config(config)
    except ConfigurationError as exc:
        logging.basicConfig(stream=sys.stderr)
        logging.error("Configuration validation failed: %s", exc.message)
        sys.exit(1)

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logging.info("Gemini MCP Server stopped")


# =============================================================================
# Script entry point
# =============================================================================
if __name__ == "__main__":
    cli()
