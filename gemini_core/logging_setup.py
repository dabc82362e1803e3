# =============================================================================
# gemini_core/logging_setup.py  —  Logging Configuration
# =============================================================================
#
# All log output goes to STDERR.  The MCP server talks to its client over
# stdin/stdout, so a single log line on stdout would corrupt the JSON-RPC
# stream and crash the client.
#
# With GEMINI_MCP_LOG_FILE=true the same records are also written to
# ~/.gemini-mcp/logs/gemini-mcp.log.  If that directory cannot be created
# the server keeps running with stderr logging only.
# =============================================================================

import logging
import os
import sys

from gemini_core.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [MCP] %(message)s"
DATE_FORMAT = "%H:%M:%S"
FILE_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_FILE_NAME = "gemini-mcp.log"


def configure_logging(config: LoggingConfig) -> None:
    level = logging.getLevelName(config.level)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        force=True,
    )

    if not config.log_to_file:
        return

    try:
        os.makedirs(config.log_dir, mode=0o755, exist_ok=True)
        handler = logging.FileHandler(os.path.join(config.log_dir, LOG_FILE_NAME), encoding="utf-8")
    except OSError as exc:
        sys.stderr.write(
            f"Warning: Could not create log directory at {config.log_dir} ({exc}). "
            "File logging disabled.\n"
        )
        return

    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    logging.getLogger().addHandler(handler)
