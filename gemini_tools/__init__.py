# =============================================================================
# gemini_tools/__init__.py
# =============================================================================
# This package contains the FastMCP tool wrappers.
#
# ARCHITECTURAL ROLE:
#   gemini_tools/ is the translation layer between MCP clients and the
#   business logic in gemini_core/.  Each tool:
#     1. Receives validated arguments from FastMCP
#     2. Calls into gemini_core (backend or orchestrator)
#     3. Converts the outcome into a {"content", "success"} dict
#     4. Never lets an exception escape unclassified
#
# TOOL CONTRACT QUALITY:
#   The docstring of each tool is what the calling model reads to decide
#   WHEN to call it, so each one spells out arguments and return format.
# =============================================================================
