# =============================================================================
# gemini_core/__init__.py
# =============================================================================
# This package contains ALL business logic for the Gemini research server.
#
# ARCHITECTURAL RULE:
#   Nothing in this package imports FastMCP or any transport framework.
#   The only third-party dependency is google-genai, and it is confined to
#   backend.py.  Everything else (catalog, budget, compactor, orchestrator,
#   citations) is plain Python that can be exercised with a fake backend.
#
# LAYERS (leaf → root):
#   models.py      → data shapes that flow between components
#   config.py      → immutable configuration loaded from the environment
#   errors.py      → error taxonomy + tool-boundary result helpers
#   citations.py   → grounding citations + source URL extraction
#   catalog.py     → model discovery, fallback list, default selection
#   backend.py     → google-genai adapter (chat + list models)
#   budget.py      → token budget derived from a model's context window
#   compactor.py   → bounded summaries of prior research steps
#   research.py    → the deep-research orchestrator and report builder
# =============================================================================
