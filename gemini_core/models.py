# =============================================================================
# gemini_core/models.py  —  Data Models (the "nouns" of the system)
# =============================================================================
#
# These dataclasses define the shape of every piece of information that flows
# between the backend adapter, the model catalog and the research
# orchestrator.  They carry almost no behavior.
#
# PROVIDER TYPES STOP AT THE ADAPTER:
#   google-genai returns its own pydantic response objects.  backend.py
#   converts those into the plain dataclasses below, so nothing past the
#   adapter ever touches a provider type.  Tests build these directly.
#
# IMMUTABILITY:
#   ModelInfo, UsageMetadata and ChatResponse are frozen: one instance per
#   discovered model / per backend call, never edited afterwards.
#   ResearchStep is appended to a per-run list and never shared across runs.
# =============================================================================

from dataclasses import dataclass, field
from typing import Optional


# -----------------------------------------------------------------------------
# ModelInfo: one entry of the model catalog
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ModelInfo:
    """A model the backend can serve, keyed by ``name``."""

    name: str                          # "gemini-2.5-flash" (no "models/" prefix)
    display_name: str                  # "Gemini 2.5 Flash"
    description: str
    context_window: int                # Input token limit


# -----------------------------------------------------------------------------
# ChatRequest: one call to the model backend
# -----------------------------------------------------------------------------
# Every optional field falls back to configuration inside the adapter, so a
# caller only sets what it wants to override.
# -----------------------------------------------------------------------------
@dataclass
class ChatRequest:
    """A single chat completion request."""

    message: str
    model: Optional[str] = None
    temperature: Optional[float] = None    # 0.0–1.0
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None
    grounding: Optional[bool] = None       # None → configuration default


# -----------------------------------------------------------------------------
# Grounding metadata: what Google Search grounding attached to a response
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class GroundingChunk:
    """A retrieved web source.  ``uri`` may be missing on some chunks."""

    uri: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class GroundingSupport:
    """A span of the answer and the chunk indices that back it."""

    grounding_chunk_indices: list[int] = field(default_factory=list)
    text: Optional[str] = None


@dataclass(frozen=True)
class GroundingMetadata:
    web_search_queries: list[str] = field(default_factory=list)
    grounding_chunks: list[GroundingChunk] = field(default_factory=list)
    grounding_supports: list[GroundingSupport] = field(default_factory=list)


# -----------------------------------------------------------------------------
# UsageMetadata: token accounting returned after each call
# -----------------------------------------------------------------------------
# Absence of usage metadata means "zero usage", never an error.
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class UsageMetadata:
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0


@dataclass(frozen=True)
class ChatResponse:
    """The result of one backend call, after citation post-processing."""

    content: str
    model: str
    timestamp: str                     # ISO-8601, UTC
    finish_reason: Optional[str] = None
    grounding_metadata: Optional[GroundingMetadata] = None
    usage_metadata: Optional[UsageMetadata] = None


@dataclass(frozen=True)
class ListModelsResponse:
    models: list[ModelInfo]
    timestamp: str


# -----------------------------------------------------------------------------
# ResearchStep: one successful research iteration
# -----------------------------------------------------------------------------
@dataclass
class ResearchStep:
    """The prompt issued in one iteration and what came back."""

    query: str
    response: str
    sources: list[str] = field(default_factory=list)   # Unique within a step
    usage_metadata: UsageMetadata = field(default_factory=UsageMetadata)


# -----------------------------------------------------------------------------
# ResearchRequest: arguments of the deep-research tool
# -----------------------------------------------------------------------------
@dataclass
class ResearchRequest:
    research_question: str
    model: Optional[str] = None
    max_iterations: int = 5            # Clamped to [3, 10] by the orchestrator
    focus_areas: list[str] = field(default_factory=list)
