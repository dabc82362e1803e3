"""Scripted stand-ins for the Gemini backend used across the test suite."""

from __future__ import annotations

from typing import Sequence

from gemini_core.catalog import FALLBACK_MODELS
from gemini_core.models import (
    ChatRequest,
    ChatResponse,
    GroundingChunk,
    GroundingMetadata,
    GroundingSupport,
    ListModelsResponse,
    ModelInfo,
    UsageMetadata,
)


def grounded_response(
    text: str,
    urls: Sequence[str] = (),
    total_tokens: int = 1_000,
    queries: Sequence[str] = ("test query",),
    model: str = "gemini-2.5-flash",
) -> ChatResponse:
    """A ChatResponse shaped like the backend's output for a grounded call."""
    content = text
    if urls:
        content += "\n\nSources: " + " ".join(f"({url})" for url in urls)
    if queries:
        content += f"\n\nSearch queries used: {', '.join(queries)}"
    return ChatResponse(
        content=content,
        model=model,
        timestamp="2026-01-01T00:00:00+00:00",
        finish_reason="STOP",
        grounding_metadata=GroundingMetadata(
            web_search_queries=list(queries),
            grounding_chunks=[GroundingChunk(uri=url) for url in urls],
            grounding_supports=[GroundingSupport(grounding_chunk_indices=[i]) for i in range(len(urls))],
        ),
        usage_metadata=UsageMetadata(
            prompt_token_count=total_tokens // 2,
            candidates_token_count=total_tokens - total_tokens // 2,
            total_token_count=total_tokens,
        ),
    )


def plain_response(text: str, total_tokens: int | None = 500) -> ChatResponse:
    usage = None
    if total_tokens is not None:
        usage = UsageMetadata(total_token_count=total_tokens)
    return ChatResponse(
        content=text,
        model="gemini-2.5-flash",
        timestamp="2026-01-01T00:00:00+00:00",
        finish_reason="STOP",
        usage_metadata=usage,
    )


class ScriptedBackend:
    """Replays a fixed list of outcomes, one per chat() call.

    Each outcome is either a ChatResponse to return or an exception to
    raise.  Every request is recorded in ``requests``.
    """

    def __init__(
        self,
        outcomes: Sequence[ChatResponse | BaseException] = (),
        context_window: int = 1_000_000,
        default_model: str = "gemini-2.5-flash",
    ) -> None:
        self.outcomes = list(outcomes)
        self.context_window = context_window
        self.default_model = default_model
        self.requests: list[ChatRequest] = []
        self.init_calls = 0

    async def ensure_models_initialized(self) -> None:
        self.init_calls += 1

    async def chat(self, request: ChatRequest) -> ChatResponse:
        self.requests.append(request)
        if not self.outcomes:
            raise AssertionError(f"unexpected chat call #{len(self.requests)}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def list_models(self) -> ListModelsResponse:
        return ListModelsResponse(models=list(FALLBACK_MODELS), timestamp="2026-01-01T00:00:00+00:00")

    def get_default_model(self) -> str:
        return self.default_model

    def get_available_models(self) -> list[str]:
        return [m.name for m in FALLBACK_MODELS]

    def get_model_context_window(self, model_name: str) -> int:
        return self.context_window


def model_info(name: str, window: int = 1_000_000) -> ModelInfo:
    return ModelInfo(name=name, display_name=name, description=f"{name} model", context_window=window)
