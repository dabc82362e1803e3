# =============================================================================
# gemini_core/backend.py  —  Model Backend Adapter (google-genai)
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Wraps the google-genai async client behind three calls:
#
#     chat(request)      → ChatResponse, or a classified GeminiError
#     list_models()      → ListModelsResponse (from the catalog)
#     fetch_models()     → live model list (used by the catalog's discovery)
#
# HOW A CHAT CALL FLOWS:
#   1. Make sure the model catalog has attempted discovery (single-flight)
#   2. Resolve model / temperature / max tokens / grounding from the request,
#      falling back to configuration
#   3. Call generate_content() with safety settings and, when grounding is
#      on, the Google Search tool
#   4. Reject blocked prompts and empty answers with descriptive errors
#   5. Convert grounding + usage metadata to core dataclasses and append
#      inline citations to the text
#
# WHAT IT DOES NOT DO:
#   No retries.  A SafetyBlockError in particular must never be retried by
#   anyone.  The research orchestrator decides what a failed call means.
# =============================================================================

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from google import genai
from google.genai import types

from gemini_core.catalog import FALLBACK_CONTEXT_WINDOW, ModelCatalog
from gemini_core.citations import add_inline_citations
from gemini_core.config import GeminiConfig
from gemini_core.errors import ConfigurationError, GeminiError, McpError, SafetyBlockError
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

logger = logging.getLogger(__name__)

# Finish reasons, keyed by enum name and by the legacy numeric code.
_FINISH_REASON_TEXT = {
    "STOP": "STOP - Natural ending",
    "SAFETY": "SAFETY - Content was filtered",
    "MAX_TOKENS": "MAX_TOKENS - Hit token limit",
    "FINISH_REASON_UNSPECIFIED": "UNSPECIFIED",
    "OTHER": "OTHER",
    "1": "STOP - Natural ending",
    "2": "SAFETY - Content was filtered",
    "3": "MAX_TOKENS - Hit token limit",
    "4": "UNSPECIFIED",
    "5": "OTHER",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _enum_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)


def describe_finish_reason(reason: str) -> str:
    return _FINISH_REASON_TEXT.get(reason, f"Unknown reason: {reason}")


def build_prompt(message: str, system_prompt: Optional[str] = None) -> str:
    if system_prompt:
        return f"{system_prompt}\n\nUser: {message}\n\nAssistant:"
    return message


# =============================================================================
# Provider → core conversions
# =============================================================================
def _convert_grounding(raw: Any) -> Optional[GroundingMetadata]:
    if raw is None:
        return None

    chunks = []
    for chunk in raw.grounding_chunks or []:
        web = getattr(chunk, "web", None)
        chunks.append(GroundingChunk(
            uri=getattr(web, "uri", None),
            title=getattr(web, "title", None),
        ))

    supports = []
    for support in raw.grounding_supports or []:
        segment = getattr(support, "segment", None)
        supports.append(GroundingSupport(
            grounding_chunk_indices=list(support.grounding_chunk_indices or []),
            text=getattr(segment, "text", None),
        ))

    return GroundingMetadata(
        web_search_queries=list(raw.web_search_queries or []),
        grounding_chunks=chunks,
        grounding_supports=supports,
    )


def _convert_usage(raw: Any) -> Optional[UsageMetadata]:
    if raw is None:
        return None
    return UsageMetadata(
        prompt_token_count=raw.prompt_token_count or 0,
        candidates_token_count=raw.candidates_token_count or 0,
        total_token_count=raw.total_token_count or 0,
    )


def _convert_model(raw: Any) -> Optional[ModelInfo]:
    """Return None for models that cannot generate content."""
    actions = raw.supported_actions or []
    if "generateContent" not in actions or not raw.name:
        return None
    name = raw.name.removeprefix("models/")
    return ModelInfo(
        name=name,
        display_name=raw.display_name or name,
        description=raw.description or f"{name} model",
        context_window=raw.input_token_limit or FALLBACK_CONTEXT_WINDOW,
    )


# =============================================================================
# GeminiBackend
# =============================================================================
class GeminiBackend:
    """The single place that talks to the Gemini API."""

    def __init__(
        self,
        config: GeminiConfig,
        client: Optional[genai.Client] = None,
        catalog: Optional[ModelCatalog] = None,
    ):
        if not config.api_key:
            raise ConfigurationError("Missing API key for Gemini service")

        self.config = config
        self.client = client or genai.Client(api_key=config.api_key)
        self.catalog = catalog or ModelCatalog(config, self.fetch_models)
        logger.info("Gemini service initialized")

    # -------------------------------------------------------------------------
    # Catalog delegation
    # -------------------------------------------------------------------------
    async def ensure_models_initialized(self) -> None:
        await self.catalog.ensure_initialized()

    def get_default_model(self) -> str:
        return self.catalog.get_default_model()

    def get_available_models(self) -> list[str]:
        return self.catalog.get_available_models()

    def get_model_context_window(self, model_name: str) -> int:
        return self.catalog.get_model_context_window(model_name)

    # -------------------------------------------------------------------------
    # Model listing
    # -------------------------------------------------------------------------
    async def fetch_models(self) -> list[ModelInfo]:
        """Query the live model list.  Raises GeminiError on any failure."""
        try:
            pager = await self.client.aio.models.list()
            models = []
            async for raw in pager:
                model = _convert_model(raw)
                if model is not None:
                    models.append(model)
            return models
        except Exception as exc:
            raise GeminiError(f"Failed to fetch models: {exc}") from exc

    async def list_models(self) -> ListModelsResponse:
        await self.ensure_models_initialized()
        logger.info("Listing available models")
        return ListModelsResponse(models=self.catalog.models, timestamp=_now())

    async def validate_config(self) -> bool:
        """Check that the API key can list models.  Never raises."""
        if not self.config.api_key:
            logger.error("API key validation failed: missing key")
            return False
        try:
            await self.fetch_models()
        except GeminiError as exc:
            logger.error("API key validation failed: %s", exc)
            return False
        logger.info("Gemini API key validation successful")
        return True

    # -------------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------------
    def _generation_config(self, request: ChatRequest, grounding: bool) -> types.GenerateContentConfig:
        temperature = request.temperature if request.temperature is not None else self.config.temperature
        max_tokens = request.max_tokens if request.max_tokens is not None else self.config.max_tokens

        safety_settings = [
            types.SafetySetting(
                category=types.HarmCategory(setting.category),
                threshold=types.HarmBlockThreshold(setting.threshold),
            )
            for setting in self.config.safety_settings
        ]

        tools = [types.Tool(google_search=types.GoogleSearch())] if grounding else None

        return types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
            safety_settings=safety_settings,
            tools=tools,
        )

    async def chat(self, request: ChatRequest) -> ChatResponse:
        try:
            await self.ensure_models_initialized()

            grounding = request.grounding if request.grounding is not None else self.config.default_grounding
            model_name = request.model or self.get_default_model()

            logger.info(
                "Chat request to %s: message_length=%d system_prompt=%s grounding=%s",
                model_name, len(request.message), bool(request.system_prompt), grounding,
            )

            response = await self.client.aio.models.generate_content(
                model=model_name,
                contents=build_prompt(request.message, request.system_prompt),
                config=self._generation_config(request, grounding),
            )
            return self._parse_response(response, model_name)

        except McpError:
            raise
        except Exception as exc:
            logger.error("Chat generation failed: %s", exc)
            raise GeminiError(f"Error generating response: {exc}") from exc

    def _parse_response(self, response: types.GenerateContentResponse, model_name: str) -> ChatResponse:
        feedback = response.prompt_feedback
        if feedback is not None and feedback.block_reason:
            raise SafetyBlockError(
                f"Response was blocked by safety filters. Reason: {_enum_name(feedback.block_reason)}. "
                "Try rephrasing your query or using different parameters."
            )

        candidate = response.candidates[0] if response.candidates else None
        finish_reason = _enum_name(candidate.finish_reason) if candidate is not None else None

        text = response.text
        if not text:
            if finish_reason:
                raise GeminiError(
                    f"Response was filtered. Finish reason: {describe_finish_reason(finish_reason)}\n\n"
                    "Try:\n1. Rephrasing your query\n2. Using a different model\n"
                    "3. Adjusting temperature settings"
                )
            raise GeminiError("No text content in response. The model may have filtered the content.")

        grounding = _convert_grounding(candidate.grounding_metadata if candidate is not None else None)
        usage = _convert_usage(response.usage_metadata)

        if usage is not None:
            logger.info(
                "Token usage: prompt=%d candidates=%d total=%d",
                usage.prompt_token_count, usage.candidates_token_count, usage.total_token_count,
            )

        content = add_inline_citations(text, grounding) if grounding is not None else text

        logger.info(
            "Chat response generated successfully: model=%s length=%d finish_reason=%s search_queries=%d",
            model_name, len(text), finish_reason,
            len(grounding.web_search_queries) if grounding else 0,
        )

        return ChatResponse(
            content=content,
            model=model_name,
            timestamp=_now(),
            finish_reason=finish_reason,
            grounding_metadata=grounding,
            usage_metadata=usage,
        )
