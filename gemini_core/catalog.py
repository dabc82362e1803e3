# =============================================================================
# gemini_core/catalog.py  —  Model Catalog (discovery, fallback, default)
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Knows which models exist and how large their context windows are.
#
#   - Before discovery completes (or if it fails) the catalog serves a
#     built-in FALLBACK_MODELS list.
#   - ensure_initialized() asks the backend for the live model list exactly
#     once per catalog.  Concurrent callers share the same in-flight
#     discovery and observe its single outcome.
#   - select_default_model() picks the default model from a candidate list.
#
# SINGLE-FLIGHT INITIALIZATION:
#   The lazy cell has three states:
#       _init_task is None          → not started
#       _init_task pending          → in flight, callers await it
#       _initialized is True        → done, return immediately
#   The discovery coroutine never raises (failure means "keep the fallback
#   list"), so every awaiting caller sees the same completed task.  Callers
#   await it through asyncio.shield() so one cancelled caller cannot cancel
#   the discovery the others are waiting on.
# =============================================================================

import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional, Sequence

from gemini_core.config import GeminiConfig
from gemini_core.models import ModelInfo

logger = logging.getLogger(__name__)

# Context window reported for any model name the catalog does not know.
FALLBACK_CONTEXT_WINDOW = 32_000

FALLBACK_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo("gemini-2.5-flash", "Gemini 2.5 Flash",
              "Latest Gemini 2.5 Flash - Fast, versatile performance", 1_000_000),
    ModelInfo("gemini-2.0-flash", "Gemini 2.0 Flash",
              "Gemini 2.0 Flash - Fast, efficient model", 1_000_000),
    ModelInfo("gemini-1.5-flash", "Gemini 1.5 Flash",
              "Gemini 1.5 Flash - Fast, efficient model", 1_000_000),
    ModelInfo("gemini-1.5-pro", "Gemini 1.5 Pro",
              "Gemini 1.5 Pro - Advanced reasoning", 2_000_000),
    ModelInfo("gemini-pro", "Gemini Pro",
              "Gemini Pro - Balanced performance", 32_000),
    ModelInfo("gemini-pro-vision", "Gemini Pro Vision",
              "Gemini Pro Vision - Multimodal understanding", 16_000),
)

_PRODUCT_KEYWORD = "gemini"
_SPEED_KEYWORD = "flash"
_EXPERIMENTAL_MARKERS = ("-exp", "-preview", "experimental", "-thinking-")
_VERSION_PATTERN = re.compile(r"(\d+\.?\d*)")

ModelFetcher = Callable[[], Awaitable[list[ModelInfo]]]


# =============================================================================
# Default-model selection (pure functions)
# =============================================================================
def extract_version(model_name: str) -> float:
    """First decimal number in the name ("gemini-2.5-pro" → 2.5), else 0."""
    match = _VERSION_PATTERN.search(model_name)
    return float(match.group(1)) if match else 0.0


def is_experimental(model_name: str) -> bool:
    name = model_name.lower()
    return any(marker in name for marker in _EXPERIMENTAL_MARKERS)


def select_default_model(models: Sequence[ModelInfo], allow_experimental: bool = False) -> Optional[str]:
    """Pick the preferred model name out of ``models``.

    1. Keep models whose name contains "gemini"; if none do, return the
       first model as-is.
    2. Unless ``allow_experimental``, drop experimental/preview/thinking
       variants, but only if at least one model survives the filter.
    3. Highest version first; on a tie, "flash" models first.
    """
    if not models:
        return None

    candidates = [m for m in models if _PRODUCT_KEYWORD in m.name.lower()]
    if not candidates:
        return models[0].name

    if not allow_experimental:
        stable = [m for m in candidates if not is_experimental(m.name)]
        if stable:
            candidates = stable

    ranked = sorted(
        candidates,
        key=lambda m: (-extract_version(m.name), _SPEED_KEYWORD not in m.name.lower()),
    )
    return ranked[0].name


# =============================================================================
# ModelCatalog
# =============================================================================
class ModelCatalog:
    """In-memory model list with lazy, single-flight discovery."""

    def __init__(self, config: GeminiConfig, fetcher: ModelFetcher):
        self._config = config
        self._fetcher = fetcher
        self._models: list[ModelInfo] = list(FALLBACK_MODELS)
        self._default_model = config.default_model
        self._init_task: Optional[asyncio.Task] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def ensure_initialized(self) -> None:
        if self._initialized:
            return
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._discover())
        await asyncio.shield(self._init_task)
        self._initialized = True

    async def _discover(self) -> None:
        try:
            models = await self._fetcher()
        except Exception as exc:
            logger.warning("Using fallback model list (API discovery failed): %s", exc)
            return

        if not models:
            logger.warning("Model discovery returned no usable models, keeping fallback list")
            return

        self._models = list(models)
        selected = select_default_model(self._models, self._config.allow_experimental_models)
        if selected:
            self._default_model = selected

        preview = ", ".join(m.name for m in self._models[:5])
        if len(self._models) > 5:
            preview += "..."
        logger.info(
            "Models discovered from API: count=%d default=%s models=%s",
            len(self._models), self._default_model, preview,
        )

    # -------------------------------------------------------------------------
    # Read accessors (never raise)
    # -------------------------------------------------------------------------
    @property
    def models(self) -> list[ModelInfo]:
        return list(self._models)

    def get_default_model(self) -> str:
        return self._default_model

    def get_available_models(self) -> list[str]:
        return [m.name for m in self._models]

    def get_model_context_window(self, model_name: str) -> int:
        for model in self._models:
            if model.name == model_name:
                return model.context_window or FALLBACK_CONTEXT_WINDOW
        return FALLBACK_CONTEXT_WINDOW
