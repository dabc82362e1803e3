# =============================================================================
# gemini_core/config.py  —  Configuration (environment → immutable value)
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Reads the process environment once (after main.py has run
#   python-dotenv's load_dotenv()) and produces a frozen AppConfig.
#   The AppConfig is then passed explicitly into every component's
#   constructor; no module reads the environment on its own.
#
# ENVIRONMENT VARIABLES:
#   GEMINI_API_KEY               required
#   GEMINI_DEFAULT_MODEL         default "gemini-2.5-flash"
#   GEMINI_TEMPERATURE           default 0.7
#   GEMINI_MAX_TOKENS            default 16384
#   GEMINI_DEFAULT_GROUNDING     default true
#   GEMINI_ALLOW_EXPERIMENTAL    default false ("true" enables)
#   GEMINI_SAFETY_<CATEGORY>     per-category block threshold override,
#                                e.g. GEMINI_SAFETY_HARASSMENT=BLOCK_ONLY_HIGH
#   LOG_LEVEL                    default INFO
#   GEMINI_MCP_LOG_FILE          "true" adds a file log under ~/.gemini-mcp/logs
# =============================================================================

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from gemini_core.errors import ConfigurationError


HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

BLOCK_THRESHOLDS = (
    "BLOCK_NONE",
    "BLOCK_LOW_AND_ABOVE",
    "BLOCK_MEDIUM_AND_ABOVE",
    "BLOCK_ONLY_HIGH",
)

DEFAULT_THRESHOLD = "BLOCK_MEDIUM_AND_ABOVE"


@dataclass(frozen=True)
class SafetySetting:
    category: str                      # One of HARM_CATEGORIES
    threshold: str                     # One of BLOCK_THRESHOLDS


def default_safety_settings() -> tuple[SafetySetting, ...]:
    return tuple(SafetySetting(category, DEFAULT_THRESHOLD) for category in HARM_CATEGORIES)


@dataclass(frozen=True)
class GeminiConfig:
    """Everything the backend adapter and model catalog need."""

    api_key: Optional[str] = None
    default_model: str = "gemini-2.5-flash"
    temperature: float = 0.7
    max_tokens: int = 16384
    default_grounding: bool = True
    allow_experimental_models: bool = False
    safety_settings: tuple[SafetySetting, ...] = field(default_factory=default_safety_settings)


@dataclass(frozen=True)
class ServerConfig:
    name: str = "gemini-mcp"
    version: str = "1.0.0"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = os.path.join(os.path.expanduser("~"), ".gemini-mcp", "logs")


@dataclass(frozen=True)
class AppConfig:
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# =============================================================================
# Parsing helpers
# =============================================================================
def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    """Only the literal "true" (any case) turns a flag on."""
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() == "true"


def _env_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _safety_settings_from_env(env: Mapping[str, str]) -> tuple[SafetySetting, ...]:
    settings = []
    for category in HARM_CATEGORIES:
        short_name = category.removeprefix("HARM_CATEGORY_")
        threshold = env.get(f"GEMINI_SAFETY_{short_name}", DEFAULT_THRESHOLD).strip().upper()
        if threshold not in BLOCK_THRESHOLDS:
            raise ConfigurationError(
                f"GEMINI_SAFETY_{short_name}={threshold!r} is not a valid threshold. "
                f"Use one of: {', '.join(BLOCK_THRESHOLDS)}"
            )
        settings.append(SafetySetting(category, threshold))
    return tuple(settings)


# =============================================================================
# PUBLIC API
# =============================================================================
def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Build an AppConfig from ``environ`` (defaults to ``os.environ``).

    Does not check the API key; call validate_config() for that so a
    missing key can be reported with its remediation text.
    """
    env = os.environ if environ is None else environ

    temperature = _env_number(env, "GEMINI_TEMPERATURE", 0.7, float)
    if not 0.0 <= temperature <= 1.0:
        raise ConfigurationError(f"GEMINI_TEMPERATURE must be between 0.0 and 1.0, got {temperature}")

    max_tokens = _env_number(env, "GEMINI_MAX_TOKENS", 16384, int)
    if max_tokens < 1:
        raise ConfigurationError(f"GEMINI_MAX_TOKENS must be positive, got {max_tokens}")

    gemini = GeminiConfig(
        api_key=env.get("GEMINI_API_KEY") or None,
        default_model=env.get("GEMINI_DEFAULT_MODEL") or "gemini-2.5-flash",
        temperature=temperature,
        max_tokens=max_tokens,
        default_grounding=_env_flag(env, "GEMINI_DEFAULT_GROUNDING", True),
        allow_experimental_models=_env_flag(env, "GEMINI_ALLOW_EXPERIMENTAL", False),
        safety_settings=_safety_settings_from_env(env),
    )

    logging_config = LoggingConfig(
        level=(env.get("LOG_LEVEL") or "INFO").upper(),
        log_to_file=_env_flag(env, "GEMINI_MCP_LOG_FILE", False),
    )

    return AppConfig(gemini=gemini, server=ServerConfig(), logging=logging_config)


def validate_config(config: AppConfig) -> None:
    """Raise ConfigurationError if the server cannot start."""
    if not config.gemini.api_key:
        raise ConfigurationError(
            "GEMINI_API_KEY environment variable not set. "
            "Please set your Gemini API key: export GEMINI_API_KEY=your-api-key-here"
        )
