"""
Configuration for the AI gateway.

Loads rate limits, cache TTL, alert thresholds and the fallback route from
environment variables. Values are static for the lifetime of the process.
Provides optional logging setup for standalone usage.
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, TypeVar

from dotenv import load_dotenv

from .models import GenerationConfig

load_dotenv()

T = TypeVar("T")


@dataclass(frozen=True)
class GatewayConfig:
    """Static gateway configuration."""

    rate_limits: Dict[str, int] = field(default_factory=lambda: {"openai": 50, "claude": 30})
    rate_window_seconds: float = 60.0

    cache_ttl_seconds: float = 600.0
    cache_max_entries: Optional[int] = 2048

    daily_cost_limit: float = 100.0
    error_rate_threshold: float = 0.05
    error_rate_critical_threshold: float = 0.10
    latency_threshold_ms: float = 10000.0

    stream_stale_seconds: float = 300.0
    stream_sweep_interval_seconds: float = 60.0

    primary_provider: str = "openai"
    fallback_provider: Optional[str] = "claude"
    fallback_model: Optional[str] = "claude-3-5-sonnet-20241022"

    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    log_dir: Optional[str] = None

    def api_key_for(self, provider: str) -> Optional[str]:
        if provider == "openai":
            return self.openai_api_key
        if provider == "claude":
            return self.anthropic_api_key
        return None


def _env(name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}")


def load_gateway_config() -> GatewayConfig:
    """
    Get gateway configuration from environment variables.

    Returns:
        GatewayConfig with defaults for unset variables

    Raises:
        ValueError: If a numeric variable cannot be parsed

    Examples:
        >>> config = load_gateway_config()
        >>> config.rate_limits["openai"]
        50
    """
    fallback_provider = os.getenv("AI_FALLBACK_PROVIDER", "claude") or None
    fallback_model = os.getenv("AI_FALLBACK_MODEL", "claude-3-5-sonnet-20241022") or None

    return GatewayConfig(
        rate_limits={
            "openai": _env("OPENAI_RATE_LIMIT", 50, int),
            "claude": _env("CLAUDE_RATE_LIMIT", 30, int),
        },
        rate_window_seconds=_env("AI_RATE_WINDOW_SECONDS", 60.0, float),
        cache_ttl_seconds=_env("AI_CACHE_TTL_SECONDS", 600.0, float),
        cache_max_entries=_env("AI_CACHE_MAX_ENTRIES", 2048, int) or None,
        daily_cost_limit=_env("AI_DAILY_COST_LIMIT", 100.0, float),
        error_rate_threshold=_env("AI_ERROR_RATE_THRESHOLD", 0.05, float),
        error_rate_critical_threshold=_env("AI_ERROR_RATE_CRITICAL", 0.10, float),
        latency_threshold_ms=_env("AI_LATENCY_THRESHOLD_MS", 10000.0, float),
        stream_stale_seconds=_env("AI_STREAM_STALE_SECONDS", 300.0, float),
        primary_provider=os.getenv("AI_PRIMARY_PROVIDER", "openai"),
        fallback_provider=fallback_provider,
        fallback_model=fallback_model,
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
        log_dir=os.getenv("AI_GATEWAY_LOG_DIR") or None,
    )


# Default generation settings for the named assistant agents
AGENT_PRESETS: Dict[str, GenerationConfig] = {
    "oracle": GenerationConfig(
        provider="openai",
        model="gpt-4-turbo-preview",
        max_tokens=1500,
        temperature=0.3,
        top_p=0.9,
        frequency_penalty=0.1,
        presence_penalty=0.1,
    ),
    "sentinel": GenerationConfig(
        provider="claude",
        model="claude-3-5-sonnet-20241022",
        max_tokens=1200,
        temperature=0.2,
        top_p=0.8,
    ),
    "sage": GenerationConfig(
        provider="openai",
        model="gpt-4-turbo-preview",
        max_tokens=2000,
        temperature=0.7,
        top_p=0.95,
        frequency_penalty=0.2,
        presence_penalty=0.3,
    ),
}


def setup_logging(log_file: Optional[str] = None, level: int = logging.INFO) -> None:
    """
    Setup file logging for the gateway packages (optional, for standalone usage).

    Configures a FileHandler for the ai_gateway, monitoring and providers loggers.
    For production use, prefer configuring logging at application level.

    Args:
        log_file: Path to log file (e.g., 'logs/gateway.log').
                  If None, only the level is configured.
        level: Logging level (default: INFO)
    """
    handler = None
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(level)
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)

    for name in ("ai_gateway", "monitoring", "providers"):
        logger = logging.getLogger(name)
        logger.setLevel(level)

        # Avoid adding duplicate handlers
        if handler is not None and not logger.handlers:
            logger.addHandler(handler)

        logger.propagate = True
