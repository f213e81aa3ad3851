"""TOML config loading and profiles."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from bookarb.errors import ConfigurationError
from bookarb.models.strategy import PairStrategyConfig

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir() -> Path:
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    config_dir = config_dir or _find_config_dir()
    default_path = config_dir / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        storage: dict[str, Any] | None = None,
        cache: dict[str, Any] | None = None,
        orderbook: dict[str, Any] | None = None,
        feed: dict[str, Any] | None = None,
        strategies: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.storage = storage or {}
        self.cache = cache or {}
        self.orderbook = orderbook or {}
        self.feed = feed or {}
        self.strategies = strategies or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            storage=raw.get("storage"),
            cache=raw.get("cache"),
            orderbook=raw.get("orderbook"),
            feed=raw.get("feed"),
            strategies=raw.get("strategies"),
            logging=raw.get("logging"),
        )

    # Convenience accessors with defaults
    @property
    def db_path(self) -> str:
        return self.storage.get("db_path", "data/bookarb.duckdb")

    @property
    def redis_url(self) -> str:
        return self.cache.get("redis_url", "redis://localhost:6379/0")

    @property
    def redis_socket_timeout_sec(self) -> float:
        return float(self.cache.get("socket_timeout_sec", 2.0))

    @property
    def freshness_threshold_sec(self) -> float:
        return float(self.orderbook.get("freshness_threshold_sec", 30))

    @property
    def reject_stale_updates(self) -> bool:
        return bool(self.orderbook.get("reject_stale_updates", False))

    @property
    def feed_url(self) -> str | None:
        return self.feed.get("ws_url")

    @property
    def reconnect_base_delay_sec(self) -> float:
        return float(self.feed.get("reconnect_base_delay_sec", 1.0))

    @property
    def reconnect_max_delay_sec(self) -> float:
        return float(self.feed.get("reconnect_max_delay_sec", 60.0))

    @property
    def reconnect_max_retries(self) -> int:
        return int(self.feed.get("reconnect_max_retries", 0))

    @property
    def currency_pairs(self) -> list[str]:
        return sorted(self.strategies)

    def strategy_config(self, currency_pair: str) -> PairStrategyConfig:
        """Market taking / making parameters for the pair. Raises ConfigurationError if absent or invalid."""
        raw = self.strategies.get(currency_pair)
        if raw is None:
            raise ConfigurationError(f"no [strategies.\"{currency_pair}\"] section in config")
        try:
            return PairStrategyConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"invalid strategy config for {currency_pair}: {e}") from e

    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
