"""
Runtime settings.

Settings come from three places, in increasing priority:
1. Dataclass defaults
2. A YAML file (``Settings.from_yaml``)
3. Environment variables (``Settings.from_env``)

Environment Variables:
    TICKETMASTER_API_KEY, EVENTBRITE_TOKEN, RAPIDAPI_KEY, PREDICTHQ_API_KEY,
    MAPBOX_API_KEY: Provider credentials
    UNIFIED_EVENTS_PROVIDERS: Comma-separated enabled providers
    UNIFIED_EVENTS_CACHE_DIR: Durable cache directory
    UNIFIED_EVENTS_PROVIDER_TIMEOUT: Per-provider timeout (seconds)
    UNIFIED_EVENTS_AGGREGATION_TIMEOUT: Global fan-out deadline (seconds)
    UNIFIED_EVENTS_GEOCODING: "0" disables geocoding
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError
from .rate_limiter import DEFAULT_BUDGETS, BudgetConfig

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = "~/.unified-events/cache"
ALL_PROVIDERS = ("ticketmaster", "eventbrite", "rapidapi", "predicthq")

_CREDENTIAL_ENV = {
    "ticketmaster_api_key": "TICKETMASTER_API_KEY",
    "eventbrite_token": "EVENTBRITE_TOKEN",
    "rapidapi_key": "RAPIDAPI_KEY",
    "predicthq_api_key": "PREDICTHQ_API_KEY",
    "mapbox_api_key": "MAPBOX_API_KEY",
}

_FLOAT_ENV = {
    "provider_timeout": "UNIFIED_EVENTS_PROVIDER_TIMEOUT",
    "aggregation_timeout": "UNIFIED_EVENTS_AGGREGATION_TIMEOUT",
    "admission_wait": "UNIFIED_EVENTS_ADMISSION_WAIT",
}


@dataclass
class Settings:
    """All tunables of the aggregation pipeline."""

    # Credentials
    ticketmaster_api_key: str | None = None
    eventbrite_token: str | None = None
    rapidapi_key: str | None = None
    predicthq_api_key: str | None = None
    mapbox_api_key: str | None = None

    enabled_providers: list[str] = field(default_factory=lambda: list(ALL_PROVIDERS))

    # Timing
    provider_timeout: float = 10.0
    aggregation_timeout: float = 15.0
    admission_wait: float = 2.0
    retry_attempts: int = 2
    retry_base_delay: float = 0.5
    retry_max_delay: float = 5.0

    # Caching
    cache_dir: str = DEFAULT_CACHE_DIR
    local_cache_size: int = 512
    static_ttl: float = 3600.0
    volatile_ttl: float = 300.0
    merged_ttl: float = 300.0

    # Circuit breaker
    breaker_failure_threshold: int = 5
    breaker_recovery_timeout: float = 60.0

    budgets: dict[str, BudgetConfig] = field(default_factory=lambda: dict(DEFAULT_BUDGETS))

    dedup_threshold: float = 0.85

    geocoding_enabled: bool = True
    user_agent: str = "unified-events/0.1"

    def __post_init__(self) -> None:
        unknown = [p for p in self.enabled_providers if p not in ALL_PROVIDERS]
        if unknown:
            msg = f"Unknown providers: {', '.join(unknown)} (known: {', '.join(ALL_PROVIDERS)})"
            raise ConfigurationError(msg)
        if self.provider_timeout <= 0 or self.aggregation_timeout <= 0:
            msg = "Timeouts must be positive"
            raise ConfigurationError(msg)
        if self.retry_attempts < 1:
            msg = f"retry_attempts must be >= 1, got {self.retry_attempts}"
            raise ConfigurationError(msg)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Settings:
        """Build settings from a plain dict, ignoring unknown keys."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        ignored = sorted(set(data) - known)
        if ignored:
            logger.warning(f"Ignoring unknown settings: {', '.join(ignored)}")
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}

        if "budgets" in kwargs:
            kwargs["budgets"] = {
                provider: cfg if isinstance(cfg, BudgetConfig) else BudgetConfig(**cfg)
                for provider, cfg in kwargs["budgets"].items()
            }
        if isinstance(kwargs.get("enabled_providers"), str):
            kwargs["enabled_providers"] = _split_list(kwargs["enabled_providers"])
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML mapping."""
        path = Path(path).expanduser()
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            msg = f"Cannot read settings file {path}: {e}"
            raise ConfigurationError(msg) from e
        except yaml.YAMLError as e:
            msg = f"Invalid YAML in {path}: {e}"
            raise ConfigurationError(msg) from e
        if not isinstance(data, dict):
            msg = f"Settings file {path} must contain a mapping"
            raise ConfigurationError(msg)
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, base: Settings | None = None, environ: dict[str, str] | None = None) -> Settings:
        """Overlay environment variables onto ``base`` (or defaults)."""
        env = os.environ if environ is None else environ
        data = base.to_dict() if base else {}

        for attr, var in _CREDENTIAL_ENV.items():
            value = env.get(var, "").strip()
            if value:
                data[attr] = value

        for attr, var in _FLOAT_ENV.items():
            value = env.get(var, "").strip()
            if value:
                try:
                    data[attr] = float(value)
                except ValueError as e:
                    msg = f"{var} must be a number, got {value!r}"
                    raise ConfigurationError(msg) from e

        if providers := env.get("UNIFIED_EVENTS_PROVIDERS", "").strip():
            data["enabled_providers"] = _split_list(providers)
        if cache_dir := env.get("UNIFIED_EVENTS_CACHE_DIR", "").strip():
            data["cache_dir"] = cache_dir
        if geocoding := env.get("UNIFIED_EVENTS_GEOCODING", "").strip():
            data["geocoding_enabled"] = geocoding.lower() not in ("0", "false", "no")

        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def credential_for(self, provider_id: str) -> str | None:
        return {
            "ticketmaster": self.ticketmaster_api_key,
            "eventbrite": self.eventbrite_token,
            "rapidapi": self.rapidapi_key,
            "predicthq": self.predicthq_api_key,
        }.get(provider_id)

    @property
    def cache_path(self) -> Path:
        return Path(self.cache_dir).expanduser()


def _split_list(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]
