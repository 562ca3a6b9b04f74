"""YAML + env var config loading with pydantic-settings."""

from __future__ import annotations

import os
import signal
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic_settings import (
    BaseSettings,
    InitSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = structlog.get_logger()

_DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
_CONFIG_FILE_ENV = "GATEKEEPER_CONFIG_FILE"


def config_file_path() -> Path:
    """YAML file to read, overridable with GATEKEEPER_CONFIG_FILE."""
    return Path(os.environ.get(_CONFIG_FILE_ENV, str(_DEFAULTS_PATH)))


def _load_yaml_defaults(path: Path) -> dict[str, Any]:
    """Load YAML config file, returning empty dict if it is missing."""
    if not path.exists():
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


class GatekeeperSettings(BaseSettings):
    """Admission settings: init kwargs > env vars > .env > YAML file > defaults."""

    model_config = SettingsConfigDict(
        env_prefix="GATEKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    listen_host: str = "0.0.0.0"
    listen_port: int = 60005
    log_level: str = "info"
    log_json: bool = True
    # Log request bodies before/after sanitization at debug level
    log_payloads: bool = False

    # Admin API
    admin_api_key: str = ""
    admin_rate_limit_max: int = 50
    admin_rate_limit_window_seconds: int = 3600

    # Rate limiting
    rate_limit_max_requests: int = 1000
    rate_limit_window_seconds: int = 600
    rate_limit_sweep_mode: Literal["inline", "background"] = "inline"
    rate_limit_sweep_probability: float = 0.01
    rate_limit_sweep_interval_seconds: int = 60
    rate_limit_top_n: int = 10

    # Seed lists
    blacklist: list[str] = []
    whitelist: list[str] = ["127.0.0.1", "::1", "::ffff:127.0.0.1"]

    # Headers rewritten through the string sanitizer
    sanitize_headers: list[str] = ["user-agent", "referer", "x-forwarded-for"]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            InitSettingsSource(settings_cls, init_kwargs=_load_yaml_defaults(config_file_path())),
            file_secret_settings,
        )


_settings: GatekeeperSettings | None = None


def get_settings() -> GatekeeperSettings:
    """Get or create the singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def load_settings() -> GatekeeperSettings:
    """Load settings from the YAML file and env vars."""
    global _settings
    _settings = GatekeeperSettings()
    logger.info(
        "config_loaded",
        config_file=str(config_file_path()),
        max_requests=_settings.rate_limit_max_requests,
        window_seconds=_settings.rate_limit_window_seconds,
        blacklist_seeds=len(_settings.blacklist),
    )
    return _settings


def register_reload_handler() -> None:
    """Register SIGHUP handler that reloads settings.

    Components already built by the app factory keep their original limits.
    """
    import threading

    if threading.current_thread() is not threading.main_thread():
        logger.debug("skipping_sighup_handler", reason="not main thread")
        return

    def _reload(signum, frame):
        logger.info("config_reload_triggered")
        load_settings()

    try:
        signal.signal(signal.SIGHUP, _reload)
    except (ValueError, AttributeError):
        logger.debug("skipping_sighup_handler", reason="signal not supported")
