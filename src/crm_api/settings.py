"""CRM API settings (conventional Pydantic v2)."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALLOWED_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
ALLOWED_LOG_FORMATS = frozenset({"console", "json"})

DEFAULT_DATABASE_URL = "sqlite:///./crm.sqlite"


def crm_settings_config() -> SettingsConfigDict:
    """Return the standard CRM ``BaseSettings`` config dict."""

    return SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CRM_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


def create_settings_accessors[T](
    settings_type: type[T],
) -> tuple[Callable[[], T], Callable[[], T]]:
    """Create ``get_settings`` and ``reload_settings`` helpers for a settings class."""

    @lru_cache(maxsize=1)
    def _build() -> T:
        return settings_type()

    def get_settings() -> T:
        return _build()

    def reload_settings() -> T:
        _build.cache_clear()
        return _build()

    return get_settings, reload_settings


def normalize_log_format(value: str, *, env_var: str = "CRM_LOG_FORMAT") -> str:
    normalized = value.strip().lower()
    if normalized not in ALLOWED_LOG_FORMATS:
        allowed = ", ".join(sorted(ALLOWED_LOG_FORMATS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


def normalize_log_level(value: str | None, *, env_var: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized not in ALLOWED_LOG_LEVELS:
        allowed = ", ".join(sorted(ALLOWED_LOG_LEVELS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


# ---- Settings ---------------------------------------------------------------


class Settings(BaseSettings):
    """FastAPI settings loaded from CRM_* environment variables."""

    model_config = crm_settings_config()

    # Core
    app_name: str = "CRM API"
    app_version: str = "unknown"
    log_format: str = "console"
    log_level: str = "INFO"

    # Database
    database_url: str = DEFAULT_DATABASE_URL
    database_echo: bool = False
    database_log_level: str | None = None

    # Auth
    principal_header: str = "X-User-Id"
    seed_system_roles_on_startup: bool = True

    # Authorization gate
    gate_settle_delay_ms: int = Field(50, ge=0)
    gate_redirect_delay_ms: int = Field(200, ge=0)
    gate_default_redirect: str = "/dashboard"

    # Session monitor
    session_timeout_seconds: int = Field(3600, gt=0)
    session_check_interval_seconds: int = Field(30, gt=0)
    delegated_session_check_interval_seconds: int = Field(60, gt=0)
    session_warning_window_seconds: int = Field(300, ge=0)
    login_path: str = "/auth/login"

    @model_validator(mode="after")
    def _finalize(self) -> Settings:
        self.log_format = normalize_log_format(self.log_format)

        normalized_log_level = normalize_log_level(self.log_level, env_var="CRM_LOG_LEVEL")
        if normalized_log_level is None:
            raise ValueError("CRM_LOG_LEVEL must not be empty.")
        self.log_level = normalized_log_level

        self.database_log_level = normalize_log_level(
            self.database_log_level,
            env_var="CRM_DATABASE_LOG_LEVEL",
        )

        if not self.principal_header:
            raise ValueError("CRM_PRINCIPAL_HEADER must not be empty.")
        if not self.gate_default_redirect.startswith("/"):
            raise ValueError("CRM_GATE_DEFAULT_REDIRECT must be an absolute path.")
        if not self.login_path.startswith("/"):
            raise ValueError("CRM_LOGIN_PATH must be an absolute path.")
        return self

    @property
    def session_timeout_ms(self) -> int:
        return self.session_timeout_seconds * 1000


get_settings, reload_settings = create_settings_accessors(Settings)

__all__ = [
    "ALLOWED_LOG_FORMATS",
    "ALLOWED_LOG_LEVELS",
    "DEFAULT_DATABASE_URL",
    "Settings",
    "create_settings_accessors",
    "crm_settings_config",
    "get_settings",
    "normalize_log_format",
    "normalize_log_level",
]
