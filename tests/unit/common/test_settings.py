from __future__ import annotations

import pytest
from pydantic import ValidationError

from crm_api.settings import Settings, get_settings, reload_settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.principal_header == "X-User-Id"
    assert settings.gate_settle_delay_ms == 50
    assert settings.gate_redirect_delay_ms == 200
    assert settings.gate_default_redirect == "/dashboard"
    assert settings.session_timeout_ms == 3_600_000
    assert settings.login_path == "/auth/login"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CRM_LOG_LEVEL", "debug")
    monkeypatch.setenv("CRM_LOG_FORMAT", "JSON")
    monkeypatch.setenv("CRM_SESSION_TIMEOUT_SECONDS", "900")

    settings = Settings(_env_file=None)

    assert settings.log_level == "DEBUG"
    assert settings.log_format == "json"
    assert settings.session_timeout_ms == 900_000


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("log_level", "verbose"),
        ("log_format", "xml"),
        ("gate_default_redirect", "dashboard"),
        ("login_path", "auth/login"),
        ("session_timeout_seconds", 0),
        ("gate_settle_delay_ms", -1),
    ],
)
def test_invalid_values_are_rejected(field: str, value: object) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_reload_settings_rebuilds_cached_instance(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CRM_APP_NAME", "First")
    first = reload_settings()
    monkeypatch.setenv("CRM_APP_NAME", "Second")

    assert get_settings() is first
    assert reload_settings().app_name == "Second"

    monkeypatch.delenv("CRM_APP_NAME")
    reload_settings()
