from __future__ import annotations

import json
import logging

import pytest

from crm_api.common.logging import (
    ConsoleLogFormatter,
    JsonLogFormatter,
    bind_request_context,
    clear_request_context,
    log_context,
    setup_logging,
)
from crm_api.settings import Settings


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="crm_api.tests",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_log_context_stringifies_identifiers() -> None:
    ctx = log_context(user_id=42, resource="leads", action="read", mode="page")

    assert ctx == {"user_id": "42", "resource": "leads", "action": "read", "mode": "page"}


def test_log_context_omits_unset_fields() -> None:
    assert log_context() == {}


def test_json_formatter_includes_extras_and_correlation_id() -> None:
    bind_request_context("req-123")
    try:
        line = JsonLogFormatter().format(_record("gate.denied", resource="leads", action="read"))
    finally:
        clear_request_context()

    payload = json.loads(line)
    assert payload["message"] == "gate.denied"
    assert payload["correlation_id"] == "req-123"
    assert payload["resource"] == "leads"
    assert payload["service"] == "crm-api"


def test_console_formatter_appends_sorted_extras() -> None:
    line = ConsoleLogFormatter().format(_record("roles.create.success", role_name="auditor", actor=None))

    assert "[cid=-]" in line
    assert line.endswith("roles.create.success actor=null role_name=auditor")


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)
    if hasattr(root, "_crm_configured"):
        delattr(root, "_crm_configured")


def test_setup_logging_installs_one_handler(restore_root_logger: logging.Logger) -> None:
    setup_logging(Settings(_env_file=None, log_level="DEBUG", log_format="json"))
    setup_logging(Settings(_env_file=None, log_level="ERROR", log_format="json"))

    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, JsonLogFormatter)
    assert restore_root_logger.level == logging.ERROR
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
