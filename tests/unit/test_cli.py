from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from crm_api import cli
from crm_api.cli import app

runner = CliRunner()


def test_no_command_prints_help() -> None:
    result = runner.invoke(app, [])

    assert result.exit_code == 0
    assert "validate-backup" in result.output


def test_catalog_filters_by_category() -> None:
    result = runner.invoke(app, ["catalog", "--category", "reporting"])

    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert len(lines) == 2
    assert any(line.startswith("dashboard [reporting") for line in lines)


def test_check_allows_builtin_role() -> None:
    result = runner.invoke(app, ["check", "leads", "delete", "--role", "super_admin"])

    assert result.exit_code == 0
    assert result.output.strip() == "allowed"


def test_check_denied_exits_non_zero() -> None:
    result = runner.invoke(app, ["check", "permissions", "read", "--role", "team_member"])

    assert result.exit_code == 1
    assert result.output.strip() == "denied"


def test_check_condition_from_permissions_file(tmp_path: Path) -> None:
    permissions = tmp_path / "perms.json"
    permissions.write_text(
        json.dumps([{"resource": "users", "actions": ["read"], "conditions": {"department": True}}]),
        encoding="utf-8",
    )

    granted = runner.invoke(app, ["check", "users", "read", "--condition", "department", "--permissions", str(permissions)])
    denied = runner.invoke(app, ["check", "users", "read", "--condition", "own", "--permissions", str(permissions)])

    assert granted.exit_code == 0
    assert denied.exit_code == 1


def test_check_requires_a_permission_source() -> None:
    result = runner.invoke(app, ["check", "leads"])

    assert result.exit_code == 2


def test_check_rejects_unknown_role() -> None:
    result = runner.invoke(app, ["check", "leads", "--role", "wizard"])

    assert result.exit_code == 2


def test_route_reports_target_and_decision() -> None:
    result = runner.invoke(app, ["route", "/projects/add", "--role", "team_member"])

    assert result.exit_code == 0
    assert result.output.strip() == "projects create denied"


def test_route_defaults_to_dashboard() -> None:
    result = runner.invoke(app, ["route"])

    assert result.output.strip() == "dashboard read"


def test_validate_backup_prints_plan(tmp_path: Path) -> None:
    backup = tmp_path / "backup.json"
    backup.write_text(
        json.dumps(
            {
                "metadata": {"database": "crm_prod", "timestamp": "2026-03-01"},
                "collections": {"leads": [{}, {}], "tasks": [{}]},
            }
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["validate-backup", str(backup), "--table", "leads", "--table", "invoices"])

    assert result.exit_code == 0
    assert "source: crm_prod (2026-03-01)" in result.output
    assert "  leads: 2" in result.output
    assert "  invoices: not in backup" in result.output
    assert "total documents: 2" in result.output


def test_validate_backup_rejects_missing_keys(tmp_path: Path) -> None:
    backup = tmp_path / "backup.json"
    backup.write_text(json.dumps({"metadata": {}}), encoding="utf-8")

    result = runner.invoke(app, ["validate-backup", str(backup)])

    assert result.exit_code == 1


def test_validate_backup_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["validate-backup", str(tmp_path / "absent.json")])

    assert result.exit_code == 2


def test_serve_runs_uvicorn_factory(monkeypatch) -> None:
    captured: dict[str, object] = {}

    import uvicorn

    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: captured.update(target=target, **kwargs))

    result = runner.invoke(app, ["serve", "--port", "9000"])

    assert result.exit_code == 0
    assert captured["target"] == "crm_api.main:create_app"
    assert captured["factory"] is True
    assert captured["port"] == 9000
    assert cli.DEFAULT_API_BIND_PORT == 8001
