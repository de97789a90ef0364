"""`crm-api` command implementations."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

import typer

from crm_api.core.errors import ValidationError
from crm_api.core.rbac.catalog import all_catalog_entries, get_permissions_by_category
from crm_api.core.rbac.evaluator import PermissionChecker
from crm_api.core.rbac.routes import path_to_resource_action
from crm_api.core.rbac.system_roles import SYSTEM_ROLE_BY_NAME
from crm_api.features.backup.service import load_backup, plan_restore
from crm_api.settings import get_settings

DEFAULT_API_BIND_PORT = 8001

app = typer.Typer(
    add_completion=False,
    invoke_without_command=True,
    help="CRM API CLI (catalog, check, route, seed, validate-backup, serve).",
)


def _load_permission_source(role: str | None, permissions_file: Path | None) -> Sequence[object]:
    if role and permissions_file:
        typer.echo("error: use either --role or --permissions, not both.", err=True)
        raise typer.Exit(code=2)
    if role:
        definition = SYSTEM_ROLE_BY_NAME.get(role.strip().lower())
        if definition is None:
            known = ", ".join(sorted(SYSTEM_ROLE_BY_NAME))
            typer.echo(f"error: unknown role {role!r}; expected one of: {known}", err=True)
            raise typer.Exit(code=2)
        return definition.permissions
    if permissions_file:
        try:
            payload = json.loads(permissions_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            typer.echo(f"error: cannot read permissions from {permissions_file}: {exc}", err=True)
            raise typer.Exit(code=2) from exc
        return payload if isinstance(payload, list) else []
    typer.echo("error: one of --role or --permissions is required.", err=True)
    raise typer.Exit(code=2)


@app.callback()
def _main(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


@app.command(name="catalog", help="List catalog resources and their actions.")
def catalog(
    category: str | None = typer.Option(None, "--category", help="Only show one category."),
) -> None:
    entries = get_permissions_by_category(category) if category else all_catalog_entries()
    for entry in entries:
        marker = "core" if entry.is_core else "optional"
        typer.echo(f"{entry.resource} [{entry.category}, {marker}]: {', '.join(entry.action_names)}")


@app.command(name="check", help="Evaluate one permission query; exits 1 when denied.")
def check(
    resource: str = typer.Argument(..., help="Resource name, e.g. projects."),
    action: str = typer.Argument("read", help="Action name, e.g. update."),
    condition: str | None = typer.Option(None, "--condition", help="Condition the grant must carry."),
    role: str | None = typer.Option(None, "--role", help="Built-in role to evaluate."),
    permissions_file: Path | None = typer.Option(
        None,
        "--permissions",
        help="JSON file holding a permission array.",
    ),
) -> None:
    permission_set = _load_permission_source(role, permissions_file)
    allowed = PermissionChecker(permission_set).has_permission(resource, action, condition)
    typer.echo("allowed" if allowed else "denied")
    if not allowed:
        raise typer.Exit(code=1)


@app.command(name="route", help="Show the resource/action a path requires.")
def route(
    path: str = typer.Argument("", help="Application path, e.g. /projects/add."),
    role: str | None = typer.Option(None, "--role", help="Also evaluate for a built-in role."),
) -> None:
    target = path_to_resource_action(path)
    line = f"{target.resource} {target.action}"
    if role:
        permission_set = _load_permission_source(role, None)
        allowed = PermissionChecker(permission_set).has_permission(target.resource, target.action)
        line += " allowed" if allowed else " denied"
    typer.echo(line)


@app.command(name="seed", help="Create tables and sync the catalog and built-in roles.")
def seed() -> None:
    from sqlalchemy.orm import sessionmaker

    from crm_api.db.engine import build_engine, create_schema
    from crm_api.lifecycles import seed_system_roles

    settings = get_settings()
    engine = build_engine(settings)
    try:
        create_schema(engine)
        seed_system_roles(sessionmaker(bind=engine, expire_on_commit=False))
    finally:
        engine.dispose()
    typer.echo(f"seeded {settings.database_url}")


@app.command(name="validate-backup", help="Check a backup file and print its restore plan.")
def validate_backup(
    backup_file: Path = typer.Argument(..., help="Backup JSON file."),
    tables: list[str] | None = typer.Option(None, "--table", help="Restrict to these collections."),
) -> None:
    try:
        document = load_backup(backup_file.read_bytes())
        plan = plan_restore(document, tables)
    except OSError as exc:
        typer.echo(f"error: cannot read {backup_file}: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    except ValidationError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"source: {plan.source_database or 'unknown'} ({plan.backup_timestamp or 'no timestamp'})")
    for item in plan.collections:
        typer.echo(f"  {item.name}: {item.document_count}")
    for name in plan.skipped:
        typer.echo(f"  {name}: not in backup")
    typer.echo(f"total documents: {plan.total_documents}")


@app.command(name="serve", help="Run the API with uvicorn.")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", envvar="CRM_API_HOST"),
    port: int = typer.Option(DEFAULT_API_BIND_PORT, "--port", envvar="CRM_API_PORT"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    import uvicorn

    settings = get_settings()
    typer.echo(f"Starting CRM API on http://{host}:{port}")
    uvicorn.run(
        "crm_api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


__all__ = ["app"]
