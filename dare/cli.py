from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import typer
from rich.box import ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import select

from dare import reports, services
from dare.config import get_settings
from dare.db import init_db, migrate_existing_db, session_scope
from dare.errors import DareError
from dare.importer import import_xlsx
from dare.models import User
from dare.permissions import seed_defaults

app = typer.Typer(help="DARE program tracker administration")
console = Console()


def _configure_logging(*, verbose: int, json_output: bool) -> None:
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    handlers: list[logging.Handler]
    if json_output:
        handlers = [logging.StreamHandler()]
        fmt = "%(levelname)s: %(message)s"
    else:
        handlers = [RichHandler(console=console, show_time=False, show_path=False, markup=True)]
        fmt = "%(message)s"

    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    home: str | None = typer.Option(
        None, "--home", help="Directory holding data/ and the default SQLite database.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON for scripting."),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="Increase log verbosity."),
) -> None:
    if home:
        os.environ["DARE_HOME"] = str(Path(home).expanduser().resolve())
        get_settings.cache_clear()
    ctx.obj = {"json_output": json_output, "verbose": verbose}
    _configure_logging(verbose=verbose, json_output=json_output)


def _print(title: str, payload: dict[str, Any], ctx: typer.Context) -> None:
    if ctx.obj and ctx.obj.get("json_output"):
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
        return
    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in payload.items():
        if isinstance(value, (list, dict)):
            value = json.dumps(value, ensure_ascii=False, default=str)
        table.add_row(key, "-" if value is None else str(value))
    console.print(Panel(table, title=title, border_style="cyan"))


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=1)


@app.command("init-db")
def init_db_command(
    ctx: typer.Context,
    db_url: str | None = typer.Option(default=None, help="Optional SQLAlchemy DB URL"),
) -> None:
    """Create tables, apply pending migrations and seed roles."""
    engine = init_db(db_url)
    _print("init-db", {"status": "ok", "database": engine.url.render_as_string(hide_password=True)}, ctx)


@app.command("seed-permissions")
def seed_permissions_command(
    ctx: typer.Context,
    db_url: str | None = typer.Option(default=None, help="Optional SQLAlchemy DB URL"),
) -> None:
    init_db(db_url)
    with session_scope() as session:
        added = seed_defaults(session)
        session.commit()
    _print("seed-permissions", {"rows_added": added}, ctx)


@app.command("create-admin")
def create_admin_command(
    ctx: typer.Context,
    username: str = typer.Option(..., help="Login name for the administrator."),
    full_name: str = typer.Option("Administrator", help="Display name."),
    email: str | None = typer.Option(None, help="Contact email."),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    db_url: str | None = typer.Option(default=None, help="Optional SQLAlchemy DB URL"),
) -> None:
    init_db(db_url)
    with session_scope() as session:
        if session.execute(select(User).where(User.username == username)).scalars().first():
            _fail(f"User {username!r} already exists")
        try:
            user = services.create_user(session, {
                "username": username, "password": password, "full_name": full_name,
                "email": email, "role": "admin",
            })
        except DareError as exc:
            _fail(exc.message)
        session.commit()
        payload = services.user_summary(user)
    _print("create-admin", payload, ctx)


@app.command("import-youth")
def import_youth_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="XLSX workbook to import."),
    db_url: str | None = typer.Option(default=None, help="Optional SQLAlchemy DB URL"),
) -> None:
    if file.suffix.lower() != ".xlsx":
        _fail("Only .xlsx files are supported")
    init_db(db_url)
    with session_scope() as session:
        with console.status("[bold cyan]Importing youth profiles[/bold cyan]", spinner="dots"):
            result = import_xlsx(file, session)
        session.commit()
    _print("import-youth", result.model_dump(), ctx)


@app.command("export")
def export_command(
    ctx: typer.Context,
    entity: str = typer.Argument(..., help="youth, businesses or tracking."),
    output: Path = typer.Option(..., "--output", "-o", dir_okay=False, help="Where to write the .xlsx file."),
    db_url: str | None = typer.Option(default=None, help="Optional SQLAlchemy DB URL"),
) -> None:
    init_db(db_url)
    with session_scope() as session:
        try:
            content = reports.export_workbook(session, entity)
        except DareError as exc:
            _fail(exc.message)
    output.write_bytes(content)
    _print("export", {"entity": entity, "output": str(output), "bytes": len(content)}, ctx)


@app.command("migrate")
def migrate_command(
    ctx: typer.Context,
    db_url: str | None = typer.Option(default=None, help="Optional SQLAlchemy DB URL"),
) -> None:
    """Add missing columns and fold legacy mentor district columns into the district list.

    ``init-db`` runs the same steps silently; this command reports what changed.
    """
    engine = init_db(db_url, migrate=False)
    _print("migrate", migrate_existing_db(engine), ctx)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
