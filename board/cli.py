from __future__ import annotations

import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import Any

import typer
from rich.box import ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from board import auth, services
from board.config import get_settings
from board.db import init_db, session_scope
from board.engine import Filters
from board.errors import BoardError
from board.seed import seed_demo_data

app = typer.Typer(help="Challenge board: track startup challenges, actions and contacts")
console = Console()


def _configure_logging(*, verbose: int, json_output: bool) -> None:
    if verbose <= 0:
        level = logging.ERROR
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
    db_path: str | None = typer.Option(None, "--db-path", help="SQLite database file to use."),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON for scripting."),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="Increase log verbosity."),
) -> None:
    if db_path:
        os.environ["BOARD_DB_PATH"] = str(Path(db_path).expanduser().resolve())
        get_settings.cache_clear()
    ctx.obj = {"json_output": json_output, "verbose": verbose}
    _configure_logging(verbose=verbose, json_output=json_output)


def _wants_json(ctx: typer.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("json_output"))


def _print(title: str, payload: dict[str, Any], ctx: typer.Context) -> None:
    if _wants_json(ctx):
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    for key, value in payload.items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(Panel(table, title=title, border_style="cyan"))


def _parse_optional_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter("Date must be YYYY-MM-DD") from exc


@app.command("init-db")
def init_db_command(ctx: typer.Context) -> None:
    init_db()
    _print("init-db", {"status": "ok", "database": str(get_settings().database_path)}, ctx)


@app.command("create-admin")
def create_admin_command(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", help="Admin login email."),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True, help="Admin password."),
    name: str = typer.Option("", "--name", help="Display name."),
) -> None:
    init_db()
    with session_scope() as session:
        try:
            user, created = auth.ensure_admin(session, email=email, password=password, name=name)
        except BoardError as exc:
            raise typer.BadParameter(str(exc)) from exc
        payload = {**auth.user_dict(user), "created": created}
    _print("create-admin", payload, ctx)


@app.command("seed")
def seed_command(
    ctx: typer.Context,
    keep_existing: bool = typer.Option(False, "--keep-existing", help="Add demo data without clearing the board."),
) -> None:
    init_db()
    with session_scope() as session:
        counts = seed_demo_data(session, reset=not keep_existing)
    _print("seed", counts, ctx)


@app.command("kpis")
def kpis_command(
    ctx: typer.Context,
    today: str | None = typer.Option(None, "--today", help="Reference day (YYYY-MM-DD), defaults to today."),
) -> None:
    init_db()
    with session_scope() as session:
        payload = services.kpis(session, today=_parse_optional_date(today))
    _print("kpis", payload, ctx)


@app.command("challenges")
def challenges_command(
    ctx: typer.Context,
    category: str = typer.Option("all", help="all, overdue, urgent, entity, startup or alerts."),
    search: str = typer.Option("", help="Match on challenge or startup name."),
    entity: str = typer.Option("", help="Exact entity name."),
    wenov_owner: str = typer.Option("", help="Exact WENOV responsible."),
    today: str | None = typer.Option(None, "--today", help="Reference day (YYYY-MM-DD), defaults to today."),
) -> None:
    init_db()
    filters = Filters(active_category=category, search=search, entity=entity, wenov_owner=wenov_owner)
    with session_scope() as session:
        try:
            result = services.dashboard(session, filters, today=_parse_optional_date(today))
        except BoardError as exc:
            raise typer.BadParameter(str(exc)) from exc

    if _wants_json(ctx):
        typer.echo(json.dumps(result, indent=2, ensure_ascii=False))
        return

    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    for column in ("#", "Challenge", "Startup", "Entity", "WENOV", "Score", "Next action"):
        table.add_column(column)
    for idx, item in enumerate(result["items"], start=1):
        upcoming = item["next_actions"][0] if item["next_actions"] else None
        table.add_row(
            str(idx), item["name"], item["startup_name"], item["entity"], item["wenov_responsible"],
            str(item["alert_score"]),
            f"{upcoming['title']} ({upcoming['due_label']})" if upcoming else "-",
        )
    console.print(Panel(table, title=f"challenges · {result['shown']} of {result['total']}", border_style="cyan"))


@app.command("serve")
def serve_command(
    host: str | None = typer.Option(None, help="Bind address."),
    port: int | None = typer.Option(None, help="Port."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    import uvicorn
    settings = get_settings()
    uvicorn.run("board.app:app", host=host or settings.host, port=port or settings.port, reload=reload)


@app.command("mcp")
def mcp_command() -> None:
    from board.mcp_server import main as run_mcp
    run_mcp()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
