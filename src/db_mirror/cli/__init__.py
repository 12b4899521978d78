"""CLI module for dumping and mirroring MySQL schemas.

Provides commands to dump a live schema to a document, preview the DDL
needed to make a database match a document, apply it, and list the
configured connection profiles.

Usage:
    DB_PROFILE=local db-mirror dump -o schema.json
    db-mirror --url mysql://root@127.0.0.1/shop dump -o schema.xlsx
    db-mirror --profile staging plan schema.json
    db-mirror --profile staging write schema.json
    db-mirror --profile ci write schema.xlsx --run --strict
    db-mirror profiles

Commands:
    dump      - Introspect a database into a .json/.js/.xlsx document
    plan      - Show the statements `write` would execute
    write     - Create or alter the database to match a document
    profiles  - List available profiles
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table
from rich.text import Text
from sqlalchemy.exc import SQLAlchemyError

from db_mirror.config.loader import load_db_config
from db_mirror.document import read_schema_file, write_schema_file
from db_mirror.factory import (
    ConnectionSettings,
    ProfileNotFoundError,
    get_active_profile_name,
    get_adapter,
    resolve_connection,
)
from db_mirror.schema.errors import SchemaError
from db_mirror.schema.introspector import LiveSchema, SchemaIntrospector
from db_mirror.schema.models import SchemaDocument
from db_mirror.schema.plan import WritePlan, apply_plan, build_write_plan
from db_mirror.schema.render import create_database_sql

console = Console()

DEFAULT_DOCUMENT = "schema.json"


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _resolve(args: argparse.Namespace, document_database: str = "") -> ConnectionSettings:
    return resolve_connection(
        profile_name=getattr(args, "profile", None),
        url=getattr(args, "url", None),
        database=getattr(args, "db", None),
        document_database=document_database,
        env_prefix=getattr(args, "env_prefix", ""),
    )


def _default_document_path() -> Path:
    """The ``[document] file`` from db.toml, else ``schema.json``."""
    try:
        return Path(load_db_config().document_file)
    except FileNotFoundError:
        return Path(DEFAULT_DOCUMENT)


def _print_plan(plan: WritePlan, title: str) -> None:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Object", style="cyan")
    table.add_column("Action")
    table.add_column("SQL", overflow="fold")

    for number, stmt in enumerate(plan.statements, start=1):
        table.add_row(str(number), stmt.object_name, stmt.action, Text(stmt.sql))

    console.print(table)


async def _plan_against_live(
    settings: ConnectionSettings, document: SchemaDocument, strict: bool
) -> tuple[bool, WritePlan]:
    """Snapshot the live schema once and compile the plan.

    Returns:
        ``(database_exists, plan)``.  A missing database plans against an
        empty snapshot.
    """
    server = get_adapter(settings, server_level=True)
    try:
        exists = await SchemaIntrospector(server).database_exists(settings.database)
    finally:
        await server.close()

    if exists:
        adapter = get_adapter(settings)
        try:
            live = await SchemaIntrospector(adapter).snapshot(settings.database)
        finally:
            await adapter.close()
    else:
        live = LiveSchema()

    plan = build_write_plan(document.objects, live, settings.database, strict=strict)
    return exists, plan


def _run(handler: Callable[[argparse.Namespace], Awaitable[int]], args: argparse.Namespace) -> int:
    """Run an async command, reporting expected failures as exit code 1."""
    try:
        return asyncio.run(handler(args))
    except (SchemaError, ProfileNotFoundError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    except SQLAlchemyError as e:
        console.print(f"[red]Database error:[/red] {escape(str(e))}")
        return 1


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_dump(args: argparse.Namespace) -> int:
    """Async implementation for dump command.

    Args:
        args: Parsed arguments with output and the global connection options.

    Returns:
        0 on success, 1 if the database does not exist.
    """
    output = Path(args.output) if args.output else _default_document_path()
    settings = _resolve(args)

    server = get_adapter(settings, server_level=True)
    try:
        exists = await SchemaIntrospector(server).database_exists(settings.database)
    finally:
        await server.close()

    if not exists:
        console.print(
            f"[red]Error:[/red] database [bold]{escape(settings.database)}[/bold] does not exist"
        )
        return 1

    adapter = get_adapter(settings)
    try:
        document = await SchemaIntrospector(adapter).dump(settings.database)
    finally:
        await adapter.close()

    write_schema_file(document, output)
    console.print(
        f"[bold green]v[/bold green] Dumped {len(document.objects)} object(s) "
        f"from [bold cyan]{escape(settings.database)}[/bold cyan] to {escape(str(output))}"
    )
    return 0


async def _async_plan(args: argparse.Namespace) -> int:
    """Async implementation for plan command.

    Args:
        args: Parsed arguments with file, strict, sql and the global
            connection options.

    Returns:
        0 on success.
    """
    document = read_schema_file(args.file, keep_incomplete=True)
    settings = _resolve(args, document.database.name)
    exists, plan = await _plan_against_live(settings, document, args.strict)

    create_db = None
    if not exists:
        create_db = create_database_sql(
            settings.database,
            document.database.default_character_set,
            document.database.default_collation,
            strict=args.strict,
        )

    if args.sql:
        for sql in ([create_db] if create_db else []) + plan.sql:
            console.print(f"{sql};", markup=False, highlight=False, soft_wrap=True)
        return 0

    if create_db:
        console.print(f"Database [bold]{escape(settings.database)}[/bold] will be created:")
        console.print(create_db, markup=False, highlight=False)

    if not plan.has_changes:
        console.print("No changes required.")
        return 0

    _print_plan(plan, f"Plan for {settings.database}")
    return 0


async def _async_write(args: argparse.Namespace) -> int:
    """Async implementation for write command.

    Creates the database when missing, asks for confirmation when it
    already existed (unless ``--run``), then executes the plan statement
    by statement and stops at the first failure.

    Args:
        args: Parsed arguments with file, run, strict and the global
            connection options.

    Returns:
        0 on success or nothing to do, 1 on failure or abort.
    """
    document = read_schema_file(args.file, keep_incomplete=True)
    settings = _resolve(args, document.database.name)
    exists, plan = await _plan_against_live(settings, document, args.strict)

    if not exists:
        sql = create_database_sql(
            settings.database,
            document.database.default_character_set,
            document.database.default_collation,
            strict=args.strict,
        )
        server = get_adapter(settings, server_level=True)
        try:
            await server.execute(sql)
        finally:
            await server.close()
        console.print(f"[OK] {sql}", markup=False, highlight=False)

    if not plan.has_changes:
        console.print("No changes required.")
        return 0

    _print_plan(plan, f"Plan for {settings.database}")

    if exists and not args.run:
        if not Confirm.ask(
            f"Apply {len(plan.statements)} statement(s) to {escape(settings.database)}?",
            console=console,
            default=False,
        ):
            console.print("Aborted.")
            return 1

    adapter = get_adapter(settings)
    try:
        result = await apply_plan(
            adapter,
            plan,
            dry_run=False,
            confirm=True,
            on_executed=lambda stmt: console.print(
                f"[OK] {stmt.sql}", markup=False, highlight=False
            ),
        )
    finally:
        await adapter.close()

    if not result.success:
        console.print(f"[bold red]x[/bold red] {escape(result.error or 'Write failed')}")
        return 1

    console.print(
        f"[bold green]v[/bold green] Applied {len(result.executed)} statement(s)"
    )
    return 0


# ============================================================================
# Command wrappers
# ============================================================================


def cmd_dump(args: argparse.Namespace) -> int:
    """Dump the live schema to a document.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Exit code.
    """
    return _run(_async_dump, args)


def cmd_plan(args: argparse.Namespace) -> int:
    """Show the write plan without executing it."""
    return _run(_async_plan, args)


def cmd_write(args: argparse.Namespace) -> int:
    """Apply a document to the database."""
    return _run(_async_write, args)


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_db_config()
    except FileNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    try:
        current = args.profile or get_active_profile_name(args.env_prefix)
    except ProfileNotFoundError:
        current = None

    table = Table(
        title="Database Profiles", show_header=True, header_style="bold"
    )
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = active profile")

    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main() -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="db-mirror",
        description="Dump MySQL schemas to documents and mirror documents back to databases",
    )

    # Global connection options
    parser.add_argument("--profile", default=None, help="Profile name from db.toml")
    parser.add_argument(
        "--url",
        default=None,
        help="Connection URL (overrides --profile), e.g. mysql://root@127.0.0.1:3306/shop",
    )
    parser.add_argument("--db", default=None, help="Database name (overrides the URL)")
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # dump command
    p_dump = subparsers.add_parser("dump", help="Dump the live schema to a document")
    p_dump.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output file (.json, .js or .xlsx; default: [document] file in db.toml)",
    )
    p_dump.set_defaults(func=cmd_dump)

    # plan command
    p_plan = subparsers.add_parser("plan", help="Show the statements write would execute")
    p_plan.add_argument("file", help="Schema document (.json, .js or .xlsx)")
    p_plan.add_argument(
        "--strict", action="store_true", help="Reject unsafe engine/collation tokens"
    )
    p_plan.add_argument(
        "--sql", action="store_true", help="Print plain SQL statements only"
    )
    p_plan.set_defaults(func=cmd_plan)

    # write command
    p_write = subparsers.add_parser("write", help="Make the database match a document")
    p_write.add_argument("file", help="Schema document (.json, .js or .xlsx)")
    p_write.add_argument(
        "--run", action="store_true", help="Apply without asking for confirmation"
    )
    p_write.add_argument(
        "--strict", action="store_true", help="Reject unsafe engine/collation tokens"
    )
    p_write.set_defaults(func=cmd_write)

    # profiles command
    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    args = parser.parse_args()
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
