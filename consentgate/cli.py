"""consentgate administration CLI implemented with Typer."""

import asyncio
import csv
import io
import json
from enum import Enum
from typing import Any, Callable

import typer
from sqlalchemy.exc import SQLAlchemyError

from consentgate import database
from consentgate.config import OPTION_DESCRIPTIONS, coerce_option_value, option_defaults
from consentgate.exceptions import ConsentGateError
from consentgate.services import audit_service, options_service

USAGE_ERROR_EXIT_CODE = 2
DOMAIN_ERROR_EXIT_CODE = 3
DATABASE_ERROR_EXIT_CODE = 4


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"
    CSV = "csv"


def _run(operation: Callable[[Any], Any]) -> Any:
    """Run one service call in a fresh session and map failures to exit codes."""

    async def runner():
        async with database.AsyncSessionLocal() as db:
            return await operation(db)

    try:
        return asyncio.run(runner())
    except ConsentGateError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(code=DOMAIN_ERROR_EXIT_CODE) from exc
    except SQLAlchemyError as exc:
        typer.echo(f"Error: database unavailable ({exc.__class__.__name__})", err=True)
        raise typer.Exit(code=DATABASE_ERROR_EXIT_CODE) from exc


def _display(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def _render_table(items: list[dict[str, Any]], fields: list[str]) -> str:
    """Render rows as a plain aligned table."""
    rows = [[_display(item.get(field)) for field in fields] for item in items]
    widths = [max([len(field)] + [len(row[i]) for row in rows]) for i, field in enumerate(fields)]

    def line(cells):
        return "  ".join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()

    output = [line(fields), line(["-" * width for width in widths])]
    output.extend(line(row) for row in rows)
    return "\n".join(output)


def _emit_items(items: list[dict[str, Any]], fields: list[str], output_format: OutputFormat) -> None:
    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(items, indent=2))
    elif output_format == OutputFormat.CSV:
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(fields)
        writer.writerows([_display(item.get(field)) for field in fields] for item in items)
        typer.echo(output.getvalue(), nl=False)
    else:
        typer.echo(_render_table(items, fields))


app = typer.Typer(no_args_is_help=True, help="consentgate administration")
settings_app = typer.Typer(no_args_is_help=True, help="Consent option commands")
app.add_typer(settings_app, name="settings")


# ── Settings ────────────────────────────────────────────────────────────────


@settings_app.command("list")
def settings_list(
    output_format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", case_sensitive=False),
) -> None:
    """List every option with its current and default value."""
    options = _run(options_service.get_options)
    defaults = option_defaults()
    items = [
        {
            "key": key,
            "value": _display(value),
            "default": _display(defaults[key]),
            "is_default": "yes" if defaults[key] == value else "no",
        }
        for key, value in options.items()
    ]
    _emit_items(items, ["key", "value", "default", "is_default"], output_format)


@settings_app.command("get")
def settings_get(key: str = typer.Argument(..., help="Option key")) -> None:
    """Print the current value of one option."""
    if key not in option_defaults():
        typer.echo(f"Error: Unknown setting: {key}", err=True)
        raise typer.Exit(code=USAGE_ERROR_EXIT_CODE)
    options = _run(options_service.get_options)
    typer.echo(_display(options[key]))


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="Option key"),
    value: str = typer.Argument(..., help="New value (booleans: 1/true/yes/on)"),
) -> None:
    """Store an override for one option."""
    try:
        converted = coerce_option_value(key, value)
    except KeyError:
        typer.echo(f"Error: Unknown setting: {key}", err=True)
        raise typer.Exit(code=USAGE_ERROR_EXIT_CODE) from None
    except ValueError as exc:
        typer.echo(f"Error: Invalid value for {key}: {exc}", err=True)
        raise typer.Exit(code=USAGE_ERROR_EXIT_CODE) from exc

    _run(lambda db: options_service.set_option(key, converted, db))
    typer.echo(f"Success: Setting '{key}' updated.")


@settings_app.command("reset")
def settings_reset() -> None:
    """Drop every stored override."""
    _run(options_service.reset_options)
    typer.echo("Success: All settings reset to defaults.")


@app.command("keys")
def keys(
    output_format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", case_sensitive=False),
) -> None:
    """List the available option keys."""
    defaults = option_defaults()
    items = [
        {"key": key, "default": _display(defaults[key]), "description": description}
        for key, description in OPTION_DESCRIPTIONS.items()
    ]
    _emit_items(items, ["key", "default", "description"], output_format)


# ── Audit log ───────────────────────────────────────────────────────────────


@app.command("stats")
def stats(
    days: int = typer.Option(30, min=1, help="Number of days to include"),
    output_format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", case_sensitive=False),
) -> None:
    """Display consent statistics."""
    result = _run(lambda db: audit_service.consent_stats(db, days=days))
    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(result, indent=2))
        return

    actions = result["actions"]
    items = [
        {"metric": "Total consents (all time)", "value": result["total"]},
        {"metric": f"Consents (last {days} days)", "value": result["recent"]},
        {"metric": f"Accept All (last {days} days)", "value": actions["accept_all"]},
        {"metric": f"Reject All (last {days} days)", "value": actions["reject_all"]},
        {"metric": f"Customize (last {days} days)", "value": actions["customize"]},
    ]
    if result["accept_rate"] is not None:
        items.append({"metric": "Accept All rate", "value": f"{result['accept_rate']}%"})
        items.append({"metric": "Reject All rate", "value": f"{result['reject_rate']}%"})
    _emit_items(items, ["metric", "value"], output_format)


@app.command("export")
def export(
    days: int | None = typer.Option(None, min=1, help="Only rows from the last N days"),
    limit: int = typer.Option(audit_service.DEFAULT_EXPORT_LIMIT, min=1, help="Maximum number of rows"),
    output_format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", case_sensitive=False),
) -> None:
    """Export recent consent logs."""
    rows = _run(lambda db: audit_service.export_logs(db, days=days, limit=limit))
    if not rows:
        typer.echo("Warning: No consent logs found.", err=True)
        return

    if output_format == OutputFormat.CSV:
        typer.echo(audit_service.rows_to_csv(rows, audit_service.EXPORT_FIELDS), nl=False)
    elif output_format == OutputFormat.JSON:
        typer.echo(audit_service.rows_to_json(rows, audit_service.EXPORT_FIELDS))
    else:
        items = [audit_service.row_to_dict(row, audit_service.EXPORT_FIELDS) for row in rows]
        typer.echo(_render_table(items, audit_service.EXPORT_FIELDS))


@app.command("consent")
def consent(
    consent_id: str | None = typer.Option(None, "--consent-id", help="Consent id from the visitor's cookie"),
    ip: str | None = typer.Option(None, "--ip", help="Visitor IP address"),
    delete: bool = typer.Option(False, "--delete", help="Delete the matching records"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    output_format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", case_sensitive=False),
) -> None:
    """Look up (and optionally erase) the consent records of one visitor."""
    if not consent_id and not ip:
        typer.echo("Error: Please provide --consent-id or --ip to search.", err=True)
        raise typer.Exit(code=USAGE_ERROR_EXIT_CODE)

    rows = _run(lambda db: audit_service.find_logs(db, consent_id=consent_id, ip=ip))
    if not rows:
        typer.echo("Warning: No consent records found.", err=True)
        return

    fields = audit_service.LOOKUP_FIELDS
    if output_format == OutputFormat.JSON:
        typer.echo(audit_service.rows_to_json(rows, fields))
    elif output_format == OutputFormat.CSV:
        typer.echo(audit_service.rows_to_csv(rows, fields), nl=False)
    else:
        typer.echo(_render_table([audit_service.row_to_dict(row, fields) for row in rows], fields))
    typer.echo(f"Success: Found {len(rows)} consent record(s).")

    if delete:
        if not yes:
            typer.confirm("Delete these consent records? This cannot be undone.", abort=True)
        deleted = _run(lambda db: audit_service.erase_logs(db, consent_id=consent_id, ip=ip))
        typer.echo(f"Success: Deleted {deleted} consent record(s).")


@app.command("clear-logs")
def clear_logs(
    older_than: int | None = typer.Option(None, "--older-than", min=1, help="Only delete logs older than N days"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Delete consent logs from the database."""
    if older_than:
        message = f"Delete consent logs older than {older_than} days?"
    else:
        message = "Delete ALL consent logs? This cannot be undone."
    if not yes:
        typer.confirm(message, abort=True)

    deleted = _run(lambda db: audit_service.clear_logs(db, older_than_days=older_than))
    typer.echo(f"Success: Deleted {deleted} consent log(s).")


if __name__ == "__main__":
    app()
