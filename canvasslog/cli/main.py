"""
Command-line interface for canvasslog using Typer.

Every screen of the visit log is a command group. Output is rendered with
Rich; errors map to exit codes by category.
"""

import asyncio
import re
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.traceback import install as install_rich_traceback

from ..clients import geocoding, geolocation, store
from ..config import Settings, get_settings
from ..core import exports, filters, homes, imports, locations, mapping, notes, stats, visits
from ..core.duplicates import LogVisitSession
from ..core.forms import CONTACT_FIELDS, contact_section_visible, validate_visit_form
from ..core.models import CITIES, Coordinates, VisitResult
from ..utils.exceptions import (
    CanvassLogError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    ValidationError,
)
from ..utils.logging import (
    generate_correlation_id,
    get_logger,
    operation_logger,
    setup_enhanced_logging,
)

install_rich_traceback(show_locals=False)

app = typer.Typer(
    name="canvasslog",
    help="[bold blue]canvasslog[/bold blue] - Log and review door-to-door canvassing visits",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

visits_app = typer.Typer(name="visits", help="Log home visits", rich_markup_mode="rich")
homes_app = typer.Typer(name="homes", help="Browse and export homes", rich_markup_mode="rich")
import_app = typer.Typer(name="import", help="Import homes from CSV", rich_markup_mode="rich")
locations_app = typer.Typer(
    name="locations", help="Manage cities and subdivisions", rich_markup_mode="rich"
)
notes_app = typer.Typer(name="notes", help="Admin journal notes", rich_markup_mode="rich")

app.add_typer(visits_app, name="visits")
app.add_typer(homes_app, name="homes")
app.add_typer(import_app, name="import")
app.add_typer(locations_app, name="locations")
app.add_typer(notes_app, name="notes")

console = Console()

_logger = get_logger(__name__)

RESULT_STYLES = {
    VisitResult.SCHEDULED_DEMO: "green",
    VisitResult.INTERESTED_CALL_BACK: "blue",
    VisitResult.NOT_HOME: "yellow",
    VisitResult.DND: "red",
    VisitResult.NOT_INTERESTED: "dim",
    VisitResult.ALREADY_HAS_SYSTEM: "magenta",
    VisitResult.SOLD_CLOSED: "bright_red",
}


class ExitCodes:
    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFIGURATION_ERROR = 2
    NETWORK_ERROR = 3
    API_ERROR = 4
    VALIDATION_ERROR = 5
    AUTHENTICATION_ERROR = 6
    CONFLICT_ERROR = 7
    DATA_ERROR = 8
    USER_INTERRUPTED = 130


def get_exit_code_for_error(error: BaseException) -> int:
    """Determine appropriate exit code based on error type."""
    if isinstance(error, CanvassLogError):
        category_to_exit_code = {
            ErrorCategory.CONFIGURATION_ERROR: ExitCodes.CONFIGURATION_ERROR,
            ErrorCategory.NETWORK_ERROR: ExitCodes.NETWORK_ERROR,
            ErrorCategory.API_ERROR: ExitCodes.API_ERROR,
            ErrorCategory.USER_ERROR: ExitCodes.VALIDATION_ERROR,
            ErrorCategory.SECURITY_ERROR: ExitCodes.AUTHENTICATION_ERROR,
            ErrorCategory.CONFLICT_ERROR: ExitCodes.CONFLICT_ERROR,
            ErrorCategory.DATA_ERROR: ExitCodes.DATA_ERROR,
        }
        return category_to_exit_code.get(error.category, ExitCodes.GENERAL_ERROR)

    if isinstance(error, KeyboardInterrupt):
        return ExitCodes.USER_INTERRUPTED
    return ExitCodes.GENERAL_ERROR


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from the environment or a specific .env file."""
    try:
        if config_path is not None:
            settings = Settings(_env_file=str(config_path))
            _logger.info("Loaded configuration", config_file=str(config_path))
        else:
            settings = get_settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load configuration: {e!s}",
            config_key="configuration_file" if config_path else "environment",
            actual_value=str(config_path) if config_path else "default",
        ) from e
    return settings


def create_client(settings: Settings) -> httpx.AsyncClient:
    """HTTP client shared by every request of one command."""
    return httpx.AsyncClient(timeout=settings.http_timeout)


def setup_logging_for_cli(
    verbose: bool = False,
    quiet: bool = False,
    format_type: str = "console",
    log_file: Path | None = None,
    log_level: str = "INFO",
) -> None:
    setup_enhanced_logging(
        verbose=verbose,
        quiet=quiet,
        log_level=log_level,
        json_logs=format_type == "json",
        log_file=str(log_file) if log_file else None,
    )
    _logger.debug(
        "CLI logging configured", verbose=verbose, quiet=quiet, format_type=format_type
    )


def display_enhanced_error(
    message: str,
    exception: BaseException | None = None,
    show_hints: bool = True,
    show_correlation_id: bool = False,
) -> None:
    """Display an error with its category, field errors and troubleshooting hints."""
    console.print(f"[red]✗ Error:[/red] {escape(message)}")

    if isinstance(exception, CanvassLogError):
        console.print(f"[dim red]Details: {escape(exception.user_message)}[/dim red]")
        console.print(
            f"[dim]Category: {exception.category.value.replace('_', ' ').title()}[/dim]"
        )
        if exception.severity in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]:
            console.print(f"[dim red]Severity: {exception.severity.value.upper()}[/dim red]")

        if show_correlation_id and exception.correlation_id:
            console.print(f"[dim]Correlation ID: {exception.correlation_id}[/dim]")

        if show_hints and exception.troubleshooting_hints:
            console.print("\n[bold yellow]💡 Troubleshooting Tips:[/bold yellow]")
            for i, hint in enumerate(exception.troubleshooting_hints, 1):
                console.print(f"  {i}. {escape(hint)}")

    elif exception:
        console.print(f"[dim red]Details: {escape(str(exception))}[/dim red]")
        if show_hints:
            console.print("\n[bold yellow]💡 General Troubleshooting:[/bold yellow]")
            console.print("  1. Re-run with --verbose for more details")
            console.print("  2. Verify your configuration with 'canvasslog config-validate'")
            console.print("  3. Check service connectivity with 'canvasslog status'")

    _logger.error(f"CLI Error: {message}", error=exception, show_hints=show_hints)


def display_success(message: str, details: dict[str, Any] | None = None) -> None:
    console.print(f"[green]✓[/green] {message}")
    if details:
        _logger.info("Operation completed successfully", **details)


def display_warning(message: str, details: dict[str, Any] | None = None) -> None:
    console.print(f"[yellow]⚠[/yellow] {message}")
    if details:
        _logger.warning("CLI Warning", warning=message, **details)


def display_info(message: str) -> None:
    console.print(f"[blue]i[/blue] {message}")


def display_config_banner(settings: Settings) -> None:
    """Persistent notice shown on every command while services are unconfigured."""
    missing = settings.missing_configuration()
    if not missing:
        return
    console.print(
        "[bold yellow]⚠ Configuration incomplete:[/bold yellow] "
        f"set {', '.join(missing)} (see 'canvasslog config-validate')"
    )


def handle_cli_exception(
    operation: str,
    exception: BaseException,
    verbose: bool = False,
    correlation_id: str | None = None,
) -> int:
    """Centralized CLI exception handling with proper exit codes."""
    exit_code = get_exit_code_for_error(exception)

    if isinstance(exception, KeyboardInterrupt):
        display_warning("Operation cancelled by user")
        _logger.info("User interrupted operation", operation=operation)
    else:
        display_enhanced_error(
            f"{operation} failed",
            exception,
            show_hints=True,
            show_correlation_id=verbose and bool(correlation_id),
        )
    return exit_code


def run_command(ctx: typer.Context, operation: str, coro: Coroutine) -> Any:
    """Run a command coroutine, turning failures into an exit code."""
    try:
        return asyncio.run(coro)
    except (typer.Exit, typer.Abort):
        raise
    except (Exception, KeyboardInterrupt) as e:
        exit_code = handle_cli_exception(
            operation, e, ctx.obj["verbose"], ctx.obj["correlation_id"]
        )
        raise typer.Exit(exit_code) from e


def _result_text(result: VisitResult | None) -> str:
    if result is None:
        return "-"
    style = RESULT_STYLES.get(result, "white")
    return f"[{style}]{escape(result.value)}[/{style}]"


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging and detailed output"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only show errors and critical messages"
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file path (.env)",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    log_format: str | None = typer.Option(
        None, "--log-format", help="Log output format: console or json"
    ),
    log_file: Path | None = typer.Option(None, "--log-file", help="Also write logs to a file"),
    correlation_id: str | None = typer.Option(
        None, "--correlation-id", help="Set correlation ID for request tracking"
    ),
):
    """
    [bold blue]canvasslog[/bold blue] - Door-to-door canvassing visit log

    Log visits, browse and export the home list, import prospects from CSV
    and manage the city / subdivision taxonomy.

    [bold]Examples:[/bold]
        canvasslog visits log --city Katy --address "123 Main St"
        canvasslog homes list --result "Scheduled Demo" --sort address_asc
        canvasslog import run prospects.csv --dry-run
        canvasslog dashboard
    """
    correlation_id = correlation_id or generate_correlation_id()

    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        display_enhanced_error("Configuration error", e, show_hints=True)
        raise typer.Exit(get_exit_code_for_error(e)) from e

    try:
        setup_logging_for_cli(
            verbose, quiet, log_format or settings.log_format, log_file, settings.log_level
        )
    except Exception as e:
        console.print(f"[red]Failed to setup logging: {escape(str(e))}[/red]")
        raise typer.Exit(ExitCodes.CONFIGURATION_ERROR) from e

    _logger.with_correlation_id(correlation_id)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["correlation_id"] = correlation_id

    display_config_banner(settings)


# --- Visits ---


def _street_from_address(address: str) -> str:
    """Street part of an address: the leading house number dropped."""
    return re.sub(r"^\s*\d+[A-Za-z]?\s+", "", address).strip()


def _prompt_choice(label: str, options: list[str], default: str | None = None) -> str:
    for i, option in enumerate(options, 1):
        console.print(f"  {i}. {escape(option)}")
    answer = typer.prompt(label, default=default) if default else typer.prompt(label)
    if answer.isdigit() and 1 <= int(answer) <= len(options):
        return options[int(answer) - 1]
    return answer


@visits_app.command("log")
def log_visit_command(
    ctx: typer.Context,
    city: str | None = typer.Option(None, "--city", help="City name or id"),
    address: str | None = typer.Option(None, "--address", "-a", help="Full street address"),
    street: str | None = typer.Option(None, "--street", help="Street name"),
    subdivision: str | None = typer.Option(None, "--subdivision", help="Subdivision name or id"),
    result: str | None = typer.Option(None, "--result", "-r", help="Visit result"),
    contact_name: str | None = typer.Option(None, "--contact-name", help="Contact name"),
    phone_number: str | None = typer.Option(None, "--phone", help="Phone number"),
    follow_up_date: str | None = typer.Option(
        None, "--follow-up", help="Follow-up date (YYYY-MM-DD)"
    ),
    visit_notes: str | None = typer.Option(None, "--notes", help="Visit notes"),
    date_visited: str | None = typer.Option(
        None, "--date", help="Visit date (YYYY-MM-DD), defaults to today"
    ),
    lat: float | None = typer.Option(None, "--lat", help="Latitude of the home"),
    lng: float | None = typer.Option(None, "--lng", help="Longitude of the home"),
    here: bool = typer.Option(
        False, "--here", help="Use the current device location and suggest its address"
    ),
    no_geocode: bool = typer.Option(
        False, "--no-geocode", help="Do not geocode the address for the map pin"
    ),
):
    """
    Log a home visit.

    Missing values are prompted for. A warning is shown when the address was
    already logged in the same city; the visit is still submitted unless the
    record store rejects it as a duplicate.

    [bold]Examples:[/bold]
        canvasslog visits log --city Katy --address "123 Main St" --result "Not Home"
        canvasslog visits log --here
    """
    settings: Settings = ctx.obj["settings"]
    correlation_id = ctx.obj["correlation_id"]

    async def run_log():
        async with create_client(settings) as client:
            city_list = await locations.list_cities(settings, client)
            if not city_list:
                raise ValidationError(
                    "No cities configured yet",
                    field_name="city_id",
                    troubleshooting_hints=["Add one with 'canvasslog locations add-city NAME'"],
                )

            city_value = city or _prompt_choice("City", [c.name for c in city_list])
            selected_city = locations.find_city(city_list, city_value)
            if selected_city is None:
                raise ValidationError(f"Unknown city: {city_value}", field_name="city_id")

            position = None
            suggested_address = None
            if here and (lat is None or lng is None):
                with console.status("[bold blue]Getting current location..."):
                    position = await geolocation.get_current_position(settings, client)
                    if position is not None:
                        suggested_address = await geocoding.reverse_geocode(
                            position.lat, position.lng, settings, client
                        )
                if position is None:
                    display_warning("Could not get the current location")
                elif suggested_address:
                    display_info(f"Nearest address: {escape(suggested_address)}")

            home_address = address or typer.prompt(
                "Address", default=suggested_address.split(",")[0] if suggested_address else None
            )

            session = LogVisitSession(settings, client)
            session.location_changed(home_address, selected_city.id)

            subdivision_id = None
            if subdivision:
                subdivision_list = await locations.list_subdivisions(
                    settings, selected_city.id, client
                )
                match = locations.find_subdivision(subdivision_list, subdivision, selected_city.id)
                if match is None:
                    display_warning(f"Unknown subdivision '{escape(subdivision)}', leaving it empty")
                else:
                    subdivision_id = match.id

            warning = await session.settle()
            if warning is not None:
                display_warning(escape(warning.message))

            street_name = street or typer.prompt(
                "Street name", default=_street_from_address(home_address) or None
            )
            visit_result = result or _prompt_choice(
                "Result", [r.value for r in VisitResult], default=VisitResult.NOT_HOME.value
            )

            data: dict[str, Any] = {
                "city_id": selected_city.id,
                "subdivision_id": subdivision_id,
                "street_name": street_name,
                "address": home_address,
                "result": visit_result,
                "contact_name": contact_name,
                "phone_number": phone_number,
                "follow_up_date": follow_up_date,
                "notes": visit_notes,
            }
            if date_visited:
                data["date_visited"] = date_visited
            if lat is not None and lng is not None:
                data["latitude"], data["longitude"] = lat, lng
            elif position is not None:
                data["latitude"], data["longitude"] = position.lat, position.lng

            if contact_section_visible(visit_result):
                for field in CONTACT_FIELDS:
                    if data[field] is None:
                        label = field.replace("_", " ").capitalize()
                        data[field] = typer.prompt(label, default="", show_default=False)

            form = validate_visit_form(data)
            outcome = await visits.log_visit(
                form,
                settings,
                city_name=selected_city.name,
                geocode_address=not no_geocode,
                client=client,
                correlation_id=correlation_id,
            )

        if not outcome.created:
            display_warning(
                f"{escape(form.address)} is already logged in "
                f"{escape(selected_city.name)}; skipped"
            )
            if outcome.warning is not None:
                console.print(f"[dim]{escape(outcome.warning.message)}[/dim]")
            return

        display_success(
            f"Logged visit to {escape(form.address)}, {escape(selected_city.name)}",
            details={"home_id": outcome.home.id if outcome.home else None},
        )
        if outcome.location is not None:
            console.print(
                f"[dim]Pinned at {outcome.location.lat:.6f}, {outcome.location.lng:.6f}[/dim]"
            )
        elif not no_geocode:
            console.print("[dim]No map pin: the address could not be located[/dim]")

    run_command(ctx, "Log visit", run_log())


# --- Homes ---


def _home_filters(
    search: str | None,
    city: str | None,
    result: str | None,
    date_from: str | None,
    date_to: str | None,
    sort: filters.SortOrder,
) -> filters.HomeFilters:
    return filters.HomeFilters(
        search=search,
        city=city,
        result=result,
        date_from=date_from,
        date_to=date_to,
        sort=sort,
    )


@homes_app.command("list")
def list_homes_command(
    ctx: typer.Context,
    search: str | None = typer.Option(
        None, "--search", "-s", help="Match address, street or contact name"
    ),
    city: str | None = typer.Option(None, "--city", help="Exact city name"),
    result: str | None = typer.Option(None, "--result", "-r", help="Exact visit result"),
    date_from: str | None = typer.Option(None, "--from", help="Visited on or after (YYYY-MM-DD)"),
    date_to: str | None = typer.Option(None, "--to", help="Visited on or before (YYYY-MM-DD)"),
    sort: filters.SortOrder = typer.Option(filters.SortOrder.DATE_DESC, "--sort", help="Order"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Show at most N rows"),
):
    """
    List logged homes with client-side filters.

    [bold]Examples:[/bold]
        canvasslog homes list --search oak --city Katy
        canvasslog homes list --from 2024-01-01 --to 2024-01-31 --sort address_asc
    """
    settings: Settings = ctx.obj["settings"]
    criteria = _home_filters(search, city, result, date_from, date_to, sort)

    async def run_list():
        async with create_client(settings) as client:
            with console.status("[bold blue]Loading homes..."):
                all_homes = await homes.fetch_homes(settings, client)

        visible = filters.derive_visible(all_homes, criteria)
        shown = visible[:limit] if limit else visible

        table = Table(
            title="[bold magenta]Homes[/bold magenta]",
            show_header=True,
            header_style="bold magenta",
            border_style="blue",
        )
        table.add_column("Date", style="cyan")
        table.add_column("Address", style="white")
        table.add_column("City", style="white")
        table.add_column("Subdivision", style="dim")
        table.add_column("Result")
        table.add_column("Contact", style="white")
        table.add_column("Follow Up", style="dim")

        for home in shown:
            contact = " / ".join(v for v in (home.contact_name, home.phone_number) if v)
            table.add_row(
                home.date_visited,
                escape(home.address),
                escape(home.city_name or "-"),
                escape(home.subdivision_name or "-"),
                _result_text(home.result),
                escape(contact or "-"),
                home.follow_up_date or "-",
            )

        console.print(table)
        console.print(f"[dim]Showing {len(shown)} of {len(all_homes)} homes[/dim]")
        if not visible and criteria.active:
            display_info("No homes match the current filters")

    run_command(ctx, "List homes", run_list())


@homes_app.command("export")
def export_homes_command(
    ctx: typer.Context,
    fmt: exports.ExportFormat = typer.Option(
        exports.ExportFormat.CSV, "--format", "-f", help="Export format"
    ),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o", help="Directory for the export file"
    ),
    search: str | None = typer.Option(None, "--search", "-s", help="Match address, street or contact name"),
    city: str | None = typer.Option(None, "--city", help="Exact city name"),
    result: str | None = typer.Option(None, "--result", "-r", help="Exact visit result"),
    date_from: str | None = typer.Option(None, "--from", help="Visited on or after (YYYY-MM-DD)"),
    date_to: str | None = typer.Option(None, "--to", help="Visited on or before (YYYY-MM-DD)"),
    sort: filters.SortOrder = typer.Option(filters.SortOrder.DATE_DESC, "--sort", help="Order"),
):
    """
    Export the filtered home list to CSV or JSON.

    [bold]Examples:[/bold]
        canvasslog homes export --format json --city Katy
    """
    settings: Settings = ctx.obj["settings"]
    criteria = _home_filters(search, city, result, date_from, date_to, sort)

    async def run_export():
        async with create_client(settings) as client:
            all_homes = await homes.fetch_homes(settings, client)

        visible = filters.derive_visible(all_homes, criteria)
        path = exports.write_export(visible, fmt, output_dir or settings.export_dir)
        display_success(
            f"Exported {len(visible)} homes to {escape(str(path))}",
            details={"path": str(path), "count": len(visible)},
        )

    run_command(ctx, "Export homes", run_export())


# --- Import ---


def display_import_results(
    result: imports.ImportResult, title: str, verbose: bool = False
) -> None:
    """Render import counters and, in verbose mode, the per-row outcome."""
    table = Table(
        title=f"[bold magenta]{title}[/bold magenta]",
        show_header=True,
        header_style="bold magenta",
        border_style="blue",
    )
    table.add_column("Metric", style="cyan", min_width=12)
    table.add_column("Count", justify="right", min_width=8)

    added_label = "Would add" if result.dry_run else "Added"
    metrics = [
        (added_label, result.success, "green"),
        ("Failed", result.failed, "red" if result.failed else "white"),
        ("  Duplicates", result.duplicates, "yellow" if result.duplicates else "white"),
        ("  Unknown city", result.unresolved, "yellow" if result.unresolved else "white"),
        ("  Errors", result.errors, "red" if result.errors else "white"),
    ]
    for metric, count, style in metrics:
        table.add_row(metric, f"[{style}]{count}[/{style}]")

    console.print(table)

    if verbose and result.details:
        action_colors = {"added": "green", "would_add": "yellow", "failed": "red"}
        console.print(f"\n[bold]Row Details ({len(result.details)} rows):[/bold]")
        for detail in result.details:
            action = detail["action"]
            color = action_colors.get(action, "white")
            console.print(
                f"  {detail['row']}. [{color}]{action.replace('_', ' ').title()}[/{color}]: "
                f"{escape(detail['address'])}"
            )
            if detail.get("reason"):
                console.print(f"    [dim]Reason: {escape(detail['reason'])}[/dim]")


@import_app.command("run")
def import_run_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="CSV file: address, street, city, subdivision, notes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Resolve cities without inserting"),
):
    """
    Import prospective homes from a CSV file.

    Rows whose city is unknown are skipped; addresses already present in the
    same city are counted as duplicates.

    [bold]Examples:[/bold]
        canvasslog import run prospects.csv --dry-run
    """
    settings: Settings = ctx.obj["settings"]
    verbose = ctx.obj["verbose"]
    correlation_id = ctx.obj["correlation_id"]

    async def run_import():
        rows = imports.read_csv_file(file)
        display_info(f"Found {len(rows)} homes in {escape(file.name)}")

        label = "Importing homes (dry run)" if dry_run else "Importing homes"
        async with create_client(settings) as client:
            with console.status(f"[bold blue]{label}..."):
                result = await imports.import_homes(
                    rows,
                    settings,
                    dry_run=dry_run,
                    client=client,
                    correlation_id=correlation_id,
                )

        display_import_results(
            result, "Import Preview" if dry_run else "Import Results", verbose
        )
        if result.success and not dry_run:
            display_success(f"Successfully imported {result.success} homes")
        if result.failed:
            display_warning(f"{result.failed} homes could not be imported")

    run_command(ctx, "Import", run_import())


@import_app.command("preview")
def import_preview_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="CSV file to parse"),
):
    """Parse a CSV file and show the rows that would be imported."""
    try:
        rows = imports.read_csv_file(file)
    except CanvassLogError as e:
        exit_code = handle_cli_exception("Import preview", e, ctx.obj["verbose"])
        raise typer.Exit(exit_code) from e

    table = Table(
        title=f"[bold magenta]{escape(file.name)}[/bold magenta]",
        show_header=True,
        header_style="bold magenta",
        border_style="blue",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Address", style="white")
    table.add_column("Street", style="white")
    table.add_column("City", style="cyan")
    table.add_column("Subdivision", style="dim")
    table.add_column("Notes", style="dim")

    for index, row in enumerate(rows, 1):
        table.add_row(
            str(index),
            escape(row.address),
            escape(row.street_name or row.address),
            escape(row.city_name),
            escape(row.subdivision_name or "-"),
            escape(row.notes or "-"),
        )

    console.print(table)
    console.print(f"[dim]{len(rows)} valid rows[/dim]")


@import_app.command("history")
def import_history_command(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", "-n", help="Number of runs to show"),
):
    """Show recent import runs."""
    settings: Settings = ctx.obj["settings"]

    async def run_history():
        async with create_client(settings) as client:
            entries = await imports.list_sync_log(settings, limit=limit, client=client)

        if not entries:
            display_info("No imports recorded yet")
            return

        status_styles = {"success": "green", "partial": "yellow", "error": "red"}
        table = Table(
            title="[bold magenta]Import History[/bold magenta]",
            show_header=True,
            header_style="bold magenta",
            border_style="blue",
        )
        table.add_column("Date", style="cyan")
        table.add_column("Rows", justify="right")
        table.add_column("Added", justify="right", style="green")
        table.add_column("Status")
        table.add_column("Message", style="dim")

        for entry in entries:
            style = status_styles.get(entry.status.value, "white")
            table.add_row(
                escape(entry.sync_date or "-"),
                str(entry.records_fetched),
                str(entry.records_added),
                f"[{style}]{entry.status.value}[/{style}]",
                escape(entry.error_message or "-"),
            )

        console.print(table)

    run_command(ctx, "Import history", run_history())


# --- Locations ---


@locations_app.command("list")
def locations_list_command(ctx: typer.Context):
    """List cities and their subdivisions."""
    settings: Settings = ctx.obj["settings"]

    async def run_list():
        async with create_client(settings) as client:
            city_list = await locations.list_cities(settings, client)
            subdivision_list = await locations.list_subdivisions(settings, client=client)

        cities_table = Table(
            title="[bold magenta]Cities[/bold magenta]", show_header=True, border_style="blue"
        )
        cities_table.add_column("Name", style="cyan")
        cities_table.add_column("Subdivisions", justify="right")
        cities_table.add_column("ID", style="dim")
        for city in city_list:
            count = sum(1 for sub in subdivision_list if sub.city_id == city.id)
            cities_table.add_row(escape(city.name), str(count), city.id)
        console.print(cities_table)

        subs_table = Table(
            title="[bold magenta]Subdivisions[/bold magenta]",
            show_header=True,
            border_style="blue",
        )
        subs_table.add_column("Name", style="cyan")
        subs_table.add_column("City", style="white")
        subs_table.add_column("ID", style="dim")
        for sub in subdivision_list:
            city_name = sub.city.name if sub.city else "-"
            subs_table.add_row(escape(sub.name), escape(city_name), sub.id)
        console.print(subs_table)

    run_command(ctx, "List locations", run_list())


@locations_app.command("add-city")
def add_city_command(
    ctx: typer.Context, name: str = typer.Argument(..., help="City name")
):
    """Add a city."""
    settings: Settings = ctx.obj["settings"]

    async def run_add():
        city = await locations.add_city(name, settings)
        display_success(f"Added city {escape(city.name)}", details={"city_id": city.id})

    run_command(ctx, "Add city", run_add())


@locations_app.command("add-subdivision")
def add_subdivision_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Subdivision name"),
    city: str = typer.Option(..., "--city", help="City name or id"),
):
    """Add a subdivision to a city."""
    settings: Settings = ctx.obj["settings"]

    async def run_add():
        async with create_client(settings) as client:
            selected = locations.find_city(await locations.list_cities(settings, client), city)
            if selected is None:
                raise ValidationError(f"Unknown city: {city}", field_name="city_id")
            sub = await locations.add_subdivision(name, selected.id, settings, client)
        display_success(f"Added subdivision {escape(sub.name)} to {escape(selected.name)}")

    run_command(ctx, "Add subdivision", run_add())


@locations_app.command("delete-city")
def delete_city_command(
    ctx: typer.Context,
    city: str = typer.Argument(..., help="City name or id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a city and all of its subdivisions."""
    settings: Settings = ctx.obj["settings"]

    async def run_delete():
        async with create_client(settings) as client:
            city_list = await locations.list_cities(settings, client)
            selected = locations.find_city(city_list, city)
            if selected is None:
                raise ValidationError(f"Unknown city: {city}", field_name="city_id")

            if not yes:
                typer.confirm(
                    f"Delete {selected.name} and all of its subdivisions?", abort=True
                )
            await locations.delete_city(selected.id, settings, client)
        display_success(f"Deleted city {escape(selected.name)}")

    run_command(ctx, "Delete city", run_delete())


@locations_app.command("delete-subdivision")
def delete_subdivision_command(
    ctx: typer.Context,
    subdivision: str = typer.Argument(..., help="Subdivision name or id"),
    city: str | None = typer.Option(None, "--city", help="City name or id to disambiguate"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a subdivision."""
    settings: Settings = ctx.obj["settings"]

    async def run_delete():
        async with create_client(settings) as client:
            city_id = None
            if city:
                selected_city = locations.find_city(
                    await locations.list_cities(settings, client), city
                )
                if selected_city is None:
                    raise ValidationError(f"Unknown city: {city}", field_name="city_id")
                city_id = selected_city.id

            subdivision_list = await locations.list_subdivisions(settings, city_id, client)
            selected = locations.find_subdivision(subdivision_list, subdivision, city_id)
            if selected is None:
                raise ValidationError(
                    f"Unknown subdivision: {subdivision}", field_name="subdivision_id"
                )

            if not yes:
                typer.confirm(f"Delete subdivision {selected.name}?", abort=True)
            await locations.delete_subdivision(selected.id, settings, client)
        display_success(f"Deleted subdivision {escape(selected.name)}")

    run_command(ctx, "Delete subdivision", run_delete())


# --- Notes ---


def _notes_table(note_list: list, title: str = "Admin Notes") -> Table:
    table = Table(
        title=f"[bold magenta]{title}[/bold magenta]", show_header=True, border_style="blue"
    )
    table.add_column("Created", style="cyan")
    table.add_column("Note", style="white")
    table.add_column("ID", style="dim")
    for note in note_list:
        table.add_row((note.created_at or "")[:16].replace("T", " "), escape(note.note), note.id)
    return table


@notes_app.command("list")
def notes_list_command(
    ctx: typer.Context,
    limit: int = typer.Option(notes.NOTES_LIMIT, "--limit", "-n", help="Number of notes"),
):
    """Show the most recent admin notes."""
    settings: Settings = ctx.obj["settings"]

    async def run_list():
        note_list = await notes.list_notes(settings, limit=limit)
        if not note_list:
            display_info("No notes yet")
            return
        console.print(_notes_table(note_list))

    run_command(ctx, "List notes", run_list())


@notes_app.command("add")
def notes_add_command(
    ctx: typer.Context, text: str = typer.Argument(..., help="Note text")
):
    """Add an admin note."""
    settings: Settings = ctx.obj["settings"]

    async def run_add():
        note = await notes.add_note(text, settings)
        display_success("Note added", details={"note_id": note.id})

    run_command(ctx, "Add note", run_add())


@notes_app.command("delete")
def notes_delete_command(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete an admin note."""
    settings: Settings = ctx.obj["settings"]
    if not yes:
        typer.confirm("Are you sure you want to delete this note?", abort=True)

    async def run_delete():
        await notes.delete_note(note_id, settings)
        display_success("Note deleted")

    run_command(ctx, "Delete note", run_delete())


# --- Dashboard, map, status ---


@app.command("dashboard")
def dashboard_command(
    ctx: typer.Context,
    recent_notes: int = typer.Option(5, "--notes", help="Recent admin notes to show"),
):
    """Show visit statistics and recent admin notes."""
    settings: Settings = ctx.obj["settings"]
    correlation_id = ctx.obj["correlation_id"]

    async def run_dashboard():
        with operation_logger("dashboard", correlation_id):
            async with create_client(settings) as client:
                with console.status("[bold blue]Loading statistics..."):
                    all_homes = await homes.fetch_homes(settings, client)
                    note_list = (
                        await notes.list_notes(settings, limit=recent_notes, client=client)
                        if recent_notes
                        else []
                    )

        summary = stats.compute_dashboard_stats(all_homes)

        table = Table(
            title="[bold magenta]Dashboard[/bold magenta]",
            show_header=True,
            header_style="bold magenta",
            border_style="blue",
        )
        table.add_column("Metric", style="cyan", min_width=18)
        table.add_column("Value", justify="right", style="green", min_width=10)
        table.add_row("Total Visits", str(summary.total_visits))
        table.add_row("This Week", str(summary.this_week))
        table.add_row("Demos Scheduled", str(summary.demos_scheduled))
        table.add_row("Follow-ups", str(summary.follow_ups))
        table.add_row("Conversion Rate", f"{summary.conversion_rate:.1f}%")
        table.add_row("Top City", escape(summary.top_city))
        console.print(table)

        if note_list:
            console.print(_notes_table(note_list, "Recent Notes"))

    run_command(ctx, "Dashboard", run_dashboard())


MARKER_STYLES = {
    "gray": "bright_black",
    "purple": "magenta",
    "orange": "dark_orange",
}


def _marker_text(color: str) -> str:
    style = MARKER_STYLES.get(color, color)
    return f"[{style}]●[/{style}] {color}"


@app.command("map")
def map_command(
    ctx: typer.Context,
    result: str | None = typer.Option(None, "--result", "-r", help="Only this visit result"),
):
    """
    List pinned homes with marker colors and directions links.

    [bold]Examples:[/bold]
        canvasslog map --result "Scheduled Demo"
    """
    settings: Settings = ctx.obj["settings"]

    async def run_map():
        async with create_client(settings) as client:
            pinned = await homes.fetch_map_homes(settings, result, client)

        default = Coordinates(settings.default_map_lat, settings.default_map_lng)
        center = mapping.map_center(pinned, default)
        markers = mapping.build_markers(pinned, settings.default_state)

        table = Table(
            title="[bold magenta]Map Markers[/bold magenta]", show_header=True, border_style="blue"
        )
        table.add_column("Address", style="white")
        table.add_column("Position", style="dim")
        table.add_column("Marker")
        table.add_column("Directions", style="blue", overflow="fold")
        for marker in markers:
            table.add_row(
                escape(marker.title),
                f"{marker.position.lat:.5f}, {marker.position.lng:.5f}",
                _marker_text(marker.color),
                marker.directions_url,
            )
        console.print(table)
        console.print(
            f"[dim]{len(markers)} homes on the map, centered at {center.lat:.4f}, {center.lng:.4f}[/dim]"
        )

    run_command(ctx, "Map", run_map())


@app.command("status")
def status_command(ctx: typer.Context):
    """
    Check the status and connectivity of the configured services.

    [bold]Examples:[/bold]
        canvasslog status
    """
    settings: Settings = ctx.obj["settings"]
    correlation_id = ctx.obj["correlation_id"]

    async def check_status() -> bool:
        services: dict[str, dict[str, bool]] = {}
        async with create_client(settings) as client:
            with console.status("[bold blue]Checking service connectivity..."):
                store_ok = False
                if settings.store_configured:
                    try:
                        await store.select(CITIES, settings, columns="id", limit=1, client=client)
                        store_ok = True
                    except CanvassLogError as e:
                        _logger.warning("Record store check failed", reason=e.message)
                services["record store"] = {
                    "configured": settings.store_configured,
                    "accessible": store_ok,
                }

                maps_ok = False
                if settings.maps_configured:
                    maps_ok = (
                        await geocoding.reverse_geocode(
                            settings.default_map_lat, settings.default_map_lng, settings, client
                        )
                        is not None
                    )
                services["maps"] = {
                    "configured": settings.maps_configured,
                    "accessible": maps_ok,
                }

        table = Table(
            title="[bold magenta]Service Status[/bold magenta]",
            show_header=True,
            border_style="blue",
        )
        table.add_column("Service", style="cyan", min_width=12)
        table.add_column("Configured", justify="center", min_width=12)
        table.add_column("Accessible", justify="center", min_width=12)
        table.add_column("Status", min_width=15)

        for name, state in services.items():
            if not state["configured"]:
                row = ("❌ No", "- N/A", "⚙️ Not Configured")
            elif state["accessible"]:
                row = ("✅ Yes", "✅ Yes", "🟢 Ready")
            else:
                row = ("✅ Yes", "❌ No", "🔴 Unreachable")
            table.add_row(name.title(), *row)
        console.print(table)

        ready = all(state["configured"] and state["accessible"] for state in services.values())
        _logger.audit(
            "service_status_check",
            services={name: state["accessible"] for name, state in services.items()},
            correlation_id=correlation_id,
        )
        if ready:
            display_success("All services are configured and reachable")
        return ready

    if not run_command(ctx, "Status check", check_status()):
        raise typer.Exit(ExitCodes.CONFIGURATION_ERROR)


@app.command("config-validate")
def config_validate_command(
    ctx: typer.Context,
    config_path: Path | None = typer.Argument(
        None, help="Configuration file to validate (defaults to current config)"
    ),
):
    """
    Validate configuration settings and show what is missing.

    [bold]Examples:[/bold]
        canvasslog config-validate
        canvasslog config-validate /path/to/.env
    """
    try:
        settings = load_settings(config_path) if config_path else ctx.obj["settings"]
    except ConfigurationError as e:
        display_enhanced_error("Failed to load configuration", e)
        raise typer.Exit(ExitCodes.CONFIGURATION_ERROR) from e

    table = Table(
        title="[bold magenta]Configuration Validation[/bold magenta]",
        show_header=True,
        border_style="blue",
    )
    table.add_column("Setting", style="cyan", min_width=20)
    table.add_column("Value", style="white", min_width=25)
    table.add_column("Status", style="green", min_width=8)
    table.add_column("Notes", style="dim", min_width=20)

    config_items = [
        ("Log Level", settings.log_level, "✅", ""),
        ("Log Format", settings.log_format, "✅", ""),
        (
            "Record Store URL",
            settings.store_url or "Not Set",
            "✅" if settings.store_url else "❌",
            "Required for all data commands",
        ),
        (
            "Record Store API Key",
            "Configured" if settings.store_api_key else "Not Set",
            "✅" if settings.store_api_key else "❌",
            "Required for all data commands",
        ),
        (
            "Access Token",
            "Configured" if settings.store_access_token else "Not Set",
            "✅" if settings.store_access_token else "⚠️",
            "Needed when row-level policies require a signed-in user",
        ),
        (
            "Canvasser ID",
            settings.canvasser_id or "Not Set",
            "✅" if settings.canvasser_id else "⚠️",
            "Recorded on visits and notes",
        ),
        (
            "Maps API Key",
            "Configured" if settings.maps_api_key else "Not Set",
            "✅" if settings.maps_api_key else "❌",
            "Required for geocoding and device location",
        ),
        ("Default State", settings.default_state, "✅", "Appended when geocoding"),
        ("HTTP Timeout", f"{settings.http_timeout}s", "✅", ""),
        ("Duplicate Check Delay", f"{settings.duplicate_check_delay_ms}ms", "✅", ""),
        ("Export Directory", str(settings.export_dir), "✅", ""),
    ]

    warnings_count = 0
    errors_count = 0
    for setting, value, status, notes_text in config_items:
        if status == "❌":
            value_display = f"[red]{escape(value)}[/red]"
            errors_count += 1
        elif status == "⚠️":
            value_display = f"[yellow]{escape(value)}[/yellow]"
            warnings_count += 1
        else:
            value_display = escape(value)
        table.add_row(setting, value_display, status, notes_text)

    console.print(table)

    console.print("\n[bold]Configuration Summary:[/bold]")
    if errors_count == 0 and warnings_count == 0:
        display_success("Configuration is complete and valid!")
    if errors_count:
        console.print(f"[red]❌ {errors_count} required setting(s) missing[/red]")
        console.print("\n[bold]Environment Variables:[/bold]")
        for name in settings.missing_configuration():
            console.print(f"  {name}=...")
    if warnings_count:
        console.print(f"[yellow]⚠️ {warnings_count} optional setting(s) missing[/yellow]")

    _logger.audit(
        "configuration_validation",
        errors_count=errors_count,
        warnings_count=warnings_count,
        config_file=str(config_path) if config_path else "default",
    )

    if errors_count:
        raise typer.Exit(ExitCodes.CONFIGURATION_ERROR)


if __name__ == "__main__":
    app()
