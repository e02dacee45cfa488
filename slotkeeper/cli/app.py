"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Optional, Tuple

import pendulum
import typer
from pendulum import Date
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.booking_api_client import BookingApiClient
from ..adapters.mock_data_source import MockDataSource
from ..adapters.sqlite_booking_store import SqliteBookingStore
from ..adapters.supabase_client import SupabaseClient
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SlotEngineError
from ..domain.fees import compute_fee
from ..domain.models import Requester
from ..domain.template import SPANISH_DAY_NAMES
from ..services.availability import AvailabilityService
from ..services.booking import BookingOrchestrator

app = typer.Typer(
    name="slotkeeper",
    help="Compute bookable consultation slots for service providers",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Usar datos de prueba en lugar de la API."),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
):
    """
    Availability and slot allocation for consultation bookings.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path], allow_default: bool) -> AppConfig:
    """Load the YAML config, or fall back to defaults where no file is needed."""
    config_path = config_file or get_default_config_path()

    if allow_default and config_file is None and not config_path.exists():
        return AppConfig()

    return AppConfig.load_from_yaml(config_path)


def _build_sources(config: AppConfig, mock: bool) -> Tuple[object, object]:
    """Return (template source, busy interval source)."""
    if mock:
        source = MockDataSource()
        return source, source

    if config.api is None:
        raise SlotEngineError("No 'api' section configured. Add one or use --mock.")

    client = SupabaseClient(
        base_url=config.api.base_url,
        api_key=config.api.api_key,
        timeout_seconds=config.api.timeout_seconds,
    )
    return client, client


def _parse_date(value: str, tz: str) -> Date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Error al interpretar la fecha '{value}': {e}[/red]")
        raise typer.Exit(1)


def _weekday_name(day: Date) -> str:
    return SPANISH_DAY_NAMES[day.isoweekday() - 1]


@app.command()
def dates(
    provider: Annotated[str, typer.Argument(help="Provider id or configured alias")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="First date (YYYY-MM-DD). Defaults to today")] = None,
    days: Annotated[Optional[int], typer.Option("--days", help="Horizon in days. Defaults to the configured horizon")] = None,
    mock: MockOption = False,
):
    """
    List the dates a provider can be booked on.

    Examples:

        slotkeeper dates ana-legacy --mock
        slotkeeper dates carla-semana --mock --start 2030-01-07 --days 14
    """
    try:
        config = _load_config(config_file, allow_default=mock)
        provider_id = config.resolve_provider_id(provider)
        template_source, busy_source = _build_sources(config, mock)
        service = AvailabilityService.from_config(config, template_source, busy_source)

        today = _parse_date(start, config.timezone) if start else pendulum.now(config.timezone).date()
        bookable = service.bookable_dates(provider_id=provider_id, today=today, horizon_days=days)

        if not bookable:
            console.print("[yellow]⚠ No hay fechas disponibles en el período.[/yellow]")
            return

        table = Table(
            title=f"Fechas disponibles - {provider_id}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Fecha", style="bold yellow")
        table.add_column("Día", style="dim")

        for day in bookable:
            table.add_row(day.isoformat(), _weekday_name(day))

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, SlotEngineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def slots(
    provider: Annotated[str, typer.Argument(help="Provider id or configured alias")],
    date: Annotated[str, typer.Option("--date", help="Date to inspect (YYYY-MM-DD)")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Session length: 30, 60, 90 or 120 minutes")] = 60,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the slots a provider offers on a date.

    Examples:

        slotkeeper slots ana-legacy --date 2030-01-07 --mock
        slotkeeper slots carla-semana --date 2030-01-08 --duration 30 --mock
    """
    try:
        config = _load_config(config_file, allow_default=mock)
        provider_id = config.resolve_provider_id(provider)
        template_source, busy_source = _build_sources(config, mock)
        service = AvailabilityService.from_config(config, template_source, busy_source)

        day = _parse_date(date, config.timezone)
        result = service.find_slots(
            provider_id=provider_id,
            day=day,
            duration_minutes=duration,
            now=pendulum.now(config.timezone),
        )

        if result.degraded:
            console.print(
                "[yellow]⚠ No se pudieron consultar las reservas; "
                "los horarios no están verificados.[/yellow]"
            )

        if not result.slots:
            console.print(f"[yellow]⚠ No hay horarios el {day.isoformat()} ({_weekday_name(day)}).[/yellow]")
            return

        table = Table(
            title=f"{_weekday_name(day)} {day.isoformat()} - {int(result.duration)} min",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Hora", style="bold yellow")
        table.add_column("Estado")

        for slot in result.slots:
            status = "[green]Disponible[/green]" if slot.available else "[red]Ocupado[/red]"
            table.add_row(slot.time, status)

        console.print()
        console.print(table)
        console.print(f"[bold green]✓ {len(result.available_slots)} horario(s) disponible(s)[/bold green]\n")

    except (FileNotFoundError, ValueError, SlotEngineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _hourly_rate(config: AppConfig, provider: str, provider_id: str, mock: bool) -> int:
    """Hourly rate from the config profile, or from the mock fixture."""
    profile = config.find_provider(provider)
    if profile is not None and profile.hourly_rate:
        return profile.hourly_rate

    if mock:
        for entry in MockDataSource().list_providers():
            if entry["provider_id"] == provider_id and entry.get("hourly_rate"):
                return int(entry["hourly_rate"])

    raise SlotEngineError(f"No hourly rate known for {provider}. Pass --rate.")


@app.command()
def book(
    provider: Annotated[str, typer.Argument(help="Provider id or configured alias")],
    date: Annotated[str, typer.Option("--date", help="Session date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Option("--time", help="Session start (HH:MM)")],
    name: Annotated[str, typer.Option("--name", help="Client name")],
    email: Annotated[str, typer.Option("--email", help="Client email")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Session length: 30, 60, 90 or 120 minutes")] = 60,
    rate: Annotated[Optional[int], typer.Option("--rate", help="Hourly rate. Defaults to the provider profile")] = None,
    config_file: ConfigOption = None,
    mock: Annotated[
        bool,
        typer.Option("--mock", help="Usar datos de prueba y el almacén local de reservas."),
    ] = False,
):
    """
    Book a session and print the payment link.

    With --mock, slots come from the bundled fixture and the hold is stored
    in the local SQLite booking store; otherwise the booking API is used.

    Examples:

        slotkeeper book ana-legacy --date 2030-01-07 --time 12:00 --name Marta --email marta@example.com --mock
    """
    try:
        config = _load_config(config_file, allow_default=mock)
        provider_id = config.resolve_provider_id(provider)
        template_source, busy_source = _build_sources(config, mock)
        service = AvailabilityService.from_config(config, template_source, busy_source)
        booking_client = SqliteBookingStore.from_config(config) if mock else BookingApiClient.from_config(config)

        orchestrator = BookingOrchestrator(
            service,
            booking_client,
            provider_id=provider_id,
            hourly_rate=rate if rate is not None else _hourly_rate(config, provider, provider_id, mock),
            requester=Requester(name=name, email=email),
            duration_minutes=duration,
            service_fee_rate=config.fees.service_fee_rate,
        )

        now = pendulum.now(config.timezone)
        day = _parse_date(date, config.timezone)
        result = orchestrator.select_date(day, now)
        if result.degraded:
            console.print(
                "[yellow]⚠ No se pudieron consultar las reservas; "
                "la disponibilidad se verificará al confirmar.[/yellow]"
            )
        orchestrator.select_time(time)
        confirmation = orchestrator.confirm()

        lines = [
            f"[bold]Reserva:[/bold] {confirmation.booking_id}",
            f"[bold]Fecha:[/bold] {_weekday_name(day)} {day.isoformat()} {time}",
            f"[bold green]Total:[/bold green] {orchestrator.fee.total}",
            f"[bold]Pagar en:[/bold] {confirmation.payment_url}",
        ]
        if confirmation.expires_at is not None:
            lines.append(f"[dim]Válida hasta {confirmation.expires_at.to_datetime_string()}[/dim]")
        console.print(Panel.fit("\n".join(lines), title="✓ Reserva creada"))

    except (FileNotFoundError, ValueError, SlotEngineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def fee(
    hourly_rate: Annotated[int, typer.Argument(help="Provider hourly rate")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Session length: 30, 60, 90 or 120 minutes")] = 60,
    config_file: ConfigOption = None,
):
    """
    Show the price breakdown of a session.
    """
    try:
        config = _load_config(config_file, allow_default=True)
        breakdown = compute_fee(hourly_rate, duration, config.fees.service_fee_rate)

        console.print(Panel.fit(
            f"[bold]Honorarios:[/bold] {breakdown.lawyer_fee}\n"
            f"[bold]Cargo por servicio:[/bold] {breakdown.service_fee}\n"
            f"[bold green]Total:[/bold green] {breakdown.total}",
            title=f"{duration} minutos"
        ))

    except (FileNotFoundError, ValueError, SlotEngineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def holidays(
    year: Annotated[Optional[int], typer.Option("--year", help="Calendar year. Defaults to the current year")] = None,
    config_file: ConfigOption = None,
):
    """
    List the holidays no booking can fall on.
    """
    try:
        config = _load_config(config_file, allow_default=True)
        calendar = config.build_holiday_calendar()
        year = year or pendulum.now(config.timezone).year

        found = calendar.holidays_between(pendulum.date(year, 1, 1), pendulum.date(year, 12, 31))
        if not found:
            console.print(f"[yellow]No hay feriados registrados para {year}.[/yellow]")
            return

        table = Table(title=f"Feriados {year}", show_header=True, header_style="bold cyan")
        table.add_column("Fecha", style="bold yellow")
        table.add_column("Día", style="dim")
        for day in found:
            table.add_row(day.isoformat(), SPANISH_DAY_NAMES[day.isoweekday() - 1])

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("list-providers")
def list_providers(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List configured providers (or the mock fixture's providers).
    """
    try:
        table = Table(
            title="Profesionales",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Id", style="bold yellow")
        table.add_column("Nombre")
        table.add_column("Tarifa/hora", style="dim")

        if mock:
            for provider in MockDataSource().list_providers():
                table.add_row(provider["provider_id"], provider.get("name", ""), str(provider.get("hourly_rate", "")))
        else:
            config = _load_config(config_file, allow_default=False)
            if not config.providers:
                console.print("[yellow]No hay profesionales definidos en la configuración.[/yellow]")
                return
            for provider in config.providers:
                table.add_row(provider.provider_id, provider.display_name(), str(provider.hourly_rate))

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command("release-holds")
def release_holds(
    config_file: ConfigOption = None,
):
    """
    Release provisional holds whose payment window has lapsed.
    """
    try:
        config = _load_config(config_file, allow_default=False)
        store = SqliteBookingStore.from_config(config)
        released = store.release_expired_holds()
        console.print(f"\n[green]✓ {released} reserva(s) provisoria(s) liberada(s).[/green]\n")

    except (FileNotFoundError, ValueError, SlotEngineError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotkeeper[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
