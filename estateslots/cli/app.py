"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Optional, Annotated

import pendulum
import typer
from pendulum import Date
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..adapters.google_authenticator import GoogleAuthenticator
from ..adapters.google_calendar_client import GoogleCalendarClient
from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphCalendarClient
from ..adapters.mock_calendar_client import MockCalendarClient
from ..config import AppConfig, get_default_config_path
from ..domain.calculator import AvailabilityCalculator
from ..domain.exceptions import EstateSlotsError, InvalidIntervalError
from ..domain.models import Slot, ViewingRequest
from ..services.availability_service import AgentAvailabilityService

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="estateslots",
    help="Find free viewing slots in an agent's calendar and book property viewings",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use sample calendar data and skip authentication.")]
CalendarOption = Annotated[Optional[str], typer.Option("--calendar", help="Calendar id. Defaults to the configured calendar.")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    estateslots - property viewing availability.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _parse_day(value: Optional[str], tz: str) -> Date:
    if not value:
        return pendulum.today(tz).date()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        raise ValueError(f"Could not parse date {value!r}, expected YYYY-MM-DD: {e}") from e


def _authenticate(config: AppConfig, force_refresh: bool = False) -> str:
    if config.provider == "microsoft":
        authenticator = GraphAuthenticator(
            client_id=config.microsoft.client_id,
            tenant_id=config.microsoft.tenant_id,
            authority_url=config.microsoft.get_authority_url()
        )
    else:
        authenticator = GoogleAuthenticator(
            client_id=config.google.client_id,
            client_secret=config.google.client_secret,
            refresh_token=config.google.refresh_token,
        )
    return authenticator.get_access_token(force_refresh=force_refresh)


def _build_client(config: AppConfig, mock: bool):
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using sample calendar data[/yellow]\n")
        return MockCalendarClient(timezone=config.timezone)

    access_token = _authenticate(config)
    if config.provider == "microsoft":
        return GraphCalendarClient(access_token=access_token)
    return GoogleCalendarClient(access_token=access_token)


def _build_service(config: AppConfig, mock: bool) -> AgentAvailabilityService:
    calculator = AvailabilityCalculator(
        business_hours=config.get_business_hours(),
        policy=config.get_policy(),
    )
    return AgentAvailabilityService(
        calendar_client=_build_client(config, mock),
        calculator=calculator,
        timezone=config.timezone,
    )


def _fail(error: Exception) -> None:
    logger.debug("Command failed", exc_info=error)
    if isinstance(error, InvalidIntervalError):
        console.print(f"[bold red]Could not compute availability:[/bold red] {escape(str(error))}")
    else:
        console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


@app.command()
def free(
    date: Annotated[Optional[str], typer.Argument(help="Day to check (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
    calendar: CalendarOption = None,
    mock: MockOption = False,
):
    """
    Show the free time ranges of a day.

    Examples:

        estateslots free
        estateslots free 2024-11-25
        estateslots free --mock
    """
    try:
        config = _load_config(config_file)
        day = _parse_day(date, config.timezone)
        service = _build_service(config, mock)

        availability = service.get_day_availability(
            calendar_id=calendar or config.calendar_id,
            day=day,
        )
    except (EstateSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    if not availability.is_open:
        console.print(f"[yellow]The agency is closed on {day.format('dddd, DD.MM.YYYY', locale='en')}.[/yellow]\n")
        return

    if not availability.has_availability:
        console.print(f"[yellow]⚠ No free time on {day.format('DD.MM.YYYY')}.[/yellow]\n")
        return

    table = Table(
        title=f"Free time on {day.format('dddd, DD.MM.YYYY', locale='en')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("From", style="bold green")
    table.add_column("To", style="bold green")
    table.add_column("Minutes", justify="right", style="dim")

    for interval in availability.free:
        table.add_row(
            interval.start.format("HH:mm"),
            interval.end.format("HH:mm"),
            str(interval.duration_minutes())
        )

    console.print(table)
    console.print()


@app.command()
def slots(
    date: Annotated[Optional[str], typer.Argument(help="Day to check (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
    calendar: CalendarOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Viewing length in minutes")] = None,
    step: Annotated[Optional[int], typer.Option("--step", help="Minutes between slot starts")] = None,
    include_past: Annotated[bool, typer.Option("--include-past", help="Also list slots that already started.")] = False,
    mock: MockOption = False,
):
    """
    List bookable viewing slots of a day.

    Examples:

        estateslots slots
        estateslots slots 2024-11-25 --duration 90
        estateslots slots --mock --step 15
    """
    try:
        config = _load_config(config_file)
        day = _parse_day(date, config.timezone)
        service = _build_service(config, mock)

        availability = service.get_day_availability(
            calendar_id=calendar or config.calendar_id,
            day=day,
            now=None if include_past else pendulum.now(config.timezone),
            slot_duration_minutes=duration,
            slot_step_minutes=step,
        )
    except (EstateSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    if not availability.slots:
        console.print(
            "[yellow]⚠ No bookable slots found.[/yellow]\n"
            "Try another day or a shorter viewing."
        )
    else:
        console.print(f"[bold green]✓ {len(availability.slots)} bookable slot(s):[/bold green]\n")
        for slot in availability.slots:
            console.print(f"  {slot.format_display()}")

    console.print()


@app.command()
def book(
    date: Annotated[str, typer.Argument(help="Viewing day (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Viewing start (HH:mm)")],
    address: Annotated[str, typer.Option("--address", "-a", help="Property address")],
    client: Annotated[str, typer.Option("--client", help="Client name")],
    email: Annotated[str, typer.Option("--email", "-e", help="Client e-mail")],
    notes: Annotated[str, typer.Option("--notes", help="Notes for the agent")] = "",
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Viewing length in minutes")] = None,
    config_file: ConfigOption = None,
    calendar: CalendarOption = None,
    mock: MockOption = False,
):
    """
    Book a property viewing in a free slot.

    Example:

        estateslots book 2024-11-25 11:00 --address "Marszalkowska 15" --client "Jan Kowalski" --email jan@example.com
    """
    try:
        config = _load_config(config_file)
        tz = config.timezone
        try:
            start = pendulum.from_format(f"{date} {start_time}", "YYYY-MM-DD HH:mm", tz=tz)
        except ValueError as e:
            raise ValueError(f"Could not parse viewing start {date} {start_time}: {e}") from e

        length = duration or config.booking.slot_duration_minutes
        request = ViewingRequest(
            slot=Slot(start=start, end=start.add(minutes=length)),
            property_address=address,
            client_name=client,
            client_email=email,
            notes=notes,
        )

        service = _build_service(config, mock)
        event_id = service.book_viewing(
            calendar_id=calendar or config.calendar_id,
            request=request,
            now=pendulum.now(tz),
        )
    except (EstateSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(Panel.fit(
        f"[bold green]✓ Viewing booked[/bold green]\n\n"
        f"[bold]When:[/bold] {request.slot.format_display()}\n"
        f"[bold]Where:[/bold] {address}\n"
        f"[bold]Client:[/bold] {client} <{email}>\n"
        f"[bold]Event id:[/bold] {event_id}",
        title="Property viewing"
    ))


@app.command()
def calendars(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List the calendars available to the agent, with the ids --calendar expects.
    """
    try:
        config = _load_config(config_file)
        found = _build_client(config, mock).list_calendars()
    except (EstateSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    if not found:
        console.print("[yellow]⚠ No calendars found.[/yellow]\n")
        return

    table = Table(title="Calendars", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Id", style="dim")
    table.add_column("Primary", justify="center")

    for calendar in found:
        table.add_row(
            escape(calendar["name"]),
            escape(calendar["id"]),
            "✓" if calendar["primary"] else ""
        )

    console.print(table)
    console.print()


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: bool = typer.Option(
        False,
        "--force",
        help="Force re-authentication"
    )
):
    """
    Test calendar provider authentication.
    """
    try:
        config = _load_config(config_file)

        console.print(f"\n[bold]Testing {config.provider} calendar authentication...[/bold]\n")

        access_token = _authenticate(config, force_refresh=force)

        if config.provider == "microsoft":
            profile = GraphCalendarClient(access_token=access_token).test_connection()
            name = profile.get("displayName", "N/A")
            account = profile.get("mail") or profile.get("userPrincipalName", "N/A")
        else:
            profile = GoogleCalendarClient(access_token=access_token).test_connection()
            name = profile.get("summary", "N/A")
            account = profile.get("id", "N/A")
    except (EstateSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(Panel.fit(
        f"[bold green]✓ Authentication successful![/bold green]\n\n"
        f"[bold]Calendar:[/bold] {name}\n"
        f"[bold]Account:[/bold] {account}",
        title="✓ Connection test"
    ))
    console.print()


@app.command()
def clear_cache(
    config_file: ConfigOption = None,
):
    """
    Clear the Microsoft authentication token cache.
    """
    try:
        config = _load_config(config_file)

        authenticator = GraphAuthenticator(
            client_id=config.microsoft.client_id,
            tenant_id=config.microsoft.tenant_id
        )
        authenticator.clear_cache()
    except (EstateSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print("\n[green]✓ Token cache cleared.[/green]")
    console.print("You will be asked to sign in on the next call.\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]estateslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
