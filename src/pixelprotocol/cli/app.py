"""Typer application for the Pixel Protocol arena client.

Every command bootstraps a session from the stored credentials, so the same
player identity is reused between runs.
"""

import asyncio
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pixelprotocol.models import Fight, FightOutcome, FightResult, Hero, SessionStatus
from pixelprotocol.session import FightOrchestrator, SessionManager, create_session
from pixelprotocol.utils.config import ClientSettings, load_settings
from pixelprotocol.utils.transport import ArenaError

T = TypeVar("T")

DISTRIBUTION_NAME = "pixel-protocol-client"

console = Console()

app = typer.Typer(
    name="pixel-arena",
    help="Pixel Protocol arena client - create heroes and send them to fight.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

OUTCOME_STYLES = {
    FightOutcome.VICTORY: "bold green",
    FightOutcome.DEFEAT: "bold red",
    FightOutcome.DRAW: "bold yellow",
}


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(code=1)


def _settings() -> ClientSettings:
    try:
        return load_settings()
    except ValueError as exc:
        raise _fail(str(exc)) from exc


async def _bootstrapped(action: Callable[[SessionManager], Awaitable[T]]) -> T:
    session = create_session(_settings())
    async with session:
        status = await session.bootstrap()
        if status is SessionStatus.ERRORED:
            raise _fail(f"Could not start a session: {session.error}")
        return await action(session)


def _run(action: Callable[[SessionManager], Awaitable[T]]) -> T:
    try:
        return asyncio.run(_bootstrapped(action))
    except ArenaError as exc:
        raise _fail(str(exc)) from exc
    except ValueError as exc:
        raise _fail(str(exc)) from exc


def _hero_table(heroes: tuple[Hero, ...], selected: Optional[Hero] = None) -> Table:
    table = Table(title="Your Heroes", show_lines=False)
    table.add_column("ID", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("ELO", justify="right")
    table.add_column("Country")
    table.add_column("Description", overflow="fold")
    for hero in heroes:
        marker = " *" if selected is not None and selected.id == hero.id else ""
        table.add_row(hero.id, hero.title + marker, str(hero.rating), hero.country, hero.description)
    return table


def _render_fight(fight: Fight, rating_delta: Optional[int] = None) -> None:
    style = OUTCOME_STYLES[fight.outcome]
    attacker = fight.attacker_snapshot
    defender = fight.defender_snapshot
    lines = [
        f"[{style}]{fight.outcome.label}![/{style}]",
        f"{attacker.title} (ELO {attacker.rating})  VS  {defender.title} (ELO {defender.rating})",
    ]
    if rating_delta is not None:
        lines.append(f"ELO Change: {rating_delta:+d}")
    lines.append(f"[dim]{fight.timestamp.isoformat()}[/dim]")
    console.print(Panel("\n".join(lines), title=f"Fight {fight.id}"))
    if fight.paragraphs:
        console.print(Panel("\n\n".join(fight.paragraphs), title="Battle Story"))


def version_callback(value: bool) -> None:
    if not value:
        return
    try:
        installed = package_version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        installed = "unknown (not installed)"
    console.print(f"[bold]Pixel Protocol[/bold] client {installed}")
    raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Log debug output to stderr.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        is_eager=True,
        callback=version_callback,
    ),
) -> None:
    """Pixel Protocol arena client."""
    load_dotenv()
    configure_logging("DEBUG" if verbose else _settings().log_level)


@app.command()
def status() -> None:
    """Show the active player and their heroes."""

    async def action(session: SessionManager) -> None:
        player = session.player
        if player is None:
            raise _fail("Session has no active player")
        console.print(f"Player: [bold]{player.display_handle}[/bold] ({session.status.value})")
        if not session.heroes:
            console.print("No heroes yet! Create your first hero to start battling.")
            return
        console.print(_hero_table(session.heroes, session.selected_hero))

    _run(action)


@app.command("create-hero")
def create_hero(
    title: str = typer.Argument(..., help="Hero title, e.g. 'Shadow Ninja'"),
    description: str = typer.Argument(..., help="Abilities, background and unique traits"),
) -> None:
    """Create a new hero for the active player."""

    async def action(session: SessionManager) -> None:
        hero = await session.create_hero(title, description)
        console.print(f"[green]✓[/green] Created [bold]{hero.title}[/bold] ({hero.id})")
        console.print(_hero_table(session.heroes))

    _run(action)


@app.command()
def fight(
    hero_id: str = typer.Argument(..., help="ID of the hero that attacks"),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Give up after this many seconds"
    ),
) -> None:
    """Send a hero into a fight against a server-selected opponent."""

    async def action(session: SessionManager) -> FightResult:
        orchestrator = FightOrchestrator(session)
        try:
            result = await orchestrator.start_fight(hero_id, timeout=timeout)
        except asyncio.TimeoutError:
            raise _fail(f"Fight for hero {hero_id} timed out")
        _render_fight(result.fight, result.rating_delta)
        hero = session.find_hero(hero_id)
        if hero is not None:
            console.print(f"{hero.title} now has ELO [bold]{hero.rating}[/bold]")
        return result

    _run(action)


@app.command()
def fights(
    hero_id: str = typer.Argument(..., help="Hero whose fights to list"),
    limit: int = typer.Option(20, "--limit", "-n", help="Page size (1-100)"),
    last_id: Optional[str] = typer.Option(None, "--last-id", help="Continue after this fight ID"),
) -> None:
    """List a hero's fights, newest first."""

    async def action(session: SessionManager) -> None:
        page = await FightOrchestrator(session).fight_history(hero_id, last_id=last_id, limit=limit)
        if not page.fights:
            console.print("No fights yet.")
            return
        table = Table(title=f"Fights of {hero_id}")
        table.add_column("Fight", style="dim")
        table.add_column("When")
        table.add_column("Attacker")
        table.add_column("Defender")
        table.add_column("Outcome")
        for item in page.fights:
            style = OUTCOME_STYLES[item.outcome]
            table.add_row(
                item.id,
                item.timestamp.strftime("%Y-%m-%d %H:%M"),
                item.attacker_snapshot.title,
                item.defender_snapshot.title,
                f"[{style}]{item.outcome.label}[/{style}]",
            )
        console.print(table)
        if page.has_more:
            cursor = page.next_cursor or page.fights[-1].id
            console.print(f"[dim]More fights available: --last-id {cursor}[/dim]")

    _run(action)


@app.command()
def image(
    hero_id: str = typer.Argument(..., help="Hero whose portrait to download"),
    out: Path = typer.Option(..., "--out", "-o", help="Where to write the image"),
) -> None:
    """Download a hero's portrait."""

    async def action(session: SessionManager) -> None:
        data = await session.load_hero_image(hero_id)
        if data is None:
            console.print(f"[yellow]Warning:[/yellow] No image available for {hero_id}")
            return
        out.write_bytes(data)
        console.print(f"[green]✓[/green] Wrote {len(data)} bytes to {out}")

    _run(action)


@app.command()
def forget() -> None:
    """Forget the stored player identity. The next command creates a new player."""
    session = create_session(_settings())
    session.forget_identity()
    asyncio.run(session.close())
    console.print("[green]✓[/green] Stored identity removed")
