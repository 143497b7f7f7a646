"""Command line helpers for gunslinger."""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path
from random import Random

from rich.console import Console
from rich.table import Table

from .app import TournamentApp
from .config import TournamentConfig
from .diagnostics.checklist import run_checklist as checklist_run
from .diagnostics.simulator import TournamentSimulator
from .loaders import validate_roster_file
from .logs import configure_logging
from .storage.base import PlayerRecord
from .validators import validate_app

console = Console()


def run_simulator() -> None:
    parser = argparse.ArgumentParser(description="Gunslinger tournament simulator")
    parser.add_argument("--players", type=int, default=8, help="Number of players to register")
    parser.add_argument("--steps", type=int, default=50, help="Number of simulated events")
    parser.add_argument("--max-tables", type=int, help="Override the configured table count")
    parser.add_argument(
        "--tie-break", choices=("least_recent", "most_recent"), help="Override the tie-break rule"
    )
    parser.add_argument("--seed", type=int, help="Random seed for reproducible runs")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args()

    configure_logging(args.log_level)
    config = TournamentConfig.from_env()
    matching = config.matching
    if args.max_tables is not None:
        matching = replace(matching, max_tables=args.max_tables)
    if args.tie_break:
        matching = replace(matching, tie_break=args.tie_break)
    # simulations always run in memory so a configured database is never touched
    config = replace(config, matching=matching, storage=replace(config.storage, backend="memory"))
    app = TournamentApp(config)
    issues = validate_app(app)
    if issues:
        _print_problems("Configuration errors", issues)
        sys.exit(1)

    simulator = TournamentSimulator(app, rng=Random(args.seed))

    async def _simulate():
        outcome = await simulator.simulate(players=args.players, steps=args.steps)
        return outcome, await app.transitions.standings()

    result, standings = asyncio.run(_simulate())

    console.print(_standings_table(standings))
    console.print(
        f"Recorded {result.matches_recorded} matches, peak {result.peak_tables} table(s) in use, "
        f"{result.deferred_for_capacity} pairing(s) deferred for capacity, "
        f"{result.rests} rest(s), {result.drops} drop(s)."
    )
    if result.issues:
        for issue in result.issues:
            console.print(f"[{issue.severity.upper()}] {issue.message}", style="red", markup=False)
        sys.exit(1)
    console.print("[green]All invariants held[/green]")


def run_checklist() -> None:
    parser = argparse.ArgumentParser(description="Gunslinger ledger checks")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args()

    configure_logging(args.log_level)
    app = TournamentApp(TournamentConfig.from_env())

    async def _check():
        await app.init_backend()
        try:
            return await checklist_run(app)
        finally:
            await app.close()

    issues = asyncio.run(_check())
    if not issues:
        console.print("[green]No problems found[/green]")
        return
    for issue in issues:
        console.print(f"[{issue.severity.upper()}] {issue.message}", markup=False)
    sys.exit(1)


def run_validate() -> None:
    parser = argparse.ArgumentParser(description="Gunslinger validator")
    parser.add_argument("--roster", help="Path to roster JSON file for validation")
    args = parser.parse_args()

    if args.roster:
        errors = validate_roster_file(Path(args.roster))
        if errors:
            _print_problems("Roster errors", errors)
            sys.exit(1)
        console.print("[green]Roster is valid[/green]")
        return

    try:
        config = TournamentConfig.from_env()
    except ValueError as exc:
        _print_problems("Configuration errors", [str(exc)])
        sys.exit(1)
    issues = validate_app(TournamentApp(config))
    if issues:
        _print_problems("Configuration errors", issues)
        sys.exit(1)
    console.print("[green]Configuration is valid[/green]")


def _standings_table(players: list[PlayerRecord]) -> Table:
    table = Table(title="Standings")
    table.add_column("#", justify="right")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("W", justify="right")
    table.add_column("L", justify="right")
    table.add_column("Played", justify="right")
    table.add_column("Status")
    for rank, player in enumerate(players, start=1):
        table.add_row(
            str(rank),
            player.player_id,
            player.name,
            str(player.wins),
            str(player.losses),
            str(player.matches_played),
            player.status.value,
        )
    return table


def _print_problems(title: str, problems: list[str]) -> None:
    console.print(f"[red]{title}:[/red]")
    for problem in problems:
        console.print(f"- {problem}", markup=False)
