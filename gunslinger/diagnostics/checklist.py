"""Automated checks over the tournament ledgers."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from ..app import TournamentApp
from ..domain.ledgers import load_ledgers
from ..storage.base import PlayerStatus


@dataclass(slots=True)
class ChecklistIssue:
    severity: str
    message: str


async def run_checklist(app: TournamentApp) -> list[ChecklistIssue]:
    issues: list[ChecklistIssue] = []
    async with app.lock.hold("run_checklist"):
        max_tables = await app.context.max_tables()
        ledgers = await load_ledgers(app.stores, max_tables=max_tables)

    for player in ledgers.players:
        if player.matches_played != player.wins + player.losses:
            issues.append(
                ChecklistIssue(
                    "error",
                    f"Player {player.player_id} has {player.matches_played} matches "
                    f"but {player.wins} wins and {player.losses} losses.",
                )
            )

    seats: Counter[str] = Counter()
    occupied = ledgers.tables.occupied()
    for slot in occupied:
        for player_id in (slot.player1_id, slot.player2_id):
            if player_id:
                seats[player_id] += 1
        if slot.player1_id == slot.player2_id:
            issues.append(
                ChecklistIssue("error", f"Table {slot.table_number} seats {slot.player1_id} twice.")
            )
        if slot.table_number > max_tables:
            issues.append(
                ChecklistIssue(
                    "warning",
                    f"Table {slot.table_number} is occupied above the {max_tables} table limit.",
                )
            )
    for player_id, count in seats.items():
        if count > 1:
            issues.append(ChecklistIssue("error", f"Player {player_id} sits at {count} tables."))
    if len(occupied) > max_tables:
        issues.append(
            ChecklistIssue("error", f"{len(occupied)} tables occupied with a limit of {max_tables}.")
        )

    for player in ledgers.players:
        seated = player.player_id in seats
        if player.status is PlayerStatus.IN_PROGRESS and not seated:
            issues.append(
                ChecklistIssue("error", f"Player {player.player_id} is in progress without a table.")
            )
        if player.status is not PlayerStatus.IN_PROGRESS and seated:
            issues.append(
                ChecklistIssue(
                    "warning",
                    f"Player {player.player_id} is {player.status.value} but still seated.",
                )
            )

    pairs: Counter[frozenset[str]] = Counter()
    for record in ledgers.history:
        if record.winner_id == record.loser_id:
            issues.append(
                ChecklistIssue("error", f"Match {record.match_id} pairs {record.winner_id} with itself.")
            )
            continue
        pairs[frozenset((record.winner_id, record.loser_id))] += 1
    for pair, count in pairs.items():
        if count > 1:
            first, second = sorted(pair)
            issues.append(
                ChecklistIssue("warning", f"Players {first} and {second} met {count} times.")
            )

    return issues
