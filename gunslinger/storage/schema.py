"""Ledger schemas and row conversion.

Backends hand over plain rows (mappings keyed by field name). Rows are checked
against the required fields once, at load time, and converted into typed
records; nothing downstream looks fields up by name again.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from .base import LoadResult, MatchRecord, PlayerRecord, PlayerStatus, TableSlot

T = TypeVar("T")

PLAYERS = "players"
HISTORY = "history"
TABLES = "tables"

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    PLAYERS: (
        "player_id",
        "name",
        "wins",
        "losses",
        "matches_played",
        "status",
        "last_match_at",
    ),
    HISTORY: (
        "match_id",
        "table_number",
        "winner_id",
        "winner_name",
        "loser_id",
        "loser_name",
        "completed_at",
        "duration",
    ),
    TABLES: (
        "table_number",
        "player1_id",
        "player1_name",
        "player2_id",
        "player2_name",
        "started_at",
    ),
}

OPTIONAL_FIELDS: dict[str, tuple[str, ...]] = {
    PLAYERS: ("registered_at",),
    HISTORY: (),
    TABLES: ("elapsed",),
}

KEY_FIELDS: dict[str, str] = {
    PLAYERS: "player_id",
    HISTORY: "match_id",
    TABLES: "table_number",
}


def all_fields(ledger: str) -> tuple[str, ...]:
    return REQUIRED_FIELDS[ledger] + OPTIONAL_FIELDS[ledger]


def missing_fields(ledger: str, columns: Iterable[str]) -> tuple[str, ...]:
    present = set(columns)
    return tuple(name for name in REQUIRED_FIELDS[ledger] if name not in present)


def ensure_writable(ledger: str, field: str) -> None:
    if field not in all_fields(ledger) or field == KEY_FIELDS[ledger]:
        raise ValueError(f"Field '{field}' cannot be written on ledger '{ledger}'")


def dump_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def load_rows(
    ledger: str,
    columns: Iterable[str],
    rows: Sequence[Mapping[str, Any]],
    convert: Callable[[Mapping[str, Any]], T],
) -> LoadResult[T]:
    """Validate the column set, then convert every row."""
    missing = missing_fields(ledger, columns)
    if missing:
        return LoadResult(ledger=ledger, missing=missing)
    for row in rows:
        row_missing = missing_fields(ledger, row.keys())
        if row_missing:
            return LoadResult(ledger=ledger, missing=row_missing)
    return LoadResult(ledger=ledger, records=[convert(row) for row in rows])


def player_from_row(row: Mapping[str, Any]) -> PlayerRecord:
    return PlayerRecord(
        player_id=str(row["player_id"]),
        name=str(row["name"] or row["player_id"]),
        wins=_as_count(row["wins"]),
        losses=_as_count(row["losses"]),
        matches_played=_as_count(row["matches_played"]),
        status=PlayerStatus(row["status"]),
        last_match_at=_as_datetime(row["last_match_at"]),
        registered_at=_as_datetime(row.get("registered_at")),
    )


def player_to_row(record: PlayerRecord) -> dict[str, Any]:
    return {
        "player_id": record.player_id,
        "name": record.name,
        "wins": record.wins,
        "losses": record.losses,
        "matches_played": record.matches_played,
        "status": record.status.value,
        "last_match_at": record.last_match_at,
        "registered_at": record.registered_at,
    }


def match_from_row(row: Mapping[str, Any]) -> MatchRecord:
    return MatchRecord(
        match_id=str(row["match_id"]),
        table_number=int(row["table_number"]),
        winner_id=str(row["winner_id"]),
        winner_name=str(row["winner_name"]),
        loser_id=str(row["loser_id"]),
        loser_name=str(row["loser_name"]),
        completed_at=_as_datetime(row["completed_at"]),
        duration=str(row["duration"] or ""),
    )


def match_to_row(record: MatchRecord) -> dict[str, Any]:
    return {
        "match_id": record.match_id,
        "table_number": record.table_number,
        "winner_id": record.winner_id,
        "winner_name": record.winner_name,
        "loser_id": record.loser_id,
        "loser_name": record.loser_name,
        "completed_at": record.completed_at,
        "duration": record.duration,
    }


def table_from_row(row: Mapping[str, Any]) -> TableSlot:
    return TableSlot(
        table_number=int(row["table_number"]),
        player1_id=row["player1_id"] or None,
        player1_name=row["player1_name"] or None,
        player2_id=row["player2_id"] or None,
        player2_name=row["player2_name"] or None,
        started_at=_as_datetime(row["started_at"]),
        elapsed=row.get("elapsed") or None,
    )


def table_to_row(slot: TableSlot) -> dict[str, Any]:
    return {
        "table_number": slot.table_number,
        "player1_id": slot.player1_id,
        "player1_name": slot.player1_name,
        "player2_id": slot.player2_id,
        "player2_name": slot.player2_name,
        "started_at": slot.started_at,
        "elapsed": slot.elapsed,
    }


def _as_count(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def _as_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value))
    # some backends drop tzinfo on the way back; stored instants are UTC
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
