"""Bounded pool of numbered tables."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping

from .exceptions import TableUnavailable, ValidationError
from .journal import Journal
from ..storage.base import MAX_TABLES, MIN_TABLES, MatchRecord, PlayerRecord, TableSlot

_OCCUPANCY_FIELDS = ("player1_id", "player1_name", "player2_id", "player2_name", "started_at", "elapsed")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def format_elapsed(delta: timedelta | float) -> str:
    """Render a duration as HH:MM:SS; negative durations clamp to zero."""
    seconds = delta.total_seconds() if isinstance(delta, timedelta) else float(delta)
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def last_won_tables(records: Iterable[MatchRecord]) -> dict[str, int]:
    """Most recent table each player won at; unfinished rows are skipped."""
    tables: dict[str, int] = {}
    finished = [record for record in records if record.duration]
    # ties and rows without a timestamp keep their stored order
    finished.sort(key=lambda record: record.completed_at or _EPOCH)
    for record in finished:
        tables[record.winner_id] = record.table_number
    return tables


class TableLedger:
    """Working copy of table occupancy, journaled until commit."""

    def __init__(
        self,
        slots: Iterable[TableSlot] = (),
        *,
        max_tables: int,
        last_used: Mapping[str, int] | None = None,
    ) -> None:
        self._slots: dict[int, TableSlot] = {slot.table_number: replace(slot) for slot in slots}
        self._max_tables = max_tables
        self._last_used: dict[str, int] = dict(last_used or {})
        self.journal = Journal()

    @property
    def max_tables(self) -> int:
        return self._max_tables

    def slots(self) -> list[TableSlot]:
        return [self._slots[number] for number in sorted(self._slots)]

    def get(self, table_number: int) -> TableSlot | None:
        return self._slots.get(table_number)

    def occupied(self) -> list[TableSlot]:
        return [slot for slot in self.slots() if not slot.is_free]

    def occupied_count(self) -> int:
        return sum(1 for slot in self._slots.values() if not slot.is_free)

    def remaining_capacity(self) -> int:
        return max(0, self._max_tables - self.occupied_count())

    def is_within_capacity(self, table_number: int) -> bool:
        return MIN_TABLES <= table_number <= self._max_tables

    def is_available(self, table_number: int | None) -> bool:
        if table_number is None or not self.is_within_capacity(table_number):
            return False
        slot = self._slots.get(table_number)
        return slot is None or slot.is_free

    def find_free(self) -> int | None:
        """Lowest-numbered existing table that is empty and in range."""
        for slot in self.slots():
            if slot.is_free and self.is_within_capacity(slot.table_number):
                return slot.table_number
        return None

    def next_unused_number(self) -> int | None:
        """Lowest table number in range that has never been set up."""
        for number in range(MIN_TABLES, self._max_tables + 1):
            if number not in self._slots:
                return number
        return None

    def max_used_table_number(self) -> int:
        occupied = [slot.table_number for slot in self._slots.values() if not slot.is_free]
        return max(occupied, default=0)

    def slot_for(self, player_id: str) -> TableSlot | None:
        for slot in self._slots.values():
            if slot.seats(player_id):
                return slot
        return None

    def last_used_table_for(self, player_id: str) -> int | None:
        return self._last_used.get(player_id)

    def note_win(self, player_id: str, table_number: int) -> None:
        self._last_used[player_id] = table_number

    def reserve(
        self,
        table_number: int,
        first: PlayerRecord,
        second: PlayerRecord,
        *,
        started_at: datetime,
    ) -> TableSlot:
        if not self.is_within_capacity(table_number):
            raise TableUnavailable(
                f"Table {table_number} is outside 1..{self._max_tables}"
            )
        if self.occupied_count() >= self._max_tables:
            raise TableUnavailable(f"All {self._max_tables} tables are in use")
        for player in (first, second):
            seated = self.slot_for(player.player_id)
            if seated is not None:
                raise TableUnavailable(
                    f"Player {player.player_id} already sits at table {seated.table_number}"
                )
        values = {
            "player1_id": first.player_id,
            "player1_name": first.name,
            "player2_id": second.player_id,
            "player2_name": second.name,
            "started_at": started_at,
            "elapsed": format_elapsed(0),
        }
        slot = self._slots.get(table_number)
        if slot is None:
            slot = TableSlot(table_number=table_number, **values)
            self._slots[table_number] = slot
            self.journal.append(table_number, replace(slot))
            return slot
        if not slot.is_free:
            raise TableUnavailable(f"Table {table_number} is occupied")
        for field, value in values.items():
            setattr(slot, field, value)
            self.journal.update(table_number, field, value)
        return slot

    def release(self, table_number: int) -> TableSlot:
        """Clear occupancy but keep the table for later reuse."""
        slot = self._slots.get(table_number)
        if slot is None:
            raise TableUnavailable(f"Table {table_number} does not exist")
        previous = replace(slot)
        for field in _OCCUPANCY_FIELDS:
            setattr(slot, field, None)
            self.journal.update(table_number, field, None)
        return previous

    def check_capacity_change(self, new_max: int) -> None:
        if isinstance(new_max, bool) or not isinstance(new_max, int):
            raise ValidationError("Max tables must be an integer")
        if not MIN_TABLES <= new_max <= MAX_TABLES:
            raise ValidationError(
                f"Max tables must be between {MIN_TABLES} and {MAX_TABLES}, got {new_max}"
            )
        in_use = self.max_used_table_number()
        if new_max < in_use:
            raise ValidationError(
                f"Table {in_use} is in use; max tables cannot drop below {in_use}"
            )

    def refresh_elapsed(self, now: datetime) -> dict[int, str]:
        elapsed: dict[int, str] = {}
        for slot in self.occupied():
            if slot.started_at is None:
                continue
            value = format_elapsed(now - slot.started_at)
            elapsed[slot.table_number] = value
            if slot.elapsed != value:
                slot.elapsed = value
                self.journal.update(slot.table_number, "elapsed", value)
        return elapsed
