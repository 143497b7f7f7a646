"""In-memory storage backend for tournaments."""

from __future__ import annotations

from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Deque, Generic, Iterable, Mapping, TypeVar

from . import schema
from .base import (
    AuditStore,
    MAX_TABLES,
    MIN_TABLES,
    LoadResult,
    MatchHistoryStore,
    MatchRecord,
    PlayerRecord,
    PlayerStore,
    SettingsStore,
    TableSlot,
    TableStore,
)

T = TypeVar("T")


class _InMemoryLedger(Generic[T]):
    """Rows kept as plain dicts under a fixed column list, like a sheet."""

    ledger: str
    _from_row: Callable[[Mapping[str, Any]], T]
    _to_row: Callable[[T], dict[str, Any]]

    def __init__(
        self,
        rows: Iterable[Mapping[str, Any]] = (),
        *,
        columns: Iterable[str] | None = None,
    ) -> None:
        self.columns: tuple[str, ...] = tuple(columns or schema.all_fields(self.ledger))
        self._rows: list[dict[str, Any]] = [dict(row) for row in rows]

    async def load_all(self) -> LoadResult[T]:
        return schema.load_rows(self.ledger, self.columns, self._rows, type(self)._from_row)

    async def append(self, record: T) -> None:
        row = type(self)._to_row(record)
        self._rows.append({column: row.get(column) for column in self.columns})

    async def update_field(self, key: Any, field: str, value: Any) -> None:
        schema.ensure_writable(self.ledger, field)
        key_field = schema.KEY_FIELDS[self.ledger]
        for row in self._rows:
            if row.get(key_field) == key:
                row[field] = schema.dump_value(value)
                return
        raise KeyError(f"No row with {key_field}={key!r} in ledger '{self.ledger}'")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Restore the rows as they were if the block fails."""
        snapshot = [dict(row) for row in self._rows]
        try:
            yield
        except BaseException:
            self._rows[:] = snapshot
            raise

    def rows(self) -> list[dict[str, Any]]:
        return [dict(row) for row in self._rows]


class InMemoryPlayerStore(_InMemoryLedger[PlayerRecord], PlayerStore):
    ledger = schema.PLAYERS
    _from_row = staticmethod(schema.player_from_row)
    _to_row = staticmethod(schema.player_to_row)


class InMemoryMatchHistoryStore(_InMemoryLedger[MatchRecord], MatchHistoryStore):
    ledger = schema.HISTORY
    _from_row = staticmethod(schema.match_from_row)
    _to_row = staticmethod(schema.match_to_row)


class InMemoryTableStore(_InMemoryLedger[TableSlot], TableStore):
    ledger = schema.TABLES
    _from_row = staticmethod(schema.table_from_row)
    _to_row = staticmethod(schema.table_to_row)


class InMemorySettingsStore(SettingsStore):
    def __init__(self, *, max_tables: int = 10, maintenance: bool = False) -> None:
        _check_max_tables(max_tables)
        self._max_tables = max_tables
        self._maintenance = maintenance

    async def get_max_tables(self) -> int:
        return self._max_tables

    async def set_max_tables(self, value: int) -> None:
        _check_max_tables(value)
        self._max_tables = value

    async def get_maintenance_flag(self) -> bool:
        return self._maintenance

    async def set_maintenance_flag(self, value: bool) -> None:
        self._maintenance = bool(value)


class InMemoryAuditStore(AuditStore):
    def __init__(self, *, maxlen: int = 1000) -> None:
        self._entries: Deque[tuple[datetime, str, dict]] = deque(maxlen=maxlen)

    async def add_entry(self, action: str, payload: dict) -> None:
        self._entries.append((datetime.now(timezone.utc), action, payload))

    def dump(self) -> list[tuple[datetime, str, dict]]:
        return list(self._entries)


def _check_max_tables(value: int) -> None:
    from ..domain.exceptions import ValidationError

    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Max tables must be an integer")
    if not MIN_TABLES <= value <= MAX_TABLES:
        raise ValidationError(f"Max tables must be between {MIN_TABLES} and {MAX_TABLES}, got {value}")
