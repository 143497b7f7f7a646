"""Storage abstractions used by the tournament services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncContextManager, Generic, Protocol, TypeVar

T = TypeVar("T")

MIN_TABLES = 1
MAX_TABLES = 200


class PlayerStatus(str, Enum):
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    RESTING = "resting"
    DROPPED = "dropped"


@dataclass(slots=True)
class PlayerRecord:
    player_id: str
    name: str
    wins: int = 0
    losses: int = 0
    matches_played: int = 0
    status: PlayerStatus = PlayerStatus.WAITING
    last_match_at: datetime | None = None
    registered_at: datetime | None = None


@dataclass(slots=True)
class MatchRecord:
    match_id: str
    table_number: int
    winner_id: str
    winner_name: str
    loser_id: str
    loser_name: str
    completed_at: datetime
    duration: str


@dataclass(slots=True)
class TableSlot:
    table_number: int
    player1_id: str | None = None
    player1_name: str | None = None
    player2_id: str | None = None
    player2_name: str | None = None
    started_at: datetime | None = None
    elapsed: str | None = None

    @property
    def is_free(self) -> bool:
        return self.player1_id is None

    def seats(self, player_id: str) -> bool:
        return player_id in (self.player1_id, self.player2_id)

    def opponent_of(self, player_id: str) -> str | None:
        if self.player1_id == player_id:
            return self.player2_id
        if self.player2_id == player_id:
            return self.player1_id
        return None


@dataclass(slots=True)
class LoadResult(Generic[T]):
    """Tagged outcome of reading a ledger: records, or the fields it lacks."""

    ledger: str
    records: list[T] = field(default_factory=list)
    missing: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.missing

    def unwrap(self) -> list[T]:
        if self.missing:
            from ..domain.exceptions import StructuralError

            raise StructuralError(self.ledger, self.missing)
        return self.records


class PlayerStore(Protocol):
    async def load_all(self) -> LoadResult[PlayerRecord]:
        ...

    async def append(self, record: PlayerRecord) -> None:
        ...

    async def update_field(self, player_id: str, field: str, value: Any) -> None:
        ...

    def transaction(self) -> AsyncContextManager[None]:
        ...


class MatchHistoryStore(Protocol):
    async def load_all(self) -> LoadResult[MatchRecord]:
        ...

    async def append(self, record: MatchRecord) -> None:
        ...

    async def update_field(self, match_id: str, field: str, value: Any) -> None:
        ...

    def transaction(self) -> AsyncContextManager[None]:
        ...


class TableStore(Protocol):
    async def load_all(self) -> LoadResult[TableSlot]:
        ...

    async def append(self, slot: TableSlot) -> None:
        ...

    async def update_field(self, table_number: int, field: str, value: Any) -> None:
        ...

    def transaction(self) -> AsyncContextManager[None]:
        ...


class SettingsStore(Protocol):
    async def get_max_tables(self) -> int:
        ...

    async def set_max_tables(self, value: int) -> None:
        ...

    async def get_maintenance_flag(self) -> bool:
        ...

    async def set_maintenance_flag(self, value: bool) -> None:
        ...


class AuditStore(Protocol):
    async def add_entry(self, action: str, payload: dict) -> None:
        ...
