"""Storage backends for gunslinger."""

from .base import (
    AuditStore,
    LoadResult,
    MatchHistoryStore,
    MatchRecord,
    PlayerRecord,
    PlayerStatus,
    PlayerStore,
    SettingsStore,
    TableSlot,
    TableStore,
)
from .memory import (
    InMemoryAuditStore,
    InMemoryMatchHistoryStore,
    InMemoryPlayerStore,
    InMemorySettingsStore,
    InMemoryTableStore,
)
from .sqlalchemy import AsyncSQLAlchemyStorage

__all__ = [
    "AuditStore",
    "LoadResult",
    "MatchHistoryStore",
    "MatchRecord",
    "PlayerRecord",
    "PlayerStatus",
    "PlayerStore",
    "SettingsStore",
    "TableSlot",
    "TableStore",
    "InMemoryAuditStore",
    "InMemoryMatchHistoryStore",
    "InMemoryPlayerStore",
    "InMemorySettingsStore",
    "InMemoryTableStore",
    "AsyncSQLAlchemyStorage",
]
