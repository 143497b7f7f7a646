"""Top level application object for gunslinger tournaments."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from .admin.service import AdminService
from .config import TournamentConfig
from .domain.events import EventBus
from .domain.ledgers import LedgerStores
from .domain.locking import DeferredMatching, ExclusionLock, ExecutionContext, utcnow
from .domain.matching import MatchingEngine
from .domain.players import TieBreak
from .domain.transitions import StateTransitionManager
from .scheduler import TournamentTicker
from .storage.base import AuditStore, MatchHistoryStore, PlayerStore, SettingsStore, TableStore
from .storage.memory import (
    InMemoryAuditStore,
    InMemoryMatchHistoryStore,
    InMemoryPlayerStore,
    InMemorySettingsStore,
    InMemoryTableStore,
)
from .storage.sqlalchemy import AsyncSQLAlchemyStorage


class TournamentApp:
    """Central dependency container wiring stores, lock and services."""

    def __init__(
        self,
        config: TournamentConfig | None = None,
        *,
        player_store: PlayerStore | None = None,
        history_store: MatchHistoryStore | None = None,
        table_store: TableStore | None = None,
        settings_store: SettingsStore | None = None,
        audit_store: AuditStore | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or TournamentConfig()
        self.event_bus = event_bus or EventBus()

        self._sqlalchemy_storage: AsyncSQLAlchemyStorage | None = None
        (
            self.player_store,
            self.history_store,
            self.table_store,
            self.settings_store,
            self.audit_store,
        ) = self._wire_storage(player_store, history_store, table_store, settings_store, audit_store)

        self.stores = LedgerStores(
            players=self.player_store, history=self.history_store, tables=self.table_store
        )
        self.lock = ExclusionLock(timeout=self.config.lock.timeout_seconds)
        self.context = ExecutionContext(
            settings=self.settings_store, lock=self.lock, clock=clock or utcnow
        )
        self.deferred = DeferredMatching()

        self.matching = MatchingEngine(
            self.stores,
            self.context,
            tie_break=TieBreak(self.config.matching.tie_break),
            event_bus=self.event_bus,
        )
        self.transitions = StateTransitionManager(
            self.stores,
            self.context,
            self.matching,
            ids=self.config.ids,
            event_bus=self.event_bus,
            audit_store=self.audit_store if self.config.admin.enable_audit_logs else None,
            deferred=self.deferred if self.config.matching.defer_rematch else None,
        )
        self.ticker = TournamentTicker(self.stores, self.context, self.matching, self.deferred)
        self.admin = AdminService(
            self.stores,
            self.context,
            self.transitions,
            audit_store=self.audit_store,
            event_bus=self.event_bus,
            enable_audit=self.config.admin.enable_audit_logs,
        )

    def _wire_storage(
        self,
        player_store: PlayerStore | None,
        history_store: MatchHistoryStore | None,
        table_store: TableStore | None,
        settings_store: SettingsStore | None,
        audit_store: AuditStore | None,
    ) -> tuple[PlayerStore, MatchHistoryStore, TableStore, SettingsStore, AuditStore]:
        if player_store and history_store and table_store and settings_store and audit_store:
            return player_store, history_store, table_store, settings_store, audit_store

        backend = self.config.storage.backend
        max_tables = self.config.matching.max_tables
        if backend == "memory":
            return (
                player_store or InMemoryPlayerStore(),
                history_store or InMemoryMatchHistoryStore(),
                table_store or InMemoryTableStore(),
                settings_store or InMemorySettingsStore(max_tables=max_tables),
                audit_store or InMemoryAuditStore(),
            )
        if backend == "sqlalchemy":
            dsn = self.config.storage.resolve_dsn()
            if not dsn:
                raise ValueError("SQLAlchemy backend requires a DSN")
            storage = AsyncSQLAlchemyStorage(
                dsn, echo=self.config.storage.echo_sql, default_max_tables=max_tables
            )
            self._sqlalchemy_storage = storage
            return (
                player_store or storage.player_store(),
                history_store or storage.history_store(),
                table_store or storage.table_store(),
                settings_store or storage.settings_store(),
                audit_store or storage.audit_store(),
            )
        raise ValueError(f"Unsupported storage backend {backend}")

    def snapshot(self) -> dict[str, Any]:
        """Export current configuration for debugging."""
        return {
            "storage": self.config.storage.backend,
            "tie_break": self.config.matching.tie_break,
            "lock_timeout": self.config.lock.timeout_seconds,
            "defer_rematch": self.config.matching.defer_rematch,
            "player_id_format": f"{self.config.ids.player_prefix}{'0' * self.config.ids.player_digits}",
            "match_id_format": f"{self.config.ids.match_prefix}{'0' * self.config.ids.match_digits}",
        }

    async def init_backend(self) -> None:
        """Initialize storage backend resources (e.g., database tables)."""
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.init_models()

    async def close(self) -> None:
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.dispose()
