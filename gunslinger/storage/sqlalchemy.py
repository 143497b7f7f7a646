"""SQLAlchemy storage backend for tournaments."""

from __future__ import annotations

from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Mapping

from sqlalchemy import Boolean, DateTime, Integer, JSON, String, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from . import schema
from .base import (
    MAX_TABLES,
    MIN_TABLES,
    AuditStore,
    LoadResult,
    MatchHistoryStore,
    MatchRecord,
    PlayerRecord,
    PlayerStore,
    SettingsStore,
    TableSlot,
    TableStore,
)


class Base(DeclarativeBase):
    pass


class PlayerTable(Base):
    __tablename__ = "gunslinger_players"

    player_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    wins: Mapped[int] = mapped_column(Integer, default=0)
    losses: Mapped[int] = mapped_column(Integer, default=0)
    matches_played: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(32), index=True)
    last_match_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    registered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class MatchHistoryTable(Base):
    __tablename__ = "gunslinger_match_history"

    match_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    table_number: Mapped[int] = mapped_column(Integer)
    winner_id: Mapped[str] = mapped_column(String(32), index=True)
    winner_name: Mapped[str] = mapped_column(String(255))
    loser_id: Mapped[str] = mapped_column(String(32), index=True)
    loser_name: Mapped[str] = mapped_column(String(255))
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    duration: Mapped[str] = mapped_column(String(16))


class TableSlotTable(Base):
    __tablename__ = "gunslinger_tables"

    table_number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    player1_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    player1_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    player2_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    player2_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    elapsed: Mapped[str | None] = mapped_column(String(16), nullable=True)


class SettingsTable(Base):
    __tablename__ = "gunslinger_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    max_tables: Mapped[int] = mapped_column(Integer)
    maintenance: Mapped[bool] = mapped_column(Boolean, default=False)


class AuditTable(Base):
    __tablename__ = "gunslinger_audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    action: Mapped[str] = mapped_column(String(128))
    payload: Mapped[dict] = mapped_column(JSON)


class AsyncSQLAlchemyStorage:
    """Bundle of async stores backed by SQLAlchemy."""

    def __init__(self, dsn: str, *, echo: bool = False, default_max_tables: int = 10) -> None:
        self._engine = create_async_engine(dsn, echo=echo, future=True)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        self._scope = _SessionScope(self._session_factory)
        self._default_max_tables = default_max_tables

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def init_models(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    def player_store(self) -> "AsyncSQLAlchemyPlayerStore":
        return AsyncSQLAlchemyPlayerStore(self._scope)

    def history_store(self) -> "AsyncSQLAlchemyMatchHistoryStore":
        return AsyncSQLAlchemyMatchHistoryStore(self._scope)

    def table_store(self) -> "AsyncSQLAlchemyTableStore":
        return AsyncSQLAlchemyTableStore(self._scope)

    def settings_store(self) -> "AsyncSQLAlchemySettingsStore":
        return AsyncSQLAlchemySettingsStore(
            self._session_factory, default_max_tables=self._default_max_tables
        )

    def audit_store(self) -> "AsyncSQLAlchemyAuditStore":
        return AsyncSQLAlchemyAuditStore(self._session_factory)


class _SessionScope:
    """Session shared by every ledger write inside one ``transaction()`` block."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.factory = session_factory
        self._active: ContextVar[AsyncSession | None] = ContextVar(
            f"gunslinger_session_{id(self)}", default=None
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._active.get() is not None:
            # nested: the outermost block owns commit and rollback
            yield
            return
        async with self.factory() as session:
            async with session.begin():
                token = self._active.set(session)
                try:
                    yield
                finally:
                    self._active.reset(token)

    @asynccontextmanager
    async def writer(self) -> AsyncIterator[AsyncSession]:
        active = self._active.get()
        if active is not None:
            yield active
            return
        async with self.factory() as session:
            async with session.begin():
                yield session


class _AsyncSQLAlchemyLedger:
    ledger: str
    model: type[Base]
    order_by: tuple[str, ...]

    def __init__(self, scope: _SessionScope) -> None:
        self._scope = scope

    def transaction(self) -> AsyncContextManager[None]:
        return self._scope.transaction()

    async def _load(self, convert: Callable[[Mapping[str, Any]], Any]) -> LoadResult:
        columns = self.model.__table__.columns.keys()
        async with self._scope.factory() as session:
            stmt = select(self.model).order_by(
                *(getattr(self.model, name) for name in self.order_by)
            )
            rows = (await session.execute(stmt)).scalars().all()
            data = [{column: getattr(row, column) for column in columns} for row in rows]
        return schema.load_rows(self.ledger, columns, data, convert)

    async def _append(self, values: dict[str, Any]) -> None:
        async with self._scope.writer() as session:
            session.add(self.model(**values))
            await session.flush()

    async def update_field(self, key: Any, field: str, value: Any) -> None:
        schema.ensure_writable(self.ledger, field)
        key_column = getattr(self.model, schema.KEY_FIELDS[self.ledger])
        async with self._scope.writer() as session:
            stmt = (
                update(self.model)
                .where(key_column == key)
                .values({field: schema.dump_value(value)})
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise KeyError(f"No row with key {key!r} in ledger '{self.ledger}'")


class AsyncSQLAlchemyPlayerStore(_AsyncSQLAlchemyLedger, PlayerStore):
    ledger = schema.PLAYERS
    model = PlayerTable
    order_by = ("player_id",)

    async def load_all(self) -> LoadResult[PlayerRecord]:
        return await self._load(schema.player_from_row)

    async def append(self, record: PlayerRecord) -> None:
        await self._append(schema.player_to_row(record))


class AsyncSQLAlchemyMatchHistoryStore(_AsyncSQLAlchemyLedger, MatchHistoryStore):
    ledger = schema.HISTORY
    model = MatchHistoryTable
    order_by = ("completed_at", "match_id")

    async def load_all(self) -> LoadResult[MatchRecord]:
        return await self._load(schema.match_from_row)

    async def append(self, record: MatchRecord) -> None:
        await self._append(schema.match_to_row(record))


class AsyncSQLAlchemyTableStore(_AsyncSQLAlchemyLedger, TableStore):
    ledger = schema.TABLES
    model = TableSlotTable
    order_by = ("table_number",)

    async def load_all(self) -> LoadResult[TableSlot]:
        return await self._load(schema.table_from_row)

    async def append(self, slot: TableSlot) -> None:
        await self._append(schema.table_to_row(slot))


class AsyncSQLAlchemySettingsStore(SettingsStore):
    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], *, default_max_tables: int = 10
    ) -> None:
        self._session_factory = session_factory
        self._default_max_tables = default_max_tables

    async def _get_or_create(self, session: AsyncSession) -> SettingsTable:
        row = await session.get(SettingsTable, 1)
        if not row:
            row = SettingsTable(id=1, max_tables=self._default_max_tables, maintenance=False)
            session.add(row)
            await session.flush()
        return row

    async def get_max_tables(self) -> int:
        async with self._session_factory() as session:
            row = await self._get_or_create(session)
            await session.commit()
            return row.max_tables

    async def set_max_tables(self, value: int) -> None:
        from ..domain.exceptions import ValidationError

        if isinstance(value, bool) or not isinstance(value, int) or not MIN_TABLES <= value <= MAX_TABLES:
            raise ValidationError(f"Max tables must be between {MIN_TABLES} and {MAX_TABLES}, got {value}")
        async with self._session_factory() as session:
            row = await self._get_or_create(session)
            row.max_tables = value
            await session.commit()

    async def get_maintenance_flag(self) -> bool:
        async with self._session_factory() as session:
            row = await self._get_or_create(session)
            await session.commit()
            return row.maintenance

    async def set_maintenance_flag(self, value: bool) -> None:
        async with self._session_factory() as session:
            row = await self._get_or_create(session)
            row.maintenance = bool(value)
            await session.commit()


class AsyncSQLAlchemyAuditStore(AuditStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add_entry(self, action: str, payload: dict) -> None:
        async with self._session_factory() as session:
            session.add(
                AuditTable(
                    created_at=datetime.now(timezone.utc),
                    action=action,
                    payload=dict(payload),
                )
            )
            await session.commit()
