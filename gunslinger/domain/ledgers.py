"""Unit of work over the three tournament ledgers."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Iterator

from .exceptions import StructuralError
from .history import MatchHistoryLedger
from .journal import Journal
from .players import PlayerRegistry
from .tables import TableLedger, last_won_tables
from ..storage.base import MatchHistoryStore, PlayerStore, TableStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LedgerStores:
    players: PlayerStore
    history: MatchHistoryStore
    tables: TableStore

    def __iter__(self) -> Iterator[Any]:
        return iter((self.players, self.history, self.tables))


@dataclass(slots=True)
class Ledgers:
    """Working copies loaded under the lock; nothing is stored until commit."""

    players: PlayerRegistry
    history: MatchHistoryLedger
    tables: TableLedger

    @property
    def dirty(self) -> bool:
        return bool(
            len(self.players.journal) or len(self.history.journal) or len(self.tables.journal)
        )

    async def commit(self, stores: LedgerStores) -> None:
        """Write every journal in one transaction; on failure no store keeps a partial write."""
        try:
            async with AsyncExitStack() as stack:
                for store in stores:
                    await stack.enter_async_context(store.transaction())
                await _flush(self.players.journal, stores.players)
                await _flush(self.history.journal, stores.history)
                await _flush(self.tables.journal, stores.tables)
        except Exception:
            logger.error("Ledger commit failed; pending writes were rolled back")
            raise
        self.discard()

    def discard(self) -> None:
        self.players.journal.clear()
        self.history.journal.clear()
        self.tables.journal.clear()


async def load_ledgers(stores: LedgerStores, *, max_tables: int) -> Ledgers:
    """Read and validate every ledger, raising ``StructuralError`` on bad schema."""
    try:
        players = (await stores.players.load_all()).unwrap()
        history = (await stores.history.load_all()).unwrap()
        tables = (await stores.tables.load_all()).unwrap()
    except StructuralError as exc:
        logger.error("Ledger %s failed to load: missing %s", exc.ledger, ", ".join(exc.missing))
        raise
    return Ledgers(
        players=PlayerRegistry(players),
        history=MatchHistoryLedger(history),
        tables=TableLedger(tables, max_tables=max_tables, last_used=last_won_tables(history)),
    )


async def _flush(journal: Journal, store: Any) -> None:
    for change in journal:
        if change.kind == "append":
            await store.append(change.record)
        else:
            await store.update_field(change.key, change.field, change.value)
