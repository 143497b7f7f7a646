"""Periodic housekeeping driven by an external scheduler."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .domain.ledgers import LedgerStores, load_ledgers
from .domain.locking import MATCHES_SECTION, DeferredMatching, ExecutionContext
from .domain.matching import MatchingEngine, MatchingOutcome

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TickReport:
    elapsed: dict[int, str] = field(default_factory=dict)
    matching: MatchingOutcome | None = None


class TournamentTicker:
    """Refresh table clocks and drain the deferred matching request.

    The core never registers timers itself; whatever owns the event loop
    calls ``tick()`` about once a second.
    """

    def __init__(
        self,
        stores: LedgerStores,
        context: ExecutionContext,
        engine: MatchingEngine,
        deferred: DeferredMatching,
    ) -> None:
        self._stores = stores
        self._context = context
        self._engine = engine
        self._deferred = deferred

    async def refresh_elapsed(self) -> dict[int, str]:
        async with self._context.lock.hold("refresh_elapsed", MATCHES_SECTION):
            ledgers = await load_ledgers(
                self._stores, max_tables=await self._context.max_tables()
            )
            elapsed = ledgers.tables.refresh_elapsed(self._context.now())
            await ledgers.commit(self._stores)
        return elapsed

    async def tick(self) -> TickReport:
        report = TickReport(elapsed=await self.refresh_elapsed())
        report.matching = await self._deferred.drain(self._engine.run_matching)
        if report.matching is not None:
            logger.info("Deferred matching ran: %s", report.matching.summary())
        return report
