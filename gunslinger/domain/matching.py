"""Pairing of waiting players onto free tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from .events import MATCHING_COMMITTED, EventBus
from .ledgers import LedgerStores, Ledgers, load_ledgers
from .locking import ExecutionContext
from .players import TieBreak
from .tables import TableLedger
from ..storage.base import PlayerRecord, PlayerStatus

logger = logging.getLogger(__name__)

INSUFFICIENT_POOL = "insufficient_pool"
MAINTENANCE = "maintenance"
NO_ELIGIBLE_PAIRS = "no_eligible_pairs"


@dataclass(slots=True, frozen=True)
class Pairing:
    player1_id: str
    player1_name: str
    player2_id: str
    player2_name: str
    table_number: int | None = None

    @property
    def player_ids(self) -> tuple[str, str]:
        return self.player1_id, self.player2_id


@dataclass(slots=True)
class MatchingOutcome:
    committed: list[Pairing] = field(default_factory=list)
    skipped_for_rematch: list[str] = field(default_factory=list)
    skipped_for_capacity: list[Pairing] = field(default_factory=list)
    unpaired: list[str] = field(default_factory=list)
    reason: str | None = None

    @property
    def ran(self) -> bool:
        return self.reason not in (INSUFFICIENT_POOL, MAINTENANCE)

    def summary(self) -> str:
        if self.reason == MAINTENANCE:
            return "Matching suspended: maintenance mode is on"
        if self.reason == INSUFFICIENT_POOL:
            return "Not enough waiting players to pair"
        parts = [f"{len(self.committed)} match(es) started"]
        if self.skipped_for_rematch:
            parts.append(f"{len(self.skipped_for_rematch)} without an eligible opponent")
        if self.skipped_for_capacity:
            parts.append(f"{len(self.skipped_for_capacity)} pair(s) waiting for a table")
        return ", ".join(parts)


def find_pairs(
    waiting: Sequence[PlayerRecord],
    opponents: Mapping[str, set[str]],
) -> tuple[list[tuple[PlayerRecord, PlayerRecord]], list[str], list[str]]:
    """Greedy rematch-avoiding pairing over an already sorted pool.

    Returns the pairs in formation order, the players set aside because no
    remaining player was a new opponent, and the leftover that never got a
    turn (at most one player).
    """
    pool = list(waiting)
    pairs: list[tuple[PlayerRecord, PlayerRecord]] = []
    skipped: list[str] = []
    while len(pool) >= 2:
        first = pool.pop(0)
        blocked = opponents.get(first.player_id, set())
        for index, candidate in enumerate(pool):
            if candidate.player_id != first.player_id and candidate.player_id not in blocked:
                pairs.append((first, pool.pop(index)))
                break
        else:
            skipped.append(first.player_id)
    return pairs, skipped, [player.player_id for player in pool]


def choose_table(tables: TableLedger, first: PlayerRecord, second: PlayerRecord) -> int | None:
    """Reuse a player's last table when free, else the lowest free or new one."""
    for player in (first, second):
        preferred = tables.last_used_table_for(player.player_id)
        if tables.is_available(preferred):
            return preferred
    free = tables.find_free()
    if free is not None:
        return free
    return tables.next_unused_number()


class MatchingEngine:
    def __init__(
        self,
        stores: LedgerStores,
        context: ExecutionContext,
        *,
        tie_break: TieBreak = TieBreak.LEAST_RECENT,
        event_bus: EventBus | None = None,
    ) -> None:
        self._stores = stores
        self._context = context
        self.tie_break = tie_break
        self._events = event_bus or EventBus()

    async def run_matching(self) -> MatchingOutcome:
        """Take the lock, pair the waiting pool and commit the result."""
        async with self._context.lock.hold("run_matching"):
            ledgers = await load_ledgers(
                self._stores, max_tables=await self._context.max_tables()
            )
            outcome = await self.match(ledgers)
            await ledgers.commit(self._stores)
        await self.announce(outcome)
        return outcome

    async def match(self, ledgers: Ledgers) -> MatchingOutcome:
        """Pair players on already loaded ledgers. The caller holds the lock."""
        if await self._context.maintenance_active():
            logger.info("Matching skipped: maintenance mode is active")
            return MatchingOutcome(reason=MAINTENANCE)

        waiting = ledgers.players.waiting(self.tie_break)
        if len(waiting) < 2:
            logger.info("Matching skipped: %d waiting player(s)", len(waiting))
            return MatchingOutcome(
                unpaired=[player.player_id for player in waiting], reason=INSUFFICIENT_POOL
            )

        pairs, skipped, leftover = find_pairs(waiting, ledgers.history.opponents_map())
        outcome = MatchingOutcome(skipped_for_rematch=skipped, unpaired=leftover)
        tables = ledgers.tables
        started_at = self._context.now()

        for first, second in pairs:
            table_number = None
            if tables.remaining_capacity() > 0:
                table_number = choose_table(tables, first, second)
            if table_number is None:
                outcome.skipped_for_capacity.append(_pairing(first, second))
                continue
            tables.reserve(table_number, first, second, started_at=started_at)
            ledgers.players.set_status(first.player_id, PlayerStatus.IN_PROGRESS)
            ledgers.players.set_status(second.player_id, PlayerStatus.IN_PROGRESS)
            outcome.committed.append(_pairing(first, second, table_number))

        if not pairs:
            outcome.reason = NO_ELIGIBLE_PAIRS
        self._log(outcome, tables.max_tables)
        return outcome

    async def announce(self, outcome: MatchingOutcome) -> None:
        if outcome.committed:
            await self._events.publish(MATCHING_COMMITTED, outcome)

    def _log(self, outcome: MatchingOutcome, max_tables: int) -> None:
        for pairing in outcome.committed:
            logger.info(
                "Table %s: %s vs %s",
                pairing.table_number,
                pairing.player1_id,
                pairing.player2_id,
            )
        if outcome.skipped_for_rematch:
            logger.warning(
                "No eligible opponent for %s", ", ".join(outcome.skipped_for_rematch)
            )
        if outcome.skipped_for_capacity:
            logger.warning(
                "%d pair(s) deferred: all %d tables in use",
                len(outcome.skipped_for_capacity),
                max_tables,
            )


def _pairing(first: PlayerRecord, second: PlayerRecord, table_number: int | None = None) -> Pairing:
    return Pairing(
        player1_id=first.player_id,
        player1_name=first.name,
        player2_id=second.player_id,
        player2_name=second.name,
        table_number=table_number,
    )
