"""Player status changes, result recording and corrections."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .events import (
    MATCH_CORRECTED,
    MATCH_RECORDED,
    PLAYER_REGISTERED,
    PLAYER_STATUS_CHANGED,
    EventBus,
)
from .exceptions import (
    DataConsistencyError,
    InvalidTransition,
    MatchNotFound,
    PlayerNotFound,
    TableUnavailable,
    ValidationError,
)
from .history import Correction
from .ledgers import LedgerStores, Ledgers, load_ledgers
from .locking import DeferredMatching, ExecutionContext
from .matching import MatchingEngine, MatchingOutcome
from .tables import format_elapsed
from ..config import IdConfig
from ..storage.base import AuditStore, MatchRecord, PlayerRecord, PlayerStatus

logger = logging.getLogger(__name__)
corrections_logger = logging.getLogger("gunslinger.corrections")

# Business-rule rejections reported as a failed result rather than raised.
_REJECTIONS = (PlayerNotFound, MatchNotFound, InvalidTransition, TableUnavailable, ValidationError)


@dataclass(slots=True)
class TransitionResult:
    success: bool
    message: str
    player_id: str | None = None
    opponent_id: str | None = None
    match: MatchRecord | None = None
    matching: MatchingOutcome | None = None
    rematch_requested: bool = False


class StateTransitionManager:
    """The only entry point that changes a player's status.

    Every operation loads the ledgers under the exclusion lock, applies its
    changes to the working copies and commits them in one flush. When the
    waiting pool ends up with two or more players the operation signals a
    rematch, which runs after the commit while the lock is still held (or is
    handed to ``DeferredMatching`` when the manager defers matching).
    """

    def __init__(
        self,
        stores: LedgerStores,
        context: ExecutionContext,
        engine: MatchingEngine,
        *,
        ids: IdConfig | None = None,
        event_bus: EventBus | None = None,
        audit_store: AuditStore | None = None,
        deferred: DeferredMatching | None = None,
    ) -> None:
        self._stores = stores
        self._context = context
        self._engine = engine
        self._ids = ids or IdConfig()
        self._events = event_bus or EventBus()
        self._audit_store = audit_store
        self._deferred = deferred

    async def update_player_state(
        self,
        target_id: str,
        new_status: PlayerStatus,
        opponent_new_status: PlayerStatus = PlayerStatus.WAITING,
        record_result: bool = False,
        is_target_winner: bool = False,
        *,
        expected_status: PlayerStatus | None = None,
    ) -> TransitionResult:
        async with self._context.lock.hold("update_player_state"):
            ledgers = await self._load()
            try:
                result = self._transition(
                    ledgers,
                    target_id,
                    new_status,
                    opponent_new_status,
                    record_result=record_result,
                    is_target_winner=is_target_winner,
                    expected_status=expected_status,
                )
            except DataConsistencyError as exc:
                logger.warning("update_player_state aborted for %s: %s", target_id, exc)
                return TransitionResult(success=False, message=str(exc), player_id=target_id)
            except _REJECTIONS as exc:
                logger.info("update_player_state rejected for %s: %s", target_id, exc)
                return TransitionResult(success=False, message=str(exc), player_id=target_id)
            if not result.success:
                return result
            await ledgers.commit(self._stores)
            await self._rematch(ledgers, result)

        await self._after_transition(result, new_status, opponent_new_status)
        return result

    async def register_player(self, name: str | None = None) -> TransitionResult:
        async with self._context.lock.hold("register_player"):
            ledgers = await self._load()
            record = ledgers.players.register(
                name,
                now=self._context.now(),
                prefix=self._ids.player_prefix,
                digits=self._ids.player_digits,
            )
            result = TransitionResult(
                success=True,
                message=f"Registered {record.name} as {record.player_id}",
                player_id=record.player_id,
                rematch_requested=ledgers.players.waiting_count() >= 2,
            )
            await ledgers.commit(self._stores)
            await self._rematch(ledgers, result)

        logger.info("Registered player %s (%s)", record.player_id, record.name)
        await self._events.publish(PLAYER_REGISTERED, record)
        if result.matching is not None:
            await self._engine.announce(result.matching)
        return result

    async def record_result(self, winner_id: str) -> TransitionResult:
        """Report that ``winner_id`` won their current match."""
        return await self.update_player_state(
            winner_id,
            PlayerStatus.WAITING,
            PlayerStatus.WAITING,
            record_result=True,
            is_target_winner=True,
        )

    async def rest_player(self, player_id: str) -> TransitionResult:
        return await self.update_player_state(player_id, PlayerStatus.RESTING)

    async def return_from_rest(self, player_id: str) -> TransitionResult:
        return await self.update_player_state(
            player_id, PlayerStatus.WAITING, expected_status=PlayerStatus.RESTING
        )

    async def drop_player(self, player_id: str) -> TransitionResult:
        return await self.update_player_state(player_id, PlayerStatus.DROPPED)

    async def correct_match_result(self, match_id: str) -> TransitionResult:
        """Swap winner and loser of a recorded match and fix both records."""
        async with self._context.lock.hold("correct_match_result"):
            ledgers = await self._load()
            try:
                correction = self._correct(ledgers, match_id)
            except _REJECTIONS as exc:
                logger.info("correct_match_result rejected for %s: %s", match_id, exc)
                return TransitionResult(success=False, message=str(exc))
            await ledgers.commit(self._stores)

        corrections_logger.warning(
            "Match %s corrected: winner %s -> %s, loser %s -> %s",
            match_id,
            correction.previous_winner_id,
            correction.new_winner_id,
            correction.previous_loser_id,
            correction.new_loser_id,
        )
        await self._events.publish(MATCH_CORRECTED, correction)
        return TransitionResult(
            success=True,
            message=f"Match {match_id}: winner is now {correction.record.winner_name}",
            player_id=correction.new_winner_id,
            opponent_id=correction.new_loser_id,
            match=correction.record,
        )

    async def standings(self) -> list[PlayerRecord]:
        """Players ordered by wins, then fewest losses, then id."""
        ledgers = await self._load()
        return sorted(
            ledgers.players,
            key=lambda player: (-player.wins, player.losses, player.player_id),
        )

    async def _load(self) -> Ledgers:
        return await load_ledgers(self._stores, max_tables=await self._context.max_tables())

    def _transition(
        self,
        ledgers: Ledgers,
        target_id: str,
        new_status: PlayerStatus,
        opponent_new_status: PlayerStatus,
        *,
        record_result: bool,
        is_target_winner: bool,
        expected_status: PlayerStatus | None,
    ) -> TransitionResult:
        players, tables = ledgers.players, ledgers.tables
        target = players.get(target_id)
        current = target.status

        if current is PlayerStatus.DROPPED:
            return _rejected(target_id, f"Player {target_id} has already dropped")
        if expected_status is not None and current is not expected_status:
            return _rejected(
                target_id, f"Player {target_id} is {current.value}, not {expected_status.value}"
            )
        if PlayerStatus.IN_PROGRESS in (new_status, opponent_new_status):
            return _rejected(target_id, "Players only enter a match through matching")
        if current is new_status:
            return _rejected(target_id, f"Player {target_id} is already {current.value}")
        if record_result and current is not PlayerStatus.IN_PROGRESS:
            return _rejected(target_id, f"Player {target_id} is not in a match")

        opponent: PlayerRecord | None = None
        match: MatchRecord | None = None
        if current is PlayerStatus.IN_PROGRESS:
            slot = tables.slot_for(target_id)
            opponent_id = slot.opponent_of(target_id) if slot else None
            opponent = players.find(opponent_id) if opponent_id else None
            if slot is None or opponent is None:
                raise DataConsistencyError(target_id)
            if opponent.status is PlayerStatus.DROPPED:
                if opponent_new_status is not PlayerStatus.DROPPED:
                    return _rejected(
                        target_id,
                        f"Opponent {opponent.player_id} has dropped; "
                        "close the match by dropping them explicitly",
                    )
            elif opponent.status is not PlayerStatus.IN_PROGRESS:
                raise DataConsistencyError(opponent.player_id)

            if record_result:
                match = self._record(ledgers, slot.table_number, target, opponent, is_target_winner)
                tables.note_win(match.winner_id, slot.table_number)
            tables.release(slot.table_number)

        players.set_status(target_id, new_status)
        if opponent is not None:
            players.set_status(opponent.player_id, opponent_new_status)

        message = f"Player {target_id} is now {new_status.value}"
        if match is not None:
            message = f"{match.winner_name} beat {match.loser_name} ({match.match_id})"
        return TransitionResult(
            success=True,
            message=message,
            player_id=target_id,
            opponent_id=opponent.player_id if opponent else None,
            match=match,
            rematch_requested=players.waiting_count() >= 2,
        )

    def _record(
        self,
        ledgers: Ledgers,
        table_number: int,
        target: PlayerRecord,
        opponent: PlayerRecord,
        is_target_winner: bool,
    ) -> MatchRecord:
        winner, loser = (target, opponent) if is_target_winner else (opponent, target)
        now = self._context.now()
        slot = ledgers.tables.get(table_number)
        started_at = slot.started_at if slot else None
        record = MatchRecord(
            match_id=ledgers.history.next_match_id(
                prefix=self._ids.match_prefix, digits=self._ids.match_digits
            ),
            table_number=table_number,
            winner_id=winner.player_id,
            winner_name=winner.name,
            loser_id=loser.player_id,
            loser_name=loser.name,
            completed_at=now,
            duration=format_elapsed(now - started_at if started_at else 0),
        )
        ledgers.history.append(record)
        ledgers.players.record_outcome(winner.player_id, won=True, at=now)
        ledgers.players.record_outcome(loser.player_id, won=False, at=now)
        return record

    def _correct(self, ledgers: Ledgers, match_id: str) -> Correction:
        record = ledgers.history.get(match_id)
        # both players must exist before the record is touched
        ledgers.players.get(record.winner_id)
        ledgers.players.get(record.loser_id)
        correction = ledgers.history.correct(match_id)
        ledgers.players.adjust_record(correction.new_loser_id, wins=-1, losses=1)
        ledgers.players.adjust_record(correction.new_winner_id, wins=1, losses=-1)
        return correction

    async def _rematch(self, ledgers: Ledgers, result: TransitionResult) -> None:
        if not result.rematch_requested:
            return
        if self._deferred is not None:
            self._deferred.request()
            return
        result.matching = await self._engine.match(ledgers)
        await ledgers.commit(self._stores)

    async def _after_transition(
        self,
        result: TransitionResult,
        new_status: PlayerStatus,
        opponent_new_status: PlayerStatus,
    ) -> None:
        payload: dict[str, Any] = {
            "player_id": result.player_id,
            "status": new_status.value,
            "opponent_id": result.opponent_id,
            "opponent_status": opponent_new_status.value if result.opponent_id else None,
        }
        logger.info(
            "Player %s -> %s (opponent %s)", result.player_id, new_status.value, result.opponent_id
        )
        await self._events.publish(PLAYER_STATUS_CHANGED, payload)
        if result.match is not None:
            logger.info(
                "Match %s recorded at table %d: %s beat %s in %s",
                result.match.match_id,
                result.match.table_number,
                result.match.winner_id,
                result.match.loser_id,
                result.match.duration,
            )
            if self._audit_store is not None:
                await self._audit_store.add_entry(
                    MATCH_RECORDED,
                    {
                        "match_id": result.match.match_id,
                        "table_number": result.match.table_number,
                        "winner_id": result.match.winner_id,
                        "loser_id": result.match.loser_id,
                        "duration": result.match.duration,
                    },
                )
            await self._events.publish(MATCH_RECORDED, result.match)
        if result.matching is not None:
            await self._engine.announce(result.matching)


def _rejected(player_id: str, message: str) -> TransitionResult:
    logger.info("Transition rejected for %s: %s", player_id, message)
    return TransitionResult(success=False, message=message, player_id=player_id)
