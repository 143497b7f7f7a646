"""Administrative operations for tournament operators."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..domain.events import MATCH_CORRECTED, EventBus
from ..domain.ledgers import LedgerStores, load_ledgers
from ..domain.locking import ExecutionContext
from ..domain.transitions import StateTransitionManager, TransitionResult
from ..storage.base import AuditStore
from ..validators import validate_max_tables

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(
        self,
        stores: LedgerStores,
        context: ExecutionContext,
        transitions: StateTransitionManager,
        *,
        audit_store: AuditStore,
        event_bus: EventBus,
        enable_audit: bool = True,
    ) -> None:
        self._stores = stores
        self._context = context
        self._transitions = transitions
        self._audit_store = audit_store
        self._events = event_bus
        self._enable_audit = enable_audit

    async def set_max_tables(self, value: int) -> int:
        """Change table capacity; never below the highest table in use."""
        value = validate_max_tables(value)
        async with self._context.lock.hold("set_max_tables"):
            previous = await self._context.max_tables()
            ledgers = await load_ledgers(self._stores, max_tables=previous)
            ledgers.tables.check_capacity_change(value)
            await self._context.settings.set_max_tables(value)
        logger.info("Max tables changed from %d to %d", previous, value)
        await self._audit("max_tables.set", {"previous": previous, "value": value})
        await self._events.publish("admin.max_tables.changed", {"previous": previous, "value": value})
        return value

    async def enable_maintenance(self) -> None:
        await self._context.maintenance.set()
        logger.info("Maintenance mode enabled; automatic matching is frozen")
        await self._audit("maintenance.enabled", {})
        await self._events.publish("admin.maintenance.changed", {"active": True})

    async def disable_maintenance(self) -> None:
        await self._context.maintenance.clear()
        logger.info("Maintenance mode disabled")
        await self._audit("maintenance.disabled", {})
        await self._events.publish("admin.maintenance.changed", {"active": False})

    async def correct_match(self, match_id: str) -> TransitionResult:
        result = await self._transitions.correct_match_result(match_id)
        if result.success and result.match is not None:
            await self._audit(
                MATCH_CORRECTED,
                {
                    "match_id": match_id,
                    "winner_id": result.match.winner_id,
                    "loser_id": result.match.loser_id,
                },
            )
        return result

    async def _audit(self, action: str, payload: dict) -> None:
        if not self._enable_audit:
            return
        await self._audit_store.add_entry(
            action,
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                **payload,
            },
        )
