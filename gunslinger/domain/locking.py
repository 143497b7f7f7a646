"""Exclusion lock, maintenance flag and the execution context."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from .exceptions import LockContentionError
from ..storage.base import SettingsStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

PLAYERS_SECTION = "players"
MATCHES_SECTION = "matches"
# Global acquisition order. Sections are always taken left to right.
SECTION_ORDER: tuple[str, ...] = (PLAYERS_SECTION, MATCHES_SECTION)

DEFAULT_LOCK_TIMEOUT = 30.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExclusionLock:
    """Single mutual-exclusion domain split into ordered sections.

    ``hold("op")`` takes every section. Passing explicit sections takes only
    those, still in global order, so two callers can never wait on each other
    in opposite directions. The wait is bounded by ``timeout`` seconds over
    the whole acquisition; running out raises ``LockContentionError``.
    """

    def __init__(self, *, timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        if timeout <= 0:
            raise ValueError("Lock timeout must be positive")
        self.timeout = timeout
        self._sections = {name: asyncio.Lock() for name in SECTION_ORDER}

    def locked(self, section: str | None = None) -> bool:
        if section is not None:
            return self._sections[section].locked()
        return any(lock.locked() for lock in self._sections.values())

    @asynccontextmanager
    async def hold(self, operation: str, *sections: str) -> AsyncIterator[None]:
        wanted = set(sections or SECTION_ORDER)
        unknown = wanted.difference(SECTION_ORDER)
        if unknown:
            raise ValueError(f"Unknown lock section(s): {', '.join(sorted(unknown))}")
        ordered = [name for name in SECTION_ORDER if name in wanted]

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        acquired: list[asyncio.Lock] = []
        try:
            for name in ordered:
                lock = self._sections[name]
                remaining = max(0.0, deadline - loop.time())
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=remaining)
                except asyncio.TimeoutError:
                    logger.warning(
                        "Lock contention on section %s during %s after %.1fs",
                        name,
                        operation,
                        self.timeout,
                    )
                    raise LockContentionError(operation, self.timeout) from None
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


class MaintenanceFlag:
    """Process-wide switch that freezes automatic pairing."""

    def __init__(self, settings: SettingsStore) -> None:
        self._settings = settings

    async def is_set(self) -> bool:
        return await self._settings.get_maintenance_flag()

    async def set(self) -> None:
        await self._settings.set_maintenance_flag(True)

    async def clear(self) -> None:
        await self._settings.set_maintenance_flag(False)


@dataclass(slots=True)
class ExecutionContext:
    """Everything a core operation needs besides the ledgers themselves."""

    settings: SettingsStore
    lock: ExclusionLock = field(default_factory=ExclusionLock)
    clock: Callable[[], datetime] = utcnow
    maintenance: MaintenanceFlag = field(init=False)

    def __post_init__(self) -> None:
        self.maintenance = MaintenanceFlag(self.settings)

    def now(self) -> datetime:
        return self.clock()

    async def max_tables(self) -> int:
        return await self.settings.get_max_tables()

    async def maintenance_active(self) -> bool:
        return await self.maintenance.is_set()


class DeferredMatching:
    """At-most-one pending matching request, drained by the scheduler."""

    def __init__(self) -> None:
        self._pending = False
        self._requests = 0

    @property
    def pending(self) -> bool:
        return self._pending

    def request(self) -> bool:
        """Mark a run as pending. Returns ``False`` when one already was."""
        self._requests += 1
        if self._pending:
            logger.debug("Deferred matching already pending; request coalesced")
            return False
        self._pending = True
        return True

    async def drain(self, run: Callable[[], Awaitable[T]]) -> T | None:
        """Run once if a request is pending.

        The request stays pending when ``run`` raises, and also when another
        request arrived while it was running.
        """
        if not self._pending:
            return None
        seen = self._requests
        result = await run()
        if self._requests == seen:
            self._pending = False
        return result
