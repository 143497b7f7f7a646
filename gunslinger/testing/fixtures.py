"""Pytest fixtures for gunslinger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

import pytest

from ..app import TournamentApp
from ..config import MatchingConfig, TournamentConfig
from ..storage.base import MatchRecord, PlayerRecord, TableSlot


@dataclass(slots=True)
class FrozenClock:
    """Manually advanced clock for deterministic timestamps."""

    now: datetime = field(default_factory=lambda: datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def memory_app(clock: FrozenClock) -> TournamentApp:
    return TournamentApp(TournamentConfig(), clock=clock)


def app_fixture(*, max_tables: int = 10, clock: FrozenClock | None = None, **kwargs) -> TournamentApp:
    """Helper for ad-hoc tests where pytest is not available."""
    config = TournamentConfig(matching=MatchingConfig(max_tables=max_tables), **kwargs)
    return TournamentApp(config, clock=clock or FrozenClock())


async def seed_app(
    app: TournamentApp,
    *,
    players: Iterable[PlayerRecord] = (),
    matches: Iterable[MatchRecord] = (),
    tables: Iterable[TableSlot] = (),
) -> None:
    """Write records straight into the stores, bypassing the services."""
    for player in players:
        await app.player_store.append(player)
    for match in matches:
        await app.history_store.append(match)
    for slot in tables:
        await app.table_store.append(slot)
