"""Testing utilities for gunslinger."""

from .factory import MatchFactory, PlayerFactory
from .fixtures import FrozenClock, app_fixture, clock, memory_app, seed_app
from .test_client import TournamentTestClient

__all__ = [
    "MatchFactory",
    "PlayerFactory",
    "FrozenClock",
    "app_fixture",
    "clock",
    "memory_app",
    "seed_app",
    "TournamentTestClient",
]
