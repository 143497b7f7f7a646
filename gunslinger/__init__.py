"""Gunslinger tournament core public API."""

from .app import TournamentApp
from .config import TournamentConfig
from .domain.players import TieBreak
from .storage.base import PlayerStatus

__all__ = [
    "TournamentApp",
    "TournamentConfig",
    "TieBreak",
    "PlayerStatus",
]
