"""Player roster and lifecycle state."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Iterator

from .exceptions import InvalidTransition, PlayerNotFound
from .journal import Journal
from ..storage.base import PlayerRecord, PlayerStatus

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Moves the state machine accepts. Waiting -> InProgress is reserved for the
# matching engine; everything else goes through the transition manager.
ALLOWED_TRANSITIONS: dict[PlayerStatus, frozenset[PlayerStatus]] = {
    PlayerStatus.WAITING: frozenset(
        {PlayerStatus.IN_PROGRESS, PlayerStatus.RESTING, PlayerStatus.DROPPED}
    ),
    PlayerStatus.IN_PROGRESS: frozenset(
        {PlayerStatus.WAITING, PlayerStatus.RESTING, PlayerStatus.DROPPED}
    ),
    PlayerStatus.RESTING: frozenset({PlayerStatus.WAITING, PlayerStatus.DROPPED}),
    PlayerStatus.DROPPED: frozenset(),
}


class TieBreak(str, Enum):
    """Order of players with equal wins in the waiting pool."""

    LEAST_RECENT = "least_recent"
    MOST_RECENT = "most_recent"


def can_transition(current: PlayerStatus, target: PlayerStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def waiting_sort_key(record: PlayerRecord, tie_break: TieBreak) -> tuple:
    last = (record.last_match_at or _EPOCH).timestamp()
    if tie_break is TieBreak.MOST_RECENT:
        last = -last
    return (-record.wins, last, record.player_id)


def sort_waiting(players: Iterable[PlayerRecord], tie_break: TieBreak) -> list[PlayerRecord]:
    """Wins descending, then last match time per ``tie_break``, then id."""
    waiting = [player for player in players if player.status is PlayerStatus.WAITING]
    return sorted(waiting, key=lambda player: waiting_sort_key(player, tie_break))


def format_player_id(number: int, *, prefix: str = "P", digits: int = 3) -> str:
    return f"{prefix}{number:0{digits}d}"


class PlayerRegistry:
    """Working copy of the roster; every mutation is journaled until commit."""

    def __init__(self, records: Iterable[PlayerRecord] = ()) -> None:
        self._players: dict[str, PlayerRecord] = {}
        for record in records:
            self._players[record.player_id] = replace(record)
        self.journal = Journal()

    def __contains__(self, player_id: str) -> bool:
        return player_id in self._players

    def __iter__(self) -> Iterator[PlayerRecord]:
        return iter(list(self._players.values()))

    def __len__(self) -> int:
        return len(self._players)

    def get(self, player_id: str) -> PlayerRecord:
        try:
            return self._players[player_id]
        except KeyError as exc:
            raise PlayerNotFound(player_id) from exc

    def find(self, player_id: str) -> PlayerRecord | None:
        return self._players.get(player_id)

    def name_of(self, player_id: str) -> str:
        record = self._players.get(player_id)
        return record.name if record else player_id

    def waiting(self, tie_break: TieBreak = TieBreak.LEAST_RECENT) -> list[PlayerRecord]:
        return sort_waiting(self._players.values(), tie_break)

    def waiting_count(self) -> int:
        return sum(1 for player in self._players.values() if player.status is PlayerStatus.WAITING)

    def next_player_id(self, *, prefix: str = "P", digits: int = 3) -> str:
        highest = 0
        for player_id in self._players:
            if not player_id.startswith(prefix):
                continue
            suffix = player_id[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return format_player_id(highest + 1, prefix=prefix, digits=digits)

    def register(
        self,
        name: str | None,
        *,
        now: datetime,
        prefix: str = "P",
        digits: int = 3,
    ) -> PlayerRecord:
        player_id = self.next_player_id(prefix=prefix, digits=digits)
        display_name = (name or "").strip()
        if not display_name:
            display_name = f"Player {player_id[len(prefix):]}"
        record = PlayerRecord(
            player_id=player_id,
            name=display_name,
            status=PlayerStatus.WAITING,
            registered_at=now,
        )
        self._players[player_id] = record
        self.journal.append(player_id, replace(record))
        return record

    def set_status(self, player_id: str, status: PlayerStatus) -> PlayerRecord:
        record = self.get(player_id)
        if record.status is status:
            return record
        if not can_transition(record.status, status):
            raise InvalidTransition(player_id, record.status.value, status.value)
        record.status = status
        self.journal.update(player_id, "status", status)
        return record

    def record_outcome(self, player_id: str, *, won: bool, at: datetime) -> PlayerRecord:
        record = self.get(player_id)
        if won:
            record.wins += 1
            self.journal.update(player_id, "wins", record.wins)
        else:
            record.losses += 1
            self.journal.update(player_id, "losses", record.losses)
        record.matches_played += 1
        record.last_match_at = at
        self.journal.update(player_id, "matches_played", record.matches_played)
        self.journal.update(player_id, "last_match_at", at)
        return record

    def adjust_record(self, player_id: str, *, wins: int = 0, losses: int = 0) -> PlayerRecord:
        """Shift win/loss counters, flooring each at zero."""
        record = self.get(player_id)
        if wins:
            record.wins = max(0, record.wins + wins)
            self.journal.update(player_id, "wins", record.wins)
        if losses:
            record.losses = max(0, record.losses + losses)
            self.journal.update(player_id, "losses", record.losses)
        return record
