"""Append-only record of completed matches."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Iterator, Mapping

from .exceptions import MatchNotFound, ValidationError
from .journal import Journal
from ..storage.base import MatchRecord


@dataclass(slots=True, frozen=True)
class Correction:
    """Result of swapping winner and loser on a recorded match."""

    match_id: str
    previous_winner_id: str
    previous_loser_id: str
    record: MatchRecord

    @property
    def new_winner_id(self) -> str:
        return self.previous_loser_id

    @property
    def new_loser_id(self) -> str:
        return self.previous_winner_id


def build_opponents_map(records: Iterable[MatchRecord]) -> dict[str, set[str]]:
    """Symmetric past-opponents relation; self-pairs are ignored."""
    opponents: dict[str, set[str]] = {}
    for record in records:
        first, second = record.winner_id, record.loser_id
        if not first or not second or first == second:
            continue
        opponents.setdefault(first, set()).add(second)
        opponents.setdefault(second, set()).add(first)
    return opponents


def format_match_id(number: int, *, prefix: str = "T", digits: int = 4) -> str:
    return f"{prefix}{number:0{digits}d}"


class MatchHistoryLedger:
    def __init__(self, records: Iterable[MatchRecord] = ()) -> None:
        self._records: list[MatchRecord] = [replace(record) for record in records]
        self._opponents = build_opponents_map(self._records)
        self.journal = Journal()

    def __iter__(self) -> Iterator[MatchRecord]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def opponents_map(self) -> Mapping[str, set[str]]:
        return self._opponents

    def past_opponents(self, player_id: str) -> set[str]:
        return set(self._opponents.get(player_id, ()))

    def have_met(self, first: str, second: str) -> bool:
        return second in self._opponents.get(first, ())

    def next_match_id(self, *, prefix: str = "T", digits: int = 4) -> str:
        highest = 0
        for record in self._records:
            suffix = record.match_id[len(prefix):] if record.match_id.startswith(prefix) else ""
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return format_match_id(highest + 1, prefix=prefix, digits=digits)

    def get(self, match_id: str) -> MatchRecord:
        for record in self._records:
            if record.match_id == match_id:
                return record
        raise MatchNotFound(match_id)

    def append(self, record: MatchRecord) -> MatchRecord:
        if record.winner_id == record.loser_id:
            raise ValidationError(f"Match {record.match_id} pairs {record.winner_id} with itself")
        if any(existing.match_id == record.match_id for existing in self._records):
            raise ValidationError(f"Match {record.match_id} already recorded")
        self._records.append(record)
        self._opponents.setdefault(record.winner_id, set()).add(record.loser_id)
        self._opponents.setdefault(record.loser_id, set()).add(record.winner_id)
        self.journal.append(record.match_id, replace(record))
        return record

    def correct(self, match_id: str) -> Correction:
        """Swap winner and loser of a recorded match.

        The caller owns the compensating statistic adjustments; the returned
        ``Correction`` names who gains and who loses a win.
        """
        record = self.get(match_id)
        previous_winner, previous_loser = record.winner_id, record.loser_id
        previous_winner_name = record.winner_name
        record.winner_id, record.loser_id = previous_loser, previous_winner
        record.winner_name, record.loser_name = record.loser_name, previous_winner_name
        self.journal.update(match_id, "winner_id", record.winner_id)
        self.journal.update(match_id, "winner_name", record.winner_name)
        self.journal.update(match_id, "loser_id", record.loser_id)
        self.journal.update(match_id, "loser_name", record.loser_name)
        return Correction(
            match_id=match_id,
            previous_winner_id=previous_winner,
            previous_loser_id=previous_loser,
            record=replace(record),
        )
