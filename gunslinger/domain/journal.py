"""Buffered ledger writes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Literal


@dataclass(slots=True, frozen=True)
class LedgerChange:
    kind: Literal["append", "update"]
    key: Any
    field: str | None = None
    value: Any = None
    record: Any = None


class Journal:
    """Ordered list of pending writes for one ledger."""

    def __init__(self) -> None:
        self._changes: list[LedgerChange] = []

    def append(self, key: Any, record: Any) -> None:
        self._changes.append(LedgerChange(kind="append", key=key, record=record))

    def update(self, key: Any, field: str, value: Any) -> None:
        self._changes.append(LedgerChange(kind="update", key=key, field=field, value=value))

    def __iter__(self) -> Iterator[LedgerChange]:
        return iter(tuple(self._changes))

    def __len__(self) -> int:
        return len(self._changes)

    def clear(self) -> None:
        self._changes.clear()
