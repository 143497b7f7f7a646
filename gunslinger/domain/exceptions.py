"""Exceptions raised by the tournament core."""

from __future__ import annotations

from typing import Sequence


class GunslingerError(RuntimeError):
    """Base class for domain exceptions."""


class StructuralError(GunslingerError):
    """Raised when a ledger is missing required fields."""

    def __init__(self, ledger: str, missing: Sequence[str]) -> None:
        super().__init__(f"Ledger '{ledger}' is missing required fields: {', '.join(missing)}")
        self.ledger = ledger
        self.missing = tuple(missing)


class LockContentionError(GunslingerError):
    """Raised when the exclusion lock cannot be acquired in time."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(
            f"Another operator is busy; retry '{operation}' shortly (waited {timeout:g}s)"
        )
        self.operation = operation
        self.timeout = timeout


class DataConsistencyError(GunslingerError):
    """Raised when an in-progress player has no paired opponent."""

    def __init__(self, player_id: str) -> None:
        super().__init__(f"Player {player_id} is in progress but sits at no table")
        self.player_id = player_id


class ValidationError(GunslingerError, ValueError):
    """Raised for malformed identifiers or out-of-range settings."""


class PlayerNotFound(GunslingerError):
    def __init__(self, player_id: str) -> None:
        super().__init__(f"Player {player_id} not found")
        self.player_id = player_id


class MatchNotFound(GunslingerError):
    def __init__(self, match_id: str) -> None:
        super().__init__(f"Match {match_id} not found")
        self.match_id = match_id


class InvalidTransition(GunslingerError):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(self, player_id: str, current: str, target: str) -> None:
        super().__init__(f"Player {player_id} cannot move from {current} to {target}")
        self.player_id = player_id
        self.current = current
        self.target = target


class TableUnavailable(GunslingerError):
    """Raised when a table cannot be reserved."""
