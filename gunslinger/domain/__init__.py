"""Domain models and services."""

from .events import EventBus
from .exceptions import (
    DataConsistencyError,
    GunslingerError,
    InvalidTransition,
    LockContentionError,
    MatchNotFound,
    PlayerNotFound,
    StructuralError,
    TableUnavailable,
    ValidationError,
)
from .history import Correction, MatchHistoryLedger
from .ledgers import LedgerStores, Ledgers, load_ledgers
from .locking import DeferredMatching, ExclusionLock, ExecutionContext, MaintenanceFlag
from .matching import MatchingEngine, MatchingOutcome, Pairing
from .players import PlayerRegistry, TieBreak
from .tables import TableLedger
from .transitions import StateTransitionManager, TransitionResult

__all__ = [
    "EventBus",
    "DataConsistencyError",
    "GunslingerError",
    "InvalidTransition",
    "LockContentionError",
    "MatchNotFound",
    "PlayerNotFound",
    "StructuralError",
    "TableUnavailable",
    "ValidationError",
    "Correction",
    "MatchHistoryLedger",
    "LedgerStores",
    "Ledgers",
    "load_ledgers",
    "DeferredMatching",
    "ExclusionLock",
    "ExecutionContext",
    "MaintenanceFlag",
    "MatchingEngine",
    "MatchingOutcome",
    "Pairing",
    "PlayerRegistry",
    "TieBreak",
    "TableLedger",
    "StateTransitionManager",
    "TransitionResult",
]
