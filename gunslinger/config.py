"""Configuration models for gunslinger tournaments."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal

from .storage.base import MAX_TABLES, MIN_TABLES

StorageBackend = Literal["memory", "sqlalchemy"]
TieBreakRule = Literal["least_recent", "most_recent"]

_TRUTHY = {"1", "true", "yes"}


@dataclass(slots=True)
class StorageConfig:
    """Configure where the roster, history and tables are persisted."""

    backend: StorageBackend = "memory"
    dsn: str | None = None
    echo_sql: bool = False

    def resolve_dsn(self) -> str | None:
        if self.dsn:
            return self.dsn
        if self.backend == "sqlalchemy":
            return "sqlite+aiosqlite:///./gunslinger.db"
        return None


@dataclass(slots=True)
class MatchingConfig:
    """Pairing defaults."""

    max_tables: int = 10
    tie_break: TieBreakRule = "least_recent"
    defer_rematch: bool = False


@dataclass(slots=True)
class LockConfig:
    timeout_seconds: float = 30.0


@dataclass(slots=True)
class IdConfig:
    """Shape of generated player and match identifiers."""

    player_prefix: str = "P"
    player_digits: int = 3
    match_prefix: str = "T"
    match_digits: int = 4


@dataclass(slots=True)
class AdminConfig:
    """Feature switches for admin tooling."""

    enable_audit_logs: bool = True


@dataclass(slots=True)
class TournamentConfig:
    """Top-level configuration container."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    ids: IdConfig = field(default_factory=IdConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)

    @classmethod
    def from_env(cls) -> "TournamentConfig":
        """Create config from environment variables prefixed with GUNSLINGER_."""
        prefix = "GUNSLINGER_"
        storage_backend = os.getenv(f"{prefix}STORAGE_BACKEND", "memory")
        if storage_backend not in {"memory", "sqlalchemy"}:
            raise ValueError(f"Unsupported {prefix}STORAGE_BACKEND '{storage_backend}'")
        dsn = os.getenv(f"{prefix}STORAGE_DSN") or None
        echo_sql = os.getenv(f"{prefix}STORAGE_ECHO_SQL", "false").lower() in _TRUTHY

        matching = MatchingConfig(
            max_tables=_parse_max_tables(os.getenv(f"{prefix}MAX_TABLES", "10")),
            tie_break=_parse_tie_break(os.getenv(f"{prefix}TIE_BREAK", "least_recent")),
            defer_rematch=os.getenv(f"{prefix}DEFER_REMATCH", "false").lower() in _TRUTHY,
        )

        timeout = float(os.getenv(f"{prefix}LOCK_TIMEOUT", "30"))
        if timeout <= 0:
            raise ValueError(f"{prefix}LOCK_TIMEOUT must be positive")

        ids = IdConfig(
            player_prefix=os.getenv(f"{prefix}PLAYER_ID_PREFIX", "P"),
            player_digits=int(os.getenv(f"{prefix}PLAYER_ID_DIGITS", "3")),
            match_prefix=os.getenv(f"{prefix}MATCH_ID_PREFIX", "T"),
            match_digits=int(os.getenv(f"{prefix}MATCH_ID_DIGITS", "4")),
        )

        return cls(
            storage=StorageConfig(backend=storage_backend, dsn=dsn, echo_sql=echo_sql),
            matching=matching,
            lock=LockConfig(timeout_seconds=timeout),
            ids=ids,
            admin=AdminConfig(
                enable_audit_logs=os.getenv(f"{prefix}ADMIN_ENABLE_AUDIT_LOGS", "true").lower()
                in _TRUTHY
            ),
        )


def _parse_max_tables(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError("GUNSLINGER_MAX_TABLES must be an integer") from exc
    if not MIN_TABLES <= value <= MAX_TABLES:
        raise ValueError(f"GUNSLINGER_MAX_TABLES must be between {MIN_TABLES} and {MAX_TABLES}")
    return value


def _parse_tie_break(raw: str) -> TieBreakRule:
    value = raw.strip().lower()
    if value not in {"least_recent", "most_recent"}:
        raise ValueError("GUNSLINGER_TIE_BREAK must be least_recent or most_recent")
    return value  # type: ignore[return-value]
