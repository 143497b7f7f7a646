"""Validation utilities for operator input and configured apps."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .domain.exceptions import ValidationError
from .storage.base import MAX_TABLES, MIN_TABLES

if TYPE_CHECKING:
    from .app import TournamentApp


def normalize_player_id(raw: Any, *, prefix: str = "P", digits: int = 3) -> str:
    """Turn operator input such as ``7``, ``"007"`` or ``"p7"`` into ``P007``."""
    return _normalize_id(raw, prefix=prefix, digits=digits, kind="player")


def normalize_match_id(raw: Any, *, prefix: str = "T", digits: int = 4) -> str:
    return _normalize_id(raw, prefix=prefix, digits=digits, kind="match")


def validate_max_tables(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Max tables must be a number, got {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValidationError(f"Max tables must be a number, got {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"Max tables must be a number, got {value!r}")
    if not MIN_TABLES <= value <= MAX_TABLES:
        raise ValidationError(f"Max tables must be between {MIN_TABLES} and {MAX_TABLES}, got {value}")
    return value


def validate_app(app: "TournamentApp") -> list[str]:
    """Return list of validation errors discovered in configured app."""
    errors: list[str] = []
    config = app.config

    if not MIN_TABLES <= config.matching.max_tables <= MAX_TABLES:
        errors.append(
            f"Matching configuration 'max_tables' must be between {MIN_TABLES} and {MAX_TABLES}."
        )
    if config.matching.tie_break not in {"least_recent", "most_recent"}:
        errors.append(f"Unknown tie-break rule '{config.matching.tie_break}'.")
    if config.lock.timeout_seconds <= 0:
        errors.append("Lock configuration 'timeout_seconds' must be positive.")

    ids = config.ids
    for label, prefix, digits in (
        ("player", ids.player_prefix, ids.player_digits),
        ("match", ids.match_prefix, ids.match_digits),
    ):
        if not prefix or not prefix.isalpha():
            errors.append(f"Identifier prefix for {label}s must be letters, got '{prefix}'.")
        if digits <= 0:
            errors.append(f"Identifier width for {label}s must be positive, got '{digits}'.")
    if ids.player_prefix and ids.player_prefix.upper() == ids.match_prefix.upper():
        errors.append("Player and match identifiers must use different prefixes.")

    storage = config.storage
    if storage.backend not in {"memory", "sqlalchemy"}:
        errors.append(f"Unsupported storage backend '{storage.backend}'.")
    if storage.backend == "sqlalchemy" and not storage.resolve_dsn():
        errors.append("SQLAlchemy backend requires a DSN.")

    return errors


def _normalize_id(raw: Any, *, prefix: str, digits: int, kind: str) -> str:
    text = str(raw if raw is not None else "").strip()
    if text[: len(prefix)].upper() == prefix.upper():
        text = text[len(prefix):]
    if not text or not text.isdigit() or not text.isascii():
        raise ValidationError(f"Invalid {kind} id {raw!r}: digits only")
    number = int(text)
    if number <= 0 or number >= 10**digits:
        raise ValidationError(f"Invalid {kind} id {raw!r}: expected 1 to {10**digits - 1}")
    return f"{prefix}{number:0{digits}d}"


__all__ = ["normalize_player_id", "normalize_match_id", "validate_max_tables", "validate_app"]
