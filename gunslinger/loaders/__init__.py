"""Loaders for declarative tournament setup."""

from .json_loader import (
    load_roster_from_json,
    parse_roster_dict,
    validate_roster_dict,
    validate_roster_file,
)

__all__ = [
    "load_roster_from_json",
    "parse_roster_dict",
    "validate_roster_dict",
    "validate_roster_file",
]
