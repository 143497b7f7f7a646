"""Load a tournament roster from a JSON definition."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from ..storage.base import MAX_TABLES, MIN_TABLES

if TYPE_CHECKING:
    from ..app import TournamentApp
    from ..domain.transitions import TransitionResult

MAX_NAME_LENGTH = 255


@dataclass(slots=True)
class RosterDefinition:
    names: Sequence[str]
    max_tables: int | None = None


async def load_roster_from_json(app: "TournamentApp", path: str | Path) -> list["TransitionResult"]:
    """Register every player listed in a JSON roster file, in file order."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    definition = parse_roster_dict(data)
    if definition.max_tables is not None:
        await app.admin.set_max_tables(definition.max_tables)
    results = []
    for name in definition.names:
        results.append(await app.transitions.register_player(name))
    return results


def parse_roster_dict(data: dict[str, Any]) -> RosterDefinition:
    """Parse a JSON dict (already decoded) into a roster definition."""
    errors = validate_roster_dict(data)
    if errors:
        raise ValueError(_format_errors("Roster validation failed", errors))
    names = tuple(entry["name"].strip() for entry in data["players"])
    return RosterDefinition(names=names, max_tables=data.get("maxTables"))


def validate_roster_file(path: Path) -> list[str]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return [f"Roster file '{path}' not found."]
    except json.JSONDecodeError as exc:
        return [f"Roster file '{path}' is not valid JSON: {exc.msg} (line {exc.lineno})."]
    return validate_roster_dict(data)


def validate_roster_dict(data: Any) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Roster must be a JSON object."]

    players_raw = data.get("players")
    if not isinstance(players_raw, list) or not players_raw:
        errors.append("Roster must contain non-empty 'players' array.")
    else:
        seen: set[str] = set()
        for idx, entry in enumerate(players_raw, start=1):
            if not isinstance(entry, dict):
                errors.append(f"Player #{idx} must be an object.")
                continue
            name = entry.get("name")
            if not isinstance(name, str) or not name.strip():
                errors.append(f"Player #{idx} must define non-empty 'name'.")
                continue
            if len(name.strip()) > MAX_NAME_LENGTH:
                errors.append(f"Player #{idx} name is longer than {MAX_NAME_LENGTH} characters.")
            key = name.strip().casefold()
            if key in seen:
                errors.append(f"Player name '{name.strip()}' listed multiple times.")
            seen.add(key)

    max_tables = data.get("maxTables")
    if max_tables is not None and (
        isinstance(max_tables, bool)
        or not isinstance(max_tables, int)
        or not MIN_TABLES <= max_tables <= MAX_TABLES
    ):
        errors.append(
            f"Roster 'maxTables' must be an integer between {MIN_TABLES} and {MAX_TABLES}, got '{max_tables}'."
        )
    return errors


def _format_errors(prefix: str, errors: Iterable[str]) -> str:
    formatted = "\n".join(f"- {err}" for err in errors)
    return f"{prefix}:\n{formatted}"
