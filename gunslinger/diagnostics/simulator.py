"""Tournament simulation helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from random import Random

from faker import Faker

from ..app import TournamentApp
from ..domain.ledgers import load_ledgers
from ..storage.base import PlayerStatus
from .checklist import ChecklistIssue, run_checklist


@dataclass(slots=True)
class SimulationResult:
    players: int
    matches_recorded: int = 0
    rests: int = 0
    drops: int = 0
    peak_tables: int = 0
    deferred_for_capacity: int = 0
    issues: list[ChecklistIssue] = field(default_factory=list)


class TournamentSimulator:
    """Drive random results through the real services and check invariants."""

    def __init__(
        self,
        app: TournamentApp,
        *,
        rng: Random | None = None,
        rest_chance: float = 0.05,
        drop_chance: float = 0.01,
    ) -> None:
        self._app = app
        self._rng = rng or Random()
        self._faker = Faker()
        self._faker.seed_instance(self._rng.random())
        self._rest_chance = rest_chance
        self._drop_chance = drop_chance

    async def simulate(self, *, players: int = 8, steps: int = 50) -> SimulationResult:
        result = SimulationResult(players=players)
        transitions = self._app.transitions
        for _ in range(players):
            registered = await transitions.register_player(self._faker.name())
            self._collect(result, registered.matching)

        for _ in range(steps):
            ledgers = await load_ledgers(
                self._app.stores, max_tables=await self._app.context.max_tables()
            )
            occupied = ledgers.tables.occupied()
            result.peak_tables = max(result.peak_tables, len(occupied))
            resting = [p for p in ledgers.players if p.status is PlayerStatus.RESTING]

            if resting and self._rng.random() < 0.5:
                outcome = await transitions.return_from_rest(self._rng.choice(resting).player_id)
            elif occupied:
                slot = self._rng.choice(occupied)
                player_id = self._rng.choice([slot.player1_id, slot.player2_id])
                roll = self._rng.random()
                if roll < self._drop_chance:
                    outcome = await transitions.drop_player(player_id)
                    result.drops += int(outcome.success)
                elif roll < self._drop_chance + self._rest_chance:
                    outcome = await transitions.rest_player(player_id)
                    result.rests += int(outcome.success)
                else:
                    outcome = await transitions.record_result(player_id)
                    result.matches_recorded += int(outcome.match is not None)
            else:
                outcome = None
                matching = await self._app.matching.run_matching()
                self._collect(result, matching)
                if not matching.committed:
                    break
            if outcome is not None:
                self._collect(result, outcome.matching)

        result.issues = await run_checklist(self._app)
        return result

    @staticmethod
    def _collect(result: SimulationResult, matching) -> None:
        if matching is not None:
            result.deferred_for_capacity += len(matching.skipped_for_capacity)
