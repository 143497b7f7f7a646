from random import Random

import pytest

from gunslinger.diagnostics import TournamentSimulator, run_checklist
from gunslinger.storage.base import PlayerStatus, TableSlot
from gunslinger.testing import MatchFactory, PlayerFactory, TournamentTestClient, app_fixture, seed_app


@pytest.mark.asyncio()
async def test_checklist_clean_after_regular_play(memory_app):
    client = TournamentTestClient(memory_app)
    await client.register("Ann", "Bob", "Cid", "Dee")
    await client.win("P001")
    await client.win("P003")

    assert await run_checklist(memory_app) == []


@pytest.mark.asyncio()
async def test_checklist_flags_broken_ledgers(memory_app, clock):
    players = PlayerFactory()
    ann = players.build(wins=1)
    ann.matches_played = 3
    bob = players.build(status=PlayerStatus.IN_PROGRESS)
    cid = players.build(status=PlayerStatus.WAITING)
    matches = MatchFactory()
    await seed_app(
        memory_app,
        players=[ann, bob, cid],
        matches=[matches.build(ann, cid), matches.build(cid, ann)],
        tables=[
            TableSlot(
                table_number=1,
                player1_id=cid.player_id,
                player1_name=cid.name,
                player2_id=ann.player_id,
                player2_name=ann.name,
                started_at=clock.now,
            )
        ],
    )

    messages = {issue.message: issue.severity for issue in await run_checklist(memory_app)}

    assert messages["Player P001 has 3 matches but 1 wins and 0 losses."] == "error"
    assert messages["Player P002 is in progress without a table."] == "error"
    assert messages["Player P003 is waiting but still seated."] == "warning"
    assert messages["Players P001 and P003 met 2 times."] == "warning"


@pytest.mark.asyncio()
async def test_simulator_keeps_invariants():
    app = app_fixture(max_tables=3)
    simulator = TournamentSimulator(app, rng=Random(1))

    result = await simulator.simulate(players=10, steps=60)

    assert result.issues == []
    assert result.matches_recorded > 0
    assert 0 < result.peak_tables <= 3
