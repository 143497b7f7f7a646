from datetime import datetime, timedelta, timezone

import pytest

from gunslinger.domain.ledgers import load_ledgers
from gunslinger.domain.matching import INSUFFICIENT_POOL, MAINTENANCE, NO_ELIGIBLE_PAIRS, find_pairs
from gunslinger.domain.players import TieBreak, sort_waiting
from gunslinger.storage.base import PlayerStatus, TableSlot
from gunslinger.testing import MatchFactory, PlayerFactory, app_fixture, seed_app


async def _ledgers(app):
    return await load_ledgers(app.stores, max_tables=await app.context.max_tables())


@pytest.mark.asyncio()
async def test_eight_waiting_players_form_four_disjoint_pairs(memory_app):
    await seed_app(memory_app, players=PlayerFactory().batch(8))

    outcome = await memory_app.matching.run_matching()

    assert len(outcome.committed) == 4
    seated = [player_id for pairing in outcome.committed for player_id in pairing.player_ids]
    assert len(set(seated)) == 8
    assert outcome.skipped_for_rematch == []
    assert outcome.skipped_for_capacity == []
    assert sorted(pairing.table_number for pairing in outcome.committed) == [1, 2, 3, 4]

    ledgers = await _ledgers(memory_app)
    assert all(player.status is PlayerStatus.IN_PROGRESS for player in ledgers.players)
    assert len(ledgers.tables.occupied()) == 4


@pytest.mark.asyncio()
async def test_two_players_who_already_met_stay_waiting(memory_app):
    first, second = PlayerFactory().batch(2)
    await seed_app(memory_app, players=[first, second], matches=[MatchFactory().build(first, second)])

    outcome = await memory_app.matching.run_matching()

    assert outcome.committed == []
    assert outcome.skipped_for_rematch == [first.player_id]
    assert outcome.unpaired == [second.player_id]
    assert outcome.reason == NO_ELIGIBLE_PAIRS
    ledgers = await _ledgers(memory_app)
    assert {player.status for player in ledgers.players} == {PlayerStatus.WAITING}
    assert ledgers.tables.occupied() == []


@pytest.mark.asyncio()
async def test_pairs_beyond_capacity_are_deferred_in_formation_order():
    app = app_fixture(max_tables=2)
    await seed_app(app, players=PlayerFactory().batch(6))

    outcome = await app.matching.run_matching()

    assert [pairing.player_ids for pairing in outcome.committed] == [("P001", "P002"), ("P003", "P004")]
    assert [pairing.player_ids for pairing in outcome.skipped_for_capacity] == [("P005", "P006")]
    ledgers = await _ledgers(app)
    assert ledgers.players.get("P005").status is PlayerStatus.WAITING
    assert ledgers.players.get("P006").status is PlayerStatus.WAITING
    assert ledgers.tables.occupied_count() == 2


@pytest.mark.asyncio()
async def test_already_occupied_tables_count_against_capacity():
    app = app_fixture(max_tables=2)
    factory = PlayerFactory()
    busy = list(factory.batch(2, status=PlayerStatus.IN_PROGRESS))
    waiting = list(factory.batch(4))
    slot = TableSlot(
        table_number=1,
        player1_id=busy[0].player_id,
        player1_name=busy[0].name,
        player2_id=busy[1].player_id,
        player2_name=busy[1].name,
        started_at=datetime.now(timezone.utc),
    )
    await seed_app(app, players=busy + waiting, tables=[slot])

    outcome = await app.matching.run_matching()

    assert len(outcome.committed) == 1
    assert outcome.committed[0].table_number == 2
    assert len(outcome.skipped_for_capacity) == 1


@pytest.mark.asyncio()
async def test_matching_never_repeats_a_pairing(memory_app):
    factory = PlayerFactory()
    players = list(factory.batch(4))
    await seed_app(memory_app, players=players, matches=[MatchFactory().build(players[0], players[1])])

    outcome = await memory_app.matching.run_matching()

    assert [pairing.player_ids for pairing in outcome.committed] == [("P001", "P003"), ("P002", "P004")]


@pytest.mark.asyncio()
async def test_single_waiting_player_is_a_quiet_no_op(memory_app, caplog):
    await seed_app(memory_app, players=PlayerFactory().batch(1))

    with caplog.at_level("INFO", logger="gunslinger"):
        outcome = await memory_app.matching.run_matching()

    assert outcome.reason == INSUFFICIENT_POOL
    assert not outcome.ran
    assert "waiting player" in caplog.text


@pytest.mark.asyncio()
async def test_maintenance_mode_suppresses_matching(memory_app):
    await seed_app(memory_app, players=PlayerFactory().batch(4))
    await memory_app.admin.enable_maintenance()

    outcome = await memory_app.matching.run_matching()

    assert outcome.reason == MAINTENANCE
    ledgers = await _ledgers(memory_app)
    assert ledgers.tables.occupied() == []

    await memory_app.admin.disable_maintenance()
    outcome = await memory_app.matching.run_matching()
    assert len(outcome.committed) == 2


@pytest.mark.asyncio()
async def test_winner_returns_to_last_table_when_free(memory_app):
    factory = PlayerFactory()
    first, second, retired = factory.batch(3)
    retired.status = PlayerStatus.DROPPED
    history = [MatchFactory().build(first, retired, table_number=3)]
    await seed_app(memory_app, players=[first, second, retired], matches=history)

    outcome = await memory_app.matching.run_matching()

    assert outcome.committed[0].table_number == 3


@pytest.mark.asyncio()
async def test_last_table_outside_capacity_is_not_reused():
    app = app_fixture(max_tables=5)
    factory = PlayerFactory()
    first, second, retired = factory.batch(3)
    retired.status = PlayerStatus.DROPPED
    history = [MatchFactory().build(first, retired, table_number=7)]
    await seed_app(app, players=[first, second, retired], matches=history)

    outcome = await app.matching.run_matching()

    assert outcome.committed[0].table_number == 1


def test_sort_waiting_least_recent_puts_never_played_first():
    factory = PlayerFactory()
    base = datetime(2024, 1, 1, 10, tzinfo=timezone.utc)
    players = [
        factory.build("P001", last_match_at=base),
        factory.build("P002", last_match_at=base + timedelta(hours=1)),
        factory.build("P003"),
        factory.build("P004", last_match_at=base - timedelta(hours=1)),
        factory.build("P005", wins=2, losses=0, last_match_at=base + timedelta(hours=2)),
    ]

    ordered = [player.player_id for player in sort_waiting(players, TieBreak.LEAST_RECENT)]

    assert ordered == ["P005", "P003", "P004", "P001", "P002"]


def test_sort_waiting_most_recent_puts_latest_finisher_first():
    factory = PlayerFactory()
    base = datetime(2024, 1, 1, 10, tzinfo=timezone.utc)
    players = [
        factory.build("P001", last_match_at=base),
        factory.build("P002", last_match_at=base + timedelta(hours=1)),
        factory.build("P003"),
        factory.build("P004", last_match_at=base - timedelta(hours=1)),
    ]

    ordered = [player.player_id for player in sort_waiting(players, TieBreak.MOST_RECENT)]

    assert ordered == ["P002", "P001", "P004", "P003"]


def test_sort_waiting_ignores_other_statuses():
    factory = PlayerFactory()
    players = [factory.build(), factory.build(status=PlayerStatus.RESTING)]
    assert [player.player_id for player in sort_waiting(players, TieBreak.LEAST_RECENT)] == ["P001"]


def test_find_pairs_sets_aside_player_with_no_new_opponent():
    factory = PlayerFactory()
    players = list(factory.batch(3))
    opponents = {"P001": {"P002", "P003"}, "P002": {"P001"}, "P003": {"P001"}}

    pairs, skipped, leftover = find_pairs(players, opponents)

    assert [(a.player_id, b.player_id) for a, b in pairs] == [("P002", "P003")]
    assert skipped == ["P001"]
    assert leftover == []


@pytest.mark.asyncio()
async def test_most_recent_tie_break_changes_who_is_seated_first():
    base = datetime(2024, 1, 1, 10, tzinfo=timezone.utc)
    factory = PlayerFactory()
    players = [
        factory.build(last_match_at=base),
        factory.build(last_match_at=base + timedelta(minutes=5)),
        factory.build(last_match_at=base + timedelta(minutes=10)),
        factory.build(last_match_at=base + timedelta(minutes=15)),
    ]
    least = app_fixture()
    most = app_fixture()
    most.matching.tie_break = TieBreak.MOST_RECENT
    await seed_app(least, players=players)
    await seed_app(most, players=players)

    first_least = (await least.matching.run_matching()).committed[0]
    first_most = (await most.matching.run_matching()).committed[0]

    assert first_least.player_ids == ("P001", "P002")
    assert first_most.player_ids == ("P004", "P003")
