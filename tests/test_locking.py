import asyncio

import pytest

from gunslinger.app import TournamentApp
from gunslinger.config import LockConfig, MatchingConfig, TournamentConfig
from gunslinger.domain.exceptions import LockContentionError
from gunslinger.domain.locking import (
    MATCHES_SECTION,
    PLAYERS_SECTION,
    DeferredMatching,
    ExclusionLock,
    ExecutionContext,
    MaintenanceFlag,
)
from gunslinger.storage.memory import InMemorySettingsStore
from gunslinger.testing import PlayerFactory, app_fixture, seed_app


@pytest.mark.asyncio()
async def test_contending_caller_fails_after_timeout():
    lock = ExclusionLock(timeout=0.05)

    async with lock.hold("first"):
        with pytest.raises(LockContentionError) as excinfo:
            async with lock.hold("second"):
                pass

    assert excinfo.value.operation == "second"
    assert not lock.locked()


@pytest.mark.asyncio()
async def test_disjoint_sections_do_not_block_each_other():
    lock = ExclusionLock(timeout=0.05)

    async with lock.hold("status", PLAYERS_SECTION):
        async with lock.hold("tick", MATCHES_SECTION):
            assert lock.locked(PLAYERS_SECTION)
            assert lock.locked(MATCHES_SECTION)

    assert not lock.locked()


@pytest.mark.asyncio()
async def test_partial_acquisition_is_released_on_timeout():
    lock = ExclusionLock(timeout=0.05)

    async with lock.hold("tick", MATCHES_SECTION):
        with pytest.raises(LockContentionError):
            async with lock.hold("update_player_state"):
                pass
        assert not lock.locked(PLAYERS_SECTION)


@pytest.mark.asyncio()
async def test_unknown_section_is_rejected():
    lock = ExclusionLock()
    with pytest.raises(ValueError):
        async with lock.hold("op", "tables"):
            pass


def test_timeout_must_be_positive():
    with pytest.raises(ValueError):
        ExclusionLock(timeout=0)


@pytest.mark.asyncio()
async def test_operations_surface_contention_without_writing():
    app = app_fixture(lock=LockConfig(timeout_seconds=0.05))

    async with app.lock.hold("operator"):
        with pytest.raises(LockContentionError):
            await app.transitions.register_player("Late")

    assert app.player_store.rows() == []


@pytest.mark.asyncio()
async def test_concurrent_registrations_are_serialized():
    app = app_fixture()

    results = await asyncio.gather(
        *(app.transitions.register_player(f"Player {index}") for index in range(5))
    )

    assert sorted(result.player_id for result in results) == ["P001", "P002", "P003", "P004", "P005"]


@pytest.mark.asyncio()
async def test_deferred_matching_coalesces_requests():
    deferred = DeferredMatching()
    calls = []

    async def run():
        calls.append(1)
        return len(calls)

    assert deferred.request()
    assert not deferred.request()
    assert deferred.pending
    assert await deferred.drain(run) == 1
    assert not deferred.pending
    assert await deferred.drain(run) is None
    assert calls == [1]


@pytest.mark.asyncio()
async def test_deferred_rematch_runs_on_next_tick(clock):
    app = TournamentApp(TournamentConfig(matching=MatchingConfig(defer_rematch=True)), clock=clock)

    await app.transitions.register_player("Ann")
    second = await app.transitions.register_player("Bob")

    assert second.rematch_requested
    assert second.matching is None
    assert app.deferred.pending

    report = await app.ticker.tick()
    assert [pairing.player_ids for pairing in report.matching.committed] == [("P001", "P002")]
    assert not app.deferred.pending

    clock.advance(minutes=1, seconds=5)
    report = await app.ticker.tick()
    assert report.matching is None
    assert report.elapsed == {1: "00:01:05"}
    assert app.table_store.rows()[0]["elapsed"] == "00:01:05"


@pytest.mark.asyncio()
async def test_tick_refreshes_elapsed_while_status_section_is_held(memory_app, clock):
    await seed_app(memory_app, players=PlayerFactory().batch(2))
    await memory_app.matching.run_matching()
    clock.advance(hours=1, minutes=2, seconds=3)

    async with memory_app.lock.hold("status", PLAYERS_SECTION):
        elapsed = await memory_app.ticker.refresh_elapsed()

    assert elapsed == {1: "01:02:03"}


@pytest.mark.asyncio()
async def test_contended_drain_keeps_request_pending(clock):
    app = TournamentApp(
        TournamentConfig(
            matching=MatchingConfig(defer_rematch=True), lock=LockConfig(timeout_seconds=0.05)
        ),
        clock=clock,
    )
    await app.transitions.register_player("Ann")
    await app.transitions.register_player("Bob")
    assert app.deferred.pending

    async with app.lock.hold("status", PLAYERS_SECTION):
        with pytest.raises(LockContentionError):
            await app.ticker.tick()

    assert app.deferred.pending
    report = await app.ticker.tick()
    assert [pairing.player_ids for pairing in report.matching.committed] == [("P001", "P002")]
    assert not app.deferred.pending


@pytest.mark.asyncio()
async def test_request_during_drain_schedules_another_run():
    deferred = DeferredMatching()
    runs = []

    async def run():
        runs.append(1)
        if len(runs) == 1:
            assert not deferred.request()
        return len(runs)

    deferred.request()
    assert await deferred.drain(run) == 1
    assert deferred.pending
    assert await deferred.drain(run) == 2
    assert not deferred.pending


@pytest.mark.asyncio()
async def test_execution_context_always_has_a_maintenance_flag():
    context = ExecutionContext(settings=InMemorySettingsStore())

    assert isinstance(context.maintenance, MaintenanceFlag)
    assert not await context.maintenance_active()
    await context.maintenance.set()
    assert await context.maintenance_active()
