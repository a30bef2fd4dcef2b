import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from journey_scheduler.services.execution import RecoverySweeper, RunStatus

from tests.conftest import as_utc, delay, message


def utc(**delta):
    return datetime.now(timezone.utc) + timedelta(**delta)


@pytest.fixture
def sweeper(database):
    return RecoverySweeper(database, timeout_minutes=10, sweep_interval=1)


class TestRecoverySweeper:
    @pytest.mark.asyncio
    async def test_stale_claimed_run_is_recovered(self, sweeper, database, make_journey, make_run):
        journey = await make_journey([delay("wait", 60, "done"), message("done")], start_node_id="wait")
        stuck = await make_run(journey, status=RunStatus.IN_PROGRESS, current_node_id="wait",
                               claimed_at=utc(minutes=-30), updated_at=utc(minutes=-30))

        assert await sweeper.recover() == 1

        stored = await database.get_run(stuck.run_id)
        assert stored.status == RunStatus.WAITING_DELAY.value
        assert stored.current_node_id == "wait"
        assert stored.claimed_at is None
        assert as_utc(stored.resume_at) <= utc(seconds=1)

    @pytest.mark.asyncio
    async def test_recently_written_run_is_left_alone(self, sweeper, database, make_journey, make_run):
        journey = await make_journey([delay("wait", 60)], start_node_id="wait")
        busy = await make_run(journey, status=RunStatus.IN_PROGRESS, current_node_id="wait",
                              claimed_at=utc(minutes=-1), updated_at=utc(minutes=-1))

        assert await sweeper.recover() == 0
        assert (await database.get_run(busy.run_id)).status == RunStatus.IN_PROGRESS.value

    @pytest.mark.asyncio
    async def test_unclaimed_and_final_runs_are_ignored(self, sweeper, make_journey, make_run):
        journey = await make_journey([delay("wait", 60)], start_node_id="wait")
        old = utc(hours=-2)
        await make_run(journey, status=RunStatus.IN_PROGRESS, current_node_id="wait", updated_at=old)
        await make_run(journey, status=RunStatus.COMPLETED, updated_at=old)
        await make_run(journey, current_node_id="wait", resume_at=old, updated_at=old)

        assert await sweeper.recover() == 0

    @pytest.mark.asyncio
    async def test_timeout_override(self, sweeper, make_journey, make_run):
        journey = await make_journey([delay("wait", 60)], start_node_id="wait")
        await make_run(journey, status=RunStatus.IN_PROGRESS, current_node_id="wait",
                       claimed_at=utc(minutes=-3), updated_at=utc(minutes=-3))

        assert await sweeper.recover() == 0
        assert await sweeper.recover(timeout_minutes=2) == 1

    @pytest.mark.asyncio
    async def test_recovered_run_is_resumed_by_next_tick(self, sweeper, database, engine, make_journey,
                                                          make_run, delivery):
        journey = await make_journey([delay("wait", 60, "done"), message("done")], start_node_id="wait")
        stuck = await make_run(journey, status=RunStatus.IN_PROGRESS, current_node_id="wait",
                               claimed_at=utc(minutes=-30), updated_at=utc(minutes=-30),
                               paused_at=utc(minutes=-31))
        await sweeper.recover()

        assert await database.claim_due_runs(10, now=utc(seconds=1)) == [stuck.run_id]
        assert await engine.resume(stuck.run_id) == RunStatus.COMPLETED
        assert delivery.messages_for(stuck.run_id) == ["msg done"]

    @pytest.mark.asyncio
    async def test_recovered_unpaused_delay_keeps_full_delay(self, sweeper, database, engine, make_journey,
                                                             make_run, delivery):
        journey = await make_journey(
            [message("welcome", "wait"), delay("wait", 86400, "done"), message("done")],
            start_node_id="welcome",
        )
        # crashed after moving onto the DELAY, before pausing there
        stuck = await make_run(journey, status=RunStatus.IN_PROGRESS, current_node_id="wait",
                               claimed_at=utc(minutes=-30), updated_at=utc(minutes=-30))
        assert await sweeper.recover() == 1
        assert (await database.get_run(stuck.run_id)).paused_at is None

        assert await database.claim_due_runs(10, now=utc(seconds=1)) == [stuck.run_id]
        assert await engine.resume(stuck.run_id) == RunStatus.WAITING_DELAY

        stored = await database.get_run(stuck.run_id)
        assert stored.current_node_id == "wait"
        assert as_utc(stored.resume_at) >= utc(hours=23)
        assert delivery.messages_for(stuck.run_id) == []

    @pytest.mark.asyncio
    async def test_background_loop_sweeps(self, sweeper, database, make_journey, make_run):
        journey = await make_journey([delay("wait", 60)], start_node_id="wait")
        stuck = await make_run(journey, status=RunStatus.IN_PROGRESS, current_node_id="wait",
                               claimed_at=utc(minutes=-30), updated_at=utc(minutes=-30))

        await sweeper.start()
        await sweeper.start()
        assert sweeper.is_running
        try:
            for _ in range(40):
                await asyncio.sleep(0.05)
                if (await database.get_run(stuck.run_id)).status == RunStatus.WAITING_DELAY.value:
                    break
        finally:
            await sweeper.stop()

        assert not sweeper.is_running
        assert (await database.get_run(stuck.run_id)).status == RunStatus.WAITING_DELAY.value
