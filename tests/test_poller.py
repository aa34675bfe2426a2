"""Tests for ProcessingPoller."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from motomind.timeline.poller import (
    ANY_IMAGE,
    POLL_JOB_ID,
    InvalidTransition,
    ProcessingPoller,
)
from motomind.types import LinkedImage, ProcessingStatus

PENDING = ProcessingStatus.PENDING
PROCESSING = ProcessingStatus.PROCESSING
COMPLETED = ProcessingStatus.COMPLETED
FAILED = ProcessingStatus.FAILED


def _img(image_id, status):
    return LinkedImage(id=image_id, url=f"https://cdn.example/{image_id}.jpg",
                       processing_status=status)


def _scheduler():
    scheduler = MagicMock()
    scheduler.running = True
    scheduler.get_job.return_value = None
    return scheduler


def _poller(fetch=None, **kwargs):
    fetch = fetch or AsyncMock(return_value=[])
    return ProcessingPoller(fetch, scheduler=kwargs.pop("scheduler", _scheduler()), **kwargs)


class TestTracking:
    def test_track_replaces_statuses(self):
        poller = _poller()
        poller.track([_img("a", PENDING), _img("b", COMPLETED)])
        assert poller.status("a") is PENDING
        assert poller.status("b") is COMPLETED
        assert poller.active == {"a"}

        poller.track([_img("b", COMPLETED)])
        assert poller.status("a") is None
        assert not poller.has_active

    def test_untracked_status_ignored(self):
        poller = _poller()
        poller.track([_img("a", None)])
        assert poller.status("a") is None

    def test_completion_starts_pulse(self):
        scheduler = _scheduler()
        poller = _poller(scheduler=scheduler)
        poller.track([_img("a", PROCESSING)])
        settled = poller.track([_img("a", COMPLETED)])
        assert settled == ["a"]
        assert poller.is_just_completed("a")
        pulse_call = [c for c in scheduler.add_job.call_args_list
                      if c.kwargs.get("trigger") == "date"]
        assert pulse_call and pulse_call[0].kwargs["id"] == "pulse:a"

    def test_failure_settles_without_pulse(self):
        poller = _poller()
        poller.track([_img("a", PROCESSING)])
        assert poller.track([_img("a", FAILED)]) == ["a"]
        assert not poller.just_completed

    def test_already_completed_does_not_pulse(self):
        poller = _poller()
        assert poller.track([_img("a", COMPLETED)]) == []
        assert not poller.is_just_completed("a")


class TestPolling:
    @pytest.mark.asyncio
    async def test_idle_ticks_fetch_nothing(self):
        fetch = AsyncMock(return_value=[])
        poller = _poller(fetch)
        poller.track([_img("a", COMPLETED), _img("b", FAILED)])
        for _ in range(5):
            assert await poller.tick() is False
        fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_reprocess_resumes_fetching(self):
        fetch = AsyncMock(return_value=[_img("a", PROCESSING)])
        scheduler = _scheduler()
        poller = _poller(fetch, scheduler=scheduler)
        poller.track([_img("a", COMPLETED)])

        assert await poller.tick() is False
        poller.request_reprocess("a")
        assert poller.polling is True
        assert await poller.tick() is True
        fetch.assert_awaited_once()

        job = scheduler.add_job.call_args
        assert job.kwargs["id"] == POLL_JOB_ID
        assert job.kwargs["trigger"] == "interval"
        assert job.kwargs["max_instances"] == 1
        assert job.kwargs["coalesce"] is True

    @pytest.mark.asyncio
    async def test_polling_stops_when_settled(self):
        fetch = AsyncMock(return_value=[_img("a", COMPLETED)])
        scheduler = _scheduler()
        on_settled = AsyncMock()
        poller = _poller(fetch, scheduler=scheduler, on_settled=on_settled)
        poller.track([_img("a", PENDING)])
        poller.sync()
        assert poller.polling is True

        scheduler.get_job.return_value = MagicMock()
        await poller.tick()
        assert poller.polling is False
        scheduler.remove_job.assert_any_call(POLL_JOB_ID)
        on_settled.assert_awaited_once_with(["a"])

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self):
        release = asyncio.Event()

        async def slow_fetch():
            await release.wait()
            return [_img("a", PROCESSING)]

        fetch = AsyncMock(side_effect=slow_fetch)
        poller = _poller(fetch)
        poller.track([_img("a", PENDING)])

        first = asyncio.create_task(poller.tick())
        await asyncio.sleep(0)
        assert await poller.tick() is False
        release.set()
        assert await first is True
        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_keeps_statuses(self):
        fetch = AsyncMock(side_effect=RuntimeError("boom"))
        poller = _poller(fetch)
        poller.track([_img("a", PROCESSING)])
        assert await poller.tick() is False
        assert poller.status("a") is PROCESSING


class TestTransitions:
    def test_reprocess_from_completed(self):
        poller = _poller()
        poller.track([_img("a", COMPLETED), _img("b", COMPLETED)])
        poller.request_reprocess("a")
        assert poller.status("a") is PENDING
        assert poller.active == {"a"}

    def test_reprocess_while_processing_rejected(self):
        poller = _poller()
        poller.track([_img("a", PROCESSING)])
        with pytest.raises(InvalidTransition, match="already processing"):
            poller.request_reprocess("a")

    def test_acknowledge(self):
        poller = _poller()
        poller.track([_img("a", FAILED)])
        poller.request_reprocess("a")
        poller.acknowledge("a")
        assert poller.status("a") is PROCESSING

    def test_acknowledge_requires_pending(self):
        poller = _poller()
        poller.track([_img("a", COMPLETED)])
        with pytest.raises(InvalidTransition):
            poller.acknowledge("a")

    def test_stale_terminal_status_ignored_until_picked_up(self):
        """A completed status from the previous run does not settle a reprocess."""
        poller = _poller()
        poller.track([_img("a", COMPLETED)])
        poller.request_reprocess("a")

        assert poller.track([_img("a", COMPLETED)]) == []
        assert poller.status("a") is PENDING
        assert poller.polling is True
        assert not poller.is_just_completed("a")

        poller.track([_img("a", PROCESSING)])
        assert poller.status("a") is PROCESSING
        assert poller.track([_img("a", COMPLETED)]) == ["a"]
        assert poller.is_just_completed("a")

    def test_acknowledge_trusts_next_terminal_status(self):
        poller = _poller()
        poller.track([_img("a", FAILED)])
        poller.request_reprocess("a")
        poller.acknowledge("a")
        assert poller.track([_img("a", COMPLETED)]) == ["a"]

    def test_revert(self):
        poller = _poller()
        poller.track([_img("a", FAILED)])
        poller.request_reprocess("a")
        poller.revert("a", FAILED)
        assert poller.status("a") is FAILED
        assert poller.polling is False


class TestSubscriptions:
    def test_subscribe_and_unsubscribe(self):
        poller = _poller()
        callback = MagicMock()
        poller.subscribe("a", callback)
        poller.track([_img("a", PENDING), _img("b", PENDING)])
        callback.assert_called_once_with("a", None, PENDING)

        poller.unsubscribe("a", callback)
        poller.track([_img("a", PROCESSING)])
        callback.assert_called_once()

    def test_any_image(self):
        poller = _poller()
        callback = MagicMock()
        poller.subscribe(ANY_IMAGE, callback)
        poller.track([_img("a", PENDING), _img("b", FAILED)])
        assert callback.call_count == 2

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_refresh(self):
        fetch = AsyncMock(return_value=[_img("a", COMPLETED)])
        on_settled = AsyncMock()
        poller = _poller(fetch, on_settled=on_settled)
        poller.track([_img("a", PROCESSING)])
        poller.subscribe("a", MagicMock(side_effect=RuntimeError("ui gone")))
        after = MagicMock()
        poller.subscribe(ANY_IMAGE, after)

        assert await poller.tick() is True
        assert poller.status("a") is COMPLETED
        on_settled.assert_awaited_once_with(["a"])
        after.assert_called_once_with("a", PROCESSING, COMPLETED)


class TestTeardown:
    def test_close_removes_jobs(self):
        scheduler = _scheduler()
        poller = _poller(scheduler=scheduler)
        poller.track([_img("a", PROCESSING)])
        poller.track([_img("a", COMPLETED), _img("b", PENDING)])
        poller.sync()

        scheduler.get_job.return_value = MagicMock()
        poller.close()
        removed = {c.args[0] for c in scheduler.remove_job.call_args_list}
        assert removed == {POLL_JOB_ID, "pulse:a"}
        assert poller.polling is False
        assert not poller.just_completed
        scheduler.shutdown.assert_not_called()

    @pytest.mark.asyncio
    async def test_closed_poller_does_not_tick(self):
        fetch = AsyncMock(return_value=[])
        poller = _poller(fetch)
        poller.track([_img("a", PENDING)])
        poller.close()
        assert await poller.tick() is False
        fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_pulse_expires_with_real_scheduler(self):
        poller = ProcessingPoller(AsyncMock(return_value=[]), pulse_seconds=0.1)
        try:
            poller.track([_img("a", PROCESSING)])
            poller.track([_img("a", COMPLETED)])
            assert poller.is_just_completed("a")
            await asyncio.sleep(0.8)
            assert not poller.is_just_completed("a")
        finally:
            poller.close()
