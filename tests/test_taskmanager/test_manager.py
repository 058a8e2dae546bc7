"""Tests for the TaskManager."""

from __future__ import annotations

import asyncio

import pytest

from chainmon.metrics.collector import MonitorMetrics
from chainmon.taskmanager.manager import CronJob, TaskManager


class TestCronJob:
    """Tests for CronJob dataclass."""

    def test_fields(self) -> None:
        async def _handler() -> None:
            pass

        job = CronJob(handler=_handler, period=10.0, name="flush")
        assert job.name == "flush"
        assert job.period == 10.0

    def test_default_name(self) -> None:
        async def _handler() -> None:
            pass

        job = CronJob(handler=_handler, period=5.0)
        assert job.name == ""


class TestTaskManager:
    """Tests for the TaskManager lifecycle."""

    @pytest.mark.asyncio
    async def test_start_stop(self) -> None:
        tm = TaskManager()
        assert not tm.is_running
        await tm.start()
        assert tm.is_running
        await tm.stop()
        assert not tm.is_running

    @pytest.mark.asyncio
    async def test_register_and_jobs(self) -> None:
        counter = {"value": 0}

        async def _handler() -> None:
            counter["value"] += 1

        tm = TaskManager()
        tm.register("flush", CronJob(handler=_handler, period=0.05))
        assert tm.jobs["flush"].name == "flush"
        await tm.start()
        await asyncio.sleep(0.2)
        await tm.stop()
        assert counter["value"] >= 1

    @pytest.mark.asyncio
    async def test_register_while_running(self) -> None:
        counter = {"value": 0}

        async def _handler() -> None:
            counter["value"] += 1

        tm = TaskManager()
        await tm.start()
        tm.register("late_job", CronJob(handler=_handler, period=0.05))
        await asyncio.sleep(0.2)
        await tm.stop()
        assert counter["value"] >= 1

    @pytest.mark.asyncio
    async def test_unregister_cancels_job(self) -> None:
        counter = {"value": 0}

        async def _handler() -> None:
            counter["value"] += 1

        tm = TaskManager()
        tm.register("flush", CronJob(handler=_handler, period=0.05))
        await tm.start()
        await tm.unregister("flush")
        seen = counter["value"]
        await asyncio.sleep(0.15)
        assert counter["value"] == seen
        assert "flush" not in tm.jobs
        await tm.stop()

    @pytest.mark.asyncio
    async def test_unregister_unknown(self) -> None:
        tm = TaskManager()
        await tm.unregister("missing")  # Should not raise

    @pytest.mark.asyncio
    async def test_idempotent_start(self) -> None:
        tm = TaskManager()
        await tm.start()
        await tm.start()  # Should not raise
        assert tm.is_running
        await tm.stop()

    @pytest.mark.asyncio
    async def test_idempotent_stop(self) -> None:
        tm = TaskManager()
        await tm.stop()  # Should not raise when not running
        assert not tm.is_running

    @pytest.mark.asyncio
    async def test_error_in_handler_does_not_crash(self) -> None:
        calls = {"value": 0}

        async def _bad_handler() -> None:
            calls["value"] += 1
            msg = "boom"
            raise ValueError(msg)

        tm = TaskManager()
        tm.register("bad", CronJob(handler=_bad_handler, period=0.05))
        await tm.start()
        await asyncio.sleep(0.2)
        # Still running and still retrying despite errors
        assert tm.is_running
        assert calls["value"] >= 2
        await tm.stop()

    @pytest.mark.asyncio
    async def test_job_metrics(self) -> None:
        async def _handler() -> None:
            pass

        metrics = MonitorMetrics()
        tm = TaskManager(metrics=metrics)
        tm.register("flush", CronJob(handler=_handler, period=0.05))
        await tm.start()
        await asyncio.sleep(0.2)
        await tm.stop()
        count = metrics.registry.get_sample_value(
            "chainmon_job_seconds_count", {"job_name": "flush"}
        )
        assert count is not None
        assert count >= 1
