"""Tests for ScheduledAlarmDispatcher — validation, lifecycle, per-fire reporting."""

import asyncio
import re
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from zoneinfo import ZoneInfo

from divera_probe.adapters.divera_client import DiveraClient
from divera_probe.config import AlarmDefaults, ScheduleConfig
from divera_probe.domain.dispatcher import (
    CronTimer,
    DispatcherState,
    ScheduledAlarmDispatcher,
    validate_schedule,
)
from divera_probe.domain.errors import ConfigurationError, InvalidScheduleError
from divera_probe.domain.models import AlarmRequest, AlarmResponse, ApiError

ENABLED = ScheduleConfig(pattern="0 9 * * 1", timezone="Europe/Berlin", enabled=True)
DISABLED = ScheduleConfig(pattern="0 9 * * 1", timezone="Europe/Berlin", enabled=False)


def _client(result=None, side_effect=None):
    client = MagicMock()
    client.create_alarm = AsyncMock(return_value=result, side_effect=side_effect)
    client.masked_api_key = MagicMock(return_value="test...key")
    return client


@pytest.fixture
def client():
    return _client(AlarmResponse.from_dict({
        "success": True,
        "alarm": {"id": 12345, "title": "Test Alarm", "created": "2023-10-03T10:00:00Z"},
    }))


# ---------------------------------------------------------------------------
# Schedule validation
# ---------------------------------------------------------------------------

class TestValidateSchedule:
    def test_valid(self):
        tz = validate_schedule("40 11 * * 6", "Europe/Berlin")
        assert tz == ZoneInfo("Europe/Berlin")

    @pytest.mark.parametrize("pattern", [
        "not-a-pattern",
        "61 * * * *",
        "* * *",
        "0 0 9 * * 1",  # seconds field is not accepted
        "0 9 31 2 *",  # never fires
        "",
    ])
    def test_invalid_pattern(self, pattern):
        with pytest.raises(InvalidScheduleError, match="Invalid cron pattern"):
            validate_schedule(pattern, "Europe/Berlin")

    def test_invalid_timezone(self):
        with pytest.raises(InvalidScheduleError, match="Invalid timezone"):
            validate_schedule("0 9 * * 1", "Mars/Olympus")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_initial_state(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        assert d.state is DispatcherState.STOPPED
        assert d.is_running() is False
        assert d.status() == "Job not started"

    def test_get_config_is_copy(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        cfg = d.get_config()
        assert cfg == ENABLED
        assert cfg is not ENABLED

    def test_disabled_start_is_noop(self, client, capsys):
        d = ScheduledAlarmDispatcher(DISABLED, client=client)
        d.start()
        assert d.is_running() is False
        assert d.state is DispatcherState.STOPPED
        assert "disabled via configuration" in capsys.readouterr().err

    def test_disabled_skips_validation(self, client):
        d = ScheduledAlarmDispatcher(ScheduleConfig(pattern="not-a-pattern", enabled=False), client=client)
        d.start()
        assert d.is_running() is False

    def test_invalid_pattern_raises(self, client):
        d = ScheduledAlarmDispatcher(
            ScheduleConfig(pattern="not-a-pattern", timezone="Europe/Berlin", enabled=True),
            client=client,
        )
        with pytest.raises(InvalidScheduleError, match="Invalid cron pattern: not-a-pattern"):
            d.start()
        assert d.is_running() is False
        assert d.state is DispatcherState.STOPPED

    @pytest.mark.asyncio
    async def test_never_matching_pattern_leaves_no_timer(self, client):
        d = ScheduledAlarmDispatcher(
            ScheduleConfig(pattern="0 9 31 2 *", timezone="UTC", enabled=True),
            client=client,
        )
        with pytest.raises(InvalidScheduleError, match="never fires"):
            d.start()
        assert d.is_running() is False
        assert d.state is DispatcherState.STOPPED

    def test_start_without_event_loop_leaves_no_timer(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        with pytest.raises(RuntimeError):
            d.start()
        assert d.is_running() is False

    def test_stop_and_destroy_without_timer(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        d.stop()
        d.destroy()
        assert d.state is DispatcherState.STOPPED
        assert d.is_running() is False

    @pytest.mark.asyncio
    async def test_start(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        d.start()
        try:
            assert d.is_running() is True
            assert d.is_active is True
            assert d.state is DispatcherState.RUNNING
            status = d.status()
            assert "Cron job running with pattern: 0 9 * * 1" in status
            assert "Europe/Berlin" in status
            assert d.next_fire_time().weekday() == 0  # Monday
        finally:
            d.destroy()

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_timer(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        d.start()
        timer = d._timer
        d.start()
        assert d._timer is timer
        d.destroy()

    @pytest.mark.asyncio
    async def test_stop_keeps_registration(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        d.start()
        d.stop()
        assert d.is_running() is True
        assert d.is_active is False
        assert d.state is DispatcherState.PAUSED
        assert "paused" in d.status()
        assert d.next_fire_time() is None
        d.destroy()

    @pytest.mark.asyncio
    async def test_destroy_clears_registration(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        d.start()
        d.destroy()
        assert d.is_running() is False
        assert d.state is DispatcherState.DESTROYED
        assert d.status() == "Job not started"

    @pytest.mark.asyncio
    async def test_shutdown(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        d.start()
        d.shutdown()
        assert d.is_running() is False
        assert d.state is DispatcherState.DESTROYED

    @pytest.mark.asyncio
    async def test_restart_after_destroy(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        d.start()
        first = d._timer
        d.destroy()
        d.start()
        assert d.is_running() is True
        assert d._timer is not first
        d.destroy()

    def test_default_client_from_env(self, monkeypatch):
        monkeypatch.setenv("DIVERA_WEB_API_KEY", "env-api-key-0000")
        d = ScheduledAlarmDispatcher(ENABLED)
        assert isinstance(d._client, DiveraClient)

    def test_default_client_requires_key(self, monkeypatch):
        monkeypatch.delenv("DIVERA_WEB_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            ScheduledAlarmDispatcher(ENABLED)


# ---------------------------------------------------------------------------
# Scheduled execution
# ---------------------------------------------------------------------------

class TestExecuteScheduledAlarm:
    @pytest.mark.asyncio
    async def test_success_report(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        report = await d.execute_scheduled_alarm()

        assert report.success is True
        assert report.alarm_id == 12345
        assert "12345" in report.summary()
        assert d.last_report is report

        sent = client.create_alarm.await_args.args[0]
        assert isinstance(sent, AlarmRequest)
        assert sent.title == "Geplanter Alarm vom Divera Probe Service"
        assert sent.priority == 1
        assert sent.announcement is False
        assert re.fullmatch(r"scheduled-alarm-\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}", sent.foreign_id)
        assert report.foreign_id == sent.foreign_id

    @pytest.mark.asyncio
    async def test_uses_alarm_defaults(self, client):
        d = ScheduledAlarmDispatcher(
            ENABLED, client=client, defaults=AlarmDefaults(title="Probealarm", priority=2, address="Wache")
        )
        await d.execute_scheduled_alarm()
        sent = client.create_alarm.await_args.args[0]
        assert sent.title == "Probealarm"
        assert sent.priority == 2
        assert sent.address == "Wache"

    @pytest.mark.asyncio
    async def test_unsuccessful_response(self, capsys):
        d = ScheduledAlarmDispatcher(ENABLED, client=_client(AlarmResponse(success=False, error="X")))
        report = await d.execute_scheduled_alarm()
        assert report.success is False
        assert "X" in report.summary()
        assert "Failed to create scheduled alarm" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_api_error_result(self):
        d = ScheduledAlarmDispatcher(
            ENABLED, client=_client(ApiError(error="Invalid API key", message="Unauthorized"))
        )
        report = await d.execute_scheduled_alarm()
        assert report.success is False
        assert report.error == "Invalid API key"
        assert report.message == "Unauthorized"

    @pytest.mark.asyncio
    async def test_raised_error_is_reported(self):
        d = ScheduledAlarmDispatcher(ENABLED, client=_client(side_effect=ConnectionError("Network error")))
        report = await d.execute_scheduled_alarm()
        assert report.success is False
        assert "Network error" in report.summary()

    @pytest.mark.asyncio
    async def test_failure_keeps_schedule(self):
        d = ScheduledAlarmDispatcher(ENABLED, client=_client(side_effect=RuntimeError("boom")))
        d.start()
        await d.execute_scheduled_alarm()
        assert d.state is DispatcherState.RUNNING
        assert d.is_active is True
        d.destroy()

    def test_same_second_foreign_ids_collide(self, client):
        d = ScheduledAlarmDispatcher(ENABLED, client=client)
        now = datetime(2024, 3, 9, 11, 40, 0, tzinfo=ZoneInfo("Europe/Berlin"))
        first = d.build_alarm_request(now)
        second = d.build_alarm_request(now + timedelta(milliseconds=500))
        assert first.foreign_id == second.foreign_id == "scheduled-alarm-2024-03-09-11-40-00"


# ---------------------------------------------------------------------------
# CronTimer
# ---------------------------------------------------------------------------

def _fast_timer(callback, interval_ms=10):
    tz = ZoneInfo("UTC")
    timer = CronTimer("* * * * *", tz, callback)
    timer.next_fire_time = lambda now=None: datetime.now(tz) + timedelta(milliseconds=interval_ms)
    return timer


class TestCronTimer:
    def test_next_fire_time_in_zone(self):
        tz = ZoneInfo("Europe/Berlin")
        timer = CronTimer("40 11 * * 6", tz, AsyncMock())
        base = datetime(2024, 3, 4, 8, 0, tzinfo=tz)  # Monday
        nxt = timer.next_fire_time(base)
        assert nxt == datetime(2024, 3, 9, 11, 40, tzinfo=tz)  # Saturday
        assert nxt.weekday() == 5

    @pytest.mark.asyncio
    async def test_fires_callback(self):
        callback = AsyncMock()
        timer = _fast_timer(callback)
        timer.start()
        await asyncio.sleep(0.2)
        timer.destroy()
        assert callback.await_count >= 2

    @pytest.mark.asyncio
    async def test_stop_halts_fires(self):
        callback = AsyncMock()
        timer = _fast_timer(callback)
        timer.start()
        await asyncio.sleep(0.1)
        timer.stop()
        await asyncio.sleep(0.02)
        count = callback.await_count
        await asyncio.sleep(0.1)
        assert callback.await_count == count
        assert timer.active is False

    @pytest.mark.asyncio
    async def test_callback_error_does_not_end_loop(self):
        callback = AsyncMock(side_effect=RuntimeError("boom"))
        timer = _fast_timer(callback)
        timer.start()
        await asyncio.sleep(0.2)
        timer.destroy()
        assert callback.await_count >= 2

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_fire(self):
        finished = asyncio.Event()
        release = asyncio.Event()

        async def slow_fire():
            await release.wait()
            finished.set()

        timer = _fast_timer(slow_fire)
        timer.start()
        await asyncio.sleep(0.05)  # fire is now in flight
        timer.stop()
        release.set()
        await asyncio.wait_for(finished.wait(), timeout=1)
        assert finished.is_set()

    @pytest.mark.asyncio
    async def test_wait_closed_after_destroy_lets_fire_finish(self):
        finished = asyncio.Event()

        async def slow_fire():
            await asyncio.sleep(0.1)
            finished.set()

        timer = _fast_timer(slow_fire)
        timer.start()
        await asyncio.sleep(0.05)  # fire is now in flight
        timer.destroy()
        await asyncio.wait_for(timer.wait_closed(), timeout=1)
        assert finished.is_set()
