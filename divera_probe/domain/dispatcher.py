"""Scheduled alarm dispatcher — cron timer lifecycle and per-fire alarm submission."""

import asyncio
import dataclasses
import sys
import time
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from croniter import CroniterBadDateError, CroniterError, croniter
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from divera_probe.config import AlarmDefaults, ScheduleConfig
from divera_probe.domain.alarm import build_scheduled_alarm
from divera_probe.domain.errors import InvalidScheduleError
from divera_probe.domain.models import AlarmRequest, DispatchReport
from divera_probe.ports.outbound import AlarmPort

_CRON_FIELDS = 5
_TS_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


def _log(msg: str):
    print(msg, file=sys.stderr)


def validate_schedule(pattern: str, tz: str) -> ZoneInfo:
    """Check a five-field cron pattern and IANA timezone; return the zone."""
    fields = pattern.split()
    if len(fields) != _CRON_FIELDS or not croniter.is_valid(pattern):
        raise InvalidScheduleError(f"Invalid cron pattern: {pattern}")
    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, KeyError, ValueError):
        raise InvalidScheduleError(f"Invalid timezone: {tz!r}")
    # grammatically valid patterns like "0 9 31 2 *" can still never match
    try:
        croniter(pattern, datetime.now(zone)).get_next(datetime)
    except (CroniterBadDateError, CroniterError, ValueError):
        raise InvalidScheduleError(f"Invalid cron pattern: {pattern} (never fires)")
    return zone


class CronTimer:
    """One recurring timer: sleeps until the next cron tick, then awaits the callback.

    Fires never overlap; ``stop()`` only takes effect between fires.
    """

    def __init__(self, pattern: str, tz: ZoneInfo, callback: Callable[[], Awaitable[object]]):
        self.pattern = pattern
        self.tz = tz
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._active = False
        self._firing = False

    @property
    def active(self) -> bool:
        return self._active

    def next_fire_time(self, now: Optional[datetime] = None) -> datetime:
        base = now or datetime.now(self.tz)
        return croniter(self.pattern, base.astimezone(self.tz)).get_next(datetime)

    def start(self):
        """Turn the timer on. Must be called from a running event loop."""
        if self._active:
            return
        loop = asyncio.get_running_loop()
        self._active = True
        # a loop still finishing a fire picks the re-activation up by itself
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._run())

    def stop(self):
        self._active = False
        if self._task and not self._task.done() and not self._firing:
            self._task.cancel()

    def destroy(self):
        """Turn the timer off for good; an in-flight fire still completes."""
        self.stop()

    async def wait_closed(self):
        """Wait for the timer task to end, letting an in-flight fire finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)
        self._task = None

    async def _run(self):
        while self._active:
            target = self.next_fire_time()
            delay = target.timestamp() - time.time()
            while delay > 0:
                await asyncio.sleep(delay)
                delay = target.timestamp() - time.time()
            if not self._active:
                break
            self._firing = True
            try:
                await self._callback()
            except Exception as e:
                _log(f"[dispatcher] timer callback error: {e}")
            finally:
                self._firing = False


class DispatcherState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"
    DESTROYED = "destroyed"


class ScheduledAlarmDispatcher:
    """Owns one cron timer and submits a scheduled alarm on every fire.

    Setup errors (bad pattern/timezone) raise from ``start()``; errors
    during a fire are reported and never stop the schedule.
    """

    def __init__(
        self,
        schedule: ScheduleConfig,
        client: Optional[AlarmPort] = None,
        defaults: Optional[AlarmDefaults] = None,
    ):
        self._config = schedule
        if client is None:
            from divera_probe.adapters.divera_client import DiveraClient

            client = DiveraClient()
        self._client = client
        self._defaults = defaults or AlarmDefaults()
        self._timer: Optional[CronTimer] = None
        self._closing: List[CronTimer] = []
        self._state = DispatcherState.STOPPED
        self.last_report: Optional[DispatchReport] = None

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def is_active(self) -> bool:
        """True only while fires are scheduled (not paused by ``stop()``)."""
        return self._state is DispatcherState.RUNNING

    def is_running(self) -> bool:
        """True while a timer registration exists; ``stop()`` keeps it, ``destroy()`` clears it."""
        return self._timer is not None

    def get_config(self) -> ScheduleConfig:
        return dataclasses.replace(self._config)

    def start(self):
        """Validate the schedule and register the timer.

        Raises ``InvalidScheduleError`` for a bad pattern or timezone. Must be
        called from a running event loop; otherwise ``RuntimeError`` is raised
        and nothing is registered.
        """
        if not self._config.enabled:
            _log("[dispatcher] Cron job is disabled via configuration")
            return
        if self._timer is not None:
            _log(f"[dispatcher] Cron job already registered ({self._state.value})")
            return

        tz = validate_schedule(self._config.pattern, self._config.timezone)
        _log(f"[dispatcher] Starting cron job with pattern: {self._config.pattern}")
        _log(f"[dispatcher] Timezone: {self._config.timezone}")

        timer = CronTimer(self._config.pattern, tz, self.execute_scheduled_alarm)
        next_fire = timer.next_fire_time()
        timer.start()
        self._timer = timer
        self._state = DispatcherState.RUNNING
        _log(f"[dispatcher] Cron job started successfully, next fire at {next_fire.strftime(_TS_FORMAT)}")

    def stop(self):
        if self._timer is None:
            return
        self._timer.stop()
        self._state = DispatcherState.PAUSED
        _log("[dispatcher] Cron job stopped")

    def destroy(self):
        if self._timer is None:
            return
        self._timer.destroy()
        self._closing.append(self._timer)
        self._timer = None
        self._state = DispatcherState.DESTROYED
        _log("[dispatcher] Cron job destroyed")

    def shutdown(self):
        """Stop then destroy; called by the host process on termination."""
        self.stop()
        self.destroy()

    async def aclose(self):
        """Shut down and wait for any in-flight fire to finish reporting."""
        self.shutdown()
        while self._closing:
            await self._closing.pop().wait_closed()

    def next_fire_time(self) -> Optional[datetime]:
        if self._timer is None or not self._timer.active:
            return None
        return self._timer.next_fire_time()

    def status(self) -> str:
        if self._timer is None:
            return "Job not started"
        now = datetime.now(self._timer.tz)
        verb = "running" if self._state is DispatcherState.RUNNING else "paused"
        return (
            f"Cron job {verb} with pattern: {self._config.pattern} in timezone "
            f"{self._config.timezone} (current time: {now.strftime(_TS_FORMAT)})"
        )

    def _now(self) -> datetime:
        return datetime.now(ZoneInfo(self._config.timezone))

    def build_alarm_request(self, now: datetime) -> AlarmRequest:
        return build_scheduled_alarm(now, self._defaults)

    async def execute_scheduled_alarm(self) -> DispatchReport:
        """Run one fire: build the payload, submit it, report. Never raises."""
        foreign_id = None
        try:
            now = self._now()
            _log(f"[dispatcher] Executing scheduled alarm at {now.strftime(_TS_FORMAT)}")
            alarm = self.build_alarm_request(now)
            foreign_id = alarm.foreign_id
            _log(
                f"[dispatcher] Title: {alarm.title} | Text: {alarm.text} | "
                f"Priority: {alarm.priority} | Address: {alarm.address}"
            )
            result = await self._client.create_alarm(alarm)
            report = DispatchReport.from_result(result, foreign_id=foreign_id)
        except asyncio.CancelledError:
            self.last_report = DispatchReport(success=False, foreign_id=foreign_id, error="Cancelled")
            _log(f"[dispatcher] Scheduled alarm {foreign_id} cancelled before completion")
            raise
        except Exception as e:
            report = DispatchReport.from_exception(e, foreign_id=foreign_id)
            _log(f"[dispatcher] Error executing scheduled alarm: {report.error}")

        if report.success:
            _log(f"[dispatcher] Scheduled alarm created successfully! ID: {report.alarm_id}, created: {report.created}")
        else:
            _log(f"[dispatcher] Failed to create scheduled alarm: {report.summary()}")
        self.last_report = report
        _log("[dispatcher] Scheduled alarm execution completed")
        return report
