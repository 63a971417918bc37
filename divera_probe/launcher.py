"""Launcher — picks one-shot or recurring mode and owns the process lifetime."""

import argparse
import asyncio
import signal
import sys
from datetime import datetime
from typing import List, Optional

from divera_probe.config import AppConfig
from divera_probe.adapters.divera_client import DiveraClient
from divera_probe.domain.alarm import build_manual_alarm
from divera_probe.domain.dispatcher import ScheduledAlarmDispatcher
from divera_probe.domain.errors import ConfigurationError, InvalidScheduleError
from divera_probe.domain.models import AlarmRequest, DispatchReport
from divera_probe.ports.outbound import AlarmPort

EXIT_OK = 0
EXIT_FATAL = 1


def _log(msg: str):
    print(msg, file=sys.stderr)


async def create_divera_alarm(client: AlarmPort, alarm: AlarmRequest) -> DispatchReport:
    """Submit one alarm and report the outcome. Never raises."""
    _log(f"[launcher] Using API key: {client.masked_api_key()}")
    try:
        result = await client.create_alarm(alarm)
        report = DispatchReport.from_result(result, foreign_id=alarm.foreign_id)
    except Exception as e:
        report = DispatchReport.from_exception(e, foreign_id=alarm.foreign_id)
        _log(f"[launcher] Error creating alarm: {report.error}")
        return report

    if report.success:
        _log("[launcher] Alarm created successfully!")
        _log(f"[launcher] Alarm ID: {report.alarm_id}")
    else:
        _log(f"[launcher] Failed to create alarm: {report.summary()}")
    return report


def _install_signal_handlers(stop_event: asyncio.Event) -> List[int]:
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # unsupported on this platform (e.g. Windows)
            pass
    return installed


async def run_recurring(dispatcher: ScheduledAlarmDispatcher, stop_event: Optional[asyncio.Event] = None):
    """Start the dispatcher and keep it alive until ``stop_event`` is set."""
    stop_event = stop_event or asyncio.Event()
    installed = _install_signal_handlers(stop_event)
    try:
        dispatcher.start()
        _log(f"[launcher] {dispatcher.status()}")
        await stop_event.wait()
        _log("[launcher] Shutting down...")
    finally:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
        await dispatcher.aclose()


async def run(config: AppConfig, once: bool = False, check_key: bool = False) -> int:
    try:
        client = DiveraClient.from_config(config.divera)
    except ConfigurationError as e:
        _log(f"[launcher] Configuration error: {e}")
        return EXIT_FATAL

    if check_key:
        valid = await client.validate_api_key()
        _log(f"[launcher] API key {client.masked_api_key()} is {'valid' if valid else 'invalid'}")
        return EXIT_OK if valid else EXIT_FATAL

    if config.schedule.enabled and not once:
        dispatcher = ScheduledAlarmDispatcher(config.schedule, client=client, defaults=config.alarm)
        try:
            await run_recurring(dispatcher)
        except InvalidScheduleError as e:
            _log(f"[launcher] Schedule error: {e}")
            return EXIT_FATAL
        return EXIT_OK

    alarm = build_manual_alarm(datetime.now(), config.alarm)
    await create_divera_alarm(client, alarm)
    return EXIT_OK


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="divera-probe", description="Trigger Divera247 test alarms.")
    parser.add_argument("--once", action="store_true", help="send a single alarm even if CRON_ENABLED is set")
    parser.add_argument("--check-key", action="store_true", help="validate the API key and exit")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    config = AppConfig.from_env()
    return asyncio.run(run(config, once=args.once, check_key=args.check_key))


if __name__ == "__main__":
    sys.exit(main())
