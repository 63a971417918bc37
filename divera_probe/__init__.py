"""Divera Probe: scheduled and one-shot Divera247 test alarms."""

from divera_probe.config import AlarmDefaults, AppConfig, DiveraConfig, ScheduleConfig, __version__
from divera_probe.domain import (
    AlarmRequest,
    AlarmResponse,
    ApiError,
    ConfigurationError,
    DispatchReport,
    InvalidScheduleError,
    ScheduledAlarmDispatcher,
)
from divera_probe.adapters.divera_client import DiveraClient

__all__ = [
    "__version__",
    "AlarmDefaults",
    "AppConfig",
    "DiveraConfig",
    "ScheduleConfig",
    "AlarmRequest",
    "AlarmResponse",
    "ApiError",
    "ConfigurationError",
    "DispatchReport",
    "InvalidScheduleError",
    "ScheduledAlarmDispatcher",
    "DiveraClient",
]
