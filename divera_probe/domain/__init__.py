"""Domain layer — alarm models, payload builders and the scheduled dispatcher."""

from divera_probe.domain.models import (
    AlarmInfo,
    AlarmRequest,
    AlarmResponse,
    AlarmResult,
    ApiError,
    DispatchReport,
)
from divera_probe.domain.errors import (
    ConfigurationError,
    InvalidScheduleError,
)
from divera_probe.domain.alarm import build_manual_alarm, build_scheduled_alarm, scheduled_foreign_id
from divera_probe.domain.dispatcher import (
    CronTimer,
    DispatcherState,
    ScheduledAlarmDispatcher,
    validate_schedule,
)

__all__ = [
    "AlarmInfo",
    "AlarmRequest",
    "AlarmResponse",
    "AlarmResult",
    "ApiError",
    "DispatchReport",
    "ConfigurationError",
    "InvalidScheduleError",
    "build_manual_alarm",
    "build_scheduled_alarm",
    "scheduled_foreign_id",
    "CronTimer",
    "DispatcherState",
    "ScheduledAlarmDispatcher",
    "validate_schedule",
]
