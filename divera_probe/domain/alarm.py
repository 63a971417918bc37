"""Alarm payload builders — fallbacks and foreign id derivation.

Pure domain logic, no framework dependencies.
"""

from datetime import datetime
from typing import Optional

from divera_probe.config import AlarmDefaults
from divera_probe.domain.models import AlarmRequest

MANUAL_TITLE = "Test Alarm from Divera Probe Service"
MANUAL_TEXT = "This is a test alarm created by the Divera Probe Alarm service."
MANUAL_ADDRESS = "Test Address, Test City"

SCHEDULED_TITLE = "Geplanter Alarm vom Divera Probe Service"
SCHEDULED_ADDRESS = "Testadresse, Deutschland"

SCHEDULED_FOREIGN_ID_PREFIX = "scheduled-alarm-"
MANUAL_FOREIGN_ID_PREFIX = "alarm-"


def scheduled_foreign_id(now: datetime) -> str:
    """``scheduled-alarm-YYYY-MM-DD-HH-mm-ss``; second resolution."""
    return SCHEDULED_FOREIGN_ID_PREFIX + now.strftime("%Y-%m-%d-%H-%M-%S")


def manual_foreign_id(now: datetime) -> str:
    return f"{MANUAL_FOREIGN_ID_PREFIX}{int(now.timestamp() * 1000)}"


def scheduled_text(now: datetime) -> str:
    return f"Geplanter Alarm ausgelöst am {now.strftime('%d.%m.%Y um %H:%M')} Uhr."


def build_scheduled_alarm(now: datetime, defaults: Optional[AlarmDefaults] = None) -> AlarmRequest:
    """Build the payload for one scheduled fire.

    ``now`` must already be in the schedule's timezone; it feeds both the
    default text and the foreign id.
    """
    defaults = defaults or AlarmDefaults()
    return AlarmRequest(
        title=defaults.title or SCHEDULED_TITLE,
        text=defaults.text or scheduled_text(now),
        priority=defaults.priority,
        foreign_id=scheduled_foreign_id(now),
        address=defaults.address or SCHEDULED_ADDRESS,
        announcement=False,
    )


def build_manual_alarm(now: datetime, defaults: Optional[AlarmDefaults] = None) -> AlarmRequest:
    """Build the payload for a one-shot run."""
    defaults = defaults or AlarmDefaults()
    return AlarmRequest(
        title=defaults.title or MANUAL_TITLE,
        text=defaults.text or MANUAL_TEXT,
        priority=defaults.priority,
        foreign_id=manual_foreign_id(now),
        address=defaults.address or MANUAL_ADDRESS,
        announcement=False,
    )
