"""Configuration, assembled once from the environment at startup."""

__version__ = "0.1.0"

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

_stderr_print = lambda *a, **kw: print(*a, **kw, file=sys.stderr)

DEFAULT_BASE_URL = "https://api.divera247.com/api/v1"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_CRON_PATTERN = "40 11 * * 6"  # Saturday 11:40
DEFAULT_CRON_TIMEZONE = "Europe/Berlin"
DEFAULT_PRIORITY = 1

_TRUTHY = ("1", "true", "yes", "on")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name, "")
    return value if value.strip() else None


def _env_priority(name: str = "ALARM_PRIORITY") -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return DEFAULT_PRIORITY
    try:
        return int(raw)
    except ValueError:
        _stderr_print(f"Unsupported {name}={raw!r}, falling back to {DEFAULT_PRIORITY}")
        return DEFAULT_PRIORITY


def _env_timeout(name: str = "DIVERA_TIMEOUT_SECONDS") -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        value = 0.0
    if value <= 0:
        _stderr_print(f"Unsupported {name}={raw!r}, falling back to {DEFAULT_TIMEOUT_SECONDS:g}")
        return DEFAULT_TIMEOUT_SECONDS
    return value


@dataclass
class DiveraConfig:
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "DiveraConfig":
        return cls(
            api_key=os.getenv("DIVERA_WEB_API_KEY", "").strip(),
            base_url=os.getenv("DIVERA_API_BASE_URL", "").strip() or DEFAULT_BASE_URL,
            timeout_seconds=_env_timeout(),
        )


@dataclass(frozen=True)
class ScheduleConfig:
    """Cron pattern, IANA timezone and enable flag. Immutable."""

    pattern: str = DEFAULT_CRON_PATTERN
    timezone: str = DEFAULT_CRON_TIMEZONE
    enabled: bool = False

    @classmethod
    def from_env(cls) -> "ScheduleConfig":
        return cls(
            pattern=os.getenv("CRON_PATTERN", "").strip() or DEFAULT_CRON_PATTERN,
            timezone=os.getenv("CRON_TIMEZONE", "").strip() or DEFAULT_CRON_TIMEZONE,
            enabled=_env_flag("CRON_ENABLED"),
        )


@dataclass
class AlarmDefaults:
    """Payload overrides. ``None`` means the builder's fallback is used."""

    title: Optional[str] = None
    text: Optional[str] = None
    priority: int = DEFAULT_PRIORITY
    address: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AlarmDefaults":
        return cls(
            title=_env_optional("ALARM_TITLE"),
            text=_env_optional("ALARM_TEXT"),
            priority=_env_priority(),
            address=_env_optional("ALARM_ADDRESS"),
        )


@dataclass
class AppConfig:
    """Typed configuration handed to the client, dispatcher and launcher."""

    divera: DiveraConfig = field(default_factory=DiveraConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    alarm: AlarmDefaults = field(default_factory=AlarmDefaults)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create AppConfig from environment variables."""
        return cls(
            divera=DiveraConfig.from_env(),
            schedule=ScheduleConfig.from_env(),
            alarm=AlarmDefaults.from_env(),
        )
