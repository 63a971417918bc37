"""Alarm request/response models for the Divera247 API."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class AlarmRequest:
    """Payload for ``POST /alarm``. Only ``title`` is required."""

    title: str
    text: Optional[str] = None
    priority: Optional[int] = None
    group: Optional[List[int]] = None
    vehicle: Optional[List[int]] = None
    foreign_id: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    alarm_date: Optional[str] = None
    alarm_end: Optional[str] = None
    ric: Optional[str] = None
    keyword: Optional[str] = None
    announcement: Optional[bool] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON body without unset fields."""
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class AlarmInfo:
    id: int
    title: str
    created: str
    text: Optional[str] = None
    foreign_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlarmInfo":
        return cls(
            id=data.get("id"),
            title=str(data.get("title", "")),
            created=str(data.get("created", "")),
            text=data.get("text"),
            foreign_id=data.get("foreign_id"),
        )


@dataclass
class AlarmResponse:
    success: bool
    alarm: Optional[AlarmInfo] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlarmResponse":
        alarm = data.get("alarm")
        return cls(
            success=bool(data.get("success", False)),
            alarm=AlarmInfo.from_dict(alarm) if isinstance(alarm, dict) else None,
            error=data.get("error"),
            message=data.get("message"),
        )


@dataclass
class ApiError:
    """Upstream rejection or transport failure, returned instead of raised."""

    error: str
    message: str = ""
    status: Optional[int] = None
    success: bool = field(default=False, init=False)

    def describe(self) -> str:
        if self.message:
            return f"{self.error} ({self.message})"
        return self.error


AlarmResult = Union[AlarmResponse, ApiError]


@dataclass
class DispatchReport:
    """Outcome of one alarm submission (scheduled fire or one-shot)."""

    success: bool
    foreign_id: Optional[str] = None
    alarm_id: Optional[int] = None
    created: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_result(cls, result: AlarmResult, foreign_id: Optional[str] = None) -> "DispatchReport":
        if isinstance(result, ApiError):
            return cls(success=False, foreign_id=foreign_id, error=result.error, message=result.message)
        if not result.success:
            return cls(
                success=False,
                foreign_id=foreign_id,
                error=result.error or "Unknown error occurred",
                message=result.message,
            )
        alarm = result.alarm
        return cls(
            success=True,
            foreign_id=foreign_id,
            alarm_id=alarm.id if alarm else None,
            created=alarm.created if alarm else None,
        )

    @classmethod
    def from_exception(cls, exc: BaseException, foreign_id: Optional[str] = None) -> "DispatchReport":
        return cls(success=False, foreign_id=foreign_id, error=str(exc) or type(exc).__name__)

    def summary(self) -> str:
        if self.success:
            return f"Alarm created (ID: {self.alarm_id}, created: {self.created})"
        if self.message:
            return f"Alarm failed: {self.error} ({self.message})"
        return f"Alarm failed: {self.error}"
