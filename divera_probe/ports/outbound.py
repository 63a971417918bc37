"""Outbound ports — interfaces for external system adapters."""

from typing import Protocol, runtime_checkable

from divera_probe.domain.models import AlarmRequest, AlarmResult


@runtime_checkable
class AlarmPort(Protocol):
    """Interface for alarm backends (Divera247 or a test double)."""

    async def create_alarm(self, alarm: AlarmRequest) -> AlarmResult: ...

    async def validate_api_key(self) -> bool: ...

    def masked_api_key(self) -> str: ...
