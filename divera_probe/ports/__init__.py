"""Interfaces between the domain and external systems."""

from divera_probe.ports.outbound import AlarmPort

__all__ = ["AlarmPort"]
