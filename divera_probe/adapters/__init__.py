"""Concrete clients for external systems."""

from divera_probe.adapters.divera_client import DIVERA_API_BASE, DiveraClient, mask_api_key

__all__ = ["DIVERA_API_BASE", "DiveraClient", "mask_api_key"]
