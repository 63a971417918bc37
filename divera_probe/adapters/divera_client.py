"""Divera247 client using aiohttp."""

import asyncio
import sys
from typing import Any, Dict, Optional

import aiohttp

from divera_probe.config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS, DiveraConfig
from divera_probe.domain.errors import ConfigurationError
from divera_probe.domain.models import AlarmRequest, AlarmResponse, AlarmResult, ApiError

DIVERA_API_BASE = DEFAULT_BASE_URL

_FAILED_MESSAGE = "Failed to create alarm"
_UNKNOWN_ERROR = "Unknown error occurred"


def _log(msg: str):
    print(msg, file=sys.stderr)


def mask_api_key(api_key: str) -> str:
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"


async def _read_json(resp: aiohttp.ClientResponse) -> Optional[Dict[str, Any]]:
    try:
        data = await resp.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


class DiveraClient:
    """Async Divera247 API client (create alarm, validate key)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        config: Optional[DiveraConfig] = None,
    ):
        if config is None and not (api_key and base_url):
            config = DiveraConfig.from_env()
        self._api_key = api_key or (config.api_key if config else "")
        if not self._api_key:
            raise ConfigurationError(
                "Divera API key is required. Set DIVERA_WEB_API_KEY environment variable "
                "or pass it as parameter."
            )
        self._base_url = (base_url or (config.base_url if config else "") or DIVERA_API_BASE).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or (config.timeout_seconds if config else DEFAULT_TIMEOUT_SECONDS)
        )

    @classmethod
    def from_config(cls, config: DiveraConfig) -> "DiveraClient":
        return cls(config=config)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout_seconds(self) -> float:
        return self._timeout.total

    def masked_api_key(self) -> str:
        """API key with the middle hidden; never the full key."""
        return mask_api_key(self._api_key)

    def _session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=self._timeout,
            headers={"Content-Type": "application/json"},
        )

    async def create_alarm(self, alarm: AlarmRequest) -> AlarmResult:
        """POST the alarm. Returns ``AlarmResponse`` or ``ApiError``; never raises."""
        payload = alarm.to_payload()
        payload["access_key"] = self._api_key
        url = f"{self._base_url}/alarm"
        try:
            async with self._session() as session:
                async with session.post(url, json=payload) as resp:
                    data = await _read_json(resp)
                    if resp.status >= 400:
                        data = data or {}
                        return ApiError(
                            error=data.get("error") or f"HTTP {resp.status}",
                            message=data.get("message") or _FAILED_MESSAGE,
                            status=resp.status,
                        )
                    if data is None:
                        return ApiError(
                            error="Invalid response body",
                            message=_FAILED_MESSAGE,
                            status=resp.status,
                        )
                    return AlarmResponse.from_dict(data)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _log(f"[divera] transport error on {url}: {e!r}")
            return ApiError(error=str(e) or type(e).__name__, message=_FAILED_MESSAGE)
        except Exception as e:
            _log(f"[divera] unexpected error on {url}: {e!r}")
            return ApiError(error=_UNKNOWN_ERROR, message=str(e) or "Unknown error")

    async def validate_api_key(self) -> bool:
        """True iff ``GET /status`` succeeds with this key."""
        try:
            async with self._session() as session:
                async with session.get(
                    f"{self._base_url}/status",
                    params={"access_key": self._api_key},
                ) as resp:
                    return resp.status < 400
        except Exception as e:
            _log(f"[divera] key validation failed: {e!r}")
            return False
