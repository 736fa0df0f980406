"""HTTP transport for the telemetry backend."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from trackside._constants import USER_AGENT
from trackside.config import TracksideConfig
from trackside.exceptions import (
    RequestTimeoutError,
    ServiceUnavailableError,
    TracksideTransportError,
)

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, endpoint: str) -> Any: ...

    async def post_json(self, endpoint: str, payload: Mapping[str, Any]) -> Any: ...


def _raise_for_status(status: int, endpoint: str, text: str) -> None:
    if 200 <= status < 300:
        return
    if status == 503:
        raise ServiceUnavailableError(
            f"Service Unavailable (503): {endpoint} is not ready yet",
            status_code=status,
            endpoint=endpoint,
        )
    if status == 404:
        raise TracksideTransportError(
            f"Not Found (404): endpoint {endpoint} does not exist",
            status_code=status,
            endpoint=endpoint,
        )
    if status == 403:
        raise TracksideTransportError(
            f"Forbidden (403): access denied to {endpoint}",
            status_code=status,
            endpoint=endpoint,
        )
    raise TracksideTransportError(
        f"HTTP {status} from {endpoint}: {text[:200]}",
        status_code=status,
        endpoint=endpoint,
    )


def _decode_json(endpoint: str, text: str) -> Any:
    if not text.strip():
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise TracksideTransportError(
            f"Invalid JSON from {endpoint}: {text[:200]}",
            endpoint=endpoint,
        ) from exc


class HttpTransport:
    """JSON-over-HTTP transport.

    Reads (``GET``) carry ``config.read_timeout``; writes (``POST``) have
    no timeout so a control command is never silently dropped.
    """

    def __init__(self, config: TracksideConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._read_timeout = aiohttp.ClientTimeout(total=config.read_timeout)
        self._write_timeout = aiohttp.ClientTimeout(total=None)

    def _url(self, endpoint: str) -> str:
        return f"{self._config.base_url}{endpoint}"

    @staticmethod
    def _headers() -> dict[str, str]:
        return {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }

    async def get_json(self, endpoint: str) -> Any:
        url = self._url(endpoint)
        _logger.debug("GET %s", url)
        try:
            async with self._http.get(url, headers=self._headers(), timeout=self._read_timeout) as resp:
                text = await resp.text()
                _raise_for_status(resp.status, endpoint, text)
        except TracksideTransportError:
            raise
        except TimeoutError as exc:
            raise RequestTimeoutError(
                f"Request to {endpoint} timed out after {self._config.read_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise TracksideTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc
        return _decode_json(endpoint, text)

    async def post_json(self, endpoint: str, payload: Mapping[str, Any]) -> Any:
        url = self._url(endpoint)
        body = json.dumps(dict(payload), separators=(",", ":"))
        _logger.debug("POST %s %s", url, body)
        try:
            async with self._http.post(url, data=body, headers=self._headers(), timeout=self._write_timeout) as resp:
                text = await resp.text()
                _raise_for_status(resp.status, endpoint, text)
        except TracksideTransportError:
            raise
        except asyncio.CancelledError:
            _logger.error("POST %s was cancelled before the backend answered", endpoint)
            raise
        except aiohttp.ClientError as exc:
            raise TracksideTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc
        return _decode_json(endpoint, text)
