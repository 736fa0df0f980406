"""Custom exception hierarchy for trackside."""

from __future__ import annotations

from typing import Any


class TracksideError(Exception):
    """Base exception for all trackside errors."""


class TracksideConfigError(TracksideError):
    """Invalid or missing configuration."""


class GeoReferenceError(TracksideError):
    """The geodetic reference was changed after it had already been used."""


class TracksideTransportError(TracksideError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ServiceUnavailableError(TracksideTransportError):
    """Backend answered 503: it is up but the resource is not ready yet.

    Expected while the backend is still loading race data. Polling recovers
    on its own with the next cycle.
    """


class RequestTimeoutError(TracksideTransportError):
    """A polling read exceeded the configured read timeout.

    Polling treats this like a cancellation: the cycle is dropped and the
    next one is scheduled, no error is reported.
    """


class MalformedFrameError(TracksideError):
    """Response JSON did not decode into any known frame shape."""

    def __init__(self, message: str, *, payload: Any = None) -> None:
        self.payload = payload
        super().__init__(message)


class ControlCommandError(TracksideError):
    """A playback control command was not accepted by the backend."""

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        status_code: int | None = None,
    ) -> None:
        self.command = command
        self.status_code = status_code
        super().__init__(message)
