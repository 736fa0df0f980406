"""Playback control endpoint.

Endpoints:
  - /api/control (POST ``{"type": "control", "cmd": ..., "value": ...}``)

Control commands are never retried or dropped silently: every failure is
raised to the caller as :class:`~trackside.exceptions.ControlCommandError`.
"""

from __future__ import annotations

import logging

from trackside._constants import CONTROL_ENDPOINT
from trackside._transport import Transport
from trackside.exceptions import ControlCommandError, ServiceUnavailableError, TracksideTransportError
from trackside.models.control import ControlAck, ControlCommand, ControlMessage

_logger = logging.getLogger(__name__)


def build_control_message(command: ControlCommand | str, value: float | None = None) -> ControlMessage:
    """Validate a command and its argument.

    Raises
    ------
    ControlCommandError
        Unknown command or an argument the command does not accept.
    """
    try:
        return ControlMessage(cmd=command, value=value)
    except ValueError as exc:
        raise ControlCommandError(f"Invalid control command {command!r} (value={value!r}): {exc}", command=str(command)) from exc


async def send_control(transport: Transport, message: ControlMessage) -> ControlAck:
    """Send one control command and return the backend acknowledgement."""
    payload = message.to_payload()
    try:
        response = await transport.post_json(CONTROL_ENDPOINT, payload)
    except TracksideTransportError as exc:
        _logger.error("Control command %s failed: %s", message.cmd, exc)
        if isinstance(exc, ServiceUnavailableError):
            _logger.warning("Control endpoint unavailable (503); the backend may need race data to be loaded first")
        raise ControlCommandError(
            f"Control command {message.cmd} failed: {exc}",
            command=str(message.cmd),
            status_code=exc.status_code,
        ) from exc

    if isinstance(response, dict) and str(response.get("status", "")).lower() == "error":
        detail = response.get("message") or response.get("error") or "backend rejected the command"
        _logger.error("Control command %s rejected: %s", message.cmd, detail)
        raise ControlCommandError(f"Control command {message.cmd} rejected: {detail}", command=str(message.cmd))

    _logger.debug("Control command %s acknowledged", message.cmd)
    return ControlAck.model_validate(response if isinstance(response, dict) else {})
