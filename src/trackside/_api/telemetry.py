"""Telemetry endpoint.

Endpoints:
  - /api/telemetry (GET, latest frame of the replay)
"""

from __future__ import annotations

from trackside._constants import TELEMETRY_ENDPOINT
from trackside._transport import Transport
from trackside.models.frames import ConnectedFrame, TelemetryEndFrame, TelemetryFrame, decode_telemetry_frame


async def fetch_telemetry(transport: Transport) -> ConnectedFrame | TelemetryFrame | TelemetryEndFrame:
    """Fetch the latest telemetry message.

    Raises
    ------
    MalformedFrameError
        The response is not one of the known frame variants.
    """
    payload = await transport.get_json(TELEMETRY_ENDPOINT)
    return decode_telemetry_frame(payload)
