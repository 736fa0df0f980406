"""Health endpoint.

Endpoints:
  - /api/health (GET)
"""

from __future__ import annotations

from typing import Any

from trackside._constants import HEALTH_ENDPOINT
from trackside._transport import Transport


async def fetch_health(transport: Transport) -> dict[str, Any]:
    """Return the backend health document (an empty dict for an empty body)."""
    payload = await transport.get_json(HEALTH_ENDPOINT)
    return payload if isinstance(payload, dict) else {"status": payload}
