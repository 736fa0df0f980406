"""Leaderboard endpoint.

Endpoints:
  - /api/leaderboard (GET, current standings)
"""

from __future__ import annotations

from trackside._api._common import get_model
from trackside._constants import LEADERBOARD_ENDPOINT
from trackside._transport import Transport
from trackside.models.leaderboard import LeaderboardSnapshot


async def fetch_leaderboard(transport: Transport) -> LeaderboardSnapshot:
    """Fetch the current standings."""
    return await get_model(transport, LEADERBOARD_ENDPOINT, LeaderboardSnapshot, list_key="leaderboard")
