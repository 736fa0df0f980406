"""Internal constants shared across the library."""

BASE_URL = "http://127.0.0.1:8001"
USER_AGENT = "trackside/1"

# ------------------------------------------------------------------
# Backend endpoints
# ------------------------------------------------------------------

HEALTH_ENDPOINT = "/api/health"
TELEMETRY_ENDPOINT = "/api/telemetry"
LEADERBOARD_ENDPOINT = "/api/leaderboard"
LAP_EVENTS_ENDPOINT = "/api/endurance"
CONTROL_ENDPOINT = "/api/control"

# ------------------------------------------------------------------
# Polling cadence (seconds)
# ------------------------------------------------------------------

TELEMETRY_POLL_INTERVAL = 0.1  # 10 Hz
LEADERBOARD_POLL_INTERVAL = 1.0  # 1 Hz
LAP_EVENTS_POLL_INTERVAL = 0.5  # 2 Hz

#: Upper bound for a single polling GET. Control commands are not subject to it.
READ_TIMEOUT = 30.0

#: Minimum spacing between two "backend not ready" warnings of the same source.
TRANSIENT_LOG_COOLDOWN = 60.0

# ------------------------------------------------------------------
# Geodesy
# ------------------------------------------------------------------

#: WGS84 equatorial radius in meters.
EARTH_RADIUS = 6378137.0

# ------------------------------------------------------------------
# Rendering
# ------------------------------------------------------------------

INTERPOLATION_GAIN = 10.0
