"""Ingestion layer.

This package contains the polling machinery that fetches data from the
telemetry backend and the adapters that turn decoded frames into store
updates.
"""

from trackside.ingestion.poller import PollController, PollCycle, PollSource, PollState

__all__ = ["PollController", "PollCycle", "PollSource", "PollState"]
