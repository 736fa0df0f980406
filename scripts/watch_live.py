#!/usr/bin/env python3
"""Watch a live telemetry backend from the terminal.

Starts the engine against a backend, lets it poll for a while and prints
the standings plus every vehicle's track-locked position once per
refresh.

Usage
-----
::

    export TRACKSIDE_BASE_URL="http://127.0.0.1:8001"
    python scripts/watch_live.py --track data/track.json --duration 30

Options::

    --track FILE         Track definition JSON (default: TRACKSIDE_TRACK_FILE)
    --duration SECONDS   How long to watch (default: 10)
    --refresh SECONDS    Seconds between two printouts (default: 1)
    --play               Send a play command after connecting
    --json               Print the final snapshot as JSON
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import math
import sys
from pathlib import Path
from typing import Any

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from trackside import ControlCommandError, TelemetryEngine, TelemetrySnapshot, TracksideConfig  # noqa: E402


def _section(title: str) -> str:
    return f"\n{'=' * 60}\n  {title}\n{'=' * 60}"


def _format_snapshot(snapshot: TelemetrySnapshot) -> list[str]:
    out: list[str] = []
    state = "playing" if snapshot.is_playing else "paused"
    out.append(f"  playback  : {state} x{snapshot.playback_speed:g}")
    out.append(f"  selected  : {snapshot.selected_vehicle_id or '-'}")
    if snapshot.weather is not None:
        out.append(f"  weather   : air {snapshot.weather.air_temp} C, track {snapshot.weather.track_temp} C")

    out.append("  standings :")
    for entry in snapshot.leaderboard:
        out.append(
            f"    P{entry.position:<3} {entry.vehicle_id:<16} laps={entry.laps if entry.laps is not None else '-':<4}"
            f" best={entry.best_lap_time or '-'}"
        )

    out.append("  vehicles  :")
    for vehicle_id, entity in sorted(snapshot.vehicles.items()):
        pos = entity.locked_position
        progress = f"{entity.progress * 100:5.1f}%" if entity.progress is not None else "   -  "
        speed = entity.telemetry.get("speed")
        out.append(
            f"    {vehicle_id:<16} x={pos.x:9.1f} z={pos.z:9.1f} "
            f"hdg={math.degrees(entity.heading):6.1f} lap%={progress} speed={speed if speed is not None else '-'}"
        )
    return out


def _snapshot_json(snapshot: TelemetrySnapshot) -> dict[str, Any]:
    return {
        "selected_vehicle_id": snapshot.selected_vehicle_id,
        "is_playing": snapshot.is_playing,
        "playback_speed": snapshot.playback_speed,
        "leaderboard": [entry.model_dump(mode="json") for entry in snapshot.leaderboard],
        "vehicles": {
            vehicle_id: {
                "position": [entity.locked_position.x, entity.locked_position.y, entity.locked_position.z],
                "heading": entity.heading,
                "progress": entity.progress,
                "telemetry": dict(entity.telemetry),
                "timestamp": entity.last_update_timestamp,
            }
            for vehicle_id, entity in snapshot.vehicles.items()
        },
    }


async def main() -> None:
    parser = argparse.ArgumentParser(description="Watch live race telemetry through trackside.")
    parser.add_argument("--track", help="Track definition JSON (default: TRACKSIDE_TRACK_FILE)")
    parser.add_argument("--duration", type=float, default=10.0, help="Seconds to watch")
    parser.add_argument("--refresh", type=float, default=1.0, help="Seconds between two printouts")
    parser.add_argument("--play", action="store_true", help="Send a play command after connecting")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Print the final snapshot as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    overrides: dict[str, Any] = {}
    if args.track:
        overrides["track_file"] = args.track
    config = TracksideConfig.from_env(**overrides)

    async with TelemetryEngine(config) as engine:
        health = await engine.health_check()
        print(_section("trackside watch_live"))
        print(f"  backend   : {config.base_url}")
        print(f"  health    : {json.dumps(health)}")

        await engine.start()
        if args.play:
            try:
                await engine.play()
            except ControlCommandError as exc:
                print(f"  play      : failed ({exc})", file=sys.stderr)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + args.duration
        while loop.time() < deadline:
            await asyncio.sleep(min(args.refresh, max(0.0, deadline - loop.time())))
            if not args.json_mode:
                status = "connected" if engine.is_connected else "waiting for data"
                print(_section(f"SNAPSHOT ({status})"))
                print("\n".join(_format_snapshot(engine.store.snapshot())))

        snapshot = engine.store.snapshot()
        await engine.stop()

    if args.json_mode:
        print(json.dumps(_snapshot_json(snapshot), indent=2, default=str))


if __name__ == "__main__":
    asyncio.run(main())
