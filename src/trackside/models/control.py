"""Playback control models.

The backend replays a recorded session; these commands steer the replay.
"""

from __future__ import annotations

import enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, model_validator

from trackside.models._base import TracksideBaseModel


class ControlCommand(enum.StrEnum):
    """``cmd`` values accepted by the control endpoint."""

    PLAY = "play"
    PAUSE = "pause"
    REVERSE = "reverse"
    RESTART = "restart"
    SPEED = "speed"
    SEEK = "seek"


class ControlMessage(BaseModel):
    """Body of a control request: ``{"type": "control", "cmd": ..., "value": ...}``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["control"] = "control"
    cmd: ControlCommand
    value: float | None = None

    @model_validator(mode="after")
    def _check_value(self) -> ControlMessage:
        if self.cmd == ControlCommand.SPEED:
            if self.value is None or self.value <= 0:
                raise ValueError(f"speed command requires a positive value, got {self.value}")
        elif self.cmd == ControlCommand.SEEK:
            if self.value is None or self.value < 0:
                raise ValueError(f"seek command requires a non-negative value, got {self.value}")
        elif self.value is not None:
            raise ValueError(f"{self.cmd} command does not take a value")
        return self

    def to_payload(self) -> dict[str, Any]:
        """Wire payload, without a ``value`` key when none applies."""
        return self.model_dump(mode="json", exclude_none=True)


class ControlAck(TracksideBaseModel):
    """Backend acknowledgement of a control command.

    The backend body is free-form; ``status``/``message`` are read when
    present and everything else stays in ``raw``.
    """

    status: str | None = None
    message: str | None = None
