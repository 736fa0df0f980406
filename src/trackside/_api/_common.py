"""Shared helpers for backend endpoint modules.

It is internal to trackside and may change at any time.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from trackside._transport import Transport
from trackside.exceptions import MalformedFrameError

_logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def wrap_list(payload: Any, key: str) -> Any:
    """Backends may answer with a bare list instead of ``{key: [...]}``."""
    if isinstance(payload, list):
        return {key: payload}
    return payload


def decode_model(model: type[ModelT], payload: Any, *, endpoint: str) -> ModelT:
    """Validate *payload* into *model*, mapping failures to ``MalformedFrameError``."""
    if not isinstance(payload, dict):
        raise MalformedFrameError(
            f"{endpoint} payload must be an object, got {type(payload).__name__}",
            payload=payload,
        )
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise MalformedFrameError(
            f"{endpoint} payload did not decode into {model.__name__}: {exc.error_count()} error(s)",
            payload=payload,
        ) from exc


async def get_model(transport: Transport, endpoint: str, model: type[ModelT], *, list_key: str | None = None) -> ModelT:
    """GET *endpoint* and decode the response into *model*."""
    payload = await transport.get_json(endpoint)
    if list_key is not None:
        payload = wrap_list(payload, list_key)
    return decode_model(model, payload, endpoint=endpoint)
