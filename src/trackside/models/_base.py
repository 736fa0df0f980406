"""Base model for backend payloads.

Every wire model inherits from :class:`TracksideBaseModel` which provides:

* A ``model_validator(mode="before")`` that strips sentinel values
  (``""``, ``"--"``, NaN) so the field default is used.
* A ``raw`` dict that captures the original payload.

The backend already speaks snake_case, so no alias generator is needed.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Sentinel strings the backend uses for "not available".
_SENTINELS = frozenset({"", "--", "NaN", "nan", "null"})


def is_sentinel(value: Any) -> bool:
    """Return ``True`` when *value* carries no information."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() in _SENTINELS:
        return True
    return isinstance(value, float) and math.isnan(value)


class TracksideBaseModel(BaseModel):
    """Base for backend payload models.

    Handles:
    * sentinel values (``""``, ``"--"``, NaN) -> dropped so the field
      default is used instead
    * stashes the original payload dict in ``raw``
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        """Drop top-level sentinel values from *values*."""
        return {key: value for key, value in values.items() if not is_sentinel(value)}

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip sentinel values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        original = dict(values)
        cleaned = TracksideBaseModel._clean_dict(original)
        # Keep an explicitly passed raw= untouched.
        if "raw" not in values:
            cleaned["raw"] = original
        return cleaned
