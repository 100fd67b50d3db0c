"""Source and chain catalog entries announced by ``init`` frames."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator, model_validator

from chainmon._constants import DEFAULT_BLOCK_TIME_SECS, PREFERENCE_KEY_DELIMITER
from chainmon.models._base import FeedBaseModel


def validate_catalog_id(value: Any) -> str:
    """Normalize a source/chain id and refuse ids that would break preference keys."""
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValueError(f"id must be a string, got {type(value).__name__}")
    ident = str(value).strip()
    if not ident:
        raise ValueError("id must be non-empty")
    if PREFERENCE_KEY_DELIMITER in ident:
        raise ValueError(f"id must not contain {PREFERENCE_KEY_DELIMITER!r}")
    return ident


class Source(FeedBaseModel):
    """An independent collector reporting heights for chains."""

    id: str
    short_name: str = ""
    full_name: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return validate_catalog_id(value)

    @model_validator(mode="after")
    def _default_names(self) -> Source:
        # Names fall back to the id so a table header is never blank.
        if not self.short_name:
            object.__setattr__(self, "short_name", self.id)
        if not self.full_name:
            object.__setattr__(self, "full_name", self.short_name)
        return self


class Chain(FeedBaseModel):
    """A tracked blockchain and its expected block interval."""

    id: str
    full_name: str = ""
    short_name: str = ""
    block_time_secs: int = Field(default=DEFAULT_BLOCK_TIME_SECS, ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return validate_catalog_id(value)

    @model_validator(mode="after")
    def _default_names(self) -> Chain:
        if not self.short_name:
            object.__setattr__(self, "short_name", self.id)
        if not self.full_name:
            object.__setattr__(self, "full_name", self.short_name)
        return self
