"""Base model for feed payloads.

Every wire model inherits from :class:`FeedBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase frame keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None`` and blank
  string values so the field default is used. Keys listed in
  ``keep_blank_keys`` keep their blank strings.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class FeedBaseModel(BaseModel):
    """Base for models decoded from feed frames."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    keep_blank_keys: ClassVar[frozenset[str]] = frozenset()

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)
    """Original frame dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any], keep_blank: frozenset[str] = frozenset()) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip() and key not in keep_blank:
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_feed_values(cls, values: Any) -> Any:
        """Strip empty values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = FeedBaseModel._clean_dict(values, cls.keep_blank_keys)
        # Keep an explicitly passed raw= (kwargs construction).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
