"""Data models for feed payloads."""

from chainmon.models._base import FeedBaseModel
from chainmon.models.catalog import Chain, Source, validate_catalog_id

__all__ = [
    "Chain",
    "FeedBaseModel",
    "Source",
    "validate_catalog_id",
]
