"""Decoded feed events.

Every frame read from the stream is converted into one of these events.
Only the client is allowed to dispatch them into the registry and the
state matrix.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal

from pydantic import Field, TypeAdapter, field_validator, model_validator

from chainmon._constants import UINT64_MAX
from chainmon.ingestion.normalize import normalize_timestamp_seconds
from chainmon.models._base import FeedBaseModel
from chainmon.models.catalog import Chain, Source, validate_catalog_id


class InitEvent(FeedBaseModel):
    """Full catalog announcement; resets the registry and the state matrix."""

    type: Literal["init"] = "init"
    sources: tuple[Source, ...]
    chains: tuple[Chain, ...]

    @model_validator(mode="after")
    def _unique_ids(self) -> InitEvent:
        for kind, ids in (("source", [s.id for s in self.sources]), ("chain", [c.id for c in self.chains])):
            seen: set[str] = set()
            for ident in ids:
                if ident in seen:
                    raise ValueError(f"duplicate {kind} id {ident!r}")
                seen.add(ident)
        return self


class UpdateEvent(FeedBaseModel):
    """A single height/hash report for one ``(source, chain)`` pair."""

    keep_blank_keys: ClassVar[frozenset[str]] = frozenset({"hash"})

    type: Literal["update"] = "update"
    source_id: str = Field(alias="source")
    chain_id: str = Field(alias="chain")
    height: int = Field(ge=0, le=UINT64_MAX)
    hash: str
    ts: int = Field(ge=0, description="Observation time, epoch seconds")

    @field_validator("source_id", "chain_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> str:
        return validate_catalog_id(value)

    @field_validator("ts", mode="before")
    @classmethod
    def _normalize_ts(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        seconds = normalize_timestamp_seconds(value)
        # Leave unparsable values to pydantic so the error names the field.
        return int(seconds) if seconds is not None else value


FeedEvent = Annotated[InitEvent | UpdateEvent, Field(discriminator="type")]

FEED_EVENT_ADAPTER: TypeAdapter[InitEvent | UpdateEvent] = TypeAdapter(FeedEvent)

KNOWN_FRAME_TYPES: frozenset[str] = frozenset({"init", "update"})
