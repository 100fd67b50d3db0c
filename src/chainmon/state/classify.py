"""Health classification of a single matrix cell.

This module contains no state: every attribute is derived from an
observation, the chain's current best height and the wall clock.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from chainmon._constants import AT_HEAD_TOLERANCE_BLOCKS, BACKEND_CHECK_PERIOD_SECS, FRESH_WINDOW_SECS
from chainmon.state.matrix import Observation


class HeadStatus(StrEnum):
    MISSING = "missing"
    AT_HEAD = "at-head"
    NOT_AT_HEAD = "not-at-head"


class Classification(BaseModel):
    """Display/health attributes of one ``(source, chain)`` cell.

    Numeric fields are ``None`` when the pair has no observation.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: HeadStatus
    diff: int | None = None
    staleness_secs: float | None = None
    fresh: bool = False
    stale: bool = False

    @property
    def at_head(self) -> bool:
        return self.status == HeadStatus.AT_HEAD

    @property
    def missing(self) -> bool:
        return self.status == HeadStatus.MISSING


MISSING = Classification(status=HeadStatus.MISSING)


def staleness_limit_secs(block_time_secs: int, backend_check_period_secs: int = BACKEND_CHECK_PERIOD_SECS) -> int:
    """Seconds without a value change after which a cell is stale."""
    return max(block_time_secs * 3, backend_check_period_secs)


def classify(
    observation: Observation | None,
    best_height: int,
    block_time_secs: int,
    now: float,
    *,
    fresh_window_secs: int = FRESH_WINDOW_SECS,
    backend_check_period_secs: int = BACKEND_CHECK_PERIOD_SECS,
) -> Classification:
    """Classify one cell.

    ``diff`` is ``height - best_height`` and is never positive once the
    matrix has folded the observation into the best height. A cell within
    one block of the best height still counts as at head.
    """
    if observation is None:
        return MISSING

    diff = observation.height - best_height
    staleness = now - observation.first_seen_ts
    return Classification(
        status=HeadStatus.AT_HEAD if diff >= -AT_HEAD_TOLERANCE_BLOCKS else HeadStatus.NOT_AT_HEAD,
        diff=diff,
        staleness_secs=staleness,
        fresh=staleness < fresh_window_secs,
        stale=staleness > staleness_limit_secs(block_time_secs, backend_check_period_secs),
    )
