from __future__ import annotations

import pytest

from chainmon.state.classify import HeadStatus, classify, staleness_limit_secs
from chainmon.state.matrix import Observation


def _obs(height: int, first_seen_ts: int = 1_000) -> Observation:
    return Observation(height=height, hash="h", first_seen_ts=first_seen_ts, last_checked_ts=first_seen_ts)


def test_missing_observation_has_no_numbers() -> None:
    result = classify(None, 100, 600, 2_000)

    assert result.status == HeadStatus.MISSING
    assert result.missing
    assert result.diff is None
    assert result.staleness_secs is None
    assert not result.fresh
    assert not result.stale


@pytest.mark.parametrize(
    ("height", "expected"),
    [(100, HeadStatus.AT_HEAD), (99, HeadStatus.AT_HEAD), (98, HeadStatus.NOT_AT_HEAD)],
)
def test_one_block_tolerance_at_head(height: int, expected: HeadStatus) -> None:
    assert classify(_obs(height), 100, 600, 1_000).status == expected


def test_fresh_window_is_exclusive() -> None:
    assert classify(_obs(1, first_seen_ts=1_000), 1, 600, 1_024).fresh
    assert not classify(_obs(1, first_seen_ts=1_000), 1, 600, 1_025).fresh


def test_stale_uses_block_time_or_backend_period() -> None:
    # Fast chain: the 60s backend period dominates.
    assert staleness_limit_secs(2) == 60
    assert not classify(_obs(1), 1, 2, 1_060).stale
    assert classify(_obs(1), 1, 2, 1_061).stale

    # Slow chain: three block intervals dominate.
    assert staleness_limit_secs(600) == 1_800
    assert not classify(_obs(1), 1, 600, 2_800).stale
    assert classify(_obs(1), 1, 600, 2_801).stale


def test_thresholds_are_overridable() -> None:
    result = classify(_obs(5), 5, 0, 1_030, fresh_window_secs=40, backend_check_period_secs=20)

    assert result.fresh
    assert result.stale
    assert result.staleness_secs == 30
