from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from yarl import URL

from chainmon.client import ChainMonitorClient, DashboardSnapshot
from chainmon.config import MonitorConfig
from chainmon.connection import ConnectionState
from chainmon.preferences import JsonFilePreferenceStore, MemoryPreferenceStore
from chainmon.state.classify import HeadStatus

T0 = 1_700_000_000

INIT = json.dumps(
    {
        "type": "init",
        "sources": [
            {"id": "A", "shortName": "A", "fullName": "Source A"},
            {"id": "B", "shortName": "B", "fullName": "Source B"},
        ],
        "chains": [{"id": "X", "fullName": "Chain X", "blockTimeSecs": 10}],
    }
)


def _update(source: str, height: int, block_hash: str, ts: int, chain: str = "X") -> str:
    return json.dumps({"type": "update", "source": source, "chain": chain, "height": height, "hash": block_hash, "ts": ts})


class _RecordingView:
    def __init__(self) -> None:
        self.snapshots: list[DashboardSnapshot] = []

    def render(self, snapshot: DashboardSnapshot) -> None:
        self.snapshots.append(snapshot)


class _CountingNotifier:
    def __init__(self) -> None:
        self.plays = 0

    def play(self) -> None:
        self.plays += 1


def _client(**kwargs: object) -> tuple[ChainMonitorClient, _RecordingView, _CountingNotifier]:
    view = _RecordingView()
    notifier = _CountingNotifier()
    kwargs.setdefault("preference_store", MemoryPreferenceStore())
    client = ChainMonitorClient(
        MonitorConfig(origin="https://heights.test"),
        view=view,
        notifier=notifier,
        clock=lambda: float(T0 + 3),
        **kwargs,  # type: ignore[arg-type]
    )
    return client, view, notifier


def test_init_then_updates_classify_cells() -> None:
    client, view, _ = _client()

    client.handle_frame(INIT)
    snapshot = view.snapshots[-1]
    assert snapshot.best_height == {"X": 0}
    assert snapshot.cell("A", "X").classification.status == HeadStatus.MISSING

    client.handle_frame(_update("A", 100, "h1", T0))
    client.handle_frame(_update("B", 99, "h2", T0 + 1))
    snapshot = view.snapshots[-1]
    assert snapshot.best_height["X"] == 100
    assert snapshot.cell("A", "X").classification.status == HeadStatus.AT_HEAD
    assert snapshot.cell("B", "X").classification.diff == -1
    assert snapshot.cell("B", "X").classification.status == HeadStatus.AT_HEAD

    client.handle_frame(_update("B", 80, "h3", T0 + 2))
    cell = view.snapshots[-1].cell("B", "X")
    assert cell.classification.diff == -20
    assert cell.classification.status == HeadStatus.NOT_AT_HEAD
    assert cell.classification.fresh


def test_update_before_init_is_rejected(caplog: pytest.LogCaptureFixture) -> None:
    client, view, _ = _client()

    client.handle_frame(_update("A", 100, "h1", T0))

    assert not client.initialized
    assert view.snapshots == []
    assert "Rejecting update" in caplog.text


def test_malformed_and_unknown_frames_leave_state(caplog: pytest.LogCaptureFixture) -> None:
    client, view, _ = _client()
    client.handle_frame(INIT)
    client.handle_frame(_update("A", 100, "h1", T0))
    renders = len(view.snapshots)

    client.handle_frame("{oops")
    client.handle_frame('{"type":"update","source":"A","chain":"X"}')
    client.handle_frame('{"type":"heartbeat"}')
    client.handle_frame(_update("Z", 500, "hz", T0))

    assert len(view.snapshots) == renders
    assert client.matrix.best_height("X") == 100
    assert "Dropping malformed frame" in caplog.text


def test_alerts_fire_once_per_new_value_on_enabled_pairs() -> None:
    client, _, notifier = _client()
    client.handle_frame(INIT)
    assert client.toggle_alerts("A", "X") is True

    client.handle_frame(_update("A", 100, "h1", T0))
    client.handle_frame(_update("A", 100, "h1", T0 + 5))
    client.handle_frame(_update("B", 101, "h9", T0 + 6))
    assert notifier.plays == 1

    client.handle_frame(_update("A", 101, "h9", T0 + 7))
    assert notifier.plays == 2


def test_new_init_resets_matrix_but_keeps_preferences() -> None:
    client, view, _ = _client()
    client.handle_frame(INIT)
    client.toggle_alerts("A", "X")
    client.handle_frame(_update("A", 100, "h1", T0))

    client.handle_frame(INIT)

    snapshot = view.snapshots[-1]
    assert snapshot.best_height["X"] == 0
    assert snapshot.cell("A", "X").observation is None
    assert snapshot.cell("A", "X").alerts_enabled


def test_toggle_is_persisted_across_restart(tmp_path: Path) -> None:
    path = tmp_path / "alerts.json"
    client, _, _ = _client(preference_store=JsonFilePreferenceStore(path))
    client.handle_frame(INIT)
    client.toggle_alerts("A", "X")
    client.toggle_alerts("A", "X")
    client.toggle_alerts("A", "X")

    restarted, view, _ = _client(preference_store=JsonFilePreferenceStore(path))
    restarted.handle_frame(INIT)

    assert view.snapshots[-1].cell("A", "X").alerts_enabled
    assert not view.snapshots[-1].cell("B", "X").alerts_enabled


def test_best_states_follow_best_height() -> None:
    client, _, _ = _client()
    client.handle_frame(INIT)
    client.handle_frame(_update("B", 100, "hb", T0))
    client.handle_frame(_update("A", 90, "ha", T0))

    best = client.best_states()

    assert best["X"].hash == "hb"
    assert client.matrix.how_far_behind("A", "X") == 10


class _HoldingStream:
    def __init__(self, frames: list[str]) -> None:
        self._frames = frames

    async def frames(self) -> AsyncIterator[str]:
        for frame in self._frames:
            yield frame
        await asyncio.Event().wait()

    async def close(self) -> None:
        return None


@pytest.mark.asyncio
async def test_client_consumes_stream_and_closes() -> None:
    opened: list[URL] = []
    states: list[ConnectionState] = []

    async def opener(url: URL) -> _HoldingStream:
        opened.append(url)
        return _HoldingStream([INIT, _update("A", 100, "h1", T0)])

    client, view, _ = _client(opener=opener, on_connection_state=lambda _old, new: states.append(new))

    async with client:
        for _ in range(200):
            if client.matrix.best_height("X") == 100:
                break
            await asyncio.sleep(0.005)
        assert client.connection_state == ConnectionState.CONNECTED
        assert view.snapshots[-1].connection_state == ConnectionState.CONNECTED

    assert str(opened[0]) == "wss://heights.test/ws"
    assert client.connection_state == ConnectionState.DISCONNECTED
    assert states[-1] == ConnectionState.DISCONNECTED
    await client.wait_closed()


def test_classify_pair_uses_client_clock() -> None:
    client, _, _ = _client()
    client.handle_frame(INIT)
    client.handle_frame(_update("A", 100, "h1", T0 - 100))

    stale = client.classify_pair("A", "X")
    missing = client.classify_pair("B", "X")

    assert stale.stale and not stale.fresh
    assert stale.staleness_secs == 103
    assert missing.status == HeadStatus.MISSING


@pytest.mark.parametrize("frame", ['{"type":"init"}', '{"type":"init","sources":null,"chains":null}'])
def test_init_without_catalog_keeps_state(frame: str, caplog: pytest.LogCaptureFixture) -> None:
    client, view, _ = _client()
    client.handle_frame(INIT)
    client.handle_frame(_update("A", 100, "h1", T0))
    renders = len(view.snapshots)

    client.handle_frame(frame)

    assert [source.id for source in client.matrix.registry.sources] == ["A", "B"]
    assert client.matrix.best_height("X") == 100
    assert client.matrix.observation("A", "X") is not None
    assert len(view.snapshots) == renders
    assert "Dropping malformed frame" in caplog.text


def test_snapshot_pairs_are_read_only() -> None:
    client, _, _ = _client()
    client.handle_frame(INIT)

    snapshot = client.snapshot()

    with pytest.raises(TypeError):
        snapshot.per_pair[("A", "X")] = snapshot.cell("B", "X")  # type: ignore[index]
