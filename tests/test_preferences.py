from __future__ import annotations

import json
from pathlib import Path

import pytest

from chainmon.preferences import AlertPreferences, JsonFilePreferenceStore, MemoryPreferenceStore


def test_toggle_off_then_on_survives_restart(tmp_path: Path) -> None:
    path = tmp_path / "prefs" / "alerts.json"
    prefs = AlertPreferences(JsonFilePreferenceStore(path))
    prefs.load()
    assert prefs.toggle("A", "X") is True
    prefs.save()

    assert prefs.toggle("A", "X") is False
    prefs.save()
    assert prefs.toggle("A", "X") is True
    prefs.save()
    before = prefs.contains("A", "X")

    restarted = AlertPreferences(JsonFilePreferenceStore(path))
    restarted.load()

    assert restarted.contains("A", "X") is before is True
    assert json.loads(path.read_text()) == {"A###X": True}


def test_disabled_pair_is_absent_from_storage(tmp_path: Path) -> None:
    path = tmp_path / "alerts.json"
    prefs = AlertPreferences(JsonFilePreferenceStore(path))
    prefs.toggle("A", "X")
    prefs.toggle("B", "X")
    prefs.toggle("A", "X")
    prefs.save()

    restarted = AlertPreferences(JsonFilePreferenceStore(path))
    restarted.load()

    assert not restarted.contains("A", "X")
    assert restarted.contains("B", "X")


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    prefs = AlertPreferences(JsonFilePreferenceStore(tmp_path / "nope.json"))

    assert prefs.load() == {}


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '"text"', ""])
def test_corrupt_file_loads_empty(tmp_path: Path, content: str) -> None:
    path = tmp_path / "alerts.json"
    path.write_text(content)

    prefs = AlertPreferences(JsonFilePreferenceStore(path))

    assert prefs.load() == {}
    assert not prefs.contains("A", "X")


def test_orphaned_keys_are_kept() -> None:
    store = MemoryPreferenceStore({"gone###chain": True, "A###X": True, "B###X": False})
    prefs = AlertPreferences(store)
    prefs.load()

    prefs.toggle("C", "X")
    prefs.save()

    assert set(store.get()) == {"gone###chain", "A###X", "C###X"}
    assert not prefs.contains("B", "X")


class _BrokenStore:
    def get(self) -> dict[str, bool]:
        raise RuntimeError("storage offline")

    def set(self, mapping: object) -> None:
        raise RuntimeError("storage offline")


def test_store_failures_never_reach_caller() -> None:
    prefs = AlertPreferences(_BrokenStore())

    assert prefs.load() == {}
    assert prefs.toggle("A", "X") is True
    prefs.save()
    assert prefs.contains("A", "X")


def test_unwritable_location_is_logged_not_raised(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")
    store = JsonFilePreferenceStore(blocker / "alerts.json")

    store.set({"A###X": True})

    assert store.get() == {}
