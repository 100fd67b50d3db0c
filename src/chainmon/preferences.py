"""Alert preferences: which ``(source, chain)`` pairs play a sound on change.

The persisted form is a flat JSON object keyed by
``"<source>###<chain>"`` with ``true`` values; only key presence matters.
Keys for sources or chains that are no longer announced are kept as-is
and simply never match.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from chainmon._constants import preference_key

_logger = logging.getLogger(__name__)


class PreferenceStore(Protocol):
    """Storage medium behind :class:`AlertPreferences`.

    Both methods are best-effort: implementations log failures and never
    raise to the caller.
    """

    def get(self) -> Mapping[str, Any]: ...

    def set(self, mapping: Mapping[str, Any]) -> None: ...


class MemoryPreferenceStore:
    """Process-local store, used when no preferences file is configured."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self) -> Mapping[str, Any]:
        return dict(self._data)

    def set(self, mapping: Mapping[str, Any]) -> None:
        self._data = dict(mapping)


class JsonFilePreferenceStore:
    """Preferences persisted as one JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def get(self) -> Mapping[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            _logger.warning("Unreadable alert preferences at %s, starting empty", self.path, exc_info=True)
            return {}
        if not isinstance(data, dict):
            _logger.warning("Alert preferences at %s are not a JSON object, starting empty", self.path)
            return {}
        return data

    def set(self, mapping: Mapping[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file, then swap, so a crash never leaves half a document.
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(dict(mapping), handle, sort_keys=True)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError:
            _logger.warning("Could not persist alert preferences to %s", self.path, exc_info=True)


class AlertPreferences:
    """Set of pairs with alerts enabled, backed by a :class:`PreferenceStore`."""

    def __init__(self, store: PreferenceStore) -> None:
        self._store = store
        self._enabled: dict[str, bool] = {}

    def load(self) -> dict[str, bool]:
        """Replace the in-memory set with what the store holds.

        Never raises; unusable storage yields an empty set.
        """
        try:
            stored = self._store.get()
        except Exception:
            _logger.warning("Alert preference store failed on read", exc_info=True)
            stored = {}
        # Only truthy markers count as enabled.
        self._enabled = {str(key): True for key, value in stored.items() if value}
        _logger.debug("Loaded %d alert preference keys", len(self._enabled))
        return dict(self._enabled)

    def save(self) -> None:
        """Write the full mapping back to the store."""
        try:
            self._store.set(dict(self._enabled))
        except Exception:
            _logger.warning("Alert preference store failed on write", exc_info=True)

    def toggle(self, source_id: str, chain_id: str) -> bool:
        """Flip a pair and return its new state. The caller persists."""
        key = preference_key(source_id, chain_id)
        if key in self._enabled:
            del self._enabled[key]
            return False
        self._enabled[key] = True
        return True

    def contains(self, source_id: str, chain_id: str) -> bool:
        return preference_key(source_id, chain_id) in self._enabled

    def keys(self) -> frozenset[str]:
        return frozenset(self._enabled)
