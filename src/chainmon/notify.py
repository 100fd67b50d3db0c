"""Alert decision and best-effort playback."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import Protocol, TextIO

from chainmon.preferences import AlertPreferences
from chainmon.state.matrix import ObservationDelta

_logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Plays an alert cue. Must return immediately."""

    def play(self) -> None: ...


class BellNotifier:
    """Rings the terminal bell."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def play(self) -> None:
        stream = self._stream or sys.stderr
        stream.write("\a")
        stream.flush()


class CommandNotifier:
    """Runs an external player (e.g. ``paplay alert.oga``) in the background."""

    def __init__(self, argv: Sequence[str]) -> None:
        if not argv:
            raise ValueError("alert command must not be empty")
        self._argv = tuple(argv)
        self._tasks: set[asyncio.Task[None]] = set()

    def play(self) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            returncode = await proc.wait()
        except OSError:
            _logger.warning("Unable to play alert with %s", self._argv[0], exc_info=True)
            return
        if returncode != 0:
            _logger.warning("Alert command %s exited with %s", self._argv[0], returncode)

    async def aclose(self) -> None:
        """Wait for alerts still playing."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


def should_alert(delta: ObservationDelta, enabled: bool) -> bool:
    """An alert is due only for a genuinely new value on an enabled pair."""
    return delta.changed and enabled


class NotificationDecider:
    """Fires the notifier at most once per qualifying delta."""

    def __init__(self, preferences: AlertPreferences, notifier: Notifier | None, *, enabled: bool = True) -> None:
        self._preferences = preferences
        self._notifier = notifier
        self._enabled = enabled

    def process(self, delta: ObservationDelta) -> bool:
        """Decide on *delta* and play if due. Returns whether an alert was due."""
        if not should_alert(delta, self._preferences.contains(delta.source_id, delta.chain_id)):
            return False
        _logger.debug(
            "Alert for source=%s chain=%s height=%s",
            delta.source_id,
            delta.chain_id,
            delta.current.height,
        )
        if self._notifier is None or not self._enabled:
            return True
        try:
            self._notifier.play()
        except Exception:
            _logger.warning("Unable to play alert", exc_info=True)
        return True
