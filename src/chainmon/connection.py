"""Connection lifecycle for the feed stream.

The stream is expected to drop now and then. :class:`ConnectionManager`
walks an explicit transition table::

    DISCONNECTED --connect--> CONNECTING --opened--> CONNECTED
         ^                       |   ^                   |
         |                      lost  connect           lost
       close                     v   |                   |
         +------------------- RECONNECTING <-------------+

There is no terminal failure state: every loss schedules a retry after a
jittered, capped backoff. The retry timer is an owned
:class:`asyncio.TimerHandle` that :meth:`ConnectionManager.close` cancels.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from enum import StrEnum

from yarl import URL

from chainmon._constants import RECONNECT_BASE_DELAY_SECS, RECONNECT_JITTER, RECONNECT_MAX_DELAY_SECS
from chainmon._redact import redact_url
from chainmon._transport import FrameStream, StreamOpener
from chainmon.exceptions import ConnectionStateError

_logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class Trigger(StrEnum):
    CONNECT = "connect"
    OPENED = "opened"
    LOST = "lost"
    CLOSE = "close"


_TRANSITIONS: dict[tuple[ConnectionState, Trigger], ConnectionState] = {
    (ConnectionState.DISCONNECTED, Trigger.CONNECT): ConnectionState.CONNECTING,
    (ConnectionState.RECONNECTING, Trigger.CONNECT): ConnectionState.CONNECTING,
    (ConnectionState.CONNECTING, Trigger.OPENED): ConnectionState.CONNECTED,
    (ConnectionState.CONNECTING, Trigger.LOST): ConnectionState.RECONNECTING,
    (ConnectionState.CONNECTED, Trigger.LOST): ConnectionState.RECONNECTING,
    **{(state, Trigger.CLOSE): ConnectionState.DISCONNECTED for state in ConnectionState},
}


def next_state(state: ConnectionState, trigger: Trigger) -> ConnectionState:
    """Look up a transition.

    Raises
    ------
    ConnectionStateError
        If *trigger* is not allowed in *state*.
    """
    try:
        return _TRANSITIONS[(state, trigger)]
    except KeyError:
        raise ConnectionStateError(f"Cannot {trigger.value} while {state.value}") from None


def compute_reconnect_delay(
    attempt: int,
    *,
    base_delay: float = RECONNECT_BASE_DELAY_SECS,
    max_delay: float = RECONNECT_MAX_DELAY_SECS,
    rng: random.Random | None = None,
) -> float:
    """Backoff before reconnect attempt number *attempt* (1-based).

    ``min(max_delay, base_delay * attempt * uniform(0.5, 1.5))``, never
    negative.
    """
    low, high = RECONNECT_JITTER
    jitter = (rng or random).uniform(low, high)
    return max(0.0, min(max_delay, base_delay * max(attempt, 0) * jitter))


class ConnectionManager:
    """Keeps one feed stream open, retrying forever.

    Frames are handed to *on_frame* one at a time, in receipt order, from
    the task reading the stream.
    """

    def __init__(
        self,
        url: URL,
        opener: StreamOpener,
        on_frame: Callable[[str], None],
        *,
        base_delay: float = RECONNECT_BASE_DELAY_SECS,
        max_delay: float = RECONNECT_MAX_DELAY_SECS,
        rng: random.Random | None = None,
        on_state_change: Callable[[ConnectionState, ConnectionState], None] | None = None,
    ) -> None:
        self._url = url
        self._opener = opener
        self._on_frame = on_frame
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._rng = rng or random.Random()
        self._on_state_change = on_state_change

        self._state = ConnectionState.DISCONNECTED
        self._attempt = 0
        self._last_delay: float | None = None
        self._task: asyncio.Task[None] | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempt(self) -> int:
        """Consecutive losses since the last successful open."""
        return self._attempt

    @property
    def last_delay(self) -> float | None:
        """Delay chosen for the most recent reconnect, if any."""
        return self._last_delay

    @property
    def reconnect_pending(self) -> bool:
        return self._timer is not None

    @property
    def url(self) -> URL:
        return self._url

    def _transition(self, trigger: Trigger) -> None:
        old = self._state
        new = next_state(old, trigger)
        self._state = new
        if old == new:
            return
        _logger.debug("Connection %s -> %s (%s)", old.value, new.value, trigger.value)
        if self._on_state_change is not None:
            try:
                self._on_state_change(old, new)
            except Exception:
                _logger.debug("on_state_change callback failed", exc_info=True)

    def connect(self) -> None:
        """Start opening the stream. Must be called from a running loop."""
        loop = asyncio.get_running_loop()
        self._transition(Trigger.CONNECT)
        self._cancel_timer()
        _logger.info("Connecting to %s", redact_url(self._url))
        self._task = loop.create_task(self._run(), name="chainmon-stream")

    async def _run(self) -> None:
        stream: FrameStream | None = None
        try:
            stream = await self._opener(self._url)
            self._transition(Trigger.OPENED)
            self._attempt = 0
            _logger.info("Connected to %s", redact_url(self._url))
            async for frame in stream.frames():
                self._on_frame(frame)
            _logger.info("Stream closed")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Every failure is recoverable; log and fall through to the retry.
            _logger.warning("Stream lost: %s", exc)
            _logger.debug("Stream failure details", exc_info=True)
        finally:
            if stream is not None:
                try:
                    await stream.close()
                except Exception:
                    _logger.debug("Stream close failed", exc_info=True)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        loop = asyncio.get_running_loop()
        self._transition(Trigger.LOST)
        self._attempt += 1
        delay = compute_reconnect_delay(
            self._attempt,
            base_delay=self._base_delay,
            max_delay=self._max_delay,
            rng=self._rng,
        )
        self._last_delay = delay
        _logger.info("Reconnecting in %.2fs (attempt %d)", delay, self._attempt)
        self._timer = loop.call_later(delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.connect()

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()

    async def close(self) -> None:
        """Cancel any pending retry and the running stream, then disconnect."""
        self._cancel_timer()
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._transition(Trigger.CLOSE)
