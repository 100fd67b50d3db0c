"""High-level async client for a chain-height monitoring feed."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Protocol

import aiohttp

from chainmon._redact import redact_for_log
from chainmon._transport import StreamOpener, WebSocketOpener, build_stream_url
from chainmon.config import MonitorConfig
from chainmon.connection import ConnectionManager, ConnectionState
from chainmon.exceptions import ChainmonError, MalformedFrameError, UnknownPairError
from chainmon.ingestion.frames import decode_frame
from chainmon.models.catalog import Chain, Source
from chainmon.notify import BellNotifier, CommandNotifier, NotificationDecider, Notifier
from chainmon.preferences import AlertPreferences, JsonFilePreferenceStore, MemoryPreferenceStore, PreferenceStore
from chainmon.state.classify import Classification, classify
from chainmon.state.events import InitEvent, UpdateEvent
from chainmon.state.matrix import Observation, ObservationDelta, PairKey, StateMatrix

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairView:
    """Everything a view needs to draw one cell."""

    observation: Observation | None
    classification: Classification
    alerts_enabled: bool


@dataclass(frozen=True)
class DashboardSnapshot:
    """Render-ready state handed to :meth:`View.render`."""

    sources: tuple[Source, ...]
    chains: tuple[Chain, ...]
    best_height: Mapping[str, int]
    per_pair: Mapping[PairKey, PairView]
    connection_state: ConnectionState
    taken_at: float

    def cell(self, source_id: str, chain_id: str) -> PairView:
        return self.per_pair[(source_id, chain_id)]


class View(Protocol):
    """Pure presentation; must not keep references to the snapshot's internals."""

    def render(self, snapshot: DashboardSnapshot) -> None: ...


def _build_notifier(config: MonitorConfig) -> Notifier:
    if config.alert_command:
        return CommandNotifier(config.alert_command)
    return BellNotifier()


def _build_store(config: MonitorConfig) -> PreferenceStore:
    if config.preferences_path is not None:
        return JsonFilePreferenceStore(config.preferences_path)
    return MemoryPreferenceStore()


class ChainMonitorClient:
    """Async client for a chain-height feed.

    This is the context object every handler works on: it owns the
    registry/state matrix, the alert preferences and the connection.

    Usage::

        async with ChainMonitorClient(config, view=my_view) as client:
            await client.wait_closed()
    """

    def __init__(
        self,
        config: MonitorConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        view: View | None = None,
        notifier: Notifier | None = None,
        preference_store: PreferenceStore | None = None,
        opener: StreamOpener | None = None,
        clock: Callable[[], float] = time.time,
        on_connection_state: Callable[[ConnectionState, ConnectionState], None] | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._opener = opener
        self._view = view
        self._clock = clock
        self._on_connection_state_cb = on_connection_state

        self._matrix = StateMatrix()
        self._initialized = False
        self._preferences = AlertPreferences(preference_store or _build_store(config))
        self._preferences.load()
        self._notifier = notifier if notifier is not None else _build_notifier(config)
        self._decider = NotificationDecider(self._preferences, self._notifier, enabled=config.alerts_enabled)
        self._connection: ConnectionManager | None = None
        self._closed: asyncio.Event | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ChainMonitorClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Open the feed stream; reconnects run in the background from here on."""
        if self._connection is not None:
            return
        opener = self._opener
        if opener is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            opener = WebSocketOpener(self._http_session, heartbeat=self._config.heartbeat)
        self._closed = asyncio.Event()
        self._connection = ConnectionManager(
            build_stream_url(self._config.origin, self._config.stream_path),
            opener,
            self.handle_frame,
            base_delay=self._config.reconnect_base_delay,
            max_delay=self._config.reconnect_max_delay,
            on_state_change=self._on_connection_state,
        )
        self._connection.connect()

    async def close(self) -> None:
        connection = self._connection
        self._connection = None
        if connection is not None:
            await connection.close()
        if isinstance(self._notifier, CommandNotifier):
            await self._notifier.aclose()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if self._closed is not None:
            self._closed.set()

    async def wait_closed(self) -> None:
        """Block until :meth:`close` runs (e.g. from a signal handler)."""
        if self._closed is None:
            return
        await self._closed.wait()

    @property
    def connection_state(self) -> ConnectionState:
        if self._connection is None:
            return ConnectionState.DISCONNECTED
        return self._connection.state

    @property
    def connection(self) -> ConnectionManager | None:
        return self._connection

    def _on_connection_state(self, old: ConnectionState, new: ConnectionState) -> None:
        if self._on_connection_state_cb is not None:
            try:
                self._on_connection_state_cb(old, new)
            except Exception:
                _logger.debug("on_connection_state callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Frame handling
    # ------------------------------------------------------------------

    def handle_frame(self, frame: str | bytes) -> None:
        """Decode and apply one frame. Bad frames are logged and dropped."""
        try:
            event = decode_frame(frame)
        except MalformedFrameError as exc:
            _logger.warning("Dropping malformed frame: %s", exc)
            _logger.debug("Malformed frame body: %s", redact_for_log(frame, max_string=256))
            return
        if event is None:
            return
        if isinstance(event, InitEvent):
            self.apply_init(event)
            return
        try:
            self.apply_update(event)
        except UnknownPairError as exc:
            _logger.warning("Rejecting update: %s", exc)

    def apply_init(self, event: InitEvent) -> None:
        """Reset the registry and the matrix to a new catalog."""
        self._matrix.reset(event.sources, event.chains)
        self._initialized = True
        _logger.info("Feed init: %d sources, %d chains", len(event.sources), len(event.chains))
        self._render()

    def apply_update(self, event: UpdateEvent) -> ObservationDelta:
        """Fold one update into the matrix and decide on an alert.

        Raises
        ------
        UnknownPairError
            If the update names a source or chain absent from the registry.
        """
        delta = self._matrix.apply(event.source_id, event.chain_id, event.height, event.hash, event.ts)
        _logger.debug(
            "Update source=%s chain=%s height=%s changed=%s",
            event.source_id,
            event.chain_id,
            event.height,
            delta.changed,
        )
        self._decider.process(delta)
        self._render()
        return delta

    def _render(self) -> None:
        if self._view is None:
            return
        try:
            self._view.render(self.snapshot())
        except Exception:
            _logger.warning("View render failed", exc_info=True)

    # ------------------------------------------------------------------
    # Queries and user actions
    # ------------------------------------------------------------------

    @property
    def matrix(self) -> StateMatrix:
        return self._matrix

    @property
    def preferences(self) -> AlertPreferences:
        return self._preferences

    @property
    def initialized(self) -> bool:
        """Whether an ``init`` frame has been applied this session."""
        return self._initialized

    def classify_pair(self, source_id: str, chain_id: str, *, now: float | None = None) -> Classification:
        chain = self._matrix.registry.chain(chain_id)
        if chain is None:
            raise ChainmonError(f"Unknown chain {chain_id!r}")
        return classify(
            self._matrix.observation(source_id, chain_id),
            self._matrix.best_height(chain_id),
            chain.block_time_secs,
            self._clock() if now is None else now,
            fresh_window_secs=self._config.fresh_window_secs,
            backend_check_period_secs=self._config.backend_check_period_secs,
        )

    def snapshot(self) -> DashboardSnapshot:
        """Registry, matrix and per-pair classification as of now."""
        now = self._clock()
        matrix = self._matrix.snapshot()
        per_pair: dict[PairKey, PairView] = {}
        for chain in matrix.chains:
            best = matrix.best_height[chain.id]
            for source in matrix.sources:
                observation = matrix.observation(source.id, chain.id)
                per_pair[(source.id, chain.id)] = PairView(
                    observation=observation,
                    classification=classify(
                        observation,
                        best,
                        chain.block_time_secs,
                        now,
                        fresh_window_secs=self._config.fresh_window_secs,
                        backend_check_period_secs=self._config.backend_check_period_secs,
                    ),
                    alerts_enabled=self._preferences.contains(source.id, chain.id),
                )
        return DashboardSnapshot(
            sources=matrix.sources,
            chains=matrix.chains,
            best_height=matrix.best_height,
            per_pair=MappingProxyType(per_pair),
            connection_state=self.connection_state,
            taken_at=now,
        )

    def best_states(self) -> dict[str, Observation]:
        """Per chain, an observation sitting at the best height."""
        return self._matrix.best_states()

    def toggle_alerts(self, source_id: str, chain_id: str) -> bool:
        """Flip alerting for a pair, persist immediately, and redraw."""
        enabled = self._preferences.toggle(source_id, chain_id)
        self._preferences.save()
        _logger.debug("Alerts for source=%s chain=%s enabled=%s", source_id, chain_id, enabled)
        self._render()
        return enabled
