"""chainmon - Async client for live chain-height monitoring feeds."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("chainmon")
except PackageNotFoundError:
    __version__ = "0+local"
from chainmon.client import ChainMonitorClient, DashboardSnapshot, PairView, View
from chainmon.config import MonitorConfig
from chainmon.connection import ConnectionManager, ConnectionState, compute_reconnect_delay
from chainmon.exceptions import (
    ChainmonConfigError,
    ChainmonError,
    ChainmonTransportError,
    ConnectionStateError,
    MalformedFrameError,
    UnknownPairError,
)
from chainmon.models import Chain, Source
from chainmon.notify import BellNotifier, CommandNotifier, NotificationDecider, Notifier
from chainmon.preferences import AlertPreferences, JsonFilePreferenceStore, MemoryPreferenceStore, PreferenceStore
from chainmon.state.classify import Classification, HeadStatus, classify
from chainmon.state.matrix import MatrixSnapshot, Observation, ObservationDelta, StateMatrix
from chainmon.state.registry import Registry

__all__ = [
    "__version__",
    "AlertPreferences",
    "BellNotifier",
    "Chain",
    "ChainMonitorClient",
    "ChainmonConfigError",
    "ChainmonError",
    "ChainmonTransportError",
    "Classification",
    "CommandNotifier",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStateError",
    "DashboardSnapshot",
    "HeadStatus",
    "JsonFilePreferenceStore",
    "MalformedFrameError",
    "MatrixSnapshot",
    "MemoryPreferenceStore",
    "MonitorConfig",
    "NotificationDecider",
    "Notifier",
    "Observation",
    "ObservationDelta",
    "PairView",
    "PreferenceStore",
    "Registry",
    "Source",
    "StateMatrix",
    "UnknownPairError",
    "View",
    "classify",
    "compute_reconnect_delay",
]
