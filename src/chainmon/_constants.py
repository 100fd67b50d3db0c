"""Internal constants shared across the library."""

#: Relative path of the feed stream on the dashboard origin.
STREAM_PATH = "/ws"

#: Separator used to build persisted alert-preference keys.
PREFERENCE_KEY_DELIMITER = "###"

# ------------------------------------------------------------------
# Classification thresholds
# ------------------------------------------------------------------

#: Cells whose value changed less than this many seconds ago are "fresh".
FRESH_WINDOW_SECS = 25

#: Longest interval the feed server guarantees between two checks of a source.
BACKEND_CHECK_PERIOD_SECS = 60

#: A source may trail the best height by this many blocks and still be at head.
AT_HEAD_TOLERANCE_BLOCKS = 1

#: Expected block interval assumed for chains announced without one.
DEFAULT_BLOCK_TIME_SECS = 0

# ------------------------------------------------------------------
# Reconnect backoff
# ------------------------------------------------------------------

RECONNECT_BASE_DELAY_SECS = 1.0
RECONNECT_MAX_DELAY_SECS = 60.0
RECONNECT_JITTER = (0.5, 1.5)

UINT64_MAX = 2**64 - 1


def preference_key(source_id: str, chain_id: str) -> str:
    """Build the persisted key for a ``(source, chain)`` pair."""
    return f"{source_id}{PREFERENCE_KEY_DELIMITER}{chain_id}"
