"""Tagged-union decoding of feed frames.

Each frame is a single JSON object with a ``type`` discriminant. Frames
are validated per discriminant; a frame that cannot be decoded raises
:class:`~chainmon.exceptions.MalformedFrameError` and never reaches the
state matrix. Frames with an unknown ``type`` decode to ``None``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from chainmon._redact import redact_for_log
from chainmon.exceptions import MalformedFrameError
from chainmon.ingestion.normalize import normalize_init_payload, normalize_update_payload
from chainmon.state.events import FEED_EVENT_ADAPTER, KNOWN_FRAME_TYPES, InitEvent, UpdateEvent

_logger = logging.getLogger(__name__)


def parse_frame_text(frame: str | bytes) -> dict[str, Any]:
    """Parse raw frame text into a JSON object."""
    if isinstance(frame, bytes):
        try:
            frame = frame.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFrameError(f"Frame is not valid UTF-8: {exc}") from exc
    try:
        parsed = json.loads(frame)
    except json.JSONDecodeError as exc:
        raise MalformedFrameError(f"Frame is not JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise MalformedFrameError(f"Frame is not a JSON object: {type(parsed).__name__}")
    return parsed


def decode_payload(payload: dict[str, Any]) -> InitEvent | UpdateEvent | None:
    """Validate an already-parsed frame object."""
    frame_type = payload.get("type")
    if not isinstance(frame_type, str):
        raise MalformedFrameError("Frame has no 'type' discriminant")
    if frame_type not in KNOWN_FRAME_TYPES:
        _logger.debug("Ignoring frame with unknown type=%s", redact_for_log(frame_type, max_string=64))
        return None

    normalized = normalize_init_payload(payload) if frame_type == "init" else normalize_update_payload(payload)
    try:
        event = FEED_EVENT_ADAPTER.validate_python(normalized)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'][1:]) or '<frame>'}: {err['msg']}" for err in exc.errors()
        )
        _logger.debug("Rejected %s payload: %s", frame_type, redact_for_log(payload, max_string=128))
        raise MalformedFrameError(f"Invalid {frame_type} frame: {problems}", frame_type=frame_type) from exc
    # raw keeps what was actually received, not the normalized rewrite.
    object.__setattr__(event, "raw", dict(payload))
    return event


def decode_frame(frame: str | bytes) -> InitEvent | UpdateEvent | None:
    """Decode one frame into an event.

    Returns ``None`` for frames whose ``type`` is not understood.

    Raises
    ------
    MalformedFrameError
        When the frame is not JSON, has no discriminant, or misses fields
        required by its discriminant.
    """
    return decode_payload(parse_frame_text(frame))
