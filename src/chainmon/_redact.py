"""Helpers for safe debug logging.

Feed frames can be large (an ``init`` lists every source and chain) and
origins may carry credentials in their userinfo part. This module trims
and scrubs values before they are emitted in logs.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from yarl import URL

_SENSITIVE_KEYS: frozenset[str] = frozenset({"password", "token", "authorization", "cookie"})
_MAX_DEPTH = 8


def redact_url(url: str | URL) -> str:
    """Return *url* with any userinfo replaced by a placeholder."""
    parsed = URL(str(url))
    if parsed.user is None and parsed.password is None:
        return str(parsed)
    return str(parsed.with_user("<redacted>").with_password(None))


def _truncate(text: str, max_string: int) -> str:
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated {len(text) - max_string} chars>"
    return text


def redact_for_log(value: Any, *, max_string: int = 512, max_items: int = 10, _depth: int = 0) -> Any:
    """Return a log-safe copy of a frame or a parsed frame payload.

    Raw ``bytes`` frames are decoded as UTF-8 (undecodable bytes replaced)
    and truncated like text. Lists longer than *max_items* keep their head
    and a count of what was dropped. Credential-like keys are masked.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        return _truncate(value, max_string)
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Mapping):
        return {
            str(key): "<redacted>"
            if str(key).lower() in _SENSITIVE_KEYS
            else redact_for_log(item, max_string=max_string, max_items=max_items, _depth=_depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        head = [
            redact_for_log(item, max_string=max_string, max_items=max_items, _depth=_depth + 1)
            for item in value[:max_items]
        ]
        if len(value) > max_items:
            head.append(f"<{len(value) - max_items} more>")
        return head
    return _truncate(repr(value), max_string)
