"""Custom exception hierarchy for chainmon."""

from __future__ import annotations


class ChainmonError(Exception):
    """Base exception for all chainmon errors."""


class ChainmonConfigError(ChainmonError):
    """Invalid or missing configuration."""


class ChainmonTransportError(ChainmonError):
    """Stream-level failure (network, handshake, unexpected close)."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        close_code: int | None = None,
    ) -> None:
        self.url = url
        self.close_code = close_code
        super().__init__(message)


class MalformedFrameError(ChainmonError):
    """A frame could not be decoded or is missing required fields."""

    def __init__(self, message: str, *, frame_type: str | None = None) -> None:
        self.frame_type = frame_type
        super().__init__(message)


class UnknownPairError(MalformedFrameError):
    """An update referenced a source or chain absent from the current registry.

    Usually a stale frame relative to the last ``init``; the update is
    rejected and the state matrix is left untouched.
    """

    def __init__(self, message: str, *, source_id: str, chain_id: str) -> None:
        self.source_id = source_id
        self.chain_id = chain_id
        super().__init__(message, frame_type="update")


class ConnectionStateError(ChainmonError):
    """A connection lifecycle transition was requested from the wrong state."""
