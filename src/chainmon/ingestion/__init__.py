"""Ingestion layer.

This package turns raw frames received from the feed stream into
normalized, validated events.
"""

__all__: list[str] = []
