"""State layer.

This package is the single source of truth for how decoded feed events
are merged into the per-session registry and observation matrix.
"""
