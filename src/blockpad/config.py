"""Centralized configuration constants for blockpad.

This module provides a single source of truth for:
- Structural limits of a block document (indent depth, indent width)
- Input size limits applied at the RPC boundary
- Retry timing for persistence writes

Tunable values can be overridden via environment variables where noted.
Structural values are fixed because markdown export depends on them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


# =============================================================================
# Helper functions
# =============================================================================


def _env_int(name: str, default: int, min_val: int | None = None) -> int:
    """Get integer from environment with optional minimum enforcement."""
    val = int(os.environ.get(name, str(default)))
    if min_val is not None and val < min_val:
        return min_val
    return val


# =============================================================================
# Editor Limits
# =============================================================================


@dataclass(frozen=True)
class EditorLimits:
    """Hard limits for the block document structure."""

    # Outline nesting depth. indent/outdent clamp to [0, MAX_INDENT_LEVEL].
    MAX_INDENT_LEVEL: int = 6

    # Spaces per indent level in markdown export/import.
    INDENT_WIDTH: int = 2

    # Heading levels supported by the taxonomy.
    MAX_HEADING_LEVEL: int = 6

    # Input validation (prevent memory exhaustion from a single block)
    MAX_CONTENT_LENGTH: int = _env_int("BLOCKPAD_MAX_CONTENT_LENGTH", 500_000, min_val=10_000)
    MAX_SELECTION_SIZE: int = _env_int("BLOCKPAD_MAX_SELECTION_SIZE", 10_000, min_val=100)


EDITOR = EditorLimits()


# =============================================================================
# Persistence Retry (in seconds)
# =============================================================================


@dataclass(frozen=True)
class RetryTiming:
    """Backoff bounds for transient persistence failures."""

    MULTIPLIER: float = 0.1
    MIN_WAIT: float = 0.1
    MAX_WAIT: float = 2.0


RETRY = RetryTiming()
