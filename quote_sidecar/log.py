from __future__ import annotations

import sys

_debug_enabled = False


def set_debug(enabled: bool) -> None:
    global _debug_enabled
    _debug_enabled = enabled


def log(message: str) -> None:
    """Print to stderr for logging (keeps stdout clean)."""
    print(message, file=sys.stderr, flush=True)


def debug(message: str) -> None:
    if _debug_enabled:
        log(f"debug: {message}")
