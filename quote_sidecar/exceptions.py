"""
Quote sidecar exceptions.
"""

from typing import Optional


class QuoteSidecarError(Exception):
    """Base exception for the quote sidecar."""
    pass


class ConfigError(QuoteSidecarError):
    """An environment value could not be coerced to its expected type."""

    def __init__(self, message: str, name: Optional[str] = None, value: Optional[str] = None):
        super().__init__(message)
        self.name = name
        self.value = value


class StartupError(QuoteSidecarError):
    """The server could not bind its listening socket."""

    def __init__(self, message: str, addr: Optional[str] = None):
        super().__init__(message)
        self.addr = addr


class ClientTimeoutError(QuoteSidecarError):
    """A guest-agent call did not finish within the configured deadline."""

    def __init__(self, timeout: float):
        super().__init__(f"timed out after {timeout:g}s")
        self.timeout = timeout
