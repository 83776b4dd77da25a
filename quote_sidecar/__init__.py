"""
dstack quote sidecar - HTTP front for the dstack guest-agent.

Usage:
    quote-sidecar

    curl "http://127.0.0.1:9999/quote?data=hello"
"""

from .config import Config, load_config
from .exceptions import ConfigError, QuoteSidecarError, StartupError
from .server import create_app, serve

__version__ = "0.1.0"
__all__ = [
    "Config",
    "load_config",
    "create_app",
    "serve",
    "QuoteSidecarError",
    "ConfigError",
    "StartupError",
]
