"""Core package for the arc gateway core.

Holds configuration shared by the referer gate, the request log store and
the API application.
"""

from .config import Config, ConfigurationError, get_config, reload_config

__all__ = [
    "Config",
    "ConfigurationError",
    "get_config",
    "reload_config",
]
