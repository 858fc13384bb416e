"""
mlservice - Driver and configuration
"""

from mlservice.server.config import ServiceSettings, get_settings, reload_settings
from mlservice.server.driver import ApiStrategy, Driver

__all__ = [
    "ServiceSettings",
    "get_settings",
    "reload_settings",
    "ApiStrategy",
    "Driver",
]
