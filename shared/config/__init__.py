"""
Configuration module: Settings, logging, constants.
"""

from shared.config.settings import settings, get_settings, DATABASE_URL
from shared.config.logging import get_logger, setup_logging
from shared.config.constants import (
    Layers,
    Limits,
    NO_TRACKING_OPTION,
    EXPLICIT_TRANSACTION_KEY,
    SYSTEM_TENANT_ID,
    SYSTEM_ACTOR_ID,
    SYSTEM_ROLE_ID,
)

__all__ = [
    # settings
    "settings",
    "get_settings",
    "DATABASE_URL",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "Layers",
    "Limits",
    "NO_TRACKING_OPTION",
    "EXPLICIT_TRANSACTION_KEY",
    "SYSTEM_TENANT_ID",
    "SYSTEM_ACTOR_ID",
    "SYSTEM_ROLE_ID",
]
