"""Core userstamp utilities.

This module exports the configuration, logging and current-stamper
utilities used throughout the package.
"""

from userstamp.core.config import (
    Settings,
    StampAttributes,
    default_stamp_attributes,
    get_settings,
)
from userstamp.core.context import (
    StamperContext,
    clear_current_stamper,
    get_current_stamper,
    reset_current_stamper,
    set_current_stamper,
    stamper_identity,
)
from userstamp.core.logging import (
    LoggingContext,
    configure_logging,
    get_logger,
)

__all__ = [
    "Settings",
    "StampAttributes",
    "default_stamp_attributes",
    "get_settings",
    "StamperContext",
    "clear_current_stamper",
    "get_current_stamper",
    "reset_current_stamper",
    "set_current_stamper",
    "stamper_identity",
    "configure_logging",
    "get_logger",
    "LoggingContext",
]
