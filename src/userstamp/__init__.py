"""Userstamp - record who created, updated and deleted SQLAlchemy models.

The current stamper is tracked per request or task and written into
creator/updater/deleter columns when records are flushed.
"""

__version__ = "0.1.0"

from userstamp.core.config import get_settings
from userstamp.core.context import (
    StamperContext,
    clear_current_stamper,
    get_current_stamper,
    set_current_stamper,
)
from userstamp.core.exceptions import UserstampError, set_diagnostic_handler
from userstamp.infrastructure.persistence import (
    ALWAYS_REWRITE,
    Stampable,
    Stamper,
    declare_userstamp_columns,
    userstamp_columns,
)

__all__ = [
    "__version__",
    "get_settings",
    "StamperContext",
    "clear_current_stamper",
    "get_current_stamper",
    "set_current_stamper",
    "UserstampError",
    "set_diagnostic_handler",
    "ALWAYS_REWRITE",
    "Stampable",
    "Stamper",
    "declare_userstamp_columns",
    "userstamp_columns",
]
