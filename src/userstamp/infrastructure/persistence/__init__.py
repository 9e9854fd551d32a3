"""SQLAlchemy integration: stampable models, stamper models and schema helpers."""

from userstamp.infrastructure.persistence.migration_helper import (
    add_userstamp_columns,
    declare_userstamp_columns,
    drop_userstamp_columns,
    userstamp_column_names,
    userstamp_columns,
)
from userstamp.infrastructure.persistence.stampable import (
    ALWAYS_REWRITE,
    ALWAYS_REWRITE_KEY,
    StampConfig,
    Stampable,
)
from userstamp.infrastructure.persistence.stamper import Stamper

__all__ = [
    "ALWAYS_REWRITE",
    "ALWAYS_REWRITE_KEY",
    "StampConfig",
    "Stampable",
    "Stamper",
    "add_userstamp_columns",
    "declare_userstamp_columns",
    "drop_userstamp_columns",
    "userstamp_column_names",
    "userstamp_columns",
]
