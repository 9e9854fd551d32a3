"""Schema helpers declaring userstamp columns.

Works with plain SQLAlchemy tables as well as Alembic migrations:

    posts = Table("posts", metadata, Column("id", Integer, primary_key=True))
    declare_userstamp_columns(posts, include_deleter=True)

    # inside an Alembic migration
    op.create_table("posts", sa.Column("id", sa.Integer(), primary_key=True),
                    *userstamp_columns())
    with op.batch_alter_table("comments") as batch_op:
        declare_userstamp_columns(batch_op)
    add_userstamp_columns(op, "tags", include_deleter=True)

Column names follow the ``compatibility_mode`` setting.
"""

from typing import Any

from sqlalchemy import Column, Integer
from sqlalchemy.types import TypeEngine

from userstamp.core.config import default_stamp_attributes
from userstamp.core.logging import get_logger

logger = get_logger(__name__)


def userstamp_column_names(
    include_deleter: bool = False, compatibility_mode: bool | None = None
) -> list[str]:
    """Get the userstamp column names.

    Args:
        include_deleter: Include the deleter column.
        compatibility_mode: Naming convention. Defaults to the setting.

    Returns:
        The creator and updater (and deleter) column names.
    """
    attributes = default_stamp_attributes(compatibility_mode)
    names = [attributes.creator, attributes.updater]
    if include_deleter:
        names.append(attributes.deleter)
    return names


def userstamp_columns(
    include_deleter: bool = False,
    type_: TypeEngine | type[TypeEngine] = Integer,
    compatibility_mode: bool | None = None,
) -> list[Column]:
    """Build nullable userstamp columns.

    Args:
        include_deleter: Include the deleter column.
        type_: Column type, matching the stamper's primary key (Integer or String).
        compatibility_mode: Naming convention. Defaults to the setting.

    Returns:
        New Column objects, ready to be added to a table.
    """
    return [
        Column(name, type_, nullable=True)
        for name in userstamp_column_names(include_deleter, compatibility_mode)
    ]


def declare_userstamp_columns(
    builder: Any,
    include_deleter: bool = False,
    type_: TypeEngine | type[TypeEngine] = Integer,
) -> None:
    """Declare the userstamp columns on a table definition.

    Args:
        builder: A SQLAlchemy Table, an Alembic batch operations object, or a
            list collecting columns for ``op.create_table``.
        include_deleter: Also declare the deleter column.
        type_: Column type, matching the stamper's primary key.

    Raises:
        TypeError: If the builder cannot take columns.
    """
    columns = userstamp_columns(include_deleter, type_)

    if hasattr(builder, "append_column"):
        for column in columns:
            builder.append_column(column)
    elif hasattr(builder, "add_column"):
        for column in columns:
            builder.add_column(column)
    elif isinstance(builder, list):
        builder.extend(columns)
    else:
        raise TypeError(f"Cannot declare userstamp columns on {type(builder).__name__}")

    logger.debug(
        "Declared userstamp columns",
        columns=[column.name for column in columns],
    )


def add_userstamp_columns(
    op: Any,
    table_name: str,
    include_deleter: bool = False,
    type_: TypeEngine | type[TypeEngine] = Integer,
) -> None:
    """Add the userstamp columns to an existing table in an Alembic migration.

    Args:
        op: The Alembic operations object.
        table_name: The table to alter.
        include_deleter: Also add the deleter column.
        type_: Column type, matching the stamper's primary key.
    """
    for column in userstamp_columns(include_deleter, type_):
        op.add_column(table_name, column)
    logger.info("Added userstamp columns", table_name=table_name)


def drop_userstamp_columns(op: Any, table_name: str, include_deleter: bool = False) -> None:
    """Drop the userstamp columns in an Alembic migration.

    Uses batch mode so the operation also works on SQLite.

    Args:
        op: The Alembic operations object.
        table_name: The table to alter.
        include_deleter: Also drop the deleter column.
    """
    with op.batch_alter_table(table_name) as batch_op:
        for name in userstamp_column_names(include_deleter):
            batch_op.drop_column(name)
    logger.info("Dropped userstamp columns", table_name=table_name)
