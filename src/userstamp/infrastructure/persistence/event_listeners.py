"""SQLAlchemy event listeners driving the userstamp hooks.

This module bridges SQLAlchemy's flush process and the ``Stampable`` hooks:
the mapper events fire for every row being inserted, updated or deleted, and
the hooks read the current stamper from the context-local registry.
"""

from typing import Any

from sqlalchemy import and_, event, update

from userstamp.core.logging import get_logger

logger = get_logger(__name__)


def register_stamping_listeners(model: type) -> None:
    """Register the stamping listeners for a model and its subclasses.

    Registration is skipped when the model, or a class it inherits from, is
    already listening.

    Args:
        model: The Stampable model class.
    """
    if getattr(model, "_userstamp_listening", False):
        return

    event.listen(model, "before_insert", before_insert_listener, propagate=True)
    event.listen(model, "before_update", before_update_listener, propagate=True)
    event.listen(model, "before_delete", before_delete_listener, propagate=True)
    model._userstamp_listening = True

    logger.debug("Registered userstamp listeners", model=model.__name__)


def before_insert_listener(mapper: Any, connection: Any, target: Any) -> None:
    """Stamp creator then updater on a new row."""
    target.set_creator_attribute()
    target.set_updater_attribute()


def before_update_listener(mapper: Any, connection: Any, target: Any) -> None:
    """Stamp the updater on a changed row."""
    target.set_updater_attribute()


def before_delete_listener(mapper: Any, connection: Any, target: Any) -> None:
    """Stamp the deleter and write it to the row before it is deleted."""
    if not target.set_deleter_attribute():
        return

    attribute = type(target).userstamp_config().deleter_attribute
    if attribute not in mapper.columns:
        return
    column = mapper.columns[attribute]
    table = column.table

    criteria = [
        pk_column == getattr(target, mapper.get_property_by_column(pk_column).key)
        for pk_column in table.primary_key.columns
    ]
    value = getattr(target, attribute)
    connection.execute(
        update(table).where(and_(*criteria)).values({column.name: value})
    )

    logger.debug(
        "Recorded deleter",
        model=type(target).__name__,
        table=table.name,
        deleter=value,
    )
