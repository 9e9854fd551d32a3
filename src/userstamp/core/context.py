"""Current stamper management using ContextVars.

This module keeps track of "who is acting" for the current unit of work (a
request, a worker task, a batch job). Values are stored per stamper name so
several actor types can be tracked side by side. The storage is a ContextVar
holding an immutable mapping, so a value set while handling one request is
never visible to a concurrently running one.
"""

from contextvars import ContextVar, Token
from types import MappingProxyType
from typing import Any, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import InstanceState

from userstamp.core.config import get_settings

_EMPTY: Mapping[str, Any] = MappingProxyType({})

_current_stampers: ContextVar[Mapping[str, Any]] = ContextVar(
    "current_stampers", default=_EMPTY
)


def _resolve_name(name: Optional[str]) -> str:
    return name or get_settings().default_stamper_name


def stamper_identity(value: Any) -> Any:
    """Reduce a stamper to the identity stored in stamp columns.

    Mapped SQLAlchemy instances are replaced by their primary key; any other
    value is returned unchanged.

    Args:
        value: A mapped instance, a primary key value, or None.

    Returns:
        The identity to record.
    """
    if value is None:
        return None
    state = inspect(value, raiseerr=False)
    if not isinstance(state, InstanceState):
        return value
    key = state.mapper.primary_key_from_instance(value)
    return key[0] if len(key) == 1 else tuple(key)


def set_current_stamper(stamper: Any, name: Optional[str] = None) -> Token:
    """Set the current stamper for this execution context.

    Args:
        stamper: The acting identity (or a mapped instance, or None).
        name: Stamper name. Defaults to the ``default_stamper_name`` setting.

    Returns:
        Token that restores the previous value via reset_current_stamper().
    """
    stampers = dict(_current_stampers.get())
    stampers[_resolve_name(name)] = stamper_identity(stamper)
    return _current_stampers.set(MappingProxyType(stampers))


def get_current_stamper(name: Optional[str] = None) -> Any:
    """Get the current stamper.

    Args:
        name: Stamper name. Defaults to the ``default_stamper_name`` setting.

    Returns:
        The stored identity, or None if no stamper is set.
    """
    return _current_stampers.get().get(_resolve_name(name))


def reset_current_stamper(token: Token) -> None:
    """Restore the stampers that were current before set_current_stamper()."""
    _current_stampers.reset(token)


def clear_current_stamper(name: Optional[str] = None) -> None:
    """Clear the current stamper.

    Args:
        name: Stamper name to clear. Clears every stamper when None.
    """
    if name is None:
        _current_stampers.set(_EMPTY)
        return
    stampers = dict(_current_stampers.get())
    stampers.pop(name, None)
    _current_stampers.set(MappingProxyType(stampers))


class StamperContext:
    """Context manager setting the current stamper for a block.

    The previous stamper is restored when the block exits, whether it
    returns normally or raises.

    Example:
        with StamperContext(admin.id):
            session.add(Post(title="Imported"))
            session.commit()
    """

    def __init__(self, stamper: Any, name: Optional[str] = None) -> None:
        self.stamper = stamper
        self.name = name
        self.token: Optional[Token] = None

    def __enter__(self) -> "StamperContext":
        self.token = set_current_stamper(self.stamper, self.name)
        return self

    def __exit__(self, *args: Any) -> None:
        if self.token is not None:
            reset_current_stamper(self.token)
            self.token = None
