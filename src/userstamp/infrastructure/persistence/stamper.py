"""Mixin for models that act as stampers.

A stamper model (usually the user model) exposes class-level access to the
current stamper of its kind. The values live in the context-local registry
from ``userstamp.core.context``; this mixin only names the slot.

Example:
    class User(Stamper, Base):
        __tablename__ = "users"
        id: Mapped[int] = mapped_column(primary_key=True)

    User.set_stamper(current_user)
    User.get_stamper()  # -> current_user.id
"""

import re
from contextlib import contextmanager
from typing import Any, ClassVar, Iterator, Optional

from userstamp.core.context import (
    clear_current_stamper,
    get_current_stamper,
    reset_current_stamper,
    set_current_stamper,
)


def underscore(name: str) -> str:
    """Convert a CamelCase class name to snake_case."""
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name).lower()


def stamper_name_for(cls: type) -> str:
    """Get the registry name for a stamper class.

    Uses ``__stamper_name__`` when the class defines it, otherwise the class
    name without a trailing ``Model`` in snake_case (``UserModel`` -> ``user``).
    """
    explicit: Optional[str] = getattr(cls, "__stamper_name__", None)
    if explicit:
        return explicit
    name = cls.__name__
    if name.endswith("Model") and name != "Model":
        name = name[: -len("Model")]
    return underscore(name)


class Stamper:
    """Mixin giving a model class access to its current stamper."""

    __stamper_name__: ClassVar[Optional[str]] = None

    @classmethod
    def set_stamper(cls, stamper: Any) -> None:
        """Set the current stamper (an instance or a primary key)."""
        set_current_stamper(stamper, stamper_name_for(cls))

    @classmethod
    def get_stamper(cls) -> Any:
        """Get the identity of the current stamper, or None."""
        return get_current_stamper(stamper_name_for(cls))

    @classmethod
    def reset_stamper(cls) -> None:
        """Clear the current stamper."""
        clear_current_stamper(stamper_name_for(cls))

    @classmethod
    @contextmanager
    def stamping(cls, stamper: Any) -> Iterator[None]:
        """Use ``stamper`` as the current stamper for the duration of a block."""
        token = set_current_stamper(stamper, stamper_name_for(cls))
        try:
            yield
        finally:
            reset_current_stamper(token)
