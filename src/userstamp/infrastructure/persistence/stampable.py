"""Stampable mixin recording who created, updated and deleted a record.

Mix ``Stampable`` into a declarative model that has creator/updater (and
optionally deleter) columns. On flush, the current stamper from the
context-local registry is written into those columns:

- ``before_insert``: creator (only when blank), then updater
- ``before_update``: updater (only when the row actually changed)
- ``before_delete``: deleter, persisted with an UPDATE ahead of the DELETE

Example:
    class Post(Stampable, Base):
        __tablename__ = "posts"
        __userstamp__ = {"deleter_attribute": "deleter_id"}

        id: Mapped[int] = mapped_column(primary_key=True)
        title: Mapped[str]
        creator_id: Mapped[int | None]
        updater_id: Mapped[int | None]
        deleter_id: Mapped[int | None]

Classes without ``__userstamp__`` are configured with the defaults when
mappers are first configured. ``Post.stampable(...)`` may be called at any
time to replace the configuration.
"""

import re
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, ClassVar, Iterator, Optional

from sqlalchemy import and_, inspect
from sqlalchemy.orm import foreign, relationship, remote

from userstamp.core.config import default_stamp_attributes, get_settings
from userstamp.core.context import get_current_stamper
from userstamp.core.exceptions import (
    MissingStampAttributeError,
    StampRelationshipConflictError,
    StamperClassNotFoundError,
    report,
)
from userstamp.core.logging import get_logger
from userstamp.infrastructure.persistence.event_listeners import (
    register_stamping_listeners,
)
from userstamp.infrastructure.persistence.stamper import stamper_name_for

logger = get_logger(__name__)

# Column.info key flagging columns whose value must be rewritten on every save
ALWAYS_REWRITE_KEY = "userstamp_always_rewrite"
ALWAYS_REWRITE = {ALWAYS_REWRITE_KEY: True}

# Models for which stamping is suppressed in the current context
_suppressed_models: ContextVar[frozenset] = ContextVar(
    "userstamp_suppressed_models", default=frozenset()
)


@dataclass(frozen=True)
class StampConfig:
    """Per-model userstamp configuration.

    Attributes:
        stamper_class_name: Name of the stamper (registry slot and class lookup).
        creator_attribute: Column recording the creator.
        updater_attribute: Column recording the last updater.
        deleter_attribute: Column recording the deleter.
        deleter: Whether the deleter association and hook are installed.
        include_soft_deleted: Whether associations also load soft-deleted stampers.
        stamper_class: Explicitly registered stamper class, if any.
    """

    stamper_class_name: str
    creator_attribute: str
    updater_attribute: str
    deleter_attribute: str
    deleter: bool = False
    include_soft_deleted: bool = False
    stamper_class: Optional[type] = None


def camelize(name: str) -> str:
    """Convert a snake_case name to CamelCase (``admin_user`` -> ``AdminUser``)."""
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[_\s]+", name) if part)


def singularize(name: str) -> str:
    """Get the singular form of a plural stamper name (``users`` -> ``user``)."""
    if name.endswith("ies") and len(name) > 3:
        return name[:-3] + "y"
    if name.endswith("s") and not name.endswith(("ss", "us", "is")):
        return name[:-1]
    return name


def is_blank(value: Any) -> bool:
    """Check whether a stamp value counts as unset."""
    return value is None or (isinstance(value, str) and not value.strip())


class Stampable:
    """Mixin recording the creator, updater and deleter of a model."""

    # Options passed to stampable() when the class is configured implicitly
    __userstamp__: ClassVar[Optional[dict[str, Any]]] = None

    # Should stamps be recorded for this class? Defaults to True.
    record_userstamp: ClassVar[bool] = True

    _userstamp_config: ClassVar[Optional[StampConfig]] = None

    # Relationship key -> (stamper class, column, soft-delete filter) added so far
    _userstamp_relationships: ClassVar[dict[str, tuple]] = {}

    @classmethod
    def stampable(
        cls,
        stamper_class_name: Optional[str] = None,
        *,
        stamper_class: Optional[type] = None,
        creator_attribute: Optional[str] = None,
        updater_attribute: Optional[str] = None,
        deleter_attribute: Optional[str] = None,
        deleter: Optional[bool] = None,
        include_soft_deleted: bool = False,
    ) -> StampConfig:
        """Configure userstamping for this class.

        Column names default to ``creator_id``/``updater_id``/``deleter_id``,
        or ``created_by``/``updated_by``/``deleted_by`` in compatibility mode.
        The deleter association and hook are only installed when
        ``deleter_attribute`` is given or ``deleter=True``.

        Args:
            stamper_class_name: Stamper name, defaults to the
                ``default_stamper_name`` setting ("user"). Plural names are
                singularized, so "users" and "user" are the same stamper.
            stamper_class: Stamper model class. Looked up by name in the
                declarative registry when omitted.
            creator_attribute: Column recording the creator.
            updater_attribute: Column recording the last updater.
            deleter_attribute: Column recording the deleter.
            deleter: Install the deleter association and hook.
            include_soft_deleted: Let the associations load soft-deleted stampers.

        Returns:
            StampConfig: The new configuration.
        """
        defaults = default_stamp_attributes()
        if deleter is None:
            deleter = deleter_attribute is not None
        if stamper_class_name is not None:
            stamper_class_name = singularize(stamper_class_name)
        else:
            stamper_class_name = (
                stamper_name_for(stamper_class)
                if stamper_class is not None
                else get_settings().default_stamper_name
            )

        config = StampConfig(
            stamper_class_name=stamper_class_name,
            creator_attribute=creator_attribute or defaults.creator,
            updater_attribute=updater_attribute or defaults.updater,
            deleter_attribute=deleter_attribute or defaults.deleter,
            deleter=deleter,
            include_soft_deleted=include_soft_deleted,
            stamper_class=stamper_class,
        )
        cls._userstamp_config = config

        register_stamping_listeners(cls)
        cls._register_stamp_relationships(config)

        logger.debug(
            "Configured userstamping",
            model=cls.__name__,
            stamper=config.stamper_class_name,
            creator=config.creator_attribute,
            updater=config.updater_attribute,
            deleter=config.deleter_attribute if config.deleter else None,
        )
        return config

    @classmethod
    def __declare_first__(cls) -> None:
        # Runs before mappers are configured, i.e. before the first flush
        if cls._userstamp_config is None:
            cls.stampable(**(cls.__userstamp__ or {}))

    @classmethod
    def userstamp_config(cls) -> StampConfig:
        """Get the configuration, applying ``__userstamp__`` on first use."""
        if cls._userstamp_config is None:
            return cls.stampable(**(cls.__userstamp__ or {}))
        return cls._userstamp_config

    @classmethod
    def stamper_class(cls) -> Optional[type]:
        """Resolve the stamper class.

        Returns:
            The registered stamper class, or None if it cannot be resolved.
        """
        config = cls.userstamp_config()
        if config.stamper_class is not None:
            return config.stamper_class

        registry = getattr(cls, "registry", None)
        if registry is None:
            return None

        name = config.stamper_class_name
        candidates = (name, camelize(name), f"{camelize(name)}Model")
        classes = [mapper.class_ for mapper in registry.mappers]
        for candidate in candidates:
            for klass in classes:
                if klass.__name__ == candidate:
                    return klass
        for klass in classes:
            if getattr(klass, "__stamper_name__", None) == name:
                return klass
        return None

    @classmethod
    def stamping_enabled(cls) -> bool:
        """Check whether stamps are currently recorded for this class."""
        if not cls.record_userstamp:
            return False
        return not any(issubclass(cls, model) for model in _suppressed_models.get())

    @classmethod
    @contextmanager
    def without_stamps(cls) -> Iterator[None]:
        """Temporarily turn stamping off for this class and its subclasses.

        Example:
            with Post.without_stamps():
                post.title = "Fixed typo"
                await session.commit()
        """
        token = _suppressed_models.set(_suppressed_models.get() | {cls})
        try:
            yield
        finally:
            _suppressed_models.reset(token)

    @classmethod
    def has_always_rewrite_columns(cls) -> bool:
        """Check whether any column must be rewritten on every save."""
        for column in inspect(cls).columns:
            if column.info.get(ALWAYS_REWRITE_KEY) or getattr(column.type, "always_rewrite", False):
                return True
        return False

    @classmethod
    def _register_stamp_relationships(cls, config: StampConfig) -> None:
        """Add view-only creator/updater/deleter relationships to the stamper class.

        Relationships already added by an earlier configuration are kept as
        they are. One that would change or is no longer configured is
        reported, since mapped attributes cannot be replaced.
        """
        stamper = cls.stamper_class()
        if stamper is None:
            report(StamperClassNotFoundError(cls.__name__, config.stamper_class_name))
            return

        mapper = inspect(cls)
        stamper_mapper = inspect(stamper)
        stamper_pk = stamper_mapper.primary_key[0]
        soft_delete = stamper_mapper.local_table.c.get(get_settings().soft_delete_column)
        filtered = soft_delete is not None and not config.include_soft_deleted

        associations = [
            ("creator", config.creator_attribute),
            ("updater", config.updater_attribute),
        ]
        if config.deleter:
            associations.append(("deleter", config.deleter_attribute))

        registered = dict(cls.__dict__.get("_userstamp_relationships", {}))
        for key in registered.keys() - {key for key, _ in associations}:
            report(StampRelationshipConflictError(
                cls.__name__, key, "no longer configured, the existing relationship is kept"
            ))

        for key, attribute in associations:
            if attribute not in mapper.columns:
                report(MissingStampAttributeError(cls.__name__, attribute))
                continue

            signature = (stamper, attribute, filtered)
            if key in registered:
                if registered[key] != signature:
                    report(StampRelationshipConflictError(
                        cls.__name__, key, "already mapped to a different column or stamper"
                    ))
                continue
            if mapper.has_property(key):
                report(StampRelationshipConflictError(
                    cls.__name__, key, "attribute is already defined by the model"
                ))
                continue

            join = foreign(mapper.columns[attribute]) == remote(stamper_pk)
            if filtered:
                join = and_(join, remote(soft_delete).is_(None))

            mapper.add_property(
                key,
                relationship(
                    stamper,
                    primaryjoin=join,
                    viewonly=True,
                    uselist=False,
                ),
            )
            registered[key] = signature

        cls._userstamp_relationships = registered

    def _is_new_record(self) -> bool:
        return inspect(self).key is None

    def _has_changes(self) -> bool:
        return any(attr.history.has_changes() for attr in inspect(self).attrs)

    def _current_stamper(self) -> Any:
        cls = type(self)
        if cls.stamper_class() is None:
            return None
        return get_current_stamper(cls.userstamp_config().stamper_class_name)

    def set_creator_attribute(self) -> bool:
        """Record the current stamper as creator unless one is already set.

        Returns:
            True if the creator attribute was written.
        """
        cls = type(self)
        if not cls.stamping_enabled():
            return False

        attribute = cls.userstamp_config().creator_attribute
        if not hasattr(self, attribute):
            return False
        stamper = self._current_stamper()
        if stamper is None:
            logger.debug("No current stamper", model=cls.__name__)
            return False

        if not is_blank(getattr(self, attribute)):
            return False
        setattr(self, attribute, stamper)
        return True

    def set_updater_attribute(self) -> bool:
        """Record the current stamper as updater.

        Only new records, records with pending changes, and classes with
        always-rewrite columns are stamped. Existing values are overwritten.

        Returns:
            True if the updater attribute was written.
        """
        cls = type(self)
        if not cls.stamping_enabled():
            return False
        if not (self._is_new_record() or self._has_changes() or cls.has_always_rewrite_columns()):
            return False

        attribute = cls.userstamp_config().updater_attribute
        if not hasattr(self, attribute):
            return False
        stamper = self._current_stamper()
        if stamper is None:
            logger.debug("No current stamper", model=cls.__name__)
            return False

        setattr(self, attribute, stamper)
        return True

    def set_deleter_attribute(self) -> bool:
        """Record the current stamper as deleter.

        The before_delete listener persists the value before the row is
        deleted.

        Returns:
            True if the deleter attribute was written.
        """
        cls = type(self)
        config = cls.userstamp_config()
        if not config.deleter or not cls.stamping_enabled():
            return False

        if not hasattr(self, config.deleter_attribute):
            return False
        stamper = self._current_stamper()
        if stamper is None:
            logger.debug("No current stamper", model=cls.__name__)
            return False

        setattr(self, config.deleter_attribute, stamper)
        return True
