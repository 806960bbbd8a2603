"""
Base class and EntityMixin for all SQLAlchemy ORM models managed by the data core.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Iterator, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, inspect
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator[datetime]):
    """DateTime that always binds and loads aware UTC values (SQLite drops tzinfo)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class EntityMixin:
    """
    Mixin providing identity, tenant, audit and soft delete fields.

    Fields added:
    - id: Surrogate key (None/0 until first persistence)
    - tenant_id: Owning tenant (None = unscoped)
    - created_by/created_on: Set once, at first persistence
    - updated_by/updated_on: Set on every persistence
    - is_deleted: Soft delete flag (None is read as False)
    - deleted_by/deleted_on: Set only while soft-deleted

    Nested entities:
    - __children__: names of relationship attributes holding nested
      entities (scalar or collection). children() walks only these.
    - __sortable__: optional explicit sort-key registry
      {name: attribute name}. Defaults to every mapped column.
    """

    __children__: ClassVar[tuple[str, ...]] = ()
    __sortable__: ClassVar[dict[str, str] | None] = None

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)

    # Audit trail
    created_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_on: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    updated_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    updated_on: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Soft delete
    is_deleted: Mapped[Optional[bool]] = mapped_column(Boolean, default=False, nullable=True, index=True)
    deleted_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    deleted_on: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    @property
    def is_new(self) -> bool:
        """True until the entity has an identity assigned by the store."""
        return not self.id

    @property
    def is_soft_deleted(self) -> bool:
        """Nullable flag read as False when unset."""
        return self.is_deleted is True

    def children(self) -> list[EntityMixin]:
        """
        Nested entities declared in __children__.

        Attributes that are not loaded yet are skipped so the walk never
        triggers lazy loading (which is not allowed under asyncio).
        """
        unloaded = _unloaded_attributes(self)
        nested: list[EntityMixin] = []
        for name in self.__children__:
            if name in unloaded:
                continue
            value = getattr(self, name, None)
            if value is None:
                continue
            if isinstance(value, EntityMixin):
                nested.append(value)
                continue
            nested.extend(item for item in value if isinstance(item, EntityMixin))
        return nested

    def walk(self) -> Iterator[EntityMixin]:
        """Yield every node of the entity tree, children before parents."""
        seen: set[int] = set()
        yield from _post_order(self, seen)

    def set_deleted_properties(self, actor_id: int | None, now: datetime) -> None:
        """Mark this node as soft-deleted."""
        self.is_deleted = True
        self.deleted_on = now
        self.deleted_by = actor_id

    def clear_deleted_properties(self) -> None:
        """Clear soft delete state on this node."""
        self.is_deleted = False
        self.deleted_on = None
        self.deleted_by = None

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        state = "deleted" if self.is_deleted else "active"
        return f"<{class_name}(id={self.id}, tenant_id={self.tenant_id}, {state})>"


def _unloaded_attributes(entity: Any) -> set[str]:
    state = inspect(entity, raiseerr=False)
    if state is None:
        return set()
    return set(state.unloaded)


def _post_order(entity: EntityMixin, seen: set[int]) -> Iterator[EntityMixin]:
    if id(entity) in seen:
        return
    seen.add(id(entity))
    for child in entity.children():
        yield from _post_order(child, seen)
    yield entity


def column_names(model: type[Any]) -> list[str]:
    """Mapped column attribute names of ``model`` in declaration order."""
    return [attr.key for attr in inspect(model).column_attrs]


def column_values(entity: Any) -> dict[str, Any]:
    """Current values of every mapped column attribute of ``entity``."""
    return {name: getattr(entity, name) for name in column_names(type(entity))}
