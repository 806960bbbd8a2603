"""
Change detection between an in-memory entity and its persisted row.

- detect_change(): JSON object of changed column values
- full_comparison(): JSON {"oldData", "newData", "changedProperties"}
- tracked_entry() and friends: session tracking state built on SQLAlchemy
  attribute history

Only mapped column attributes take part. Relationships are never read.

The persisted row is read with a column-only select and autoflush
disabled, so the identity map and pending changes of the session are left
as they were.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from data_core.models.base import column_names, column_values
from shared.config.logging import get_logger
from shared.utils.exceptions import InvalidInputError

logger = get_logger(__name__)


# =============================================================================
# Serialization
# =============================================================================


def to_json_value(value: Any) -> Any:
    """Convert a column value into a JSON-safe value."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def serialize_values(values: dict[str, Any]) -> dict[str, Any]:
    """Serialize a {column: value} mapping for audit output."""
    return {name: to_json_value(value) for name, value in values.items()}


def _comparable(value: Any) -> Any:
    # Naive datetimes are read back from stores that drop tzinfo
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def values_differ(old: Any, new: Any) -> bool:
    """Plain inequality, None included (None -> value is a change)."""
    return _comparable(old) != _comparable(new)


class ChangeSet(BaseModel):
    """Full before/after comparison of one entity."""

    old_data: dict[str, Any] | None = Field(default=None, alias="oldData")
    new_data: dict[str, Any] | None = Field(default=None, alias="newData")
    changed_properties: list[str] = Field(default_factory=list, alias="changedProperties")

    model_config = {"populate_by_name": True}

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# =============================================================================
# Persisted snapshot
# =============================================================================


async def load_persisted_values(session: AsyncSession, entity: Any) -> dict[str, Any] | None:
    """
    Read the stored column values of ``entity``.

    Returns None when the entity is new or no row exists.
    """
    if entity is None:
        raise InvalidInputError("entity is required for change detection")
    if not entity.id:
        return None

    model = type(entity)
    names = column_names(model)
    query = (
        select(*(getattr(model, name) for name in names))
        .where(model.id == entity.id)
        .execution_options(autoflush=False)
    )
    row = (await session.execute(query)).first()
    if row is None:
        return None
    return dict(zip(names, row))


def changed_columns(persisted: dict[str, Any], current: dict[str, Any]) -> list[str]:
    """Names of columns whose current value differs from the persisted one."""
    return [
        name
        for name, value in current.items()
        if values_differ(persisted.get(name), value)
    ]


async def detect_change(session: AsyncSession, entity: Any) -> str:
    """
    Changed-only diff as JSON text: {column: new value}.

    A new entity (or one with no stored row) reports every column.
    """
    current = column_values(entity)
    persisted = await load_persisted_values(session, entity)
    if persisted is None:
        return json.dumps(serialize_values(current), default=str)

    changes = {name: current[name] for name in changed_columns(persisted, current)}
    logger.debug(
        "Change detected",
        entity_type=type(entity).__name__,
        entity_id=entity.id,
        changed=list(changes),
    )
    return json.dumps(serialize_values(changes), default=str)


async def compare(session: AsyncSession, entity: Any) -> ChangeSet:
    """Build the ChangeSet for ``entity``."""
    current = column_values(entity)
    persisted = await load_persisted_values(session, entity)
    if persisted is None:
        return ChangeSet(old_data=None, new_data=serialize_values(current), changed_properties=[])

    return ChangeSet(
        old_data=serialize_values(persisted),
        new_data=serialize_values(current),
        changed_properties=changed_columns(persisted, current),
    )


async def full_comparison(session: AsyncSession, entity: Any) -> str:
    """Full comparison as JSON text with oldData/newData/changedProperties."""
    change_set = await compare(session, entity)
    return change_set.to_json()


# =============================================================================
# Tracking state
# =============================================================================


class TrackedEntityState(Enum):
    """Tracking state of an entity relative to its session."""

    DETACHED = 0
    UNCHANGED = 1
    DELETED = 2
    MODIFIED = 3
    ADDED = 4


@dataclass
class TrackedEntry:
    """Snapshot of how a session tracks one entity."""

    entity: Any
    state: TrackedEntityState
    current_values: dict[str, Any] = field(default_factory=dict)
    original_values: dict[str, Any] = field(default_factory=dict)
    modified: list[str] = field(default_factory=list)

    @property
    def is_modified(self) -> bool:
        return bool(self.modified)


def _history_original(history: Any, current: Any) -> Any:
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return current


def tracked_entry(entity: Any) -> TrackedEntry:
    """
    Describe the tracking state of ``entity``.

    Values are read from the instance dict and attribute history, so
    expired or unloaded attributes are reported as None and never loaded.
    """
    if entity is None:
        raise InvalidInputError("entity is required for tracking")

    state = inspect(entity)
    current: dict[str, Any] = {}
    original: dict[str, Any] = {}
    modified: list[str] = []

    for name in column_names(type(entity)):
        value = state.dict.get(name)
        current[name] = value
        if state.transient or state.pending:
            original[name] = value
            continue
        history = state.attrs[name].history
        original[name] = _history_original(history, value)
        if history.has_changes():
            modified.append(name)

    session = state.session
    if state.transient or state.detached:
        entry_state = TrackedEntityState.DETACHED
    elif state.pending:
        entry_state = TrackedEntityState.ADDED
    elif state.deleted or (session is not None and entity in session.deleted):
        entry_state = TrackedEntityState.DELETED
    elif modified:
        entry_state = TrackedEntityState.MODIFIED
    else:
        entry_state = TrackedEntityState.UNCHANGED

    return TrackedEntry(
        entity=entity,
        state=entry_state,
        current_values=current,
        original_values=original,
        modified=modified,
    )


def modified_properties(entry: TrackedEntry) -> dict[str, tuple[Any, Any]]:
    """{column: (original, current)} for every modified column."""
    return {
        name: (entry.original_values.get(name), entry.current_values.get(name))
        for name in entry.modified
    }


def modified_original_values(entry: TrackedEntry) -> dict[str, Any]:
    return {name: entry.original_values.get(name) for name in entry.modified}


def modified_current_values(entry: TrackedEntry) -> dict[str, Any]:
    return {name: entry.current_values.get(name) for name in entry.modified}


def restore_original_values(entity: Any, names: list[str] | None = None) -> list[str]:
    """
    Revert modified columns of a tracked entity to their loaded values.

    Args:
        entity: Persistent entity with pending modifications
        names: Columns to revert (all modified columns when None)

    Returns:
        Names of the columns that were reverted
    """
    entry = tracked_entry(entity)
    if entry.state not in (TrackedEntityState.MODIFIED, TrackedEntityState.UNCHANGED):
        raise InvalidInputError(
            "Only tracked entities can be restored",
            entity_type=type(entity).__name__,
            state=entry.state.name,
        )

    targets = entry.modified if names is None else [n for n in names if n in entry.modified]
    for name in targets:
        setattr(entity, name, entry.original_values[name])
    return targets
