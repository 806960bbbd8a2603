"""
Soft delete helpers for EntityMixin graphs.

This module provides functions to:
- Mark entity graphs as deleted (is_deleted=True with audit trail)
- Clear soft delete state for a restore
- Filter queries by soft delete state
"""

from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import or_
from sqlalchemy.sql import Select

from data_core.models.base import EntityMixin
from shared.config.logging import get_logger
from shared.utils.exceptions import TraversalError

logger = get_logger(__name__)

T = TypeVar("T", bound=EntityMixin)


def mark_deleted(entity: T, actor_id: int | None, now: datetime) -> T:
    """
    Mark ``entity`` and every nested entity as soft-deleted.

    Args:
        entity: Root of the graph
        actor_id: ID of the actor performing the deletion
        now: Deletion timestamp

    Returns:
        The same entity (mutated in place)

    Raises:
        TraversalError: a node could not be marked (earlier nodes keep
            their new state)
    """
    try:
        for node in entity.walk():
            node.set_deleted_properties(actor_id, now)
    except Exception as e:
        raise TraversalError("mark_deleted", entity_type=type(entity).__name__) from e

    logger.debug(
        "Entity graph marked deleted",
        entity_type=type(entity).__name__,
        entity_id=entity.id,
        actor_id=actor_id,
    )
    return entity


def clear_deleted(entity: T) -> T:
    """
    Clear soft delete state on ``entity`` and every nested entity.

    The caller persists the restore through the regular update path.
    """
    try:
        for node in entity.walk():
            node.clear_deleted_properties()
    except Exception as e:
        raise TraversalError("clear_deleted", entity_type=type(entity).__name__) from e
    return entity


def filter_active(query: Select, model_class: type[Any], include_deleted: bool = False) -> Select:
    """
    Exclude soft-deleted rows (NULL counts as active).

    Args:
        query: The select to filter
        model_class: The model class being queried
        include_deleted: If True, return the query unchanged
    """
    if include_deleted:
        return query
    return query.where(or_(model_class.is_deleted.is_(None), model_class.is_deleted.is_(False)))


def filter_deleted(query: Select, model_class: type[Any]) -> Select:
    """Keep only soft-deleted rows."""
    return query.where(model_class.is_deleted.is_(True))
