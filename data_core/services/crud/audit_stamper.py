"""
Audit stamping of entity graphs before persistence.

Nodes are stamped children first. A failure part way through is logged
and leaves the graph partially stamped; nothing is raised to the caller.
"""

from datetime import datetime
from typing import Any

from data_core.models.base import EntityMixin
from data_core.services.crud.boundary import log_boundary_failure
from shared.config.constants import Layers
from shared.config.logging import get_logger

logger = get_logger(__name__)


def normalize_tenant_id(tenant_id: int | None) -> int | None:
    """Tenant 0 and negative ids mean "unscoped" and are stored as None."""
    if tenant_id is None or tenant_id <= 0:
        return None
    return tenant_id


def _stamp_node(node: EntityMixin, actor_id: int | None, now: datetime) -> None:
    if node.is_new:
        node.created_by = actor_id
        node.created_on = now
    node.updated_by = actor_id
    node.updated_on = now
    node.clear_deleted_properties()


def stamp(
    entity: EntityMixin | None,
    actor_id: int | None,
    tenant_id: int | None,
    now: datetime,
) -> None:
    """
    Set audit fields, tenant and active state on ``entity`` and its children.

    New nodes (no id yet) also get created_by/created_on.
    """
    if entity is None:
        return
    tenant = normalize_tenant_id(tenant_id)
    try:
        for node in entity.walk():
            _stamp_node(node, actor_id, now)
            node.tenant_id = tenant
    except Exception as e:
        log_boundary_failure(
            Layers.AUDIT_STAMPER,
            "stamp",
            e,
            entity_type=type(entity).__name__,
        )


def set_audit_properties(entity: EntityMixin | None, actor_id: int | None, now: datetime) -> None:
    """Like stamp() but leaves tenant_id untouched."""
    if entity is None:
        return
    try:
        for node in entity.walk():
            _stamp_node(node, actor_id, now)
    except Exception as e:
        log_boundary_failure(
            Layers.AUDIT_STAMPER,
            "set_audit_properties",
            e,
            entity_type=type(entity).__name__,
        )


def stamp_many(
    entities: list[Any],
    actor_id: int | None,
    tenant_id: int | None,
    now: datetime,
) -> None:
    """stamp() every entity of a batch with the same actor and time."""
    for entity in entities:
        stamp(entity, actor_id, tenant_id, now)
