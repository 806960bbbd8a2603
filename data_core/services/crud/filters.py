"""
Filter descriptor for repository queries.

A BaseFilters instance is built fresh by the caller for each query and is
read (never mutated) by the query composer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from shared.config.constants import Limits


class OrderType(Enum):
    """How an order expression combines with the ordering built so far."""

    ORDER_BY = 1
    ORDER_BY_DESC = 2
    THEN_BY = 3
    THEN_BY_DESC = 4

    @property
    def is_primary(self) -> bool:
        return self in (OrderType.ORDER_BY, OrderType.ORDER_BY_DESC)

    @property
    def is_descending(self) -> bool:
        return self in (OrderType.ORDER_BY_DESC, OrderType.THEN_BY_DESC)


@dataclass(frozen=True)
class OrderExpression:
    """
    One sort step.

    key is either a sortable field name of the entity ("last_name") or a
    mapped column attribute (Patient.last_name).
    """

    order_type: OrderType
    key: Any

    @classmethod
    def asc(cls, key: Any) -> "OrderExpression":
        return cls(OrderType.ORDER_BY, key)

    @classmethod
    def desc(cls, key: Any) -> "OrderExpression":
        return cls(OrderType.ORDER_BY_DESC, key)

    @classmethod
    def then_asc(cls, key: Any) -> "OrderExpression":
        return cls(OrderType.THEN_BY, key)

    @classmethod
    def then_desc(cls, key: Any) -> "OrderExpression":
        return cls(OrderType.THEN_BY_DESC, key)


@dataclass
class BaseFilters:
    """Scope, pagination, sorting and date range for one query."""

    # Equality filters (0 = not applied)
    id: int = 0
    tenant_id: int | None = None
    created_by: int = 0
    updated_by: int = 0
    deleted_by: int = 0

    # Toggles
    no_tracking: bool = True
    ignore_active_check: bool = False
    ignore_tenant_check: bool = False
    include_soft_deleted: bool = False

    # Pagination
    apply_pagination: bool = False
    skip: int | None = None
    take: int | None = None

    # Sorting
    sort_by: str | None = None
    order_expressions: list[OrderExpression] = field(default_factory=list)

    # Inclusive range on created_on
    start_date: datetime | None = None
    end_date: datetime | None = None

    def __post_init__(self):
        """Normalize pagination defaults."""
        self.take = self.take if self.take and self.take > 0 else Limits.DEFAULT_PAGE_SIZE
        self.skip = max(Limits.DEFAULT_OFFSET, self.skip or 0)
        if self.sort_by is not None:
            self.sort_by = self.sort_by.strip() or None

    @property
    def has_sorting(self) -> bool:
        return bool(self.order_expressions) or bool(self.sort_by)

    @property
    def scopes_tenant(self) -> bool:
        return not self.ignore_tenant_check and (self.tenant_id or 0) > 0
