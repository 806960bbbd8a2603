"""
Query composition from a BaseFilters descriptor.

The composer applies a fixed pipeline to a select() over an EntityMixin
model:

    1. exclude soft-deleted rows (always)
    2. tenant scope
    3. created_by / updated_by / deleted_by equality
    4. no-tracking execution option
    5. ignore_active_check -> is_deleted IS TRUE
    6. pagination (offset/limit)
    7. sorting (order expressions, else sort_by)
    8. include_soft_deleted -> is_deleted IS TRUE
    9. created_on date range

Steps 5 and 8 add "is_deleted IS TRUE" on top of step 1, so either toggle
yields an empty result. Callers that need deleted rows query them with
their own predicate (see soft_delete.filter_deleted).

Usage:
    query = apply_query_filters(select(Patient), BaseFilters(tenant_id=1), Patient)
    rows = (await session.scalars(query)).all()

apply_query_filters() never raises: on any failure it logs and hands back
the query it was given. build_query_filters() is the strict variant.
"""

from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql import Select

from data_core.models.base import column_names
from data_core.services.crud.boundary import log_boundary_failure
from data_core.services.crud.filters import BaseFilters, OrderExpression
from shared.config.constants import Layers, NO_TRACKING_OPTION
from shared.config.logging import get_logger
from shared.utils.exceptions import FilterConfigurationError, InvalidSortKeyError

logger = get_logger(__name__)


# =============================================================================
# Sort keys
# =============================================================================


def sortable_fields(model: type[Any]) -> dict[str, str]:
    """
    Sort-key registry of ``model``: {public name: attribute name}.

    Models may declare __sortable__; otherwise every mapped column is
    sortable under its own name.
    """
    registry = getattr(model, "__sortable__", None)
    if registry is not None:
        return dict(registry)
    return {name: name for name in column_names(model)}


def resolve_sort_key(model: type[Any], key: Any) -> Any:
    """
    Resolve a sort key to a column expression.

    Raises:
        InvalidSortKeyError: key is not a registered sortable field
    """
    if isinstance(key, InstrumentedAttribute):
        if key.class_ is not model and not issubclass(model, key.class_):
            raise InvalidSortKeyError(model.__name__, str(key))
        return key

    if not isinstance(key, str) or not key:
        raise InvalidSortKeyError(model.__name__, repr(key))

    attr_name = sortable_fields(model).get(key)
    if attr_name is None:
        raise InvalidSortKeyError(model.__name__, key)
    return getattr(model, attr_name)


def _apply_order_expressions(
    query: Select,
    model: type[Any],
    expressions: list[OrderExpression],
) -> Select:
    has_primary = False
    for expression in expressions:
        column = resolve_sort_key(model, expression.key)
        clause = column.desc() if expression.order_type.is_descending else column.asc()

        if expression.order_type.is_primary:
            # A primary order replaces whatever ordering came before it
            query = query.order_by(None).order_by(clause)
            has_primary = True
            continue

        if not has_primary:
            raise FilterConfigurationError(
                "Secondary order expression without a preceding primary order",
                entity=model.__name__,
                key=str(expression.key),
            )
        query = query.order_by(clause)
    return query


# =============================================================================
# Composer
# =============================================================================


def build_query_filters(query: Select, filters: BaseFilters | None, model: type[Any]) -> Select:
    """
    Compose ``filters`` onto ``query``.

    Raises:
        FilterConfigurationError: descriptor cannot be applied
        InvalidSortKeyError: unknown sort key
    """
    if filters is None:
        return query

    # 1. Soft-deleted rows are never visible by default
    query = query.where(or_(model.is_deleted.is_(None), model.is_deleted.is_(False)))

    # 2. Tenant scope
    if filters.scopes_tenant:
        query = query.where(model.tenant_id == filters.tenant_id)

    # 3. Audit actor equality
    if filters.created_by > 0:
        query = query.where(model.created_by == filters.created_by)
    if filters.updated_by > 0:
        query = query.where(model.updated_by == filters.updated_by)
    if filters.deleted_by > 0:
        query = query.where(model.deleted_by == filters.deleted_by)

    # 4. Results are detached by the repository when this option is set
    if filters.no_tracking:
        query = query.execution_options(**{NO_TRACKING_OPTION: True})

    # 5.
    if filters.ignore_active_check:
        query = query.where(model.is_deleted.is_(True))

    # 6. Pagination
    if filters.apply_pagination:
        query = query.offset(filters.skip).limit(filters.take)

    # 7. Sorting
    if filters.order_expressions:
        query = _apply_order_expressions(query, model, filters.order_expressions)
    elif filters.sort_by:
        query = query.order_by(resolve_sort_key(model, filters.sort_by).asc())

    # 8. Stacks with step 1
    if filters.include_soft_deleted:
        query = query.where(model.is_deleted.is_(True))

    # 9. Inclusive created_on range
    if filters.start_date is not None:
        query = query.where(model.created_on >= filters.start_date)
    if filters.end_date is not None:
        query = query.where(model.created_on <= filters.end_date)

    return query


def apply_query_filters(query: Select, filters: BaseFilters | None, model: type[Any]) -> Select:
    """
    Compose ``filters`` onto ``query``, returning ``query`` unchanged on failure.
    """
    try:
        return build_query_filters(query, filters, model)
    except Exception as e:
        log_boundary_failure(
            Layers.QUERY_FILTERS,
            "apply_query_filters",
            e,
            entity=getattr(model, "__name__", str(model)),
        )
        return query


def is_no_tracking(query: Select) -> bool:
    """True when the composer marked ``query`` as no-tracking."""
    return bool(query.get_execution_options().get(NO_TRACKING_OPTION, False))
