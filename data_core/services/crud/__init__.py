"""
CRUD Services - Generic operations for entity management.

Provides:
- BaseFilters / OrderExpression: Filter descriptor for queries
- apply_query_filters: Compose filters onto a select (fail-open)
- stamp / set_audit_properties: Audit stamping of entity graphs
- mark_deleted / clear_deleted: Soft delete of entity graphs
- detect_change / full_comparison: Before/after diffs
- TransactionCoordinator: Explicit transactions
- GenericRepository / Specification: Tenant-aware data access
"""

from .filters import BaseFilters, OrderExpression, OrderType
from .query_filters import (
    apply_query_filters,
    build_query_filters,
    resolve_sort_key,
    sortable_fields,
)
from .boundary import fail_open
from .audit_stamper import stamp, set_audit_properties, stamp_many
from .soft_delete import mark_deleted, clear_deleted, filter_active, filter_deleted
from .change_detector import (
    ChangeSet,
    TrackedEntry,
    TrackedEntityState,
    detect_change,
    full_comparison,
    tracked_entry,
    modified_properties,
    modified_original_values,
    modified_current_values,
    restore_original_values,
)
from .transactions import TransactionCoordinator, TransactionState
from .repository import (
    GenericRepository,
    Specification,
    PredicateSpecification,
    AndSpecification,
    OrSpecification,
    NotSpecification,
)

__all__ = [
    # Filters
    "BaseFilters",
    "OrderExpression",
    "OrderType",
    "apply_query_filters",
    "build_query_filters",
    "resolve_sort_key",
    "sortable_fields",
    # Boundary
    "fail_open",
    # Stamping / soft delete
    "stamp",
    "set_audit_properties",
    "stamp_many",
    "mark_deleted",
    "clear_deleted",
    "filter_active",
    "filter_deleted",
    # Change detection
    "ChangeSet",
    "TrackedEntry",
    "TrackedEntityState",
    "detect_change",
    "full_comparison",
    "tracked_entry",
    "modified_properties",
    "modified_original_values",
    "modified_current_values",
    "restore_original_values",
    # Transactions
    "TransactionCoordinator",
    "TransactionState",
    # Repository
    "GenericRepository",
    "Specification",
    "PredicateSpecification",
    "AndSpecification",
    "OrSpecification",
    "NotSpecification",
]
