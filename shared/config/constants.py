"""
Centralized constants for the data core.
Avoid magic strings and repeated constants.

Usage:
    from shared.config.constants import Limits, Layers, SYSTEM_ROLE_ID

    take = filters.take or Limits.DEFAULT_PAGE_SIZE
"""

from typing import Final


# =============================================================================
# Caller identities
# =============================================================================


# Identity used by background jobs that act on behalf of the platform
SYSTEM_TENANT_ID: Final[int] = 1
SYSTEM_ACTOR_ID: Final[int] = 0
SYSTEM_ROLE_ID: Final[int] = 999


# =============================================================================
# Layer names (used to tag fail-open log records)
# =============================================================================


class Layers:
    """Layer identifiers attached to boundary logs."""

    REPOSITORY: Final[str] = "GenericRepository"
    SERVICE: Final[str] = "GenericService"
    QUERY_FILTERS: Final[str] = "QueryFilters"
    AUDIT_STAMPER: Final[str] = "AuditStamper"
    TRANSACTIONS: Final[str] = "TransactionCoordinator"


# =============================================================================
# Validation Limits
# =============================================================================


class Limits:
    """Query limits."""

    # Pagination defaults
    DEFAULT_PAGE_SIZE: Final[int] = 20
    DEFAULT_OFFSET: Final[int] = 0


# =============================================================================
# Execution options
# =============================================================================


# Statement-level hint set by the query composer; results are detached
NO_TRACKING_OPTION: Final[str] = "data_core_no_tracking"

# Key in AsyncSession.info marking a transaction owned by a coordinator
EXPLICIT_TRANSACTION_KEY: Final[str] = "data_core_explicit_transaction"
