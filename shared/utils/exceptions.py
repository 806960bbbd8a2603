"""
Centralized exceptions for the data core.

Internal code raises these; the fail-open boundary on public repository
and service verbs converts them into default return values.

Usage:
    from shared.utils.exceptions import InvalidInputError, InvalidSortKeyError

    raise InvalidInputError("entity_id must be positive", entity_id=entity_id)
    raise InvalidSortKeyError("Patient", "nickname")
"""

from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(Exception):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging.
    """

    def __init__(
        self,
        detail: str,
        log_level: str = "warning",
        **log_context: Any,
    ):
        # Log the error with context
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, error_kind=type(self).__name__, **log_context)

        self.detail = detail
        self.context = log_context
        super().__init__(detail)


# =============================================================================
# Invalid input
# =============================================================================


class InvalidInputError(AppException):
    """
    A required argument is missing or out of range.

    Usage:
        raise InvalidInputError("entity_id must be positive", entity_id=0)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(detail, log_level="warning", **log_context)


class FilterConfigurationError(InvalidInputError):
    """A filter descriptor cannot be composed into a query."""

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(detail, **log_context)


class InvalidSortKeyError(FilterConfigurationError):
    """
    A sort key does not resolve against the entity's sortable fields.

    Usage:
        raise InvalidSortKeyError("Patient", "nickname")
    """

    def __init__(self, entity: str, key: str, **log_context: Any):
        detail = f"{entity} has no sortable field '{key}'"
        self.entity = entity
        self.key = key
        super().__init__(detail, entity=entity, key=key, **log_context)


# =============================================================================
# Traversal / persistence failures
# =============================================================================


class TraversalError(AppException):
    """Walking an entity graph failed part way."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Entity graph traversal failed during {operation}"
        super().__init__(detail, log_level="error", operation=operation, **log_context)


class PersistenceError(AppException):
    """
    Store operation failed.

    Usage:
        raise PersistenceError("save_or_update", entity_type="Patient")
    """

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}"
        super().__init__(detail, log_level="error", operation=operation, **log_context)


# =============================================================================
# Transactions
# =============================================================================


class TransactionStateError(AppException):
    """Transaction verb called in a state that does not allow it."""

    def __init__(self, action: str, current_state: str, **log_context: Any):
        detail = f"Cannot {action} a transaction in state '{current_state}'"
        super().__init__(
            detail,
            log_level="warning",
            action=action,
            current_state=current_state,
            **log_context,
        )
