"""
Utilities module: Exceptions.
"""

from shared.utils.exceptions import (
    AppException,
    InvalidInputError,
    FilterConfigurationError,
    InvalidSortKeyError,
    TraversalError,
    PersistenceError,
    TransactionStateError,
)

__all__ = [
    "AppException",
    "InvalidInputError",
    "FilterConfigurationError",
    "InvalidSortKeyError",
    "TraversalError",
    "PersistenceError",
    "TransactionStateError",
]
