"""
Infrastructure module: Database sessions and log correlation.

Provides:
- Async engine, session factory and commits (db.py)
- Operation correlation ids for logging (correlation.py)
"""

from shared.infrastructure.db import (
    create_engine_from_settings,
    create_session_factory,
    get_engine,
    get_session_factory,
    dispose_engine,
    get_db_context,
    safe_commit,
)
from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    get_operation_id,
    operation_scope,
)

__all__ = [
    # db
    "create_engine_from_settings",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "dispose_engine",
    "get_db_context",
    "safe_commit",
    # correlation
    "CorrelationIdFilter",
    "get_operation_id",
    "operation_scope",
]
