"""
Explicit transaction coordination over one AsyncSession.

A coordinator owns at most one transaction:

    NONE -> STARTED -> COMMITTED | ROLLED_BACK

While a coordinator transaction is active the session is flagged so that
repository verbs flush their changes instead of committing them.

Usage:
    tx = TransactionCoordinator(session)
    await tx.start()
    await repo.save_or_update(patient)
    await repo.save_or_update(appointment)
    if not await tx.commit(should_commit=True):
        await tx.rollback()
"""

from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from shared.config.constants import EXPLICIT_TRANSACTION_KEY, Layers
from shared.config.logging import get_logger
from shared.infrastructure.correlation import bind_operation_id, new_operation_id, operation_id_var
from shared.utils.exceptions import TransactionStateError
from data_core.services.crud.boundary import log_boundary_failure

logger = get_logger(__name__)


class TransactionState(Enum):
    NONE = "none"
    STARTED = "started"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


def in_explicit_transaction(session: AsyncSession) -> bool:
    """True while a coordinator owns the session's transaction."""
    return bool(session.info.get(EXPLICIT_TRANSACTION_KEY))


class TransactionCoordinator:
    """Begin, commit and roll back one explicit transaction."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._transaction: AsyncSessionTransaction | None = None
        self._state = TransactionState.NONE
        self._operation_id: str | None = None
        self._token = None

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def operation_id(self) -> str | None:
        """Correlation id of the active (or last) transaction."""
        return self._operation_id

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.STARTED

    async def start(self) -> AsyncSessionTransaction | None:
        """
        Begin a transaction, adopting one the session already auto-began.

        Returns None (and logs) when this coordinator already has an
        active transaction or the session fails to begin.
        """
        if self._state is TransactionState.STARTED:
            logger.warning(
                "Transaction already started",
                operation_id=self._operation_id,
            )
            return None

        try:
            if self._session.in_transaction():
                self._transaction = self._session.get_transaction()
            else:
                self._transaction = await self._session.begin()
        except Exception as e:
            log_boundary_failure(Layers.TRANSACTIONS, "start", e)
            return None

        self._session.info[EXPLICIT_TRANSACTION_KEY] = True
        self._state = TransactionState.STARTED
        self._operation_id = new_operation_id()
        self._token = bind_operation_id(self._operation_id)
        logger.info("Transaction started")
        return self._transaction

    async def commit(self, should_commit: bool = True) -> bool:
        """
        Commit the active transaction.

        Returns False without committing when should_commit is False (the
        transaction stays active) or when nothing was started.
        """
        try:
            self._require_started("commit")
        except TransactionStateError:
            return False
        if not should_commit:
            logger.info("Commit skipped by caller")
            return False

        try:
            await self._session.commit()
        except Exception as e:
            log_boundary_failure(Layers.TRANSACTIONS, "commit", e)
            return False

        self._finish(TransactionState.COMMITTED)
        logger.info("Transaction committed")
        return True

    async def rollback(self) -> bool:
        """Roll back the active transaction. Returns False on failure."""
        try:
            self._require_started("rollback")
        except TransactionStateError:
            return False

        try:
            await self._session.rollback()
        except Exception as e:
            log_boundary_failure(Layers.TRANSACTIONS, "rollback", e)
            return False

        self._finish(TransactionState.ROLLED_BACK)
        logger.info("Transaction rolled back")
        return True

    def _require_started(self, action: str) -> None:
        if self._state is not TransactionState.STARTED:
            raise TransactionStateError(action, self._state.value)

    def _finish(self, state: TransactionState) -> None:
        self._session.info.pop(EXPLICIT_TRANSACTION_KEY, None)
        self._state = state
        self._transaction = None
        if self._token is not None:
            try:
                operation_id_var.reset(self._token)
            except ValueError:
                # Token created in another context (e.g. a different task)
                operation_id_var.set("")
            self._token = None
