"""
Generic Repository for EntityMixin models.

Provides a clean abstraction layer between business logic and data access
with tenant scoping, audit stamping, soft delete and change detection
built in. One repository wraps one model and one AsyncSession.

Usage:
    from data_core.services.crud.repository import GenericRepository

    repo = GenericRepository(Patient, session, CallerContext(tenant_id=1, actor_id=100))

    patient = await repo.save_or_update(Patient(first_name="Ana"))
    patients = await repo.get_all(BaseFilters(tenant_id=1, sort_by="last_name"))
    exists = await repo.any(Patient.mrn == "MRN-001")

    # With eager loading
    class WithAppointments(Specification):
        includes = (selectinload(Patient.appointments),)
        def to_expression(self):
            return Patient.first_name == "Ana"

    patients = await repo.list_by_spec(WithAppointments())

Every public verb is fail-open: faults are logged with the layer and method
name and the verb returns its default (None, [], False, 0 or "").
Outside an explicit transaction each write verb commits; inside one
(see start_transaction) it only flushes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Generic, Sequence, TypeVar

from sqlalchemy import and_, false, func, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from data_core.models.base import EntityMixin, utc_now
from data_core.services.context import CallerContext
from data_core.services.crud import audit_stamper, change_detector
from data_core.services.crud.boundary import fail_open, log_boundary_failure
from data_core.services.crud.change_detector import TrackedEntityState, TrackedEntry
from data_core.services.crud.filters import BaseFilters
from data_core.services.crud.query_filters import apply_query_filters, is_no_tracking
from data_core.services.crud.soft_delete import mark_deleted
from data_core.services.crud.transactions import TransactionCoordinator, in_explicit_transaction
from shared.config.constants import Layers, NO_TRACKING_OPTION
from shared.config.logging import get_logger
from shared.utils.exceptions import PersistenceError

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=EntityMixin)


class GenericRepository(Generic[ModelT]):
    """
    Repository providing tenant-aware CRUD for one model.

    Args:
        model: Mapped model class (must mix in EntityMixin)
        session: Async session for this unit of work
        caller: Tenant/actor used for stamping and caller-scoped reads
        clock: Time source for audit timestamps
    """

    def __init__(
        self,
        model: type[ModelT],
        session: AsyncSession,
        caller: CallerContext,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._model = model
        self._session = session
        self._caller = caller
        self._clock = clock

    @property
    def model(self) -> type[ModelT]:
        """The SQLAlchemy model class."""
        return self._model

    @property
    def session(self) -> AsyncSession:
        """The database session."""
        return self._session

    @property
    def caller(self) -> CallerContext:
        return self._caller

    # =========================================================================
    # Internals
    # =========================================================================

    def _base_query(self) -> Select:
        """Create base select query."""
        return select(self._model)

    def _empty_query(self) -> Select:
        return self._base_query().where(false())

    def _caller_filters(self, **overrides: Any) -> BaseFilters:
        """Filters scoped to the caller's tenant, untracked, active rows only."""
        values: dict[str, Any] = {
            "tenant_id": self._caller.tenant_id,
            "no_tracking": True,
            "include_soft_deleted": False,
        }
        values.update(overrides)
        return BaseFilters(**values)

    def _stamp(self, entity: ModelT, now: datetime) -> None:
        audit_stamper.stamp(entity, self._caller.actor_id, self._caller.tenant_id, now)

    def _detach(self, entities: Sequence[Any]) -> None:
        """Expunge clean instances so callers get untracked results."""
        for entity in entities:
            if entity in self._session and entity not in self._session.dirty:
                self._session.expunge(entity)

    async def _fetch_all(self, query: Select) -> list[ModelT]:
        result = await self._session.scalars(query)
        rows = list(result.unique().all())
        if is_no_tracking(query):
            self._detach(rows)
        return rows

    async def _fetch_first(self, query: Select) -> ModelT | None:
        result = await self._session.scalars(query.limit(1))
        entity = result.unique().first()
        if entity is not None and is_no_tracking(query):
            self._detach([entity])
        return entity

    async def _save_changes(self) -> int:
        """
        Flush pending changes, committing unless a coordinator owns the transaction.

        Returns:
            Number of new, dirty and deleted instances that were flushed.
        """
        pending = len(self._session.new) + len(self._session.dirty) + len(self._session.deleted)
        explicit = in_explicit_transaction(self._session)
        try:
            await self._session.flush()
            if not explicit:
                await self._session.commit()
        except Exception as e:
            if not explicit:
                await self._session.rollback()
            raise PersistenceError("save_changes", entity_type=self._model.__name__) from e
        return pending

    async def _preserve_creation(self, entity: ModelT) -> None:
        """Restore stored created_by/created_on on every persisted node of the graph."""
        for node in entity.walk():
            if node.is_new:
                continue
            node_model = type(node)
            query = (
                select(node_model.created_by, node_model.created_on)
                .where(node_model.id == node.id)
                .execution_options(autoflush=False)
            )
            row = (await self._session.execute(query)).first()
            if row is not None:
                node.created_by, node.created_on = row.created_by, row.created_on

    @staticmethod
    def _clear_unset_ids(entity: ModelT) -> None:
        """Turn id 0 into None on every new node so the store assigns ids."""
        for node in entity.walk():
            if node.is_new:
                node.id = None

    async def _attach(self, entity: ModelT) -> ModelT:
        """Add a new entity or merge an existing one into the session."""
        self._clear_unset_ids(entity)
        if entity.is_new:
            self._session.add(entity)
            return entity
        if entity in self._session:
            return entity
        return await self._session.merge(entity)

    # =========================================================================
    # Create
    # =========================================================================

    @fail_open(Layers.REPOSITORY)
    async def add(self, entity: ModelT | None) -> ModelT | None:
        """
        Insert ``entity`` unless a row with its id already exists.

        Returns:
            The stored row (detached), or the existing row when the id is taken.
        """
        if entity is None:
            return None

        if entity.id:
            existing = await self._session.get(self._model, entity.id)
            if existing is not None:
                self._detach([existing])
                return existing

        self._clear_unset_ids(entity)
        self._session.add(entity)
        await self._save_changes()
        self._detach([entity])
        return entity

    @fail_open(Layers.REPOSITORY, False)
    async def add_many(self, entities: Sequence[ModelT] | None) -> bool:
        """Insert all entities in one flush."""
        items = [entity for entity in (entities or []) if entity is not None]
        if not items:
            return False
        for entity in items:
            self._clear_unset_ids(entity)
        self._session.add_all(items)
        return await self._save_changes() > 0

    # =========================================================================
    # Read
    # =========================================================================

    def by_id_query(self, entity_id: int | None, detached: bool = True) -> Select:
        """Select for one id (matches nothing for a missing or non-positive id)."""
        if not entity_id or entity_id <= 0:
            return self._empty_query()
        query = self._base_query().where(self._model.id == entity_id)
        if detached:
            query = query.execution_options(**{NO_TRACKING_OPTION: True})
        return query

    @fail_open(Layers.REPOSITORY)
    async def get_by_id(self, entity_id: int | None, detached: bool = True) -> ModelT | None:
        """Find entity by primary key."""
        if not entity_id or entity_id <= 0:
            return None
        return await self._fetch_first(self.by_id_query(entity_id, detached))

    @fail_open(Layers.REPOSITORY, default_factory=list)
    async def get_all(self, filters: BaseFilters | None = None) -> list[ModelT]:
        """All rows matching ``filters`` (no filtering at all when None)."""
        query = apply_query_filters(self._base_query(), filters, self._model)
        return await self._fetch_all(query)

    @fail_open(Layers.REPOSITORY)
    async def find_one(self, predicate: Any, filters: BaseFilters | None = None) -> ModelT | None:
        """First row matching ``predicate`` and, when given, ``filters``."""
        if predicate is None:
            return None
        query = apply_query_filters(self._base_query(), filters, self._model)
        return await self._fetch_first(query.where(predicate))

    def find(self, predicate: Any, filters: BaseFilters | None = None) -> Select:
        """
        Select for ``predicate`` and ``filters``, for further composition.

        Returns a select that matches nothing when the predicate is missing
        or composition fails.
        """
        if predicate is None:
            return self._empty_query()
        try:
            query = apply_query_filters(self._base_query(), filters, self._model)
            return query.where(predicate)
        except Exception as e:
            log_boundary_failure(Layers.REPOSITORY, "find", e)
            return self._empty_query()

    @fail_open(Layers.REPOSITORY, default_factory=list)
    async def list_by_ids(self, entity_ids: Sequence[int] | None) -> list[ModelT]:
        """Active rows of the caller's tenant with the given ids."""
        if not entity_ids:
            return []
        filters = self._caller_filters(skip=0, take=len(entity_ids))
        query = apply_query_filters(self._base_query(), filters, self._model)
        return await self._fetch_all(query.where(self._model.id.in_(list(entity_ids))))

    @fail_open(Layers.REPOSITORY, False)
    async def any(self, predicate: Any) -> bool:
        """True when an active row of the caller's tenant matches ``predicate``."""
        if predicate is None:
            return False
        query = apply_query_filters(self._base_query(), self._caller_filters(take=1), self._model)
        result = await self._session.execute(select(query.where(predicate).exists()))
        return bool(result.scalar())

    @fail_open(Layers.REPOSITORY, 0)
    async def count(self, predicate: Any) -> int:
        """Number of active rows of the caller's tenant matching ``predicate``."""
        if predicate is None:
            return 0
        query = apply_query_filters(self._base_query(), self._caller_filters(take=1), self._model)
        subquery = query.where(predicate).subquery()
        result = await self._session.execute(select(func.count()).select_from(subquery))
        return result.scalar_one()

    @fail_open(Layers.REPOSITORY, default_factory=list)
    async def list_by_spec(self, spec: Specification | None) -> list[ModelT]:
        """Rows matching a specification, with its includes and ordering."""
        if spec is None:
            return []
        query = self._base_query().where(spec.to_expression())
        if spec.includes:
            query = query.options(*spec.includes)
        if spec.order_by:
            query = query.order_by(*spec.order_by)
        if spec.no_tracking:
            query = query.execution_options(**{NO_TRACKING_OPTION: True})
        return await self._fetch_all(query)

    # =========================================================================
    # Update
    # =========================================================================

    @fail_open(Layers.REPOSITORY)
    async def save_or_update(
        self,
        entity: ModelT | None,
        set_audit_properties: bool = True,
        should_save: bool = True,
    ) -> ModelT | None:
        """
        Insert a new entity or update an existing one.

        Args:
            entity: Entity graph to persist
            set_audit_properties: Stamp audit/tenant fields first
            should_save: Flush (and commit) now; otherwise leave pending

        Returns:
            The session-tracked entity.
        """
        if entity is None:
            return None

        if set_audit_properties:
            self._stamp(entity, self._clock())
        if not entity.is_new:
            await self._preserve_creation(entity)

        tracked = await self._attach(entity)
        if should_save:
            await self._save_changes()
        return tracked

    @fail_open(Layers.REPOSITORY, False)
    async def update_one(self, entity: ModelT | None) -> bool:
        """Write ``entity`` as-is (no stamping), then detach it."""
        if entity is None:
            return False
        tracked = await self._attach(entity)
        await self._save_changes()
        self._detach([tracked])
        return True

    @fail_open(Layers.REPOSITORY, False)
    async def upsert_many(self, entities: Sequence[ModelT] | None) -> bool:
        """Stamp every entity graph, then insert new and update existing ones."""
        items = [entity for entity in (entities or []) if entity is not None]
        if not items:
            return False

        now = self._clock()
        for entity in items:
            self._stamp(entity, now)
            if not entity.is_new:
                await self._preserve_creation(entity)
            await self._attach(entity)
        return await self._save_changes() > 0

    @fail_open(Layers.REPOSITORY)
    def set_audit_properties(self, entity: ModelT | None) -> None:
        """Stamp audit fields of the graph for the caller (tenant untouched)."""
        audit_stamper.set_audit_properties(entity, self._caller.actor_id, self._clock())

    # =========================================================================
    # Soft delete
    # =========================================================================

    @fail_open(Layers.REPOSITORY, False)
    async def soft_delete_one(self, entity: ModelT | None) -> bool:
        """Mark the stored row of ``entity`` (and its loaded children) deleted."""
        if entity is None or entity.is_new:
            return False
        stored = await self._session.get(self._model, entity.id)
        if stored is None:
            return False
        mark_deleted(stored, self._caller.actor_id, self._clock())
        return await self._save_changes() > 0

    @fail_open(Layers.REPOSITORY, False)
    async def soft_delete_many(self, entities: Sequence[ModelT] | None) -> bool:
        """Mark each persisted entity graph deleted and persist (new entities are skipped)."""
        items = [entity for entity in (entities or []) if entity is not None and not entity.is_new]
        if not items:
            return False
        now = self._clock()
        for entity in items:
            mark_deleted(entity, self._caller.actor_id, now)
            await self._attach(entity)
        return await self._save_changes() > 0

    @fail_open(Layers.REPOSITORY, False)
    async def soft_delete_where(self, predicate: Any) -> bool:
        """Mark every row matching ``predicate`` deleted."""
        if predicate is None:
            return False
        rows = (await self._session.scalars(self._base_query().where(predicate))).all()
        if not rows:
            return False
        now = self._clock()
        for row in rows:
            mark_deleted(row, self._caller.actor_id, now)
        return await self._save_changes() > 0

    # =========================================================================
    # Hard delete
    # =========================================================================

    @fail_open(Layers.REPOSITORY, False)
    async def hard_delete_by_id(self, entity_id: int | None) -> bool:
        """Physically delete the row with ``entity_id``."""
        if not entity_id or entity_id <= 0:
            return False
        stored = await self._session.get(self._model, entity_id)
        if stored is None:
            return False
        await self._session.delete(stored)
        return await self._save_changes() > 0

    @fail_open(Layers.REPOSITORY, 0)
    async def hard_delete_one(self, entity: ModelT | None) -> int:
        """Physically delete the stored row of ``entity``."""
        if entity is None or entity.is_new:
            return 0
        stored = await self._session.get(self._model, entity.id)
        if stored is None:
            return 0
        await self._session.delete(stored)
        return await self._save_changes()

    @fail_open(Layers.REPOSITORY, 0)
    async def hard_delete_where(self, predicate: Any) -> int:
        """Physically delete every row matching ``predicate``."""
        if predicate is None:
            return 0
        rows = (await self._session.scalars(self._base_query().where(predicate))).all()
        if not rows:
            return 0
        for row in rows:
            await self._session.delete(row)
        return await self._save_changes()

    @fail_open(Layers.REPOSITORY, False)
    async def remove_many(self, entities: Sequence[ModelT] | None) -> bool:
        """Physically delete the given entities."""
        items = [entity for entity in (entities or []) if entity is not None and not entity.is_new]
        if not items:
            return False
        for entity in items:
            stored = entity if entity in self._session else await self._session.get(self._model, entity.id)
            if stored is not None:
                await self._session.delete(stored)
        return await self._save_changes() > 0

    # =========================================================================
    # Change detection
    # =========================================================================

    @fail_open(Layers.REPOSITORY, "")
    async def detect_change(self, entity: ModelT | None) -> str:
        """JSON of columns that differ from the stored row."""
        if entity is None:
            return ""
        return await change_detector.detect_change(self._session, entity)

    @fail_open(Layers.REPOSITORY, "")
    async def full_comparison(self, entity: ModelT | None) -> str:
        """JSON with oldData, newData and changedProperties."""
        if entity is None:
            return ""
        return await change_detector.full_comparison(self._session, entity)

    @fail_open(Layers.REPOSITORY)
    def tracked_entry(self, entity: ModelT | None) -> TrackedEntry | None:
        if entity is None:
            return None
        return change_detector.tracked_entry(entity)

    @fail_open(Layers.REPOSITORY)
    def restore_original_values(self, entity: ModelT | None, names: Sequence[str] | None) -> ModelT | None:
        """
        Revert the named columns of a modified, tracked entity.

        Returns None when nothing applies (no names, or the entity is not
        tracked as modified).
        """
        if entity is None or not names:
            return None
        entry = change_detector.tracked_entry(entity)
        if entry.state is not TrackedEntityState.MODIFIED:
            return None
        change_detector.restore_original_values(entity, list(names))
        return entity

    # =========================================================================
    # Transactions
    # =========================================================================

    @fail_open(Layers.REPOSITORY)
    async def start_transaction(self) -> TransactionCoordinator | None:
        """Begin an explicit transaction on this repository's session."""
        if in_explicit_transaction(self._session):
            logger.warning("Explicit transaction already active on session", entity_type=self._model.__name__)
            return None
        coordinator = TransactionCoordinator(self._session)
        if await coordinator.start() is None:
            return None
        return coordinator

    @fail_open(Layers.REPOSITORY, False)
    async def commit_transaction(self, transaction: TransactionCoordinator | None, should_commit: bool) -> bool:
        if transaction is None:
            return False
        return await transaction.commit(should_commit)

    @fail_open(Layers.REPOSITORY, False)
    async def rollback_transaction(self, transaction: TransactionCoordinator | None) -> bool:
        if transaction is None:
            return False
        return await transaction.rollback()


# =============================================================================
# Specifications
# =============================================================================


class Specification:
    """
    Base class for query specifications.

    Specifications encapsulate a predicate that can be combined using
    logical operators (&, |, ~), plus loader options (includes), an
    ordering and a no-tracking flag.

    Subclass this and implement to_expression() to create reusable query
    building blocks.
    """

    includes: tuple[Any, ...] = ()
    order_by: tuple[Any, ...] = ()
    no_tracking: bool = True

    def to_expression(self) -> Any:
        """
        Convert specification to SQLAlchemy expression.

        Must be implemented by subclasses.
        """
        raise NotImplementedError

    def __and__(self, other: Specification) -> AndSpecification:
        """Combine with AND."""
        return AndSpecification(self, other)

    def __or__(self, other: Specification) -> OrSpecification:
        """Combine with OR."""
        return OrSpecification(self, other)

    def __invert__(self) -> NotSpecification:
        """Negate specification."""
        return NotSpecification(self)


class PredicateSpecification(Specification):
    """Specification built from a ready predicate."""

    def __init__(
        self,
        predicate: Any,
        *,
        includes: Sequence[Any] = (),
        order_by: Sequence[Any] = (),
        no_tracking: bool = True,
    ):
        self._predicate = predicate
        self.includes = tuple(includes)
        self.order_by = tuple(order_by)
        self.no_tracking = no_tracking

    def to_expression(self) -> Any:
        return self._predicate


class _CompositeSpecification(Specification):
    def __init__(self, left: Specification, right: Specification):
        self._left = left
        self._right = right
        self.includes = tuple(left.includes) + tuple(right.includes)
        self.order_by = tuple(left.order_by) or tuple(right.order_by)
        self.no_tracking = left.no_tracking and right.no_tracking


class AndSpecification(_CompositeSpecification):
    """AND combination of two specifications."""

    def to_expression(self) -> Any:
        return and_(self._left.to_expression(), self._right.to_expression())


class OrSpecification(_CompositeSpecification):
    """OR combination of two specifications."""

    def to_expression(self) -> Any:
        return or_(self._left.to_expression(), self._right.to_expression())


class NotSpecification(Specification):
    """Negation of a specification."""

    def __init__(self, spec: Specification):
        self._spec = spec
        self.includes = tuple(spec.includes)
        self.order_by = tuple(spec.order_by)
        self.no_tracking = spec.no_tracking

    def to_expression(self) -> Any:
        return not_(self._spec.to_expression())
