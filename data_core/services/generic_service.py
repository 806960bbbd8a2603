"""
Generic Service facade over GenericRepository.

Architecture:
    Caller → Service (input checks, orchestration) → Repository (data access) → Model

The service mirrors the repository verbs one level up. It validates input
before touching the repository and carries its own fail-open boundary, so
a fault is reported with layer "GenericService".

Usage:
    from data_core.services.generic_service import GenericService

    class PatientService(GenericService[Patient]):
        def _validate_save(self, entity: Patient) -> None:
            if not entity.mrn:
                raise InvalidInputError("mrn is required")

    service = PatientService(GenericRepository(Patient, session, caller))
    patient = await service.save_or_update(Patient(mrn="MRN-001"))
"""

from __future__ import annotations

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy.sql import Select

from data_core.models.base import EntityMixin
from data_core.services.crud.boundary import fail_open
from data_core.services.crud.change_detector import TrackedEntry
from data_core.services.crud.filters import BaseFilters
from data_core.services.crud.repository import GenericRepository, Specification
from data_core.services.crud.transactions import TransactionCoordinator
from shared.config.constants import Layers
from shared.config.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=EntityMixin)


class GenericService(Generic[ModelT]):
    """
    Service for entities with generic CRUD operations.

    Subclasses override the _validate_* hooks for business rules; a hook
    raising InvalidInputError makes the verb return its default.
    """

    def __init__(self, repository: GenericRepository[ModelT]):
        self._repo = repository

    @property
    def repo(self) -> GenericRepository[ModelT]:
        """Repository for data access."""
        return self._repo

    @property
    def entity_name(self) -> str:
        return self._repo.model.__name__

    # =========================================================================
    # Validation hooks
    # =========================================================================

    def _validate_save(self, entity: ModelT) -> None:
        """Override to validate an entity before it is written."""
        pass

    def _validate_delete(self, entity: ModelT) -> None:
        """Override to validate before soft or hard delete."""
        pass

    # =========================================================================
    # Create / Update
    # =========================================================================

    @fail_open(Layers.SERVICE)
    async def add(self, entity: ModelT | None) -> ModelT | None:
        if entity is None:
            return None
        self._validate_save(entity)
        return await self._repo.add(entity)

    @fail_open(Layers.SERVICE, False)
    async def add_many(self, entities: Sequence[ModelT] | None) -> bool:
        if not entities:
            return False
        for entity in entities:
            self._validate_save(entity)
        return await self._repo.add_many(entities)

    @fail_open(Layers.SERVICE)
    async def save_or_update(
        self,
        entity: ModelT | None,
        set_audit_properties: bool = True,
        should_save: bool = True,
    ) -> ModelT | None:
        """
        Validate and persist ``entity``.

        Returns:
            The tracked entity, or None when validation or persistence fails.
        """
        if entity is None:
            return None
        self._validate_save(entity)
        return await self._repo.save_or_update(entity, set_audit_properties, should_save)

    @fail_open(Layers.SERVICE, False)
    async def update_one(self, entity: ModelT | None) -> bool:
        if entity is None:
            return False
        self._validate_save(entity)
        return await self._repo.update_one(entity)

    @fail_open(Layers.SERVICE, False)
    async def upsert_many(self, entities: Sequence[ModelT] | None) -> bool:
        if not entities:
            return False
        for entity in entities:
            self._validate_save(entity)
        return await self._repo.upsert_many(entities)

    @fail_open(Layers.SERVICE)
    def set_audit_properties(self, entity: ModelT | None) -> None:
        if entity is None:
            return None
        self._repo.set_audit_properties(entity)

    # =========================================================================
    # Read
    # =========================================================================

    @fail_open(Layers.SERVICE)
    async def get_by_id(self, entity_id: int | None, detached: bool = True) -> ModelT | None:
        if not entity_id or entity_id <= 0:
            return None
        return await self._repo.get_by_id(entity_id, detached)

    def by_id_query(self, entity_id: int | None, detached: bool = True) -> Select:
        return self._repo.by_id_query(entity_id, detached)

    @fail_open(Layers.SERVICE, default_factory=list)
    async def get_all(self, filters: BaseFilters | None = None) -> list[ModelT]:
        return await self._repo.get_all(filters)

    @fail_open(Layers.SERVICE)
    async def find_one(self, predicate: Any, filters: BaseFilters | None = None) -> ModelT | None:
        if predicate is None:
            return None
        return await self._repo.find_one(predicate, filters)

    def find(self, predicate: Any, filters: BaseFilters | None = None) -> Select:
        return self._repo.find(predicate, filters)

    @fail_open(Layers.SERVICE, default_factory=list)
    async def list_by_ids(self, entity_ids: Sequence[int] | None) -> list[ModelT]:
        ids = [entity_id for entity_id in (entity_ids or []) if entity_id and entity_id > 0]
        if not ids:
            return []
        return await self._repo.list_by_ids(ids)

    @fail_open(Layers.SERVICE, False)
    async def any(self, predicate: Any) -> bool:
        if predicate is None:
            return False
        return await self._repo.any(predicate)

    @fail_open(Layers.SERVICE, 0)
    async def count(self, predicate: Any) -> int:
        if predicate is None:
            return 0
        return await self._repo.count(predicate)

    @fail_open(Layers.SERVICE, default_factory=list)
    async def list_by_spec(self, spec: Specification | None) -> list[ModelT]:
        if spec is None:
            return []
        return await self._repo.list_by_spec(spec)

    # =========================================================================
    # Delete
    # =========================================================================

    @fail_open(Layers.SERVICE, False)
    async def soft_delete_one(self, entity: ModelT | None) -> bool:
        if entity is None:
            return False
        self._validate_delete(entity)
        return await self._repo.soft_delete_one(entity)

    @fail_open(Layers.SERVICE, False)
    async def soft_delete_many(self, entities: Sequence[ModelT] | None) -> bool:
        if not entities:
            return False
        for entity in entities:
            self._validate_delete(entity)
        return await self._repo.soft_delete_many(entities)

    @fail_open(Layers.SERVICE, False)
    async def soft_delete_where(self, predicate: Any) -> bool:
        if predicate is None:
            return False
        return await self._repo.soft_delete_where(predicate)

    @fail_open(Layers.SERVICE, False)
    async def hard_delete_by_id(self, entity_id: int | None) -> bool:
        if not entity_id or entity_id <= 0:
            return False
        return await self._repo.hard_delete_by_id(entity_id)

    @fail_open(Layers.SERVICE, 0)
    async def hard_delete_one(self, entity: ModelT | None) -> int:
        if entity is None:
            return 0
        self._validate_delete(entity)
        return await self._repo.hard_delete_one(entity)

    @fail_open(Layers.SERVICE, 0)
    async def hard_delete_where(self, predicate: Any) -> int:
        if predicate is None:
            return 0
        return await self._repo.hard_delete_where(predicate)

    @fail_open(Layers.SERVICE, False)
    async def remove_many(self, entities: Sequence[ModelT] | None) -> bool:
        if not entities:
            return False
        for entity in entities:
            self._validate_delete(entity)
        return await self._repo.remove_many(entities)

    # =========================================================================
    # Change detection
    # =========================================================================

    @fail_open(Layers.SERVICE, "")
    async def detect_change(self, entity: ModelT | None) -> str:
        if entity is None:
            return ""
        return await self._repo.detect_change(entity)

    @fail_open(Layers.SERVICE, "")
    async def full_comparison(self, entity: ModelT | None) -> str:
        if entity is None:
            return ""
        return await self._repo.full_comparison(entity)

    @fail_open(Layers.SERVICE)
    def tracked_entry(self, entity: ModelT | None) -> TrackedEntry | None:
        if entity is None:
            return None
        return self._repo.tracked_entry(entity)

    @fail_open(Layers.SERVICE)
    def restore_original_values(self, entity: ModelT | None, names: Sequence[str] | None) -> ModelT | None:
        if entity is None or not names:
            return None
        return self._repo.restore_original_values(entity, names)

    # =========================================================================
    # Transactions
    # =========================================================================

    @fail_open(Layers.SERVICE)
    async def start_transaction(self) -> TransactionCoordinator | None:
        return await self._repo.start_transaction()

    @fail_open(Layers.SERVICE, False)
    async def commit_transaction(self, transaction: TransactionCoordinator | None, should_commit: bool) -> bool:
        if transaction is None:
            return False
        return await self._repo.commit_transaction(transaction, should_commit)

    @fail_open(Layers.SERVICE, False)
    async def rollback_transaction(self, transaction: TransactionCoordinator | None) -> bool:
        if transaction is None:
            return False
        return await self._repo.rollback_transaction(transaction)
