"""
Services module for data access.

- context: CallerContext (tenant, actor, role) and SYSTEM_CALLER
- crud/: Filters, query composition, stamping, soft delete, change
  detection, transactions and the generic repository
- generic_service: Service facade mirroring the repository verbs

Usage:
    from data_core.services import GenericService, CallerContext
    from data_core.services.crud import GenericRepository, BaseFilters

    repo = GenericRepository(Patient, session, CallerContext(tenant_id=1, actor_id=100))
    service = GenericService(repo)
    patients = await service.get_all(BaseFilters(tenant_id=1))
"""

# Context must load before the crud package (the repository imports it)
from .context import CallerContext, SYSTEM_CALLER
from .generic_service import GenericService

__all__ = [
    "CallerContext",
    "SYSTEM_CALLER",
    "GenericService",
]
