"""
Caller identity handed to repositories and services.

The context is passed explicitly; nothing is looked up from request state.
"""

from dataclasses import dataclass

from shared.config.constants import SYSTEM_ACTOR_ID, SYSTEM_ROLE_ID, SYSTEM_TENANT_ID


@dataclass(frozen=True)
class CallerContext:
    """Tenant, actor and role of whoever is calling the data core."""

    tenant_id: int | None
    actor_id: int | None
    role_id: int | None = None

    @property
    def is_system(self) -> bool:
        return self.role_id == SYSTEM_ROLE_ID


# Background jobs act as the platform itself
SYSTEM_CALLER = CallerContext(
    tenant_id=SYSTEM_TENANT_ID,
    actor_id=SYSTEM_ACTOR_ID,
    role_id=SYSTEM_ROLE_ID,
)
