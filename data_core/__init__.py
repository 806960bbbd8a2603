"""
Generic data-access core.

Layers:
- models: Declarative base and EntityMixin (identity, tenant, audit, soft delete)
- services.crud: Filters, query composition, stamping, change detection,
  transactions and the generic repository
- services: Caller context and the generic service facade
"""
