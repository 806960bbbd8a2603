"""
Shared module for configuration and infrastructure used by the data core.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Limits, layer names, execution option keys

- shared.infrastructure: Database and log correlation
  - db.py: Async engine, session factory, safe_commit()
  - correlation.py: Operation ids attached to log records

- shared.utils: Utilities
  - exceptions.py: Typed errors with auto-logging

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db_context, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Limits
    from shared.utils.exceptions import InvalidInputError
"""
