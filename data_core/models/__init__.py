"""
SQLAlchemy ORM Models Package.

- base: Base class, EntityMixin and column helpers

Concrete entity models live with the services that own them and mix
EntityMixin into Base.
"""

from .base import Base, EntityMixin, UTCDateTime, column_names, column_values, utc_now

__all__ = [
    "Base",
    "EntityMixin",
    "UTCDateTime",
    "column_names",
    "column_values",
    "utc_now",
]
