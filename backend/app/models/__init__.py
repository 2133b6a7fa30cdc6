"""SQLAlchemy models package.

All ORM classes are registered deterministically on import so mapper configuration
and Alembic autogenerate never depend on import order.
"""

from app.models import (  # noqa: F401
    processed_item,
    raw_item,
    source,
)
