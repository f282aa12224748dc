"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Provides the declarative base, portable column types and
common mixins used by all ORM models of the module runner.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- JsonDocument: JSONB on PostgreSQL, JSON elsewhere
- SurrogateId: BIGINT on PostgreSQL, INTEGER on SQLite (autoincrement)
- TimestampMixin: created_at / updated_at columns

============================================================
"""

from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Integer, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


JsonDocument = JSON().with_variant(JSONB(), "postgresql")

SurrogateId = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    All models in the module runner inherit from this base.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """
    Mixin providing standard timestamp columns.

    Repositories set both columns from the injected clock; the
    server default only covers rows written outside the repositories.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Record creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Last update timestamp (UTC)"
    )
