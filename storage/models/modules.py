"""
Module Registry ORM Models.

============================================================
PURPOSE
============================================================
Stores the catalog of registered, versioned module definitions.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Mutability: MUTABLE (is_enabled, config_schema only)
- Deletion: NEVER (disabling is the retirement path)
- Source: Module registry, bootstrap seeder
- Consumers: Version resolver, listing queries

============================================================
"""

from typing import Any, Optional

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import MODULE_KEY_MAX_LENGTH, MODULE_VERSION_MAX_LENGTH
from storage.models.base import Base, JsonDocument, SurrogateId, TimestampMixin


class ModuleDefinition(Base, TimestampMixin):
    """
    A registered, versioned unit of work.

    ============================================================
    IDENTITY
    ============================================================
    - id: surrogate key used by update operations
    - (module_key, version): unique logical identity

    ============================================================
    RESOLUTION
    ============================================================
    "Latest" for a key is the enabled row with the greatest
    created_at, ties broken by the greatest id. The composite
    index below serves exactly that query.

    ============================================================
    """

    __tablename__ = "module_definitions"

    id: Mapped[int] = mapped_column(
        SurrogateId,
        primary_key=True,
        autoincrement=True,
        comment="Surrogate module definition id"
    )

    module_key: Mapped[str] = mapped_column(
        String(MODULE_KEY_MAX_LENGTH),
        nullable=False,
        comment="Stable logical module name"
    )

    module_type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="CONNECTOR, ENRICHER or COMPOSER"
    )

    scope: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="PERSON_LEVEL or PROJECT_LEVEL"
    )

    version: Mapped[str] = mapped_column(
        String(MODULE_VERSION_MAX_LENGTH),
        nullable=False,
        comment="Version label, e.g. v1"
    )

    config_schema: Mapped[Optional[Any]] = mapped_column(
        JsonDocument,
        nullable=True,
        comment="Declarative schema for the module input (opaque)"
    )

    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Whether new runs may bind to this version"
    )

    __table_args__ = (
        UniqueConstraint("module_key", "version", name="uq_module_definitions_key_version"),
        Index("ix_module_definitions_key_enabled_created", "module_key", "is_enabled", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ModuleDefinition id={self.id} {self.module_key}@{self.version} "
            f"type={self.module_type} scope={self.scope} enabled={self.is_enabled}>"
        )
