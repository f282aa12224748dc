"""
Directory ORM Models.

============================================================
PURPOSE
============================================================
Minimal tables for the entities a module run refers to:
projects, persons, their membership link, and users.

The module runner only reads these to validate references;
other services own their content.

============================================================
"""

from typing import Optional

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, SurrogateId, TimestampMixin


class Project(Base, TimestampMixin):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Person(Base, TimestampMixin):
    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    linkedin_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)


class PersonProject(Base, TimestampMixin):
    """Membership of a person in a project."""

    __tablename__ = "person_projects"

    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        SurrogateId, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    person_id: Mapped[int] = mapped_column(
        SurrogateId, ForeignKey("persons.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("project_id", "person_id", name="uq_person_projects_project_person"),
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
