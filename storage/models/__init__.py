"""
Storage Models Package.

This package contains all ORM models for the module runner database.

============================================================
MODEL ORGANIZATION
============================================================

Module registry (modules.py)
- ModuleDefinition

Run tracking (runs.py)
- ModuleRun
- ModuleRunJob

Directory (directory.py)
- Project
- Person
- PersonProject
- User

============================================================
"""

from storage.models.base import Base, TimestampMixin

from storage.models.modules import ModuleDefinition

from storage.models.runs import ModuleRun, ModuleRunJob

from storage.models.directory import Person, PersonProject, Project, User

__all__ = [
    "Base",
    "TimestampMixin",
    "ModuleDefinition",
    "ModuleRun",
    "ModuleRunJob",
    "Project",
    "Person",
    "PersonProject",
    "User",
]
