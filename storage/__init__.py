"""
Storage Package.

- database: engine and session ownership
- models: ORM models
- repositories: the only gateway to persistent storage
"""

from storage.database import Database

__all__ = ["Database"]
