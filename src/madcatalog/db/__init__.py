"""
Database module for madcatalog.

Contains SQLAlchemy models, the savepoint helper used by every mutating
operation, and database migration management.
"""

from __future__ import annotations

from madcatalog.db.transaction import AbortAtomic, atomic

__all__: list[str] = ["AbortAtomic", "atomic"]
