"""
Tools module for GridStore.

Offline maintenance utilities that run against a grid database:
- migrate_legacy: Resolve legacy single-choice values to option ids
"""

from .migrate_legacy import LegacyChoiceMigrator, MigrationReport

__all__ = [
    "LegacyChoiceMigrator",
    "MigrationReport",
]
