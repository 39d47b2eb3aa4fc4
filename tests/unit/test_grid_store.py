"""
Unit tests for the GridStore facade.

Tests cover:
- Construction from configuration
- Schema initialization
- Health and stats
"""

import os
import tempfile
from decimal import Decimal

import pytest

from gridstore import __version__
from gridstore.config import StorageConfig, WriteConfig
from gridstore.schema.types import ColumnType
from gridstore.schema.values import NumberValue
from gridstore.store.grid_store import GridStore


class TestGridStore:
    """Tests for GridStore."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.mark.asyncio
    async def test_from_config(self, data_dir):
        """Configuration sections are applied to the components."""
        db_path = os.path.join(data_dir, "nested", "grid.db")
        store = GridStore.from_config(
            StorageConfig(db_path=db_path, wal_mode=False, busy_timeout_ms=100),
            WriteConfig(max_retries=7, retry_delay_ms=5),
        )

        assert store.db.busy_timeout_ms == 100
        assert store.rows.max_retries == 7
        assert store.rows.retry_delay_ms == 5

        await store.initialize()
        assert store.db.exists()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, data_dir):
        """Re-initializing keeps existing data."""
        db_path = os.path.join(data_dir, "grid.db")
        store = GridStore(db_path)
        await store.initialize()
        await store.create_column("Name", ColumnType.TEXT)

        reopened = GridStore(db_path)
        await reopened.initialize()

        assert [c.name for c in await reopened.list_active_columns()] == ["Name"]

    @pytest.mark.asyncio
    async def test_health(self, data_dir):
        """A reachable database is healthy."""
        store = GridStore(os.path.join(data_dir, "grid.db"))
        await store.initialize()

        health = await store.health()

        assert health == {"healthy": True, "version": __version__, "database": "healthy"}

    @pytest.mark.asyncio
    async def test_stats(self, data_dir):
        """Stats count live entities directly."""
        store = GridStore(os.path.join(data_dir, "grid.db"))
        await store.initialize()

        age = await store.create_column("Age", ColumnType.NUMBER)
        await store.create_column("Department", ColumnType.SINGLE_CHOICE, ["A", "B"])
        rows = [await store.insert_row_at_top() for _ in range(3)]
        await store.write_cell(rows[0].id, age.id, NumberValue(Decimal(1)))
        await store.delete_row(rows[1].id)

        stats = await store.get_stats()

        assert stats == {
            "columns": 2,
            "options": 2,
            "rows": 2,
            "cells": 1,
            "selections": 0,
        }
