"""
Unit tests for the summary aggregator.

Tests cover:
- Number sum/average/count
- Most frequent single choice, with tie-breaks
- Most frequent multi-choice options, with ties
- Closest datetime to now
- Empty and deactivated columns
"""

import os
import tempfile
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from gridstore.schema.types import ColumnType
from gridstore.schema.values import ChoiceValue, DateTimeValue, NumberValue, TextValue
from gridstore.store.database import Database
from gridstore.store.grid_store import GridStore
from gridstore.summary import MultiChoiceSummary, NumberSummary, SingleChoiceSummary

UTC = timezone.utc


@pytest.fixture
def db_path():
    """Create temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.join(tmpdir, "grid.db")


@pytest.fixture
async def store(db_path):
    """Create initialized store."""
    store = GridStore(Database(db_path, wal_mode=False))
    await store.initialize()
    return store


async def new_rows(store, count):
    return [await store.insert_row_at_top() for _ in range(count)]


async def summary_of(store, column_id, now=None):
    for entry in await store.compute_summaries(now=now):
        if entry.column_id == column_id:
            return entry.summary
    raise AssertionError(f"column {column_id} missing from summaries")


class TestNumberSummary:
    """Tests for number columns."""

    @pytest.mark.asyncio
    async def test_sum_average_count(self, store):
        """Age [28, 32, 45, 29, 38] sums to 172 with average 34.4."""
        age = await store.create_column("Age", ColumnType.NUMBER)
        for row, value in zip(await new_rows(store, 5), [28, 32, 45, 29, 38]):
            await store.write_cell(row.id, age.id, NumberValue(Decimal(value)))

        summary = await summary_of(store, age.id)

        assert summary == NumberSummary(sum=Decimal(172), average=Decimal("34.4"), count=5)
        assert summary.to_dict() == {"sum": 172, "average": 34.4, "count": 5}

    @pytest.mark.asyncio
    async def test_absent_cells_not_counted(self, store):
        """Rows without a value do not contribute."""
        age = await store.create_column("Age", ColumnType.NUMBER)
        rows = await new_rows(store, 3)
        await store.write_cell(rows[0].id, age.id, NumberValue(Decimal("1.5")))
        await store.write_cell(rows[2].id, age.id, NumberValue(Decimal("2.5")))

        summary = await summary_of(store, age.id)

        assert summary.count == 2
        assert summary.sum == Decimal("4.0")
        assert summary.average == Decimal(2)

    @pytest.mark.asyncio
    async def test_empty_number_column(self, store):
        """An empty number column reports zeros."""
        age = await store.create_column("Age", ColumnType.NUMBER)

        summary = await summary_of(store, age.id)

        assert summary == NumberSummary(sum=Decimal(0), average=Decimal(0), count=0)

    @pytest.mark.asyncio
    async def test_deleted_rows_excluded(self, store):
        """Values of deleted rows no longer count."""
        age = await store.create_column("Age", ColumnType.NUMBER)
        rows = await new_rows(store, 2)
        await store.write_cell(rows[0].id, age.id, NumberValue(Decimal(10)))
        await store.write_cell(rows[1].id, age.id, NumberValue(Decimal(20)))

        await store.delete_row(rows[0].id)

        summary = await summary_of(store, age.id)
        assert (summary.sum, summary.count) == (Decimal(20), 1)


class TestSingleChoiceSummary:
    """Tests for single-choice columns."""

    @pytest.mark.asyncio
    async def test_most_frequent(self, store):
        """Engineering wins Engineering, Engineering, Marketing, Sales, HR."""
        dept = await store.create_column(
            "Department",
            ColumnType.SINGLE_CHOICE,
            ["Engineering", "Marketing", "Sales", "HR"],
        )
        by_label = {o.label: o.id for o in await store.list_active_options(dept.id)}
        picks = ["Engineering", "Engineering", "Marketing", "Sales", "HR"]
        for row, label in zip(await new_rows(store, 5), picks):
            await store.write_cell(row.id, dept.id, ChoiceValue(by_label[label]))

        summary = await summary_of(store, dept.id)

        assert summary == SingleChoiceSummary(
            most_frequent="Engineering", count=2, option_id=by_label["Engineering"]
        )

    @pytest.mark.asyncio
    async def test_tie_breaks_by_label(self, store):
        """Ties go to the lexicographically smallest label."""
        dept = await store.create_column(
            "Department", ColumnType.SINGLE_CHOICE, ["Marketing", "Engineering"]
        )
        by_label = {o.label: o.id for o in await store.list_active_options(dept.id)}
        picks = ["Marketing", "Engineering", "Marketing", "Engineering"]
        for row, label in zip(await new_rows(store, 4), picks):
            await store.write_cell(row.id, dept.id, ChoiceValue(by_label[label]))

        summary = await summary_of(store, dept.id)

        assert summary.most_frequent == "Engineering"
        assert summary.count == 2

    @pytest.mark.asyncio
    async def test_counts_by_option_id(self, store):
        """Options sharing a label are counted separately."""
        dept = await store.create_column("Department", ColumnType.SINGLE_CHOICE, ["Ops", "Ops"])
        first, second = await store.list_active_options(dept.id)
        rows = await new_rows(store, 3)
        await store.write_cell(rows[0].id, dept.id, ChoiceValue(first.id))
        await store.write_cell(rows[1].id, dept.id, ChoiceValue(second.id))
        await store.write_cell(rows[2].id, dept.id, ChoiceValue(second.id))

        summary = await summary_of(store, dept.id)

        assert summary.option_id == second.id
        assert summary.count == 2

    @pytest.mark.asyncio
    async def test_empty_choice_column(self, store):
        """No selections means no summary."""
        dept = await store.create_column("Department", ColumnType.SINGLE_CHOICE, ["A"])
        await new_rows(store, 2)

        assert await summary_of(store, dept.id) is None


class TestMultiChoiceSummary:
    """Tests for multi-choice columns."""

    @pytest.mark.asyncio
    async def test_ties_are_all_reported(self, store):
        """JS and Python tie at 3 selections; React trails."""
        skills = await store.create_column(
            "Skills", ColumnType.MULTI_CHOICE, ["Python", "JS", "React"]
        )
        by_label = {o.label: o.id for o in await store.list_active_options(skills.id)}
        selections = [["JS", "Python"], ["JS", "Python"], ["JS", "Python", "React"]]
        for row, labels in zip(await new_rows(store, 3), selections):
            await store.write_multi_choice_cell(
                row.id, skills.id, [by_label[label] for label in labels]
            )

        summary = await summary_of(store, skills.id)

        assert summary == MultiChoiceSummary(most_frequent=("JS", "Python"), count=3)
        assert summary.to_dict() == {"most_frequent": ["JS", "Python"], "count": 3}

    @pytest.mark.asyncio
    async def test_single_winner(self, store):
        """A unique maximum is reported alone."""
        skills = await store.create_column("Skills", ColumnType.MULTI_CHOICE, ["JS", "Go"])
        js, go = await store.list_active_options(skills.id)
        rows = await new_rows(store, 2)
        await store.write_multi_choice_cell(rows[0].id, skills.id, [js.id, go.id])
        await store.write_multi_choice_cell(rows[1].id, skills.id, [go.id])

        summary = await summary_of(store, skills.id)

        assert summary.most_frequent == ("Go",)
        assert summary.count == 2

    @pytest.mark.asyncio
    async def test_empty_multi_column(self, store):
        """No selections means no summary."""
        skills = await store.create_column("Skills", ColumnType.MULTI_CHOICE, ["JS"])
        assert await summary_of(store, skills.id) is None


class TestDatetimeSummary:
    """Tests for datetime columns."""

    @pytest.mark.asyncio
    async def test_closest_to_now(self, store):
        """The value nearest to now wins, in either direction."""
        joined = await store.create_column("Joined", ColumnType.DATETIME)
        now = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)
        values = [
            datetime(2024, 1, 1, tzinfo=UTC),
            datetime(2024, 6, 15, 15, 0, tzinfo=UTC),
            datetime(2024, 6, 20, tzinfo=UTC),
        ]
        for row, value in zip(await new_rows(store, 3), values):
            await store.write_cell(row.id, joined.id, DateTimeValue(value))

        assert await summary_of(store, joined.id, now=now) == values[1]

    @pytest.mark.asyncio
    async def test_tie_goes_to_earliest(self, store):
        """Equidistant values resolve to the earlier one."""
        joined = await store.create_column("Joined", ColumnType.DATETIME)
        now = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)
        before = datetime(2024, 6, 14, 12, 0, tzinfo=UTC)
        after = datetime(2024, 6, 16, 12, 0, tzinfo=UTC)
        rows = await new_rows(store, 2)
        await store.write_cell(rows[0].id, joined.id, DateTimeValue(after))
        await store.write_cell(rows[1].id, joined.id, DateTimeValue(before))

        assert await summary_of(store, joined.id, now=now) == before

    @pytest.mark.asyncio
    async def test_empty_datetime_column(self, store):
        """No values means no summary."""
        joined = await store.create_column("Joined", ColumnType.DATETIME)
        assert await summary_of(store, joined.id) is None


class TestComputeSummaries:
    """Tests for the summary listing as a whole."""

    @pytest.mark.asyncio
    async def test_one_entry_per_active_column(self, store):
        """Every active column is listed in display order."""
        name = await store.create_column("Name", ColumnType.TEXT)
        age = await store.create_column("Age", ColumnType.NUMBER)
        dropped = await store.create_column("Old", ColumnType.NUMBER)
        await store.deactivate_column(dropped.id)
        row = (await new_rows(store, 1))[0]
        await store.write_cell(row.id, name.id, TextValue("Alice"))

        summaries = await store.compute_summaries()

        assert [s.column_id for s in summaries] == [name.id, age.id]
        assert summaries[0].summary is None
        assert summaries[0].column_type is ColumnType.TEXT
        assert summaries[1].column_name == "Age"

    @pytest.mark.asyncio
    async def test_to_dict(self, store):
        """Entries serialize with the column metadata."""
        joined = await store.create_column("Joined", ColumnType.DATETIME)
        row = (await new_rows(store, 1))[0]
        at = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)
        await store.write_cell(row.id, joined.id, DateTimeValue(at))

        (entry,) = await store.compute_summaries(now=at)

        assert entry.to_dict() == {
            "column_id": joined.id,
            "column_name": "Joined",
            "column_type": "datetime",
            "display_order": 1,
            "summary": "2024-06-15T12:00:00+00:00",
        }

    @pytest.mark.asyncio
    async def test_empty_grid(self, store):
        """No columns means no summaries."""
        assert await store.compute_summaries() == []
