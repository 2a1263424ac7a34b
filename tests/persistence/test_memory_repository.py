"""Tests for the in-memory repository and the shared query helpers."""

import asyncio
from datetime import date
from uuid import uuid4

import pytest

from learnpath.catalog.models import Assignment, AssignmentStatus, Department, User
from learnpath.core.exceptions import ConcurrentUpdateError, ConflictError
from learnpath.persistence import InMemoryRepository, Sort, eq, gte, in_, lte
from learnpath.persistence.port import paginate, sort_rows
from learnpath.progress.models import PROGRESS_UNIQUE_ON, Progress, ProgressStatus


@pytest.fixture
def departments() -> InMemoryRepository[Department]:
    return InMemoryRepository("departments")


class TestCrud:
    @pytest.mark.asyncio
    async def test_get_by_id_returns_none_when_absent(self, departments):
        dept = Department(name="Sales")
        assert await departments.get_by_id(dept.id) is None

    @pytest.mark.asyncio
    async def test_rows_are_copies(self, departments):
        dept = await departments.create(Department(name="Sales"))
        dept.name = "Changed"

        stored = await departments.get_by_id(dept.id)
        assert stored.name == "Sales"

    @pytest.mark.asyncio
    async def test_create_duplicate_id_conflicts(self, departments):
        dept = await departments.create(Department(name="Sales"))
        with pytest.raises(ConflictError):
            await departments.create(dept)

    @pytest.mark.asyncio
    async def test_get_many_skips_missing_ids(self, departments):
        a = await departments.create(Department(name="A"))
        b = await departments.create(Department(name="B"))

        rows = await departments.get_many([a.id, uuid4(), b.id, a.id])
        assert [r.id for r in rows] == [a.id, b.id]

    @pytest.mark.asyncio
    async def test_delete_reports_absence(self, departments):
        dept = await departments.create(Department(name="Sales"))
        assert await departments.delete(dept.id) is True
        assert await departments.delete(dept.id) is False
        assert len(departments) == 0


class TestList:
    @pytest.mark.asyncio
    async def test_filters_sort_and_page(self):
        assignments = InMemoryRepository("assignments")
        dept = Department(name="Ops")
        for day in (5, 1, 3):
            await assignments.create(
                Assignment(
                    track_id=dept.id,
                    department_id=dept.id,
                    due_date=date(2024, 1, day),
                )
            )

        rows, total = await assignments.list(
            [eq("department_id", dept.id)], Sort("due_date"), page=1, page_size=2
        )
        assert total == 3
        assert [r.due_date.day for r in rows] == [1, 3]

    @pytest.mark.asyncio
    async def test_enum_filters_match_stored_values(self):
        assignments = InMemoryRepository("assignments")
        dept = Department(name="Ops")
        await assignments.create(
            Assignment(
                track_id=dept.id,
                department_id=dept.id,
                status=AssignmentStatus.EXPIRED,
            )
        )

        assert await assignments.count([eq("status", "expired")]) == 1
        assert await assignments.count([in_("status", [AssignmentStatus.EXPIRED])]) == 1
        assert await assignments.count([eq("status", AssignmentStatus.COMPLETED)]) == 0

    @pytest.mark.asyncio
    async def test_range_filters_exclude_missing_values(self):
        assignments = InMemoryRepository("assignments")
        dept = Department(name="Ops")
        await assignments.create(Assignment(track_id=dept.id, department_id=dept.id))
        await assignments.create(
            Assignment(
                track_id=dept.id,
                department_id=dept.id,
                start_date=date(2024, 3, 1),
                due_date=date(2024, 4, 1),
            )
        )

        assert await assignments.count([gte("start_date", date(2024, 1, 1))]) == 1
        assert await assignments.count([lte("due_date", date(2024, 4, 1))]) == 1


class TestHelpers:
    def test_sort_puts_missing_values_last(self):
        users = [
            User(full_name="B", email=None),
            User(full_name="A", email="a@x.com"),
            User(full_name="C", email="c@x.com"),
        ]
        asc = sort_rows(users, Sort("email"))
        desc = sort_rows(users, Sort("email", descending=True))

        assert [u.full_name for u in asc] == ["A", "C", "B"]
        assert [u.full_name for u in desc] == ["C", "A", "B"]

    def test_paginate_rejects_non_positive_page(self):
        with pytest.raises(ValueError):
            paginate([1, 2, 3], page=0, page_size=2)

    def test_paginate_without_size_returns_everything(self):
        assert paginate([1, 2, 3]) == [1, 2, 3]


class TestCreateIfAbsent:
    @pytest.mark.asyncio
    async def test_second_insert_returns_existing_row(self):
        progress = InMemoryRepository("progress")
        first = Progress(user_id=uuid4(), video_id=uuid4())
        second = Progress(user_id=first.user_id, video_id=first.video_id)

        stored, created = await progress.create_if_absent(first, PROGRESS_UNIQUE_ON)
        again, created_again = await progress.create_if_absent(
            second, PROGRESS_UNIQUE_ON
        )

        assert created is True
        assert created_again is False
        assert again.id == stored.id
        assert len(progress) == 1

    @pytest.mark.asyncio
    async def test_concurrent_inserts_keep_one_row(self):
        progress = InMemoryRepository("progress")
        template = Progress(user_id=uuid4(), video_id=uuid4())

        results = await asyncio.gather(
            *(
                progress.create_if_absent(
                    Progress(user_id=template.user_id, video_id=template.video_id),
                    PROGRESS_UNIQUE_ON,
                )
                for _ in range(10)
            )
        )

        assert sum(1 for _, created in results if created) == 1
        assert len({row.id for row, _ in results}) == 1


class TestCompareAndSet:
    @pytest.mark.asyncio
    async def test_update_applies_when_expected_matches(self):
        progress = InMemoryRepository("progress")
        row = await progress.create(Progress(user_id=uuid4(), video_id=uuid4()))

        updated = await progress.update(
            row.id,
            {"watch_time_seconds": 30, "status": ProgressStatus.IN_PROGRESS},
            expected={"status": ProgressStatus.NOT_STARTED, "watch_time_seconds": 0},
        )
        assert updated.watch_time_seconds == 30
        assert updated.status == ProgressStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_update_raises_on_stale_expectation(self):
        progress = InMemoryRepository("progress")
        row = await progress.create(
            Progress(
                user_id=uuid4(),
                video_id=uuid4(),
                watch_time_seconds=40,
            )
        )

        with pytest.raises(ConcurrentUpdateError):
            await progress.update(
                row.id, {"watch_time_seconds": 50}, expected={"watch_time_seconds": 0}
            )
        assert (await progress.get_by_id(row.id)).watch_time_seconds == 40

    @pytest.mark.asyncio
    async def test_update_of_missing_row_returns_none(self):
        progress = InMemoryRepository("progress")
        assert await progress.update(uuid4(), {"status": "x"}) is None
