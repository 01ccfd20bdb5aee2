"""Tests for OccurrenceStore — the idempotent occurrence ledger."""

from datetime import UTC, datetime, timedelta, timezone

import aiosqlite
import pytest

from src.assignments.models import (
    STATUS_POSTED,
    STATUS_SCHEDULED,
    STATUS_SKIPPED_HOLIDAY,
    Template,
)
from src.assignments.occurrences import OccurrenceStore
from src.assignments.store import TemplateStore
from src.db import transaction

MONDAY = datetime(2024, 6, 10, 8, 0, tzinfo=UTC)
WEDNESDAY = datetime(2024, 6, 12, 8, 0, tzinfo=UTC)


@pytest.fixture
async def template(template_store: TemplateStore) -> Template:
    tpl = Template(
        id="tpl1",
        teacher_id="t1",
        course_id="c1",
        title="Weekly reading",
        description="Read chapter 3",
    )
    return await template_store.add_template(tpl)


# -- upsert / exists -----------------------------------------------------------


async def test_upsert_creates_once(occurrence_store: OccurrenceStore, template: Template) -> None:
    assert await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED) is True
    assert await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED) is False

    rows = await occurrence_store.list_for_template("tpl1")
    assert len(rows) == 1
    assert rows[0].publish_at == MONDAY
    assert rows[0].status == STATUS_SCHEDULED


async def test_upsert_same_instant_in_other_offset_is_same_key(
    occurrence_store: OccurrenceStore, template: Template
) -> None:
    same_instant = MONDAY.astimezone(timezone(timedelta(hours=3)))
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED)
    assert await occurrence_store.upsert("tpl1", same_instant, STATUS_SCHEDULED) is False
    assert await occurrence_store.exists("tpl1", same_instant) is True


async def test_upsert_does_not_change_existing_status(
    occurrence_store: OccurrenceStore, template: Template
) -> None:
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SKIPPED_HOLIDAY)
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED)

    rows = await occurrence_store.list_for_template("tpl1")
    assert rows[0].status == STATUS_SKIPPED_HOLIDAY


async def test_upsert_never_downgrades_posted(
    occurrence_store: OccurrenceStore, template: Template
) -> None:
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED)
    occ = (await occurrence_store.list_for_template("tpl1"))[0]

    db = await occurrence_store.connect()
    try:
        async with transaction(db):
            assert await occurrence_store.mark_posted(db, occ.id) is True
    finally:
        await db.close()

    assert await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED) is False
    fetched = await occurrence_store.get_occurrence(occ.id)
    assert fetched is not None
    assert fetched.is_posted
    assert fetched.posted_at is not None


async def test_upsert_unknown_status_raises(
    occurrence_store: OccurrenceStore, template: Template
) -> None:
    with pytest.raises(ValueError, match="Unknown occurrence status"):
        await occurrence_store.upsert("tpl1", MONDAY, "cancelled")


async def test_upsert_unknown_template_violates_foreign_key(
    occurrence_store: OccurrenceStore,
) -> None:
    with pytest.raises(aiosqlite.IntegrityError):
        await occurrence_store.upsert("ghost", MONDAY, STATUS_SCHEDULED)


async def test_exists(occurrence_store: OccurrenceStore, template: Template) -> None:
    assert await occurrence_store.exists("tpl1", MONDAY) is False
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED)
    assert await occurrence_store.exists("tpl1", MONDAY) is True
    assert await occurrence_store.exists("tpl1", WEDNESDAY) is False


# -- list_due ------------------------------------------------------------------


async def test_list_due_filters_by_status_and_time(
    occurrence_store: OccurrenceStore, template: Template
) -> None:
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED)
    await occurrence_store.upsert("tpl1", MONDAY - timedelta(days=7), STATUS_SKIPPED_HOLIDAY)
    await occurrence_store.upsert("tpl1", WEDNESDAY, STATUS_SCHEDULED)

    due = await occurrence_store.list_due(MONDAY + timedelta(hours=1))
    assert len(due) == 1
    assert due[0].publish_at == MONDAY
    assert due[0].title == "Weekly reading"
    assert due[0].description == "Read chapter 3"
    assert due[0].course_id == "c1"
    assert due[0].teacher_id == "t1"


async def test_list_due_includes_exact_instant(
    occurrence_store: OccurrenceStore, template: Template
) -> None:
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED)
    assert len(await occurrence_store.list_due(MONDAY)) == 1
    assert await occurrence_store.list_due(MONDAY - timedelta(seconds=1)) == []


async def test_list_due_with_sub_second_now(
    occurrence_store: OccurrenceStore, template: Template
) -> None:
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED)
    due = await occurrence_store.list_due(MONDAY + timedelta(microseconds=500))
    assert len(due) == 1


# -- mark_posted ---------------------------------------------------------------


async def test_mark_posted_only_from_scheduled(
    occurrence_store: OccurrenceStore, template: Template
) -> None:
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SKIPPED_HOLIDAY)
    occ = (await occurrence_store.list_for_template("tpl1"))[0]

    db = await occurrence_store.connect()
    try:
        async with transaction(db):
            assert await occurrence_store.mark_posted(db, occ.id) is False
    finally:
        await db.close()

    fetched = await occurrence_store.get_occurrence(occ.id)
    assert fetched is not None
    assert fetched.status == STATUS_SKIPPED_HOLIDAY


async def test_get_not_found(occurrence_store: OccurrenceStore) -> None:
    assert await occurrence_store.get_occurrence(999) is None


# -- list_student_visible ------------------------------------------------------


async def test_student_visible_hides_skipped_holiday(
    occurrence_store: OccurrenceStore, template: Template, template_store: TemplateStore
) -> None:
    await template_store.add_template(
        Template(id="tpl2", teacher_id="t1", course_id="c2", title="Other course")
    )
    await occurrence_store.upsert("tpl1", WEDNESDAY, STATUS_SCHEDULED)
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED)
    await occurrence_store.upsert("tpl1", MONDAY + timedelta(days=7), STATUS_SKIPPED_HOLIDAY)
    await occurrence_store.upsert("tpl2", MONDAY, STATUS_SCHEDULED)

    visible = await occurrence_store.list_student_visible("c1")
    assert [v.publish_at for v in visible] == [MONDAY, WEDNESDAY]
    assert all(v.status == STATUS_SCHEDULED for v in visible)
    assert visible[0].title == "Weekly reading"
    assert visible[0].description == "Read chapter 3"


async def test_student_visible_includes_posted(
    occurrence_store: OccurrenceStore, template: Template
) -> None:
    await occurrence_store.upsert("tpl1", MONDAY, STATUS_SCHEDULED)
    occ = (await occurrence_store.list_for_template("tpl1"))[0]
    db = await occurrence_store.connect()
    try:
        async with transaction(db):
            await occurrence_store.mark_posted(db, occ.id)
    finally:
        await db.close()

    visible = await occurrence_store.list_student_visible("c1")
    assert [v.status for v in visible] == [STATUS_POSTED]
