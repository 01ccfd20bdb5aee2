"""Shared test fixtures."""

from pathlib import Path

import pytest

from src.assignments.occurrences import OccurrenceStore
from src.assignments.store import RecurrenceStore, TemplateStore
from src.assignments.tasks import PostedTaskStore


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def recurrence_store(db_path: Path) -> RecurrenceStore:
    return RecurrenceStore(db_path=db_path)


@pytest.fixture
def template_store(db_path: Path) -> TemplateStore:
    return TemplateStore(db_path=db_path)


@pytest.fixture
def occurrence_store(db_path: Path) -> OccurrenceStore:
    return OccurrenceStore(db_path=db_path)


@pytest.fixture
def task_store(db_path: Path) -> PostedTaskStore:
    return PostedTaskStore(db_path=db_path)


@pytest.fixture
def _reset_singletons():
    """Reset store singletons before and after a test."""
    stores = (RecurrenceStore, TemplateStore, OccurrenceStore, PostedTaskStore)
    for store in stores:
        store._reset()
    yield
    for store in stores:
        store._reset()
