"""Recurring assignments — models, materialization, persistence, posting, scheduling."""

from src.assignments.driver import SchedulerDriver
from src.assignments.materializer import materialize_recurrence, materialize_template
from src.assignments.models import Occurrence, Recurrence, Template
from src.assignments.occurrences import OccurrenceStore
from src.assignments.poster import PostingPipeline, PostingResult
from src.assignments.service import AssignmentService
from src.assignments.store import RecurrenceStore, TemplateStore
from src.assignments.tasks import PostedTaskStore

__all__ = [
    "Recurrence",
    "Template",
    "Occurrence",
    "RecurrenceStore",
    "TemplateStore",
    "OccurrenceStore",
    "PostedTaskStore",
    "materialize_template",
    "materialize_recurrence",
    "AssignmentService",
    "PostingPipeline",
    "PostingResult",
    "SchedulerDriver",
]
