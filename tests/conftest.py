from datetime import datetime

import pytest

from data_models import Batch, ScheduleEntry, ScheduleMetadata, Subject, TimeSlot, WeeklySchedule
from scheduler import SchedulerConfig


def make_batch(batch_id, subjects=(), name=None):
    """subjects: (subject_id, lectures_per_week, lecture_duration, faculty_id) tuples."""
    batch = Batch(batch_id=batch_id, name=name or f"Batch {batch_id}")
    for subject_id, lectures, duration, faculty_id in subjects:
        batch.add_subject(Subject(
            subject_id=subject_id,
            name=subject_id.title(),
            batch_id=batch_id,
            lectures_per_week=lectures,
            lecture_duration=duration,
            faculty_id=faculty_id,
        ))
    return batch


def make_entry(batch_id, subject_id, day, start, end=None, faculty_id=None):
    return ScheduleEntry(batch_id, subject_id, faculty_id, TimeSlot(day, start, end or start + 60))


def make_schedule(entries, conflicts=(), working_days=None, total_candidate_slots=30):
    metadata = ScheduleMetadata(
        generated_at=datetime(2024, 1, 1, 9, 0),
        total_lectures=len(entries),
        batch_count=len({e.batch_id for e in entries}),
        total_candidate_slots=total_candidate_slots,
    )
    if working_days is not None:
        metadata.working_days = working_days
    return WeeklySchedule(entries=list(entries), conflicts=list(conflicts), metadata=metadata)


@pytest.fixture
def scenario_a_batch():
    return make_batch("10A", [("math", 5, 60, "F1"), ("physics", 3, 60, "F1")])


@pytest.fixture
def week_config():
    """Mon-Fri 08:00-17:00, lunch 12:00-13:00: six slots per day."""
    return SchedulerConfig(
        working_hours=("08:00", "17:00"),
        slot_duration=60,
        break_duration=15,
        lunch_break=("12:00", "13:00"),
        allow_partial_schedules=False,
    )


@pytest.fixture
def monday_only_config():
    """Monday 08:00-12:00 with lunch 11:00-12:00: three slots in the week."""
    return SchedulerConfig(
        working_days=["MONDAY"],
        working_hours=("08:00", "12:00"),
        slot_duration=60,
        break_duration=0,
        lunch_break=("11:00", "12:00"),
        allow_partial_schedules=False,
    )
