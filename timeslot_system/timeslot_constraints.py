"""
Time Slot Constraints - Logical Constraint Layer

This module holds the pluggable checks run against a candidate placement.
Each evaluator receives the candidate entry and the entries already placed,
and answers with a (possibly empty) list of ConstraintViolation values.

Evaluators:
    - FacultyConflictEvaluator: faculty double-booking
    - TimeSlotAvailabilityEvaluator: working days/hours, lunch window, holidays
    - BatchOverlapEvaluator: a batch attending two lectures at once

Evaluators keep only the settings passed at construction. They never raise
for a rule breach; the generator decides whether an error blocks placement.
"""

from data_models import ConstraintViolation, SEVERITY_ERROR, WEEKDAYS
from timeslot_system.timeslot_grid import holiday_weekdays
from utils import minutes_to_time

FACULTY_CONFLICT = "faculty-conflict"
TIMESLOT_AVAILABILITY = "timeslot-availability"
BATCH_CONFLICT = "batch-conflict"


class ConstraintEvaluator:
    violation_type = None
    description = ""

    def can_handle(self, violation_kind):
        return violation_kind == self.violation_type

    def evaluate(self, candidate, current_entries):
        raise NotImplementedError

    def _violation(self, message, affected, severity=SEVERITY_ERROR):
        return ConstraintViolation(
            type=self.violation_type,
            severity=severity,
            message=message,
            affected_entries=tuple(affected),
        )

    def __repr__(self):
        return f"{type(self).__name__}({self.violation_type})"


class FacultyConflictEvaluator(ConstraintEvaluator):
    violation_type = FACULTY_CONFLICT
    description = "Faculty cannot be assigned to multiple classes at the same time"

    def evaluate(self, candidate, current_entries):
        if not candidate.faculty_id:
            return []

        conflicting = [
            e for e in current_entries
            if e is not candidate
            and e.faculty_id == candidate.faculty_id
            and e.time_slot.overlaps(candidate.time_slot)
        ]
        if not conflicting:
            return []

        details = ", ".join(e.time_slot.label() for e in conflicting)
        return [self._violation(
            f"Faculty conflict detected: Faculty {candidate.faculty_id} is already scheduled at {details}",
            [candidate, *conflicting],
        )]


class BatchOverlapEvaluator(ConstraintEvaluator):
    violation_type = BATCH_CONFLICT
    description = "A batch cannot attend two lectures at the same time"

    def evaluate(self, candidate, current_entries):
        conflicting = [
            e for e in current_entries
            if e is not candidate
            and e.batch_id == candidate.batch_id
            and e.time_slot.overlaps(candidate.time_slot)
        ]
        if not conflicting:
            return []

        details = ", ".join(f"{e.subject_id} ({e.time_slot.label()})" for e in conflicting)
        return [self._violation(
            f"Batch conflict detected: Batch {candidate.batch_id} already attends {details}",
            [candidate, *conflicting],
        )]


class TimeSlotAvailabilityEvaluator(ConstraintEvaluator):
    violation_type = TIMESLOT_AVAILABILITY
    description = "Lectures can only be scheduled during available time slots and working days"

    def __init__(self, working_days=None, working_hours=(8 * 60, 18 * 60), lunch_break=None, holidays=None):
        self.working_days = set(working_days or WEEKDAYS[:5])
        self.working_hours = tuple(working_hours)
        self.lunch_break = tuple(lunch_break) if lunch_break else None
        self.holiday_days = holiday_weekdays(holidays)

    @classmethod
    def from_config(cls, config, holidays=None):
        return cls(
            working_days=config.working_days,
            working_hours=config.working_hours,
            lunch_break=config.lunch_break,
            holidays=holidays,
        )

    def evaluate(self, candidate, current_entries):
        slot = candidate.time_slot
        reasons = []

        if slot.day not in self.working_days:
            reasons.append(f"{slot.day.title()} is not a working day")

        work_start, work_end = self.working_hours
        if slot.start_minutes < work_start or slot.end_minutes > work_end:
            reasons.append(
                f"Time slot {minutes_to_time(slot.start_minutes)}-{minutes_to_time(slot.end_minutes)} "
                f"is outside working hours ({minutes_to_time(work_start)}-{minutes_to_time(work_end)})"
            )

        if self.lunch_break:
            lunch_start, lunch_end = self.lunch_break
            if slot.start_minutes < lunch_end and lunch_start < slot.end_minutes:
                reasons.append(
                    f"Time slot overlaps the lunch break "
                    f"({minutes_to_time(lunch_start)}-{minutes_to_time(lunch_end)})"
                )

        if slot.day in self.holiday_days:
            reasons.append(f"{slot.day.title()} falls on a holiday")

        if not reasons:
            return []
        return [self._violation(
            f"Time slot availability violation: {'; '.join(reasons)}",
            [candidate],
        )]


def default_evaluators(config, holidays=None):
    """The standard evaluator chain, in registration order."""
    return [
        FacultyConflictEvaluator(),
        TimeSlotAvailabilityEvaluator.from_config(config, holidays),
        BatchOverlapEvaluator(),
    ]
