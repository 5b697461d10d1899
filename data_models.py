# data_models.py
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Tuple

from errors import ValidationFailedError
from utils import minutes_to_time

WEEKDAYS = ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY"]

MIN_LECTURES_PER_WEEK = 1
MAX_LECTURES_PER_WEEK = 20
MIN_LECTURE_DURATION = 30
MAX_LECTURE_DURATION = 180

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass
class Subject:
    subject_id: str
    name: str
    batch_id: str  # Owning Batch.batch_id
    lectures_per_week: int
    lecture_duration: int  # Minutes per lecture
    faculty_id: Optional[str] = None

    def validate(self) -> List[str]:
        errors = []
        label = self.name or self.subject_id
        if not self.name or not self.name.strip() or len(self.name) > 100:
            errors.append(f"Subject {self.subject_id}: name must be between 1 and 100 characters")
        if not self.batch_id or not str(self.batch_id).strip():
            errors.append(f"Subject {label}: batch id is required")
        if (not isinstance(self.lectures_per_week, int) or isinstance(self.lectures_per_week, bool)
                or not MIN_LECTURES_PER_WEEK <= self.lectures_per_week <= MAX_LECTURES_PER_WEEK):
            errors.append(f"Subject {label}: lectures per week must be an integer between "
                          f"{MIN_LECTURES_PER_WEEK} and {MAX_LECTURES_PER_WEEK}")
        if (not isinstance(self.lecture_duration, int) or isinstance(self.lecture_duration, bool)
                or not MIN_LECTURE_DURATION <= self.lecture_duration <= MAX_LECTURE_DURATION):
            errors.append(f"Subject {label}: lecture duration must be between "
                          f"{MIN_LECTURE_DURATION} and {MAX_LECTURE_DURATION} minutes")
        return errors

    def total_weekly_minutes(self):
        return self.lectures_per_week * self.lecture_duration

    def copy_with(self, **changes):
        """Return a new Subject with the given fields replaced."""
        return replace(self, **changes)


@dataclass
class Batch:
    batch_id: str
    name: str
    subjects: List[Subject] = field(default_factory=list)

    def add_subject(self, subject: Subject):
        if subject.batch_id != self.batch_id:
            raise ValidationFailedError([
                f"Subject '{subject.name}' belongs to a different batch "
                f"(expected: {self.batch_id}, got: {subject.batch_id})"
            ])
        if self.has_subject(subject.name):
            raise ValidationFailedError([
                f"Subject '{subject.name}' already exists in batch '{self.name}'"
            ])
        self.subjects.append(subject)

    def has_subject(self, subject_name):
        wanted = subject_name.lower()
        return any(s.name.lower() == wanted for s in self.subjects)

    def get_subject(self, subject_id):
        return next((s for s in self.subjects if s.subject_id == subject_id), None)

    def total_lectures_per_week(self):
        return sum(s.lectures_per_week for s in self.subjects)

    def total_weekly_minutes(self):
        return sum(s.total_weekly_minutes() for s in self.subjects)

    def validate(self) -> List[str]:
        errors = []
        if not self.name or not self.name.strip() or len(self.name) > 50:
            errors.append(f"Batch {self.batch_id}: name must be between 1 and 50 characters")

        seen_names = set()
        for sub in self.subjects:
            if sub.batch_id != self.batch_id:
                errors.append(f"Batch {self.name}: subject '{sub.name}' references batch {sub.batch_id}")
            key = (sub.name or "").lower()
            if key in seen_names:
                errors.append(f"Batch {self.name}: duplicate subject name '{sub.name}'")
            seen_names.add(key)
            errors.extend(sub.validate())
        return errors

    def copy_with_subjects(self, subjects):
        """Same batch identity, new subject list (used to build reduced inputs)."""
        return Batch(batch_id=self.batch_id, name=self.name, subjects=list(subjects))


def validate_batches(batches):
    """Raise ValidationFailedError listing every problem across all batches."""
    issues = []
    seen_ids = set()
    for batch in batches:
        if batch.batch_id in seen_ids:
            issues.append(f"Duplicate batch id: {batch.batch_id}")
        seen_ids.add(batch.batch_id)
        issues.extend(batch.validate())
    if issues:
        raise ValidationFailedError(issues)


@dataclass(frozen=True)
class TimeSlot:
    day: str  # One of WEEKDAYS
    start_minutes: int
    end_minutes: int

    @property
    def duration(self):
        return self.end_minutes - self.start_minutes

    def overlaps(self, other: "TimeSlot") -> bool:
        if self.day != other.day:
            return False
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes

    def label(self):
        return f"{self.day.title()} {minutes_to_time(self.start_minutes)}-{minutes_to_time(self.end_minutes)}"


@dataclass(frozen=True)
class ScheduleEntry:
    batch_id: str
    subject_id: str
    faculty_id: Optional[str]
    time_slot: TimeSlot


@dataclass(frozen=True)
class ConstraintViolation:
    type: str
    severity: str  # SEVERITY_ERROR or SEVERITY_WARNING
    message: str
    affected_entries: Tuple[ScheduleEntry, ...] = ()

    @property
    def is_error(self):
        return self.severity == SEVERITY_ERROR

    def as_warning(self):
        return replace(self, severity=SEVERITY_WARNING)


@dataclass(frozen=True)
class UnscheduledLecture:
    batch_id: str
    subject_id: str
    lecture_index: int
    reason: str


@dataclass
class ScheduleMetadata:
    generated_at: datetime
    total_lectures: int
    batch_count: int
    faculty_count: Optional[int] = None
    subject_count: Optional[int] = None
    optimization_score: Optional[float] = None
    generation_time_ms: Optional[float] = None
    requested_lectures: Optional[int] = None
    unscheduled_lectures: List[UnscheduledLecture] = field(default_factory=list)
    working_days: List[str] = field(default_factory=lambda: list(WEEKDAYS[:5]))
    total_candidate_slots: int = 0
    degraded: bool = False  # Overlapping lectures were tolerated


@dataclass
class ScheduleValidation:
    is_valid: bool
    issues: List[str]


@dataclass
class WeeklySchedule:
    entries: List[ScheduleEntry]
    conflicts: List[ConstraintViolation]
    metadata: ScheduleMetadata

    # ---------------------- Entry queries ----------------------

    def entries_for_batch(self, batch_id):
        return [e for e in self.entries if e.batch_id == batch_id]

    def entries_for_faculty(self, faculty_id):
        return [e for e in self.entries if e.faculty_id == faculty_id]

    def entries_for_day(self, day):
        day = day.upper()
        return [e for e in self.entries if e.time_slot.day == day]

    def entries_for_subject(self, subject_id):
        return [e for e in self.entries if e.subject_id == subject_id]

    def batch_ids(self):
        return list(dict.fromkeys(e.batch_id for e in self.entries))

    def faculty_ids(self):
        return list(dict.fromkeys(e.faculty_id for e in self.entries if e.faculty_id))

    def subject_ids(self):
        return list(dict.fromkeys(e.subject_id for e in self.entries))

    # ---------------------- Conflict queries ----------------------

    def conflicts_for_batch(self, batch_id):
        return [c for c in self.conflicts
                if any(e.batch_id == batch_id for e in c.affected_entries)]

    def conflicts_for_faculty(self, faculty_id):
        return [c for c in self.conflicts
                if any(e.faculty_id == faculty_id for e in c.affected_entries)]

    def conflicts_by_severity(self, severity):
        return [c for c in self.conflicts if c.severity == severity]

    # ---------------------- Summaries ----------------------

    def statistics(self):
        from schedule_statistics import compute_statistics
        return compute_statistics(self)

    def summary(self):
        return {
            "total_lectures": len(self.entries),
            "total_batches": len(self.batch_ids()),
            "total_faculties": len(self.faculty_ids()),
            "total_subjects": len(self.subject_ids()),
            "total_conflicts": len(self.conflicts),
            "error_conflicts": len(self.conflicts_by_severity(SEVERITY_ERROR)),
            "warning_conflicts": len(self.conflicts_by_severity(SEVERITY_WARNING)),
        }

    def validate(self) -> ScheduleValidation:
        """Integrity check over an assembled schedule."""
        issues = []

        if self.metadata.total_lectures != len(self.entries):
            issues.append(f"Metadata reports {self.metadata.total_lectures} lectures "
                          f"but schedule holds {len(self.entries)} entries")

        seen = set()
        for idx, entry in enumerate(self.entries):
            slot = entry.time_slot
            key = (entry.batch_id, slot.day, slot.start_minutes)
            if key in seen:
                issues.append(f"Duplicate entry found at index {idx}: "
                              f"{entry.batch_id} {slot.label()}")
            seen.add(key)

            if slot.day not in WEEKDAYS:
                issues.append(f"Unknown day at index {idx}: {slot.day}")
            if not (0 <= slot.start_minutes < 24 * 60 and 0 < slot.end_minutes <= 24 * 60):
                issues.append(f"Invalid time of day at index {idx}: "
                              f"{slot.start_minutes}-{slot.end_minutes}")
            if slot.start_minutes >= slot.end_minutes:
                issues.append(f"Invalid time range at index {idx}: "
                              f"{minutes_to_time(slot.start_minutes)} - {minutes_to_time(slot.end_minutes)}")

        return ScheduleValidation(is_valid=not issues, issues=issues)
