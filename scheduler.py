# scheduler.py
"""
Weekly schedule generator.

Lecture units are placed one at a time onto the week's candidate slot
sequence. Every placement runs the registered constraint evaluators against
the entries already placed; an error-severity violation sends the cursor on to
the next candidate, up to a bounded number of attempts per lecture.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Tuple

from data_models import (
    ScheduleEntry, ScheduleMetadata, TimeSlot, UnscheduledLecture, WeeklySchedule,
    WEEKDAYS, validate_batches,
)
from errors import ConfigurationError, SchedulingImpossibleError, SchedulingTimeoutError
from schedule_statistics import compute_statistics
from timeslot_system.controllers import make_controller
from timeslot_system.timeslot_constraints import default_evaluators
from timeslot_system.timeslot_grid import build_candidate_slots
from utils import flush_print, minutes_to_time, parse_time


def normalize_day(day):
    """'mon', 'Monday', 'MONDAY' -> 'MONDAY'. Unknown names come back upper-cased."""
    key = str(day).strip().upper()
    for name in WEEKDAYS:
        if key == name or key == name[:3]:
            return name
    return key


def _time_range(value, what):
    if value is None:
        return None
    try:
        if isinstance(value, dict):
            value = (value["start"], value["end"])
        start, end = value
        return parse_time(start), parse_time(end)
    except (ValueError, TypeError, KeyError):
        raise ConfigurationError(f"Invalid {what}: {value!r} (expected a start and end as 'HH:MM' "
                                 f"or minutes of the day)") from None


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class SchedulerConfig:
    working_days: List[str] = field(default_factory=lambda: list(WEEKDAYS[:5]))
    working_hours: Tuple[int, int] = (8 * 60, 18 * 60)  # Minute of day, or 'HH:MM'
    slot_duration: int = 60
    break_duration: int = 15
    lunch_break: Optional[Tuple[int, int]] = (12 * 60, 13 * 60)
    max_attempts_per_lecture: int = 100
    allow_partial_schedules: bool = True
    prioritize_even_distribution: bool = True
    allow_overlapping_lectures: bool = False
    verbose: bool = False

    def __post_init__(self):
        self.working_days = [normalize_day(d) for d in self.working_days]
        self.working_hours = _time_range(self.working_hours, "working hours")
        self.lunch_break = _time_range(self.lunch_break, "lunch break")

    @classmethod
    def from_dict(cls, config):
        """Build from the upper-case keys used in config.json."""
        defaults = cls()
        lunch = None
        if config.get("LUNCH_START_MINUTES") is not None and config.get("LUNCH_END_MINUTES") is not None:
            lunch = (config["LUNCH_START_MINUTES"], config["LUNCH_END_MINUTES"])
        elif "LUNCH_START_MINUTES" not in config:
            lunch = defaults.lunch_break

        return cls(
            working_days=config.get("SCHEDULING_DAYS", defaults.working_days),
            working_hours=(
                config.get("DAY_START_MINUTES", defaults.working_hours[0]),
                config.get("DAY_END_MINUTES", defaults.working_hours[1]),
            ),
            slot_duration=config.get("SLOT_DURATION_MINUTES", defaults.slot_duration),
            break_duration=config.get("BREAK_DURATION_MINUTES", defaults.break_duration),
            lunch_break=lunch,
            max_attempts_per_lecture=config.get("MAX_ATTEMPTS_PER_LECTURE", defaults.max_attempts_per_lecture),
            allow_partial_schedules=config.get("ALLOW_PARTIAL_SCHEDULES", defaults.allow_partial_schedules),
            prioritize_even_distribution=config.get("PRIORITIZE_EVEN_DISTRIBUTION",
                                                    defaults.prioritize_even_distribution),
            allow_overlapping_lectures=config.get("ALLOW_OVERLAPPING_LECTURES",
                                                  defaults.allow_overlapping_lectures),
            verbose=config.get("VERBOSE", defaults.verbose),
        )

    def copy_with(self, **changes):
        return replace(self, **changes)

    def validate(self):
        start, end = self.working_hours
        if start >= end:
            raise ConfigurationError(
                f"Working hours start ({minutes_to_time(start)}) must be before end ({minutes_to_time(end)})")
        if self.slot_duration <= 0:
            raise ConfigurationError(f"Slot duration must be positive, got {self.slot_duration}")
        if self.break_duration < 0:
            raise ConfigurationError(f"Break duration cannot be negative, got {self.break_duration}")
        if self.max_attempts_per_lecture < 1:
            raise ConfigurationError(
                f"Max attempts per lecture must be at least 1, got {self.max_attempts_per_lecture}")
        if not self.working_days:
            raise ConfigurationError("At least one working day is required")
        unknown = [d for d in self.working_days if d not in WEEKDAYS]
        if unknown:
            raise ConfigurationError(f"Unknown working day(s): {', '.join(unknown)}")

        if self.lunch_break:
            lunch_start, lunch_end = self.lunch_break
            if lunch_start >= lunch_end:
                raise ConfigurationError(
                    f"Lunch break start ({minutes_to_time(lunch_start)}) must be before "
                    f"end ({minutes_to_time(lunch_end)})")
            if lunch_start < start or lunch_end > end:
                raise ConfigurationError(
                    f"Lunch break {minutes_to_time(lunch_start)}-{minutes_to_time(lunch_end)} lies outside "
                    f"working hours {minutes_to_time(start)}-{minutes_to_time(end)}")


# ============================================================================
# LECTURE UNITS
# ============================================================================

@dataclass(frozen=True)
class LectureUnit:
    batch_id: str
    subject_id: str
    faculty_id: Optional[str]
    duration: int
    lecture_index: int
    lectures_per_week: int


def expand_lecture_units(batches):
    """Batches in input order, subjects in input order, one unit per weekly lecture."""
    units = []
    for batch in batches:
        for sub in batch.subjects:
            for i in range(sub.lectures_per_week):
                units.append(LectureUnit(
                    batch_id=batch.batch_id,
                    subject_id=sub.subject_id,
                    faculty_id=sub.faculty_id,
                    duration=sub.lecture_duration,
                    lecture_index=i,
                    lectures_per_week=sub.lectures_per_week,
                ))
    return units


def run_evaluators(evaluators, candidate, current_entries):
    violations = []
    for evaluator in evaluators:
        violations.extend(evaluator.evaluate(candidate, current_entries))
    return violations


def place_lecture_unit(unit, controller, evaluators, entries, config):
    """
    Try candidates from the controller's cursor until one passes every evaluator.

    Returns:
        (entry, violations) on placement, (None, []) when attempts run out.
        In overlapping mode the final attempt is always placed and its
        violations come back demoted to warnings.
    """
    window = list(controller.candidates_from_cursor(config.max_attempts_per_lecture))
    last_pos = None

    for attempt_no, (pos, slot) in enumerate(window, start=1):
        entry = ScheduleEntry(
            batch_id=unit.batch_id,
            subject_id=unit.subject_id,
            faculty_id=unit.faculty_id,
            time_slot=TimeSlot(slot.day, slot.start_minutes, slot.start_minutes + unit.duration),
        )
        violations = run_evaluators(evaluators, entry, entries)
        if not any(v.is_error for v in violations):
            controller.accept(pos)
            return entry, violations

        last_pos = pos
        if config.allow_overlapping_lectures and attempt_no == len(window):
            controller.accept(pos)
            return entry, [v.as_warning() for v in violations]

    if last_pos is not None:
        controller.reject(last_pos)
    return None, []


# ============================================================================
# FEASIBILITY
# ============================================================================

HIGH_UTILIZATION_THRESHOLD = 0.8


@dataclass
class FeasibilityReport:
    feasible: bool
    issues: List[str]
    recommendations: List[str]
    total_lectures: int
    available_slots: int
    utilization_rate: float  # Percent of candidate slots the busiest batch or faculty needs
    affected_days: List[str] = field(default_factory=list)  # Working days lost to holidays
    slots_lost: int = 0


def check_feasibility(config, batches, holidays=None):
    """
    Estimate up front whether a request can be scheduled.

    Each batch and each faculty member needs a slot of their own for every
    lecture, so neither may ask for more lectures than the week has candidate
    slots. The busiest of them sets the utilization; above 80% placement is
    likely to need retries. Nothing is generated.

    Returns:
        FeasibilityReport
    """
    config.validate()
    all_slots = build_candidate_slots(config)
    working_slots = build_candidate_slots(config, holidays)
    available = len(working_slots)
    open_days = {s.day for s in working_slots}

    batch_load = {b.batch_id: b.total_lectures_per_week() for b in batches}
    faculty_load = {}
    for batch in batches:
        for sub in batch.subjects:
            if sub.faculty_id:
                faculty_load[sub.faculty_id] = faculty_load.get(sub.faculty_id, 0) + sub.lectures_per_week

    issues = []
    recommendations = []
    busiest = max(list(batch_load.values()) + list(faculty_load.values()), default=0)
    utilization = busiest / available if available else 0.0

    if not available:
        issues.append("No time slots remain after holidays")
        recommendations.append("Add working days or remove holidays")
    else:
        over = [(b, n) for b, n in batch_load.items() if n > available]
        for batch_id, lectures in over:
            issues.append(f"Batch {batch_id} needs {lectures} lectures but only {available} time slots are available")
        if over:
            recommendations.append("Reduce number of lectures or increase available time slots")

        if utilization > HIGH_UTILIZATION_THRESHOLD:
            issues.append(f"High utilization rate ({round(utilization * 100)}%) may make scheduling difficult")
            recommendations.append("Consider adding more time slots or reducing lecture requirements")

        overloaded = sorted((f, n) for f, n in faculty_load.items() if n > available)
        for faculty_id, lectures in overloaded:
            issues.append(f"Faculty {faculty_id} teaches {lectures} lectures but only {available} time slots are available")
        if overloaded:
            recommendations.append("Redistribute subjects among faculty or increase working days")

    return FeasibilityReport(
        feasible=not issues,
        issues=issues,
        recommendations=recommendations,
        total_lectures=sum(batch_load.values()),
        available_slots=available,
        utilization_rate=round(utilization * 100, 1),
        affected_days=[d for d in WEEKDAYS if d in {s.day for s in all_slots} and d not in open_days],
        slots_lost=len(all_slots) - available,
    )


# ============================================================================
# GENERATOR
# ============================================================================

class ScheduleGenerator:
    """
    Produces a WeeklySchedule from batches, evaluators and holidays.

    The generator keeps only its configuration; everything built during a
    call (candidate sequence, cursor, entries) lives in that call.
    """

    def __init__(self, config=None):
        self.config = config or SchedulerConfig()

    def _log(self, *args):
        if self.config.verbose:
            flush_print(*args)

    def generate_timetable(self, batches, evaluators, holidays=None, time_limit=None, clock=time.monotonic):
        """
        Generate one weekly schedule.

        Args:
            batches: Ordered list of Batch objects (read only)
            evaluators: Ordered list of ConstraintEvaluator instances
            holidays: Holiday dates; each removes its weekday from the week
            time_limit: Optional seconds before the request is aborted
            clock: Monotonic clock, injectable for tests

        Returns:
            WeeklySchedule

        Raises:
            ConfigurationError, ValidationFailedError, SchedulingImpossibleError,
            SchedulingTimeoutError
        """
        config = self.config
        started = clock()
        deadline = started + time_limit if time_limit is not None else None

        # Step 1: reject bad requests before any work
        config.validate()
        validate_batches(batches)

        # Step 2: candidate sequence, shared by every placement
        candidates = build_candidate_slots(config, holidays)
        controller = make_controller(candidates, config.prioritize_even_distribution)
        mode = "round-robin" if config.prioritize_even_distribution else "first-fit"
        self._log(f"[Generator] {len(candidates)} candidate slots across "
                  f"{len({c.day for c in candidates})} days ({mode})")

        # Step 3: lecture units
        units = expand_lecture_units(batches)
        self._log(f"[Generator] Scheduling {len(units)} lectures for {len(batches)} batches")

        # Step 4/5: placement
        entries = []
        conflicts = []
        unscheduled = []
        for unit in units:
            if deadline is not None and clock() >= deadline:
                elapsed = clock() - started
                raise SchedulingTimeoutError(
                    f"Generation exceeded its time limit of {time_limit}s after placing "
                    f"{len(entries)}/{len(units)} lectures",
                    elapsed_seconds=elapsed,
                )

            entry, violations = place_lecture_unit(unit, controller, evaluators, entries, config)
            if entry is None:
                reason = (f"No candidate slot passed all constraints within "
                          f"{min(config.max_attempts_per_lecture, len(candidates))} attempts")
                if not config.allow_partial_schedules:
                    raise SchedulingImpossibleError(
                        f"Could not place lecture {unit.lecture_index + 1}/{unit.lectures_per_week} of "
                        f"subject {unit.subject_id} (batch {unit.batch_id}): {reason} "
                        f"({len(candidates)} candidate slots)",
                        batch_id=unit.batch_id,
                        subject_id=unit.subject_id,
                        lecture_index=unit.lecture_index,
                    )
                unscheduled.append(UnscheduledLecture(
                    batch_id=unit.batch_id,
                    subject_id=unit.subject_id,
                    lecture_index=unit.lecture_index,
                    reason=reason,
                ))
                continue

            entries.append(entry)
            for violation in violations:
                if violation not in conflicts:
                    conflicts.append(violation)

        if unscheduled:
            self._log(f"[Generator] {len(unscheduled)} lecture(s) left unscheduled")

        # Step 6: residual analysis over the final entry set
        residual = residual_violations(entries, evaluators, demote=config.allow_overlapping_lectures)
        recorded = set(conflicts)
        for violation in residual:
            if violation not in recorded:
                conflicts.append(violation)
                recorded.add(violation)

        schedule = WeeklySchedule(
            entries=entries,
            conflicts=conflicts,
            metadata=ScheduleMetadata(
                generated_at=datetime.now(),
                total_lectures=len(entries),
                batch_count=len(batches),
                faculty_count=len({e.faculty_id for e in entries if e.faculty_id}),
                subject_count=len({e.subject_id for e in entries}),
                generation_time_ms=(clock() - started) * 1000,
                requested_lectures=len(units),
                unscheduled_lectures=unscheduled,
                working_days=[d for d in WEEKDAYS if d in config.working_days],
                total_candidate_slots=len(candidates),
                degraded=config.allow_overlapping_lectures,
            ),
        )
        schedule.metadata.optimization_score = compute_statistics(schedule).health_score

        self._log(f"[Generator] Placed {len(entries)}/{len(units)} lectures, "
                  f"{len(conflicts)} conflict(s), {schedule.metadata.generation_time_ms:.1f} ms")
        return schedule


def residual_violations(entries, evaluators, demote=False):
    """Each entry checked against the entries placed before it, so every pair is reported once."""
    found = []
    for idx, entry in enumerate(entries):
        for violation in run_evaluators(evaluators, entry, entries[:idx]):
            found.append(violation.as_warning() if demote else violation)
    return found


def run_scheduler(config, batches, evaluators=None, holidays=None, time_limit=None):
    """
    Main function to build and run one generation request.

    Args:
        config: SchedulerConfig or a config.json dictionary
        batches: List of Batch objects
        evaluators: Constraint evaluators; the default chain when None
        holidays: Holiday dates
        time_limit: Maximum time in seconds for generation
    """
    if isinstance(config, dict):
        config = SchedulerConfig.from_dict(config)
    if evaluators is None:
        evaluators = default_evaluators(config, holidays)
    return ScheduleGenerator(config).generate_timetable(
        batches, evaluators, holidays=holidays, time_limit=time_limit)
