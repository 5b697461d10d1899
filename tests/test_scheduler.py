import itertools
from collections import Counter

import pytest

from conftest import make_batch
from data_models import SEVERITY_ERROR, SEVERITY_WARNING, Subject
from errors import (
    ConfigurationError, SchedulingImpossibleError, SchedulingTimeoutError, ValidationFailedError,
)
from scheduler import ScheduleGenerator, SchedulerConfig, check_feasibility, expand_lecture_units, run_scheduler
from timeslot_system.timeslot_constraints import default_evaluators


def generate(config, batches, holidays=None, **kwargs):
    evaluators = default_evaluators(config, holidays)
    return ScheduleGenerator(config).generate_timetable(batches, evaluators, holidays=holidays, **kwargs)


def overlapping_pairs(entries, key):
    pairs = 0
    for a, b in itertools.combinations(entries, 2):
        if key(a) is not None and key(a) == key(b) and a.time_slot.overlaps(b.time_slot):
            pairs += 1
    return pairs


# ---------------------- Configuration ----------------------

def test_config_from_dict_reads_upper_case_keys():
    config = SchedulerConfig.from_dict({
        "SCHEDULING_DAYS": ["monday", "tue"],
        "DAY_START_MINUTES": 450,
        "DAY_END_MINUTES": "16:00",
        "LUNCH_START_MINUTES": None,
        "LUNCH_END_MINUTES": None,
        "SLOT_DURATION_MINUTES": 50,
        "ALLOW_PARTIAL_SCHEDULES": False,
        "VERBOSE": True,
    })
    assert config.working_days == ["MONDAY", "TUESDAY"]
    assert config.working_hours == (450, 960)
    assert config.lunch_break is None
    assert config.slot_duration == 50
    assert config.break_duration == 15
    assert not config.allow_partial_schedules
    assert config.verbose


@pytest.mark.parametrize("changes, fragment", [
    ({"working_hours": ("17:00", "08:00")}, "Working hours"),
    ({"slot_duration": 0}, "Slot duration"),
    ({"break_duration": -5}, "Break duration"),
    ({"max_attempts_per_lecture": 0}, "Max attempts"),
    ({"working_days": ["SUNDAY"]}, "Unknown working day"),
    ({"working_days": []}, "At least one working day"),
    ({"lunch_break": ("13:00", "12:00")}, "Lunch break start"),
    ({"lunch_break": ("18:00", "19:00")}, "outside working hours"),
    ({"working_hours": ("8am", "17:00")}, "Invalid working hours"),
    ({"working_hours": ("08:00", "25:00")}, "Invalid working hours"),
    ({"working_hours": (480,)}, "Invalid working hours"),
    ({"lunch_break": ("noon", "13:00")}, "Invalid lunch break"),
])
def test_invalid_configuration_is_rejected(week_config, scenario_a_batch, changes, fragment):
    with pytest.raises(ConfigurationError) as exc:
        generate(week_config.copy_with(**changes), [scenario_a_batch])
    assert fragment in exc.value.message
    assert exc.value.user_message != exc.value.message


def test_unreadable_config_times_are_configuration_errors(scenario_a_batch):
    with pytest.raises(ConfigurationError) as exc:
        run_scheduler({"DAY_START_MINUTES": "8am", "DAY_END_MINUTES": 1020}, [scenario_a_batch])
    assert "'8am'" in exc.value.message


def test_invalid_batches_fail_before_generation(week_config):
    batch = make_batch("b1", [("math", 3, 60, None)])
    batch.subjects.append(Subject("bad", "Bad", "b1", lectures_per_week=0, lecture_duration=20))
    with pytest.raises(ValidationFailedError) as exc:
        generate(week_config, [batch])
    assert len(exc.value.issues) == 2


# ---------------------- Placement ----------------------

def test_single_faculty_week_has_no_overlaps(week_config, scenario_a_batch):
    schedule = generate(week_config, [scenario_a_batch])

    f1 = schedule.entries_for_faculty("F1")
    assert len(f1) == 8
    assert overlapping_pairs(f1, key=lambda e: e.faculty_id) == 0
    assert schedule.conflicts_by_severity(SEVERITY_ERROR) == []
    assert schedule.validate().is_valid


def test_each_subject_gets_exactly_its_lectures(week_config):
    batches = [
        make_batch("10A", [("math", 5, 60, "F1"), ("physics", 3, 60, "F2")]),
        make_batch("10B", [("math", 5, 60, "F1"), ("art", 2, 90, None)]),
    ]
    schedule = generate(week_config, batches)
    counts = Counter((e.batch_id, e.subject_id) for e in schedule.entries)
    assert counts == {("10A", "math"): 5, ("10A", "physics"): 3, ("10B", "math"): 5, ("10B", "art"): 2}
    assert len(schedule.entries) == schedule.metadata.total_lectures == 15
    assert schedule.metadata.requested_lectures == 15
    assert overlapping_pairs(schedule.entries, key=lambda e: e.faculty_id) == 0
    assert overlapping_pairs(schedule.entries, key=lambda e: e.batch_id) == 0


def test_entry_length_follows_subject_duration(week_config):
    schedule = generate(week_config, [make_batch("b1", [("lab", 1, 45, None)])])
    assert schedule.entries[0].time_slot.duration == 45


def test_round_robin_spreads_consecutive_lectures(week_config, scenario_a_batch):
    schedule = generate(week_config, [scenario_a_batch])
    math_days = [e.time_slot.day for e in schedule.entries_for_subject("math")]
    assert math_days == ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"]


def test_first_fit_packs_early_days(week_config, scenario_a_batch):
    config = week_config.copy_with(prioritize_even_distribution=False)
    schedule = generate(config, [scenario_a_batch])
    days = Counter(e.time_slot.day for e in schedule.entries)
    assert days["MONDAY"] == 6
    assert days["TUESDAY"] == 2


def test_generation_is_deterministic(week_config):
    batches = [
        make_batch("10A", [("math", 5, 60, "F1"), ("physics", 3, 60, "F2")]),
        make_batch("10B", [("math", 4, 60, "F1"), ("chem", 3, 60, "F2")]),
    ]
    first = generate(week_config, batches)
    second = generate(week_config, batches)
    assert first.entries == second.entries
    assert first.conflicts == second.conflicts


def test_generator_keeps_no_per_call_state(week_config, scenario_a_batch):
    generator = ScheduleGenerator(week_config)
    evaluators = default_evaluators(week_config)
    first = generator.generate_timetable([scenario_a_batch], evaluators)
    second = generator.generate_timetable([scenario_a_batch], evaluators)
    assert first.entries == second.entries


def test_holiday_weekday_gets_no_lectures(week_config, scenario_a_batch):
    schedule = generate(week_config, [scenario_a_batch], holidays=["2024-01-03"])
    assert schedule.entries_for_day("WEDNESDAY") == []
    assert schedule.metadata.total_candidate_slots == 24


# ---------------------- Shortfall ----------------------

def test_too_few_slots_without_partial_fails(monday_only_config, scenario_a_batch):
    with pytest.raises(SchedulingImpossibleError) as exc:
        generate(monday_only_config, [scenario_a_batch])
    assert exc.value.subject_id == "math"
    assert exc.value.lecture_index == 3
    assert "3 candidate slots" in exc.value.message


def test_partial_schedule_records_shortfall(monday_only_config, scenario_a_batch):
    config = monday_only_config.copy_with(allow_partial_schedules=True)
    schedule = generate(config, [scenario_a_batch])
    assert len(schedule.entries) == 3
    assert schedule.metadata.requested_lectures == 8
    unscheduled = schedule.metadata.unscheduled_lectures
    assert len(unscheduled) == 5
    assert [u.lecture_index for u in unscheduled if u.subject_id == "math"] == [3, 4]
    assert schedule.conflicts_by_severity(SEVERITY_ERROR) == []


def test_overlapping_mode_places_everything_as_warnings(monday_only_config, scenario_a_batch):
    config = monday_only_config.copy_with(allow_overlapping_lectures=True)
    schedule = generate(config, [scenario_a_batch])
    assert len(schedule.entries) == 8
    assert schedule.metadata.degraded
    assert schedule.conflicts
    assert {c.severity for c in schedule.conflicts} == {SEVERITY_WARNING}
    assert len(set(schedule.conflicts)) == len(schedule.conflicts)


# ---------------------- Deadline ----------------------

def test_zero_time_limit_times_out(week_config, scenario_a_batch):
    with pytest.raises(SchedulingTimeoutError):
        generate(week_config, [scenario_a_batch], time_limit=0)


def test_deadline_checked_between_lecture_units(week_config, scenario_a_batch):
    ticks = itertools.count()
    with pytest.raises(SchedulingTimeoutError) as exc:
        generate(week_config, [scenario_a_batch], time_limit=3, clock=lambda: next(ticks))
    assert "placing 2/8" in exc.value.message


# ---------------------- Helpers ----------------------

def test_lecture_units_follow_input_order(scenario_a_batch):
    units = expand_lecture_units([scenario_a_batch])
    assert [(u.subject_id, u.lecture_index) for u in units[:6]] == [
        ("math", 0), ("math", 1), ("math", 2), ("math", 3), ("math", 4), ("physics", 0)]


def test_run_scheduler_accepts_config_dict(scenario_a_batch):
    schedule = run_scheduler({"DAY_START_MINUTES": 480, "DAY_END_MINUTES": 1020}, [scenario_a_batch])
    assert len(schedule.entries) == 8
    assert schedule.metadata.optimization_score is not None


# ---------------------- Feasibility ----------------------

def test_feasible_request_has_no_issues(week_config, scenario_a_batch):
    report = check_feasibility(week_config, [scenario_a_batch])
    assert report.feasible
    assert report.issues == [] and report.recommendations == []
    assert (report.total_lectures, report.available_slots) == (8, 30)
    assert report.utilization_rate == 26.7


def test_batch_over_capacity(monday_only_config, scenario_a_batch):
    report = check_feasibility(monday_only_config, [scenario_a_batch])
    assert not report.feasible
    assert report.issues[0] == "Batch 10A needs 8 lectures but only 3 time slots are available"
    assert "Reduce number of lectures or increase available time slots" in report.recommendations


def test_high_utilization_warning(week_config):
    batch = make_batch("10A", [(f"s{i}", 5, 60, f"F{i}") for i in range(5)])
    report = check_feasibility(week_config, [batch])
    assert report.issues == ["High utilization rate (83%) may make scheduling difficult"]
    assert report.recommendations == ["Consider adding more time slots or reducing lecture requirements"]


def test_faculty_shared_across_batches_is_overloaded(monday_only_config):
    batches = [make_batch("10A", [("math", 2, 60, "F1")]), make_batch("10B", [("math", 2, 60, "F1")])]
    report = check_feasibility(monday_only_config, batches)
    assert "Faculty F1 teaches 4 lectures but only 3 time slots are available" in report.issues
    assert not any(issue.startswith("Batch") for issue in report.issues)
    assert "Redistribute subjects among faculty or increase working days" in report.recommendations


def test_holidays_reduce_available_slots(week_config, scenario_a_batch):
    report = check_feasibility(week_config, [scenario_a_batch], holidays=["2024-01-03"])
    assert report.available_slots == 24
    assert report.slots_lost == 6
    assert report.affected_days == ["WEDNESDAY"]
    assert report.feasible


def test_no_slots_left_after_holidays(monday_only_config, scenario_a_batch):
    # 2024-01-01 is a Monday
    report = check_feasibility(monday_only_config, [scenario_a_batch], holidays=["2024-01-01"])
    assert report.available_slots == 0
    assert report.issues == ["No time slots remain after holidays"]
