import pytest

from conftest import make_entry, make_schedule
from data_models import ConstraintViolation, SEVERITY_ERROR, SEVERITY_WARNING, WEEKDAYS
from schedule_statistics import (
    compute_statistics, distribution_quality, health_score, summarize, utilization_level,
)

WORK_WEEK = WEEKDAYS[:5]


def even_week_schedule(per_day=2, **kwargs):
    entries = []
    for day in WORK_WEEK:
        for i in range(per_day):
            entries.append(make_entry(f"b{i}", "math", day, 480 + i * 75, faculty_id=f"F{i}"))
    return make_schedule(entries, working_days=list(WORK_WEEK), **kwargs)


def test_even_week_is_excellent():
    stats = compute_statistics(even_week_schedule())
    assert stats.entries_per_day == {d: 2 for d in WORK_WEEK}
    assert stats.daily_std == 0
    assert stats.daily_mean == 2
    assert stats.coefficient_of_variation == 0
    assert stats.distribution_quality == "Excellent"


def test_idle_working_day_counts_as_zero():
    entries = [make_entry("b1", "math", day, 480) for day in WORK_WEEK[:4]]
    stats = compute_statistics(make_schedule(entries, working_days=list(WORK_WEEK)))
    assert stats.entries_per_day["FRIDAY"] == 0
    assert stats.daily_min == 0
    assert stats.daily_max == 1
    # population std of [1, 1, 1, 1, 0]
    assert stats.daily_std == pytest.approx(0.4)
    assert stats.coefficient_of_variation == pytest.approx(0.5)
    assert stats.distribution_quality == "Fair"


def test_utilization_counts_unique_occupied_slots():
    entries = [
        make_entry("b1", "math", "MONDAY", 480),
        make_entry("b2", "math", "MONDAY", 480),
        make_entry("b1", "art", "TUESDAY", 555),
    ]
    stats = compute_statistics(make_schedule(entries, total_candidate_slots=6))
    assert stats.used_slots == 2
    assert stats.available_slots == 4
    assert stats.utilization_rate == 33.3
    assert stats.peak_hour == "08:00"


def test_per_group_counts():
    stats = compute_statistics(even_week_schedule())
    assert stats.entries_per_batch == {"b0": 5, "b1": 5}
    assert stats.entries_per_faculty == {"F0": 5, "F1": 5}
    assert stats.entries_per_subject == {"math": 10}


def test_conflicts_grouped_by_severity_and_type():
    schedule = even_week_schedule()
    schedule.conflicts = [
        ConstraintViolation("faculty-conflict", SEVERITY_ERROR, "a"),
        ConstraintViolation("faculty-conflict", SEVERITY_WARNING, "b"),
        ConstraintViolation("batch-conflict", SEVERITY_WARNING, "c"),
    ]
    stats = compute_statistics(schedule)
    assert stats.conflicts_by_severity == {SEVERITY_ERROR: 1, SEVERITY_WARNING: 2}
    assert stats.conflicts_by_type == {"faculty-conflict": 2, "batch-conflict": 1}


def test_health_score_penalties():
    # 10 of 30 slots used: 33.3% utilization
    stats = compute_statistics(even_week_schedule())
    assert stats.health_score == pytest.approx(100 - (50 - 33.3) * 0.5)

    assert health_score(1, 2, 0.5, 80.0) == pytest.approx(100 - 10 - 10 - 10)
    assert health_score(15, 0, 0.0, 100.0) == 0.0


def test_empty_schedule():
    stats = compute_statistics(make_schedule([], working_days=list(WORK_WEEK)))
    assert stats.total_lectures == 0
    assert stats.coefficient_of_variation == 1.0
    assert stats.distribution_quality == "Poor"
    assert stats.utilization_rate == 0.0
    assert stats.peak_hour is None
    assert stats.health_score == pytest.approx(100 - 20 - 25)


@pytest.mark.parametrize("cv, label", [(0.0, "Excellent"), (0.19, "Excellent"), (0.2, "Good"),
                                       (0.39, "Good"), (0.4, "Fair"), (0.6, "Poor")])
def test_distribution_quality_thresholds(cv, label):
    assert distribution_quality(cv) == label


def test_utilization_level():
    assert utilization_level(10.0) == "Low"
    assert utilization_level(55.0) == "Optimal"
    assert utilization_level(95.0) == "High"


def test_summarize_and_schedule_statistics_agree():
    schedule = even_week_schedule()
    summary = summarize(schedule)
    assert summary["total_lectures"] == 10
    assert summary["distribution_quality"] == "Excellent"
    assert summary["health_score"] == round(schedule.statistics().health_score, 1)
