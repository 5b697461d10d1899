# schedule_statistics.py
"""
Post-hoc analysis of a generated WeeklySchedule.

Everything here reads the schedule and never modifies it: load distribution
across days, batches, faculty and subjects, time slot utilization, conflict
grouping and the bounded health score.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd

from data_models import SEVERITY_ERROR, SEVERITY_WARNING, WEEKDAYS
from utils import minutes_to_time

ERROR_PENALTY = 10
WARNING_PENALTY = 5
DISTRIBUTION_PENALTY_WEIGHT = 20
UTILIZATION_TARGET = 50.0
UTILIZATION_PENALTY_WEIGHT = 0.5


@dataclass
class ScheduleStatistics:
    total_lectures: int
    entries_per_day: Dict[str, int]
    entries_per_batch: Dict[str, int]
    entries_per_faculty: Dict[str, int]
    entries_per_subject: Dict[str, int]
    used_slots: int
    total_slots: int
    utilization_rate: float  # Percent, one decimal
    peak_hour: Optional[str]
    daily_mean: float
    daily_std: float
    daily_min: int
    daily_max: int
    coefficient_of_variation: float
    distribution_quality: str
    conflicts_by_severity: Dict[str, int] = field(default_factory=dict)
    conflicts_by_type: Dict[str, int] = field(default_factory=dict)
    health_score: float = 100.0

    @property
    def available_slots(self):
        return max(self.total_slots - self.used_slots, 0)


def schedule_to_dataframe(schedule):
    """One row per entry, in entry order."""
    rows = [{
        "batch_id": e.batch_id,
        "subject_id": e.subject_id,
        "faculty_id": e.faculty_id,
        "day": e.time_slot.day,
        "start_minutes": e.time_slot.start_minutes,
        "end_minutes": e.time_slot.end_minutes,
    } for e in schedule.entries]
    return pd.DataFrame(rows, columns=["batch_id", "subject_id", "faculty_id", "day",
                                       "start_minutes", "end_minutes"])


def distribution_quality(cv):
    if cv < 0.2:
        return "Excellent"
    if cv < 0.4:
        return "Good"
    if cv < 0.6:
        return "Fair"
    return "Poor"


def utilization_level(rate):
    """Label a utilization percentage."""
    if rate < 30:
        return "Low"
    if rate > 90:
        return "High"
    return "Optimal"


def health_score(error_count, warning_count, cv, utilization_rate):
    score = 100.0
    score -= error_count * ERROR_PENALTY
    score -= warning_count * WARNING_PENALTY
    score -= cv * DISTRIBUTION_PENALTY_WEIGHT
    if utilization_rate < UTILIZATION_TARGET:
        score -= (UTILIZATION_TARGET - utilization_rate) * UTILIZATION_PENALTY_WEIGHT
    return float(min(max(score, 0.0), 100.0))


def _counts(df, column):
    if df.empty:
        return {}
    series = df[column].dropna()
    # sort=False keeps first-appearance order
    return {k: int(v) for k, v in series.groupby(series, sort=False).size().items()}


def compute_statistics(schedule):
    """
    Compute the statistics summary of one schedule.

    Daily load is measured over the schedule's working days, so a working day
    with no lectures counts as zero rather than being left out.
    """
    df = schedule_to_dataframe(schedule)

    days = [d for d in WEEKDAYS if d in schedule.metadata.working_days]
    if not days:
        days = list(dict.fromkeys(df["day"]))
    per_day = df.groupby("day").size() if not df.empty else pd.Series(dtype=int)
    per_day = per_day.reindex(days, fill_value=0)
    daily = per_day.to_numpy(dtype=float)

    if daily.size:
        mean = float(np.mean(daily))
        std = float(np.std(daily))
        daily_min, daily_max = int(np.min(daily)), int(np.max(daily))
    else:
        mean, std, daily_min, daily_max = 0.0, 0.0, 0, 0
    cv = std / mean if mean > 0 else 1.0

    total_slots = schedule.metadata.total_candidate_slots
    used_slots = 0 if df.empty else len(df.drop_duplicates(["day", "start_minutes"]))
    rate = round(used_slots / total_slots * 100, 1) if total_slots else 0.0

    peak_hour = None
    if not df.empty:
        hours = (df["start_minutes"] // 60) * 60
        peak_hour = minutes_to_time(int(hours.value_counts().idxmax()))

    by_severity = {SEVERITY_ERROR: 0, SEVERITY_WARNING: 0}
    by_type = {}
    for conflict in schedule.conflicts:
        by_severity[conflict.severity] = by_severity.get(conflict.severity, 0) + 1
        by_type[conflict.type] = by_type.get(conflict.type, 0) + 1

    return ScheduleStatistics(
        total_lectures=len(schedule.entries),
        entries_per_day={d: int(c) for d, c in per_day.items()},
        entries_per_batch=_counts(df, "batch_id"),
        entries_per_faculty=_counts(df, "faculty_id"),
        entries_per_subject=_counts(df, "subject_id"),
        used_slots=used_slots,
        total_slots=total_slots,
        utilization_rate=rate,
        peak_hour=peak_hour,
        daily_mean=mean,
        daily_std=std,
        daily_min=daily_min,
        daily_max=daily_max,
        coefficient_of_variation=cv,
        distribution_quality=distribution_quality(cv),
        conflicts_by_severity=by_severity,
        conflicts_by_type=by_type,
        health_score=health_score(by_severity[SEVERITY_ERROR], by_severity[SEVERITY_WARNING], cv, rate),
    )


def summarize(schedule):
    """Headline counts plus the few statistics shown in reports."""
    stats = compute_statistics(schedule)
    summary = schedule.summary()
    summary.update({
        "requested_lectures": schedule.metadata.requested_lectures,
        "unscheduled_lectures": len(schedule.metadata.unscheduled_lectures),
        "utilization_rate": stats.utilization_rate,
        "utilization_level": utilization_level(stats.utilization_rate),
        "distribution_quality": stats.distribution_quality,
        "health_score": round(stats.health_score, 1),
    })
    return summary
