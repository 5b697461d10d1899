# export_reports.py
"""
Report generation and export functions for generated weekly schedules.
Includes the human-readable schedule report and raw Excel/CSV/JSON exports.
"""

import json
import os

import pandas as pd

from data_models import SEVERITY_ERROR, SEVERITY_WARNING, WEEKDAYS
from errors import ExportFailedError
from schedule_statistics import compute_statistics, utilization_level
from utils import minutes_to_12hr_time, minutes_to_time

EXPORT_FORMATS = ("json", "csv", "xlsx")

SCHEDULE_COLUMNS = ["Batch", "Subject", "Faculty", "Day", "Start", "End", "Time"]


def schedule_to_records(schedule):
    """One row per entry, sorted by batch, weekday, start time."""
    day_order = {d: i for i, d in enumerate(WEEKDAYS)}
    entries = sorted(
        schedule.entries,
        key=lambda e: (e.batch_id, day_order.get(e.time_slot.day, len(WEEKDAYS)), e.time_slot.start_minutes),
    )
    return [{
        "Batch": e.batch_id,
        "Subject": e.subject_id,
        "Faculty": e.faculty_id or "",
        "Day": e.time_slot.day.title(),
        "Start": minutes_to_time(e.time_slot.start_minutes),
        "End": minutes_to_time(e.time_slot.end_minutes),
        "Time": f"{minutes_to_12hr_time(e.time_slot.start_minutes)} - "
                f"{minutes_to_12hr_time(e.time_slot.end_minutes)}",
    } for e in entries]


def conflict_records(schedule):
    return [{
        "Type": c.type,
        "Severity": c.severity,
        "Message": c.message,
        "Entries": "; ".join(f"{e.batch_id}/{e.subject_id} {e.time_slot.label()}" for e in c.affected_entries),
    } for c in schedule.conflicts]


def batch_grid(schedule, batch_id):
    """Weekly grid for one batch: rows are start times, columns are days."""
    rows = [r for r in schedule_to_records(schedule) if r["Batch"] == batch_id]
    if not rows:
        return pd.DataFrame()
    df = pd.DataFrame(rows)
    df["Cell"] = df["Subject"] + df["Faculty"].map(lambda f: f" ({f})" if f else "")
    grid = df.pivot_table(index="Start", columns="Day", values="Cell", aggfunc=", ".join)
    days = [d.title() for d in WEEKDAYS if d.title() in grid.columns]
    return grid.reindex(columns=days).fillna("")


def _metadata_dict(schedule):
    meta = schedule.metadata
    return {
        "generated_at": meta.generated_at.isoformat(),
        "total_lectures": meta.total_lectures,
        "requested_lectures": meta.requested_lectures,
        "batch_count": meta.batch_count,
        "faculty_count": meta.faculty_count,
        "subject_count": meta.subject_count,
        "optimization_score": meta.optimization_score,
        "generation_time_ms": meta.generation_time_ms,
        "working_days": list(meta.working_days),
        "total_candidate_slots": meta.total_candidate_slots,
        "degraded": meta.degraded,
        "unscheduled_lectures": [{
            "batch_id": u.batch_id,
            "subject_id": u.subject_id,
            "lecture_index": u.lecture_index,
            "reason": u.reason,
        } for u in meta.unscheduled_lectures],
    }


def export_schedule(schedule, path, fmt=None):
    """
    Write a schedule to disk.

    Args:
        schedule: WeeklySchedule to export
        path: Output file path
        fmt: 'json', 'csv' or 'xlsx'; taken from the file extension when None

    Returns:
        str: The path written

    Raises:
        ExportFailedError: unknown format or the file could not be written
    """
    fmt = (fmt or os.path.splitext(path)[1].lstrip(".")).lower()
    if fmt not in EXPORT_FORMATS:
        raise ExportFailedError(f"Unsupported export format: {fmt!r}", export_format=fmt, path=path)

    schedule_df = pd.DataFrame(schedule_to_records(schedule), columns=SCHEDULE_COLUMNS)
    try:
        if fmt == "csv":
            schedule_df.to_csv(path, index=False)
        elif fmt == "json":
            payload = {
                "metadata": _metadata_dict(schedule),
                "summary": schedule.summary(),
                "entries": schedule_df.to_dict(orient="records"),
                "conflicts": conflict_records(schedule),
            }
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        else:
            with pd.ExcelWriter(path, engine="openpyxl") as writer:
                schedule_df.to_excel(writer, sheet_name="Schedule", index=False)
                pd.DataFrame(conflict_records(schedule),
                             columns=["Type", "Severity", "Message", "Entries"]).to_excel(
                    writer, sheet_name="Conflicts", index=False)
                summary = schedule.summary()
                pd.DataFrame({"Metric": list(summary), "Value": list(summary.values())}).to_excel(
                    writer, sheet_name="Summary", index=False)
                for batch_id in schedule.batch_ids():
                    safe_sheet_name = f"Batch {batch_id}"[:31]
                    batch_grid(schedule, batch_id).to_excel(writer, sheet_name=safe_sheet_name)
    except (OSError, ValueError) as e:
        raise ExportFailedError(f"Could not write {fmt} export to {path}: {e}",
                                export_format=fmt, path=path) from e
    return path


def generate_schedule_report(schedule, output_file=None, feasibility=None):
    """
    Generates a human-readable schedule report.

    Args:
        schedule: WeeklySchedule to describe
        output_file: When given, the report is also written to this file
        feasibility: Optional FeasibilityReport from the pre-generation check

    Returns:
        str: The report text
    """
    stats = compute_statistics(schedule)
    meta = schedule.metadata
    lines = []

    lines.append("=" * 60)
    lines.append("WEEKLY SCHEDULE REPORT")
    lines.append("=" * 60)
    lines.append(f"Generated at:        {meta.generated_at:%Y-%m-%d %H:%M:%S}")
    requested = meta.requested_lectures if meta.requested_lectures is not None else meta.total_lectures
    lines.append(f"Lectures scheduled:  {meta.total_lectures}/{requested}")
    lines.append(f"Batches:             {meta.batch_count}")
    lines.append(f"Faculty:             {meta.faculty_count or 0}")
    if meta.generation_time_ms is not None:
        lines.append(f"Generation time:     {meta.generation_time_ms:.1f} ms")
    if meta.degraded:
        lines.append("Overlapping lectures were tolerated for this schedule.")

    lines.append("")
    lines.append("-" * 60)
    lines.append("DISTRIBUTION")
    lines.append("-" * 60)
    for day, count in stats.entries_per_day.items():
        lines.append(f"  {day.title():<10} {count:>3}  {'#' * count}")
    lines.append(f"  Mean {stats.daily_mean:.2f} | Std dev {stats.daily_std:.2f} | "
                 f"Min {stats.daily_min} | Max {stats.daily_max}")
    lines.append(f"  Distribution quality: {stats.distribution_quality} (CV {stats.coefficient_of_variation:.2f})")
    lines.append(f"  Utilization: {stats.utilization_rate:.1f}% ({utilization_level(stats.utilization_rate)}), "
                 f"{stats.used_slots}/{stats.total_slots} slots used, peak hour {stats.peak_hour or 'N/A'}")
    lines.append(f"  Health score: {stats.health_score:.1f}/100")

    lines.append("")
    lines.append("-" * 60)
    lines.append("CONFLICTS")
    lines.append("-" * 60)
    if not schedule.conflicts:
        lines.append("  No conflicts detected.")
    else:
        lines.append(f"  Errors: {stats.conflicts_by_severity.get(SEVERITY_ERROR, 0)} | "
                     f"Warnings: {stats.conflicts_by_severity.get(SEVERITY_WARNING, 0)}")
        for conflict in schedule.conflicts:
            lines.append(f"  [{conflict.severity.upper()}] {conflict.message}")

    if meta.unscheduled_lectures:
        lines.append("")
        lines.append("-" * 60)
        lines.append("UNSCHEDULED LECTURES")
        lines.append("-" * 60)
        for u in meta.unscheduled_lectures:
            lines.append(f"  {u.batch_id}/{u.subject_id} lecture {u.lecture_index + 1}: {u.reason}")

    if feasibility is not None:
        lines.append("")
        lines.append("-" * 60)
        lines.append("FEASIBILITY")
        lines.append("-" * 60)
        lines.append(f"  Requested {feasibility.total_lectures} lectures over {feasibility.available_slots} slots, "
                     f"busiest load {feasibility.utilization_rate:.1f}%")
        if feasibility.slots_lost:
            lines.append(f"  Holidays remove {feasibility.slots_lost} slots: {', '.join(feasibility.affected_days)}")
        if feasibility.feasible:
            lines.append("  No feasibility issues found.")
        for issue in feasibility.issues:
            lines.append(f"  [ISSUE] {issue}")
        for recommendation in feasibility.recommendations:
            lines.append(f"  -> {recommendation}")

    lines.append("=" * 60)
    report = "\n".join(lines) + "\n"

    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(report)
    return report
