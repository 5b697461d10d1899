# main.py
import os
import sys

import pandas as pd

from data_models import Batch, Subject
from errors import ExportFailedError, MemoryLimitError, TimetableError
from export_reports import export_schedule, generate_schedule_report
from recovery import execute_recovery, generate_with_recovery
from scheduler import SchedulerConfig, check_feasibility
from utils import create_output_folder, flush_print, load_config, new_id


def _read_optional_csv(path, columns, what):
    """Fail-safe read: a missing or empty file yields an empty frame."""
    try:
        df = pd.read_csv(path, dtype=str)
        print(f"Successfully loaded {path}")
        return df
    except FileNotFoundError:
        print(f"WARNING: {path} not found. Continuing without {what}.")
    except pd.errors.EmptyDataError:
        print(f"WARNING: {path} is empty. Continuing without {what}.")
    return pd.DataFrame(columns=columns)


def _optional(value):
    if value is None or pd.isna(value) or not str(value).strip():
        return None
    return str(value).strip()


def load_data(data_folder='data'):
    """
    Load batches, their subjects and holidays from CSV files.

    Files:
        batches.csv   batch_id, name
        subjects.csv  subject_id, name, batch_id, lectures_per_week, lecture_duration, faculty_id
        holidays.csv  date (YYYY-MM-DD), name  (optional)

    Returns:
        tuple: (batches, holidays)
    """
    df_batches = pd.read_csv(f'{data_folder}/batches.csv', dtype=str)
    df_subjects = pd.read_csv(f'{data_folder}/subjects.csv',
                              dtype={'subject_id': str, 'batch_id': str, 'faculty_id': str})
    df_holidays = _read_optional_csv(f'{data_folder}/holidays.csv', ['date', 'name'], 'holidays')

    batches = []
    batches_by_id = {}
    for _, row in df_batches.iterrows():
        batch = Batch(batch_id=_optional(row.get('batch_id')) or new_id('batch'),
                      name=str(row['name']).strip())
        batches.append(batch)
        batches_by_id[batch.batch_id] = batch

    skipped = 0
    for _, row in df_subjects.iterrows():
        batch = batches_by_id.get(str(row['batch_id']).strip())
        if batch is None:
            print(f"WARNING: Subject {row['subject_id']} references unknown batch {row['batch_id']}. Skipping.")
            skipped += 1
            continue
        # Appended unchecked; the generator reports every invalid field at once
        batch.subjects.append(Subject(
            subject_id=_optional(row.get('subject_id')) or new_id('subject'),
            name=str(row['name']).strip(),
            batch_id=batch.batch_id,
            lectures_per_week=int(row['lectures_per_week']),
            lecture_duration=int(row['lecture_duration']),
            faculty_id=_optional(row.get('faculty_id')),
        ))

    holidays = [str(d).strip() for d in df_holidays['date'].dropna()]

    num_subjects = sum(len(b.subjects) for b in batches)
    print(f"Loaded {len(batches)} batches, {num_subjects} subjects ({skipped} skipped), "
          f"{len(holidays)} holidays")
    return batches, holidays


def export_outputs(schedule, output_folder, formats):
    """Write every requested format, falling back to another format on failure."""
    written = []
    for fmt in formats:
        path = os.path.join(output_folder, f"schedule.{fmt}")
        try:
            written.append(export_schedule(schedule, path, fmt))
            print(f"Schedule exported to: {path}")
        except ExportFailedError as e:
            print(f"ERROR: {e.message}")
            result = execute_recovery(e, schedule=schedule, skip_formats=tuple(formats))
            if result.success:
                written.append(result.result)
            else:
                print(f"WARNING: {e.user_message}")
    return written


def describe_failure(error):
    """Console lines for a request that could not be completed."""
    details = error.technical_details()
    lines = [f"FATAL [{details['code']}]: {details['message']}", error.user_message]
    for key, value in details["context"].items():
        lines.append(f"   {key}: {value}")
    lines.append(f"   at {details['timestamp']}")
    return lines


def run(config):
    sched_config = SchedulerConfig.from_dict(config)
    batches, holidays = load_data(config.get("DATA_FOLDER", "data"))

    num_subjects = sum(len(b.subjects) for b in batches)
    num_faculty = len({s.faculty_id for b in batches for s in b.subjects if s.faculty_id})
    output_folder = create_output_folder(num_batches=len(batches), num_subjects=num_subjects,
                                         num_faculty=num_faculty)
    print(f"Output folder: {output_folder}")

    feasibility = check_feasibility(sched_config, batches, holidays)
    for issue in feasibility.issues:
        flush_print(f"[Feasibility] {issue}")
    for recommendation in feasibility.recommendations:
        flush_print(f"[Feasibility]   -> {recommendation}")

    generate_kwargs = dict(
        config=sched_config,
        holidays=holidays,
        time_limit=config.get("TIME_LIMIT_SECONDS"),
        max_attempts=config.get("MAX_RECOVERY_ATTEMPTS", 3),
    )
    try:
        schedule, recovery_result = generate_with_recovery(batches, **generate_kwargs)
    except MemoryError:
        flush_print("[Recovery] Out of memory during generation")
        result = execute_recovery(MemoryLimitError("Generation ran out of memory"))
        if not result.success:
            raise
        schedule, recovery_result = generate_with_recovery(batches, **generate_kwargs)

    if recovery_result is not None:
        print(f"\nNOTE: {recovery_result.message}")
        for key, value in recovery_result.modified_parameters.items():
            print(f"   {key}: {value}")

    export_outputs(schedule, output_folder, config.get("EXPORT_FORMATS", ["xlsx", "csv"]))

    report_path = os.path.join(output_folder, "schedule_report.txt")
    print(generate_schedule_report(schedule, output_file=report_path, feasibility=feasibility))
    print(f"Report saved to: {report_path}")
    return schedule


if __name__ == '__main__':
    print("Starting scheduler...")
    config = load_config()
    try:
        run(config)
    except TimetableError as e:
        print()
        for line in describe_failure(e):
            print(line)
        sys.exit(1)
