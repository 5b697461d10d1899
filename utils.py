# utils.py
"""
Utility functions used across the scheduling system.
"""

import json
import os
import sys
import uuid
from datetime import datetime


def flush_print(*args, **kwargs):
    """Enable immediate output flushing for debugging hangs."""
    print(*args, **kwargs)
    sys.stdout.flush()


def create_output_folder(num_batches=0, num_subjects=0, num_faculty=0, base_dir=None):
    """
    Creates a unique output folder for this scheduler run.

    Folder naming: outputs/{YYYYMMDD}_{HHMMSS}_B{batches}_S{subjects}_F{faculty}/

    Returns:
        str: Absolute path to the created output folder
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    dataset_info = f"B{num_batches}_S{num_subjects}_F{num_faculty}"
    folder_name = f"{timestamp}_{dataset_info}"

    if base_dir is None:
        base_dir = os.path.dirname(os.path.abspath(__file__))
    outputs_dir = os.path.join(base_dir, "outputs")
    os.makedirs(outputs_dir, exist_ok=True)

    run_folder = os.path.join(outputs_dir, folder_name)
    os.makedirs(run_folder, exist_ok=True)

    return run_folder


def load_config(path='config.json'):
    """Load configuration from JSON file."""
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        print(f"FATAL: Could not load or parse {path}. Error: {e}")
        sys.exit(1)


def new_id(prefix):
    """Request-independent identifier, e.g. 'batch_3f2a9c1e'."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def parse_time(value):
    """'HH:MM' -> minute of day. Integers pass through unchanged."""
    if isinstance(value, int):
        return value
    hours, minutes = map(int, str(value).strip().split(':'))
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hours * 60 + minutes


def minutes_to_time(minutes):
    """Minute of day -> 'HH:MM' (24 hour)."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_to_12hr_time(minutes):
    hours = minutes // 60
    mins = minutes % 60
    period = "AM" if hours % 24 < 12 else "PM"
    display_hour = hours % 12
    if display_hour == 0:
        display_hour = 12
    return f"{display_hour}:{mins:02d} {period}"
