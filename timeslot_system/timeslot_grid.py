"""
Time Slot Grid - Core Interface Layer

This module derives the week's candidate (day, slot) sequence that every
placement in a request draws from. The sequence is computed once per
generation call and shared by all lecture units.

How the sequence is walked (which candidate a lecture tries first) is
delegated to controller modules (see controllers/), so the grid itself stays a
plain ordered list.
"""

from datetime import date, datetime

from data_models import TimeSlot, WEEKDAYS
from errors import ValidationFailedError


def parse_holiday(holiday):
    """date, datetime or 'YYYY-MM-DD' -> date."""
    if isinstance(holiday, datetime):
        return holiday.date()
    if isinstance(holiday, date):
        return holiday
    return date.fromisoformat(holiday.strip())


def holiday_weekdays(holidays):
    """
    Map holiday dates onto the weekly template.

    A weekly timetable repeats every week, so a holiday removes its whole
    weekday. Sundays are ignored (never a working day).

    Args:
        holidays: iterable of datetime.date / datetime / 'YYYY-MM-DD' strings

    Returns:
        Set of weekday names from WEEKDAYS

    Raises:
        ValidationFailedError: a value that is not a date
    """
    days = set()
    for raw in holidays or []:
        try:
            holiday = parse_holiday(raw)
        except (ValueError, TypeError, AttributeError):
            raise ValidationFailedError([f"Invalid holiday date: {raw!r}"]) from None
        weekday_idx = holiday.weekday()
        if weekday_idx < len(WEEKDAYS):
            days.add(WEEKDAYS[weekday_idx])
    return days


def calculate_slots_for_day(day, config):
    """
    Walk working hours in (slot_duration + break_duration) steps.

    A step whose slot would overlap the lunch window is dropped and the walk
    resumes at lunch end. Slots must end by the end of working hours.
    """
    day_start, day_end = config.working_hours
    step = config.slot_duration + config.break_duration
    lunch = config.lunch_break

    slots = []
    current = day_start
    while current + config.slot_duration <= day_end:
        slot_end = current + config.slot_duration
        if lunch and current < lunch[1] and lunch[0] < slot_end:
            current = lunch[1]
            continue
        slots.append(TimeSlot(day=day, start_minutes=current, end_minutes=slot_end))
        current += step
    return slots


def build_candidate_slots(config, holidays=None):
    """
    Build the ordered candidate sequence for one request.

    Days follow WEEKDAYS order regardless of the order given in
    config.working_days; non-working and holiday days are skipped entirely.

    Args:
        config: SchedulerConfig (already validated)
        holidays: Holiday dates

    Returns:
        List of TimeSlot ordered by day, then start time
    """
    blocked = holiday_weekdays(holidays)
    working = set(config.working_days)

    candidates = []
    for day in WEEKDAYS:
        if day not in working or day in blocked:
            continue
        candidates.extend(calculate_slots_for_day(day, config))
    return candidates


def group_by_day(candidates):
    """{day: [TimeSlot, ...]} preserving candidate order."""
    by_day = {}
    for slot in candidates:
        by_day.setdefault(slot.day, []).append(slot)
    return by_day
