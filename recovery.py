# recovery.py
"""
Recovery strategies for whole-request failures.

When generation fails, the strategies that handle the error's kind run in
chain order. Generation strategies re-invoke the generator with progressively
smaller or looser inputs; the first one to report success ends the chain.
Export and memory strategies never regenerate.
"""

import gc
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from data_models import (
    MAX_LECTURE_DURATION, MAX_LECTURES_PER_WEEK, MIN_LECTURE_DURATION, MIN_LECTURES_PER_WEEK,
)
from errors import (
    ExportFailedError, MemoryLimitError, RecoveryFailedError, SchedulingImpossibleError,
    SchedulingTimeoutError, TimetableError, ValidationFailedError,
)
from export_reports import EXPORT_FORMATS, export_schedule
from scheduler import ScheduleGenerator, SchedulerConfig
from timeslot_system.timeslot_constraints import default_evaluators
from utils import flush_print

PARTIAL_KEEP_RATIO = 0.7
MINIMAL_BATCHES = 3
MINIMAL_SUBJECTS = 3
MINIMAL_LECTURE_DURATION = 60


@dataclass
class RecoveryContext:
    original_error: TimetableError
    batches: Optional[list] = None
    attempt_count: int = 1
    max_attempts: int = 3
    config: Optional[SchedulerConfig] = None
    evaluators: Optional[list] = None
    holidays: Optional[list] = None
    time_limit: Optional[float] = None
    schedule: Any = None  # Export failures only
    skip_formats: tuple = ()  # Formats the caller already writes


@dataclass
class RecoveryResult:
    success: bool
    result: Any = None
    message: str = ""
    fallback_used: bool = False
    modified_parameters: Dict[str, Any] = field(default_factory=dict)
    messages: List[str] = field(default_factory=list)


# ============================================================================
# BASE STRATEGIES
# ============================================================================

class RecoveryStrategy:
    name = "recovery"
    description = ""
    handles = ()

    def can_handle(self, error):
        return isinstance(error, self.handles)

    def execute(self, context):
        raise NotImplementedError


class RegenerationStrategy(RecoveryStrategy):
    """Shared plumbing for strategies that call the generator again."""

    handles = (SchedulingImpossibleError,)
    ignore_holidays = False

    def adjust_config(self, config):
        return config.copy_with(allow_partial_schedules=True)

    def adjust_batches(self, batches):
        return batches

    def describe(self, context, batches, config):
        return {}

    def execute(self, context):
        if not context.batches:
            return RecoveryResult(success=False, message=f"{self.name}: no batch data available")

        config = self.adjust_config(context.config or SchedulerConfig())
        batches = self.adjust_batches(context.batches)
        holidays = None if self.ignore_holidays else context.holidays
        evaluators = context.evaluators
        if evaluators is None:
            evaluators = default_evaluators(config, holidays)

        try:
            schedule = ScheduleGenerator(config).generate_timetable(
                batches, evaluators, holidays=holidays, time_limit=context.time_limit)
        except TimetableError as e:
            return RecoveryResult(success=False, message=f"{self.name} failed: {e.message}")

        if not schedule.entries:
            return RecoveryResult(success=False, message=f"{self.name} failed: no lectures could be placed")

        return RecoveryResult(
            success=True,
            result=schedule,
            message=self.success_message(context, batches, schedule),
            fallback_used=True,
            modified_parameters=self.describe(context, batches, config),
        )

    def success_message(self, context, batches, schedule):
        return f"{self.description}: placed {len(schedule.entries)} lectures"


# ============================================================================
# GENERATION LADDER
# ============================================================================

class RelaxConstraintsStrategy(RegenerationStrategy):
    name = "relax-constraints"
    description = "Schedule generated with relaxed constraints"
    ignore_holidays = True

    def adjust_config(self, config):
        return config.copy_with(
            allow_partial_schedules=True,
            prioritize_even_distribution=False,
            max_attempts_per_lecture=max(1, config.max_attempts_per_lecture // 2),
            allow_overlapping_lectures=True,
        )

    def describe(self, context, batches, config):
        return {
            "allow_partial_schedules": True,
            "prioritize_even_distribution": False,
            "max_attempts_per_lecture": config.max_attempts_per_lecture,
            "allow_overlapping_lectures": True,
            "holidays_ignored": True,
        }


def weekly_load(batch):
    return batch.total_lectures_per_week()


class PartialSchedulingStrategy(RegenerationStrategy):
    name = "partial-scheduling"
    description = "Partial schedule generated"

    def adjust_batches(self, batches):
        ordered = sorted(batches, key=weekly_load)
        return ordered[:math.ceil(len(ordered) * PARTIAL_KEEP_RATIO)]

    def describe(self, context, batches, config):
        return {"batch_count": len(batches), "original_batch_count": len(context.batches)}

    def success_message(self, context, batches, schedule):
        return f"Partial schedule generated for {len(batches)}/{len(context.batches)} batches"


def halve_lectures(batches):
    return [
        b.copy_with_subjects(
            s.copy_with(lectures_per_week=max(1, s.lectures_per_week // 2)) for s in b.subjects
        )
        for b in batches
    ]


class SimplifiedSchedulingStrategy(RegenerationStrategy):
    name = "simplified-scheduling"
    description = "Simplified schedule generated with halved lecture counts"

    def adjust_batches(self, batches):
        return halve_lectures(batches)

    def describe(self, context, batches, config):
        return {"lectures_per_week": "halved"}


class MinimalSchedulingStrategy(RegenerationStrategy):
    name = "minimal-scheduling"
    description = "Minimal schedule generated"
    ignore_holidays = True

    def adjust_config(self, config):
        return config.copy_with(allow_partial_schedules=True, allow_overlapping_lectures=True)

    def adjust_batches(self, batches):
        return [
            b.copy_with_subjects(
                s.copy_with(lectures_per_week=1, lecture_duration=MINIMAL_LECTURE_DURATION)
                for s in b.subjects[:MINIMAL_SUBJECTS]
            )
            for b in batches[:MINIMAL_BATCHES]
        ]

    def describe(self, context, batches, config):
        return {
            "batch_count": len(batches),
            "subjects_per_batch": MINIMAL_SUBJECTS,
            "lectures_per_week": 1,
            "lecture_duration": MINIMAL_LECTURE_DURATION,
        }


# ============================================================================
# ERROR-KIND STRATEGIES
# ============================================================================

class TimeoutRecoveryStrategy(RegenerationStrategy):
    name = "timeout-recovery"
    description = "Reduced dataset size to stay within the time limit"
    handles = (SchedulingTimeoutError,)

    def execute(self, context):
        if context.batches is not None and len(context.batches) < 2:
            return RecoveryResult(success=False, message=f"{self.name}: cannot reduce complexity further")
        return super().execute(context)

    def adjust_batches(self, batches):
        return batches[:math.ceil(len(batches) / 2)]

    def describe(self, context, batches, config):
        return {"original_batch_count": len(context.batches), "reduced_batch_count": len(batches)}


def clean_batches(batches):
    """Clamp counts/durations into range and drop what cannot be repaired."""
    cleaned = []
    for batch in batches:
        if not batch.batch_id or not batch.name or not batch.name.strip():
            continue
        kept = batch.copy_with_subjects([])
        for sub in batch.subjects:
            if not sub.subject_id or not sub.name or not sub.name.strip():
                continue
            if not isinstance(sub.lectures_per_week, int) or not isinstance(sub.lecture_duration, int):
                continue
            if sub.lectures_per_week <= 0 or sub.lecture_duration <= 0:
                continue
            fixed = sub.copy_with(
                batch_id=batch.batch_id,
                name=sub.name[:100],
                lectures_per_week=min(MAX_LECTURES_PER_WEEK, max(MIN_LECTURES_PER_WEEK, sub.lectures_per_week)),
                lecture_duration=min(MAX_LECTURE_DURATION, max(MIN_LECTURE_DURATION, sub.lecture_duration)),
            )
            try:
                kept.add_subject(fixed)
            except ValidationFailedError:
                continue  # duplicate name within the batch
        if kept.subjects:
            kept.name = kept.name[:50]
            cleaned.append(kept)
    return cleaned


class ValidationRecoveryStrategy(RegenerationStrategy):
    name = "validation-recovery"
    description = "Data cleaned and rescheduled"
    handles = (ValidationFailedError,)

    def adjust_batches(self, batches):
        seen = set()
        unique = []
        for batch in clean_batches(batches):
            if batch.batch_id not in seen:
                seen.add(batch.batch_id)
                unique.append(batch)
        return unique

    def describe(self, context, batches, config):
        return {"original_count": len(context.batches), "cleaned_count": len(batches)}

    def success_message(self, context, batches, schedule):
        return (f"Data cleaned and validated ({len(batches)}/{len(context.batches)} batches retained), "
                f"placed {len(schedule.entries)} lectures")


class ExportFormatFallbackStrategy(RecoveryStrategy):
    name = "export-format-fallback"
    description = "Export using an alternative format"
    handles = (ExportFailedError,)

    def execute(self, context):
        error = context.original_error
        if context.schedule is None or not error.path:
            return RecoveryResult(success=False, message=f"{self.name}: nothing to export")

        base, _ = os.path.splitext(error.path)
        messages = []
        for fmt in EXPORT_FORMATS:
            if fmt == error.export_format or fmt in context.skip_formats:
                continue
            target = f"{base}.{fmt}"
            try:
                export_schedule(context.schedule, target, fmt)
            except ExportFailedError as e:
                messages.append(e.message)
                continue
            return RecoveryResult(
                success=True,
                result=target,
                message=f"Export completed using {fmt.upper()} instead of {str(error.export_format).upper()}",
                fallback_used=True,
                modified_parameters={"format": fmt, "path": target},
            )
        return RecoveryResult(success=False, message=f"{self.name}: all alternative formats failed",
                              messages=messages)


class MemoryPressureStrategy(RecoveryStrategy):
    name = "memory-pressure"
    description = "Reclaim memory"
    handles = (MemoryLimitError,)

    def execute(self, context):
        freed = gc.collect()
        if freed:
            return RecoveryResult(
                success=True,
                result=freed,
                message=f"Memory cleanup reclaimed {freed} unreachable objects",
                fallback_used=True,
            )
        return RecoveryResult(success=False, result=0, message="Memory cleanup found nothing to free")


# Chain order is fixed; never mutated at runtime.
RECOVERY_CHAIN = (
    RelaxConstraintsStrategy(),
    PartialSchedulingStrategy(),
    SimplifiedSchedulingStrategy(),
    MinimalSchedulingStrategy(),
    TimeoutRecoveryStrategy(),
    ValidationRecoveryStrategy(),
    ExportFormatFallbackStrategy(),
    MemoryPressureStrategy(),
)


# ============================================================================
# MANAGER
# ============================================================================

def find_strategies(error, chain=RECOVERY_CHAIN):
    return [s for s in chain if s.can_handle(error)]


def execute_recovery(error, chain=RECOVERY_CHAIN, **context):
    """
    Run every strategy that handles ``error``, in chain order.

    Args:
        error: The TimetableError that ended the request
        chain: Strategy sequence (defaults to RECOVERY_CHAIN)
        **context: RecoveryContext fields (batches, config, max_attempts, ...)

    Returns:
        RecoveryResult of the first successful strategy, or an aggregate
        failure whose ``messages`` lists every strategy's outcome.
    """
    strategies = find_strategies(error, chain)
    if not strategies:
        return RecoveryResult(success=False, message="No recovery strategies available for this error type")

    ctx = RecoveryContext(original_error=error, **context)
    messages = []
    for strategy in strategies:
        flush_print(f"[Recovery] Attempt {ctx.attempt_count}/{ctx.max_attempts}: {strategy.name}")
        result = strategy.execute(ctx)
        if result.success:
            flush_print(f"[Recovery] {result.message}")
            result.messages = messages + [result.message]
            return result

        flush_print(f"[Recovery] {result.message}")
        messages.append(result.message)
        messages.extend(result.messages)
        ctx.attempt_count += 1
        if ctx.attempt_count > ctx.max_attempts:
            break

    return RecoveryResult(success=False, message="All recovery strategies failed", messages=messages)


def generate_with_recovery(batches, config=None, evaluators=None, holidays=None, time_limit=None,
                           max_attempts=3):
    """
    Generate a schedule, escalating through the recovery chain on failure.

    Returns:
        (schedule, recovery_result) where recovery_result is None when the
        first generation succeeded.

    Raises:
        RecoveryFailedError: every eligible strategy failed
        TimetableError: the failure has no strategy (e.g. ConfigurationError)
    """
    config = config or SchedulerConfig()
    gen_evaluators = evaluators if evaluators is not None else default_evaluators(config, holidays)
    try:
        schedule = ScheduleGenerator(config).generate_timetable(
            batches, gen_evaluators, holidays=holidays, time_limit=time_limit)
        return schedule, None
    except TimetableError as e:
        if not find_strategies(e):
            raise
        flush_print(f"[Recovery] Generation failed ({e.code}): {e.message}")
        result = execute_recovery(
            e,
            batches=batches,
            max_attempts=max_attempts,
            config=config,
            evaluators=evaluators,
            holidays=holidays,
            time_limit=time_limit,
        )
        if not result.success:
            raise RecoveryFailedError(e, result.messages) from e
        return result.result, result
