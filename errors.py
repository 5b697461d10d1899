# errors.py
"""
Typed failures raised by the scheduling engine.

Every failure carries two messages: the technical ``message`` (what went wrong,
for logs) and ``user_message`` (what the person running the scheduler can do
about it). Rule breaches such as faculty double-booking are never raised; they
are recorded as ConstraintViolation values on the returned schedule.
"""

from datetime import datetime


class ErrorCode:
    VALIDATION_FAILED = "VALIDATION_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    SCHEDULING_IMPOSSIBLE = "SCHEDULING_IMPOSSIBLE"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    EXPORT_FAILED = "EXPORT_FAILED"
    MEMORY_LIMIT_EXCEEDED = "MEMORY_LIMIT_EXCEEDED"
    RECOVERY_FAILED = "RECOVERY_FAILED"


class TimetableError(Exception):
    """Base class for all whole-request failures."""

    code = None

    def __init__(self, message, user_message=None, context=None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message
        self.context = dict(context or {})
        self.timestamp = datetime.now()

    def technical_details(self):
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self):
        return self.message


class ValidationFailedError(TimetableError):
    code = ErrorCode.VALIDATION_FAILED

    def __init__(self, issues, context=None):
        self.issues = list(issues)
        message = "Invalid batch/subject input: " + "; ".join(self.issues)
        super().__init__(
            message,
            user_message="Some batch or subject details are invalid. "
                         "Please correct the listed fields and try again.",
            context=context,
        )


class ConfigurationError(TimetableError):
    code = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, message, context=None):
        super().__init__(
            message,
            user_message="The working hours, lunch break or slot settings are inconsistent. "
                         "Check that the lunch break lies inside working hours and that "
                         "start times come before end times.",
            context=context,
        )


class SchedulingImpossibleError(TimetableError):
    code = ErrorCode.SCHEDULING_IMPOSSIBLE

    def __init__(self, message, batch_id=None, subject_id=None, lecture_index=None, context=None):
        self.batch_id = batch_id
        self.subject_id = subject_id
        self.lecture_index = lecture_index
        super().__init__(
            message,
            user_message="Not every lecture fits into the available time slots. "
                         "Add working days or hours, reduce weekly lectures, or allow "
                         "partial schedules.",
            context=context,
        )


class SchedulingTimeoutError(TimetableError):
    code = ErrorCode.TIMEOUT_ERROR

    def __init__(self, message, elapsed_seconds=None, context=None):
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            message,
            user_message="Schedule generation took too long and was stopped. "
                         "Try fewer batches or a longer time limit.",
            context=context,
        )


class ExportFailedError(TimetableError):
    code = ErrorCode.EXPORT_FAILED

    def __init__(self, message, export_format=None, path=None, context=None):
        self.export_format = export_format
        self.path = path
        super().__init__(
            message,
            user_message=f"The schedule could not be saved as {export_format or 'the requested format'}. "
                         "Try a different format or location.",
            context=context,
        )


class MemoryLimitError(TimetableError):
    code = ErrorCode.MEMORY_LIMIT_EXCEEDED

    def __init__(self, message, context=None):
        super().__init__(
            message,
            user_message="The scheduler ran low on memory. Close other programs or "
                         "schedule fewer batches at once.",
            context=context,
        )


class RecoveryFailedError(TimetableError):
    code = ErrorCode.RECOVERY_FAILED

    def __init__(self, original_error, messages, context=None):
        self.original_error = original_error
        self.messages = list(messages)
        message = f"All recovery strategies failed for {original_error.code}: " + " | ".join(self.messages)
        super().__init__(message, user_message=original_error.user_message, context=context)
