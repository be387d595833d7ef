"""
Exception hierarchy for the Timecard Generation Engine.

Recoverable conditions (a single bad entry) are reported as warnings by the
classifier; everything raised from here up to the caller is fatal for the
operation that raised it.
"""

from datetime import date
from typing import Optional


class TimecardError(Exception):
    """Base exception for timecard generation errors"""
    pass


class InvalidDateError(TimecardError, ValueError):
    """Raised when a value cannot be parsed as a calendar date"""
    def __init__(self, message: str, value: object = None):
        super().__init__(message)
        self.value = value


class OutOfRangeError(TimecardError):
    """Raised when a date or day index falls outside the supported range"""
    pass


class UnknownRuleError(TimecardError, KeyError):
    """Raised for a pay period rule variant that is not configured"""
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Unknown pay period rule"


class UnsupportedRegionError(TimecardError):
    """Raised when no holiday rule table exists for a region"""
    def __init__(self, region: str):
        super().__init__(f"Unsupported holiday region: {region}")
        self.region = region


class InvalidEntryError(TimecardError, ValueError):
    """Raised when a single time entry is malformed"""
    def __init__(self, message: str, field_name: Optional[str] = None,
                 entry_date: Optional[date] = None):
        super().__init__(message)
        self.field_name = field_name
        self.entry_date = entry_date


class UnknownJobError(TimecardError):
    """Raised when a job code has no position in the job ordering"""
    def __init__(self, job_code: str):
        super().__init__(f"Job code '{job_code}' is not in the job list")
        self.job_code = job_code


class TemplateUnavailableError(TimecardError):
    """Raised when the spreadsheet template cannot be read"""
    pass


class TemplateLayoutError(TimecardError):
    """Raised when a layout is malformed or does not match the template"""
    pass


class SerializationFailedError(TimecardError):
    """Raised when the populated workbook cannot be written"""
    pass


class GenerationCancelledError(TimecardError):
    """Raised when the caller cancelled the request before population"""
    pass


class InvalidRequestError(TimecardError, ValueError):
    """Raised when a generation request payload is structurally invalid"""
    pass
