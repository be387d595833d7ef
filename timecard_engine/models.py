"""
Data models for the Timecard Generation Engine.

This module contains the core data structures used throughout the engine
for representing time entries, jobs, pay periods, holidays and the
per-cell hour aggregates written into the timecard template.
"""

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from config.settings import PERIOD_LABEL_FORMAT
from .dates import parse_calendar_date
from .errors import InvalidDateError, InvalidEntryError, InvalidRequestError, OutOfRangeError


class HourCategory(Enum):
    """The three mutually exclusive hour buckets of a timecard."""
    REGULAR = "REGULAR"
    NIGHT = "NIGHT"
    OVERTIME = "OVERTIME"

    @classmethod
    def for_entry(cls, entry: 'TimeEntry') -> 'HourCategory':
        """
        Bucket for an entry. Precedence is overtime > night > regular; an
        entry flagged both overtime and night shift is overtime.
        """
        if entry.is_overtime:
            return cls.OVERTIME
        if entry.is_night_shift:
            return cls.NIGHT
        return cls.REGULAR


@dataclass(frozen=True)
class TimeEntry:
    """
    A single recorded work segment.

    Entries are immutable once submitted. Construction validates the hours
    value so that a malformed entry can never reach the aggregates.
    """
    entry_date: date
    job_code: str
    hours: float
    is_overtime: bool = False
    is_night_shift: bool = False
    notes: str = ""
    labour_code: Optional[str] = None

    def __post_init__(self):
        """Validate data after initialization."""
        self._validate()

    def _validate(self):
        """Validate the time entry data."""
        if not isinstance(self.entry_date, date):
            raise InvalidEntryError(f"Entry date must be a date: {self.entry_date!r}", "date")

        if not isinstance(self.job_code, str) or not self.job_code.strip():
            raise InvalidEntryError("Job code cannot be empty", "job_code", self.entry_date)

        if isinstance(self.hours, bool) or not isinstance(self.hours, (int, float)):
            raise InvalidEntryError(f"Hours must be a number: {self.hours!r}", "hours", self.entry_date)

        if not math.isfinite(self.hours):
            raise InvalidEntryError(f"Hours must be finite: {self.hours}", "hours", self.entry_date)

        if self.hours < 0:
            raise InvalidEntryError(f"Hours cannot be negative: {self.hours}", "hours", self.entry_date)

    @property
    def category(self) -> HourCategory:
        return HourCategory.for_entry(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the entry to its wire representation."""
        return {
            "date": self.entry_date.isoformat(),
            "job_code": self.job_code,
            "hours": self.hours,
            "overtime": self.is_overtime,
            "night_shift": self.is_night_shift,
            "notes": self.notes,
            "labour_code": self.labour_code,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimeEntry':
        """
        Create a TimeEntry from its wire representation.

        Accepts ``night_shift`` and the older ``is_night_shift`` key.

        Raises:
            InvalidEntryError: If the date, job code or hours are malformed
        """
        if not isinstance(data, dict):
            raise InvalidEntryError(f"Entry must be an object: {data!r}")

        try:
            entry_date = parse_calendar_date(data.get("date"))
        except InvalidDateError as e:
            raise InvalidEntryError(str(e), "date")

        hours = data.get("hours")
        if isinstance(hours, str):
            try:
                hours = float(hours.strip())
            except ValueError:
                raise InvalidEntryError(f"Hours must be a number: {hours!r}", "hours", entry_date)

        night_shift = data.get("night_shift", data.get("is_night_shift", False))
        job_code = data.get("job_code")
        return cls(
            entry_date=entry_date,
            job_code=job_code.strip() if isinstance(job_code, str) else job_code,
            hours=hours,
            is_overtime=bool(data.get("overtime", False)),
            is_night_shift=bool(night_shift),
            notes=data.get("notes") or "",
            labour_code=data.get("labour_code"),
        )


@dataclass(frozen=True)
class Job:
    """A billable job or cost code. The code is the unique key."""
    code: str
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"job_code": self.code, "job_name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Job':
        code = data.get("job_code", data.get("code"))
        if not isinstance(code, str) or not code.strip():
            raise InvalidRequestError(f"Job is missing a job_code: {data!r}")
        name = data.get("job_name", data.get("name")) or ""
        return cls(code=code.strip(), name=str(name))


@dataclass(frozen=True)
class PayPeriod:
    """
    A computed pay period window.

    ``end`` is inclusive and always ``start + 7 * week_count - 1`` days.
    """
    start: date
    end: date
    number: int
    week_count: int = 1
    payday: Optional[date] = None
    rule: str = ""

    def __post_init__(self):
        if self.week_count not in (1, 2):
            raise ValueError(f"Week count must be 1 or 2: {self.week_count}")
        if (self.end - self.start).days != 7 * self.week_count - 1:
            raise ValueError(
                f"Pay period {self.start} to {self.end} does not span {self.week_count} week(s)"
            )

    @property
    def days(self) -> int:
        return 7 * self.week_count

    @property
    def years(self) -> List[int]:
        """Calendar years touched by the period, used for holiday lookups."""
        return list(range(self.start.year, self.end.year + 1))

    @property
    def label(self) -> str:
        return PERIOD_LABEL_FORMAT.format(number=self.number)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def day_index(self, day: date) -> int:
        """
        Zero-based offset of a date from the period start.

        Raises:
            OutOfRangeError: If the date is outside the period
        """
        if not self.contains(day):
            raise OutOfRangeError(f"Date {day} is outside pay period {self.start} to {self.end}")
        return (day - self.start).days

    def week_start(self, week_index: int) -> date:
        if not 0 <= week_index < self.week_count:
            raise OutOfRangeError(f"Week index {week_index} is outside a {self.week_count}-week period")
        return self.start + timedelta(days=7 * week_index)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "number": self.number,
            "label": self.label,
            "week_count": self.week_count,
            "payday": self.payday.isoformat() if self.payday else None,
            "rule": self.rule,
            "years": self.years,
        }


@dataclass(frozen=True)
class StatHoliday:
    """A statutory holiday instance for one region."""
    name: str
    holiday_date: date
    region: str
    is_observed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "date": self.holiday_date.isoformat(),
            "region": self.region,
            "is_observed": self.is_observed,
        }


@dataclass
class HoursBreakdown:
    """Aggregated hours for one (job, day) cell."""
    regular: float = 0.0
    night: float = 0.0
    overtime: float = 0.0

    def add(self, category: HourCategory, hours: float) -> None:
        if category is HourCategory.OVERTIME:
            self.overtime += hours
        elif category is HourCategory.NIGHT:
            self.night += hours
        else:
            self.regular += hours

    def get(self, category: HourCategory) -> float:
        if category is HourCategory.OVERTIME:
            return self.overtime
        if category is HourCategory.NIGHT:
            return self.night
        return self.regular

    @property
    def total(self) -> float:
        return self.regular + self.night + self.overtime

    def non_zero(self) -> Dict[HourCategory, float]:
        """Categories with a non-zero value; zero cells are never written."""
        return {category: self.get(category) for category in HourCategory if self.get(category) != 0}

    def to_dict(self) -> Dict[str, float]:
        return {"regular": self.regular, "night": self.night, "overtime": self.overtime}


@dataclass
class TimecardHeader:
    """Header metadata written to every week sheet of the timecard."""
    employee_name: str
    period_number: int
    year: int
    week_start: date
    week_labels: List[str] = field(default_factory=list)

    @property
    def period_label(self) -> str:
        return PERIOD_LABEL_FORMAT.format(number=self.period_number)

    def week_label(self, week_index: int) -> str:
        if week_index < len(self.week_labels) and self.week_labels[week_index]:
            return self.week_labels[week_index]
        return f"Week {week_index + 1}"


@dataclass
class TimecardRequest:
    """
    One timecard generation payload.

    Entries are kept as raw dictionaries so that a malformed entry is dropped
    by the classifier with a warning instead of failing the whole request.
    """
    employee_name: str
    pay_period_num: int
    year: int
    week_start_date: date
    week_number_label: str
    jobs: List[Job]
    entries: List[Dict[str, Any]]
    pay_period_rule: Optional[str] = None
    holiday_region: Optional[str] = None
    auto_holidays: bool = True
    layout: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimecardRequest':
        """
        Create a TimecardRequest from a JSON payload.

        Raises:
            InvalidRequestError: If a required field is missing or malformed
        """
        if not isinstance(data, dict):
            raise InvalidRequestError("Request body must be a JSON object")

        employee_name = data.get("employee_name")
        if not isinstance(employee_name, str) or not employee_name.strip():
            raise InvalidRequestError("employee_name is required")

        try:
            week_start_date = parse_calendar_date(data.get("week_start_date"))
        except InvalidDateError as e:
            raise InvalidRequestError(f"week_start_date: {e}")

        try:
            pay_period_num = int(data.get("pay_period_num", 0))
            year = int(data.get("year") or week_start_date.year)
        except (TypeError, ValueError):
            raise InvalidRequestError("pay_period_num and year must be integers")

        raw_jobs = data.get("jobs") or []
        raw_entries = data.get("entries") or []
        if not isinstance(raw_jobs, list) or not isinstance(raw_entries, list):
            raise InvalidRequestError("jobs and entries must be lists")

        jobs = [Job.from_dict(job) for job in raw_jobs]
        codes = [job.code for job in jobs]
        duplicates = sorted({code for code in codes if codes.count(code) > 1})
        if duplicates:
            raise InvalidRequestError(f"Duplicate job codes: {duplicates}")

        return cls(
            employee_name=employee_name.strip(),
            pay_period_num=pay_period_num,
            year=year,
            week_start_date=week_start_date,
            week_number_label=data.get("week_number_label") or "Week 1",
            jobs=jobs,
            entries=list(raw_entries),
            pay_period_rule=data.get("pay_period_rule"),
            holiday_region=data.get("holiday_region"),
            auto_holidays=bool(data.get("auto_holidays", True)),
            layout=data.get("layout"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "employee_name": self.employee_name,
            "pay_period_num": self.pay_period_num,
            "year": self.year,
            "week_start_date": self.week_start_date.isoformat(),
            "week_number_label": self.week_number_label,
            "jobs": [job.to_dict() for job in self.jobs],
            "entries": self.entries,
            "pay_period_rule": self.pay_period_rule,
            "holiday_region": self.holiday_region,
            "auto_holidays": self.auto_holidays,
            "layout": self.layout,
        }
