"""
Timecard Builder

Runs one generation request end to end:
pay period -> holiday augmentation -> classification -> cell mapping -> workbook.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from config.settings import (
    DEFAULT_TEMPLATE_PATH,
    HOLIDAY_JOB_NAME,
    OUTPUT_FILENAME_PREFIX,
)
from .cell_mapper import TemplateLayout, load_layout
from .classifier import ClassificationResult, EntryClassifier
from .errors import GenerationCancelledError, InvalidRequestError, TemplateLayoutError, UnsupportedRegionError
from .holidays import HolidayCalendar
from .models import Job, PayPeriod, StatHoliday, TimecardHeader, TimecardRequest, TimeEntry
from .pay_period import PayPeriodCalculator
from .populator import CancelSignal, WorkbookPopulator, is_cancelled
from .template import TemplateStore

logger = logging.getLogger(__name__)

TRAILING_NUMBER = re.compile(r'^(.*?)(\d+)(\s*)$')


@dataclass
class PreparedTimecard:
    """Everything needed to write a timecard, before the workbook is touched."""
    request: TimecardRequest
    period: PayPeriod
    layout: TemplateLayout
    jobs: List[Job]
    header: TimecardHeader
    classification: ClassificationResult
    holidays_added: List[TimeEntry] = field(default_factory=list)
    holidays: List[StatHoliday] = field(default_factory=list)

    @property
    def job_order(self) -> List[str]:
        return [job.code for job in self.jobs]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "employee_name": self.header.employee_name,
            "request": self.request.to_dict(),
            "period": self.period.to_dict(),
            "layout": self.layout.name,
            "jobs": [job.to_dict() for job in self.jobs],
            "holidays": [holiday.to_dict() for holiday in self.holidays],
            "holidays_added": [entry.to_dict() for entry in self.holidays_added],
            "classification": self.classification.to_dict(),
        }


@dataclass
class TimecardArtifact:
    """A generated timecard workbook."""
    content: bytes
    filename: str
    prepared: PreparedTimecard

    @property
    def period(self) -> PayPeriod:
        return self.prepared.period

    @property
    def classification(self) -> ClassificationResult:
        return self.prepared.classification

    @property
    def warnings(self):
        return self.prepared.classification.warnings


def week_labels(first_label: str, week_count: int) -> List[str]:
    """
    Labels for each week of a period. A trailing number in the first label
    is incremented ("Week 7" -> "Week 8"); otherwise the week number is appended.
    """
    labels = [first_label]
    match = TRAILING_NUMBER.match(first_label)
    for week_index in range(1, week_count):
        if match:
            prefix, number, suffix = match.groups()
            labels.append(f"{prefix}{int(number) + week_index}{suffix}")
        else:
            labels.append(f"{first_label} ({week_index + 1})")
    return labels


def safe_filename(employee_name: str) -> str:
    """Output file name for an employee, e.g. ``timecard_Jane_Doe.xlsx``."""
    safe = re.sub(r'[^A-Za-z0-9._-]+', '_', employee_name).strip('._') or "employee"
    return f"{OUTPUT_FILENAME_PREFIX}{safe}.xlsx"


class TimecardBuilder:
    """
    Builds timecard workbooks from generation requests.

    All collaborators are injectable; the builder keeps no per-request state,
    so one instance can serve concurrent requests.
    """

    def __init__(self, template: Optional[TemplateStore] = None,
                 calculator: Optional[PayPeriodCalculator] = None,
                 calendar: Optional[HolidayCalendar] = None,
                 classifier: Optional[EntryClassifier] = None,
                 populator: Optional[WorkbookPopulator] = None,
                 layouts: Optional[Dict[str, Dict[str, Any]]] = None):
        self.layouts = layouts
        self.template = template if template is not None else TemplateStore.load(
            DEFAULT_TEMPLATE_PATH, load_layout(layouts=layouts)
        )
        self.calculator = calculator or PayPeriodCalculator()
        self.calendar = calendar or HolidayCalendar()
        self.classifier = classifier or EntryClassifier()
        self.populator = populator or WorkbookPopulator()

    def resolve_period(self, request: TimecardRequest) -> PayPeriod:
        """
        Pay period of a request.

        With a ``pay_period_rule`` the period containing ``week_start_date`` is
        computed and its number wins; otherwise the period is the single week
        starting at ``week_start_date`` numbered ``pay_period_num``.

        Raises:
            UnknownRuleError: If the rule is not configured
            OutOfRangeError: If the date precedes the rule's epoch
        """
        if request.pay_period_rule:
            period = self.calculator.compute(request.week_start_date, request.pay_period_rule)
            if request.pay_period_num and request.pay_period_num != period.number:
                logger.info(
                    f"Request pay period #{request.pay_period_num} replaced by computed "
                    f"#{period.number} ({request.pay_period_rule})"
                )
            return period

        start = request.week_start_date
        return PayPeriod(start=start, end=start + timedelta(days=6), number=request.pay_period_num)

    def resolve_layout(self, request: TimecardRequest) -> TemplateLayout:
        try:
            return load_layout(request.layout, layouts=self.layouts)
        except TemplateLayoutError as e:
            if request.layout:
                raise InvalidRequestError(str(e))
            raise

    def prepare(self, request: TimecardRequest) -> PreparedTimecard:
        """
        Compute period, holidays and classification for a request.

        Raises:
            InvalidRequestError: If the request names an unknown layout
            UnknownRuleError, OutOfRangeError: From pay period resolution
        """
        period = self.resolve_period(request)
        layout = self.resolve_layout(request)
        jobs = list(request.jobs)

        entries, validation = self.classifier.parse_entries(request.entries)
        invalid = len(request.entries) - len(entries)

        holidays: List[StatHoliday] = []
        added: List[TimeEntry] = []
        if request.holiday_region and request.auto_holidays:
            try:
                augmented = self.calendar.augment(entries, period, request.holiday_region)
            except UnsupportedRegionError as e:
                validation.add_warning("UnsupportedRegion", f"{e}; no holiday entries added",
                                       field_name="holiday_region")
                logger.warning(f"Skipping holiday augmentation: {e}")
            else:
                entries, added, holidays = augmented.entries, augmented.added, augmented.holidays

        holiday_code = self.calendar.holiday_job_code
        if (holiday_code not in {job.code for job in jobs}
                and any(entry.job_code == holiday_code for entry in entries)):
            # Reserved job goes last so existing per-job blocks keep their rows
            jobs.append(Job(holiday_code, HOLIDAY_JOB_NAME))

        classification = self.classifier.classify(entries, jobs, period)
        validation.merge(classification.validation)
        classification.validation = validation
        classification.dropped += invalid

        header = TimecardHeader(
            employee_name=request.employee_name,
            period_number=period.number,
            year=request.year,
            week_start=period.start,
            week_labels=week_labels(request.week_number_label, period.week_count),
        )
        return PreparedTimecard(
            request=request,
            period=period,
            layout=layout,
            jobs=jobs,
            header=header,
            classification=classification,
            holidays_added=added,
            holidays=holidays,
        )

    def build(self, request: TimecardRequest, cancel: Optional[CancelSignal] = None) -> TimecardArtifact:
        """
        Generate the timecard workbook for a request.

        Args:
            request: Parsed generation request
            cancel: Optional cancellation signal (Event-like or callable)

        Returns:
            TimecardArtifact holding the .xlsx bytes

        Raises:
            GenerationCancelledError: If cancelled before population
            TimecardError: Any fatal error of the pipeline stages
        """
        if is_cancelled(cancel):
            raise GenerationCancelledError("Timecard generation cancelled")

        prepared = self.prepare(request)
        content = self.populator.populate(
            self.template,
            prepared.header,
            prepared.classification.breakdowns,
            prepared.layout,
            prepared.job_order,
            cancel=cancel,
        )

        artifact = TimecardArtifact(content=content, filename=safe_filename(request.employee_name), prepared=prepared)
        logger.info(
            f"Built {artifact.filename} for {prepared.period.label} "
            f"({prepared.period.start} to {prepared.period.end}), "
            f"{len(artifact.warnings)} warnings, {len(prepared.holidays_added)} holidays added"
        )
        return artifact
