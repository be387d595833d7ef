"""
Workbook population.

Writes header metadata and classified hours into a private copy of the
timecard template and serializes it to .xlsx bytes. Either a complete
workbook is returned or an exception is raised; partial artifacts are never
handed back.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from io import BytesIO
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .cell_mapper import DAYS_PER_WEEK, CellCoordinate, LayoutMode, TemplateLayout, map_cell
from .dates import format_date_label
from .errors import GenerationCancelledError, OutOfRangeError, SerializationFailedError
from .models import HoursBreakdown, TimecardHeader
from .template import TemplateStore, validate_layout

logger = logging.getLogger(__name__)

CancelSignal = Union[Callable[[], bool], Any]

INVALID_TITLE_CHARS = re.compile(r'[\\/?*\[\]:]')
MAX_TITLE_LENGTH = 31


@dataclass
class CellWriteResult:
    """Outcome of a single cell write."""
    sheet: str
    ref: str
    value: Any
    success: bool = True
    error: Optional[str] = None


def is_cancelled(cancel: Optional[CancelSignal]) -> bool:
    """
    Evaluate a cancellation signal: an Event-like object with ``is_set()``
    or a zero-argument callable. ``None`` never cancels.
    """
    if cancel is None:
        return False
    if hasattr(cancel, "is_set"):
        return bool(cancel.is_set())
    return bool(cancel())


class WorkbookPopulator:
    """
    Fills a timecard template for one pay period.

    Week ``w`` of the period goes to worksheet ``w``. A template with fewer
    sheets than weeks gets copies of its first sheet. Every week sheet is
    titled with its week label.
    """

    def populate(self, template: TemplateStore, header: TimecardHeader,
                 breakdowns: Mapping[Tuple[str, int], HoursBreakdown],
                 layout: TemplateLayout, job_order: Sequence[str],
                 cancel: Optional[CancelSignal] = None) -> bytes:
        """
        Populate the template and return the serialized workbook.

        Args:
            template: Immutable template bytes
            header: Header metadata
            breakdowns: Hours per (job_code, day_index) over the whole period
            layout: Cell addressing of the template
            job_order: Job codes in request order
            cancel: Optional cancellation signal checked before any work

        Returns:
            .xlsx bytes

        Raises:
            GenerationCancelledError: If the caller cancelled the request
            TemplateUnavailableError: If the template cannot be opened
            TemplateLayoutError: If the template does not match the layout
            OutOfRangeError: If a day index falls outside the header's weeks
            UnknownJobError: If a per-job-block breakdown names a job not in job_order
            SerializationFailedError: If a cell write or serialization fails
        """
        if is_cancelled(cancel):
            raise GenerationCancelledError("Timecard generation cancelled before population")

        workbook = template.open_copy()
        validate_layout(workbook.worksheets[0], layout)

        week_count = max(1, len(header.week_labels))
        sheets = self._week_sheets(workbook, header, week_count)
        job_order = list(job_order)

        for week_index, sheet in enumerate(sheets):
            self._write_header(sheet, header, layout, week_index)
            if layout.mode is LayoutMode.PER_JOB_BLOCK and layout.label_column:
                for job_index, job_code in enumerate(job_order):
                    coordinate = CellCoordinate(layout.block_row(job_index), layout.label_column)
                    self._check_write(self._write_cell(sheet, coordinate, job_code))

        sums = self._sum_by_cell(breakdowns, layout, job_order, week_count)
        written = 0
        for (week_index, coordinate), value in sums.items():
            if value == 0:
                continue
            self._check_write(self._write_cell(sheets[week_index], coordinate, value))
            written += 1

        if is_cancelled(cancel):
            raise GenerationCancelledError("Timecard generation cancelled before serialization")

        content = self._serialize(workbook)
        logger.info(
            f"Populated timecard for {header.employee_name} ({header.period_label}): "
            f"{written} cells over {week_count} week(s), {len(content)} bytes"
        )
        return content

    def _week_sheets(self, workbook: Workbook, header: TimecardHeader, week_count: int) -> List[Worksheet]:
        sheets = list(workbook.worksheets)[:week_count]
        while len(sheets) < week_count:
            sheets.append(workbook.copy_worksheet(workbook.worksheets[0]))
        for week_index, sheet in enumerate(sheets):
            sheet.title = self._sheet_title(header.week_label(week_index))
        return sheets

    def _sheet_title(self, label: str) -> str:
        title = INVALID_TITLE_CHARS.sub('-', label).strip()[:MAX_TITLE_LENGTH]
        return title or "Week"

    def _sum_by_cell(self, breakdowns: Mapping[Tuple[str, int], HoursBreakdown], layout: TemplateLayout,
                     job_order: List[str], week_count: int) -> Dict[Tuple[int, CellCoordinate], float]:
        # Several breakdowns share a cell in global-totals mode
        sums: Dict[Tuple[int, CellCoordinate], float] = OrderedDict()
        for (job_code, day_index), breakdown in breakdowns.items():
            week_index, day = divmod(day_index, DAYS_PER_WEEK)
            if not 0 <= week_index < week_count:
                raise OutOfRangeError(f"Day index {day_index} is outside a {week_count}-week timecard")
            for category, hours in breakdown.non_zero().items():
                coordinate = map_cell(job_code, day, category, layout, job_order)
                key = (week_index, coordinate)
                sums[key] = sums.get(key, 0.0) + hours
        return sums

    def _write_header(self, sheet: Worksheet, header: TimecardHeader, layout: TemplateLayout,
                      week_index: int) -> None:
        cells = layout.header_cells
        values = [
            (cells.get("employee_name"), header.employee_name),
            (cells.get("period_label"), header.period_label),
            (cells.get("year"), header.year),
            (cells.get("week_label"), header.week_label(week_index)),
        ]
        for ref, value in values:
            if ref:
                self._check_write(self._write_ref(sheet, ref, value))

        date_row = cells.get("date_label_row")
        if date_row:
            week_start = header.week_start + timedelta(days=DAYS_PER_WEEK * week_index)
            for day in range(DAYS_PER_WEEK):
                coordinate = CellCoordinate(int(date_row), layout.base_column + day)
                label = format_date_label(week_start + timedelta(days=day))
                self._check_write(self._write_cell(sheet, coordinate, label))

    def _write_ref(self, sheet: Worksheet, ref: str, value: Any) -> CellWriteResult:
        try:
            sheet[ref].value = value
        except (AttributeError, TypeError, ValueError) as e:
            return CellWriteResult(sheet.title, ref, value, success=False, error=str(e))
        logger.debug(f"{sheet.title}!{ref} = {value!r}")
        return CellWriteResult(sheet.title, ref, value)

    def _write_cell(self, sheet: Worksheet, coordinate: CellCoordinate, value: Any) -> CellWriteResult:
        try:
            sheet.cell(row=coordinate.row, column=coordinate.column).value = value
        except (AttributeError, TypeError, ValueError) as e:
            # Merged cells are read-only in openpyxl
            return CellWriteResult(sheet.title, coordinate.ref, value, success=False, error=str(e))
        logger.debug(f"{sheet.title}!{coordinate.ref} = {value!r}")
        return CellWriteResult(sheet.title, coordinate.ref, value)

    def _check_write(self, result: CellWriteResult) -> None:
        if not result.success:
            raise SerializationFailedError(
                f"Failed to write {result.value!r} to {result.sheet}!{result.ref}: {result.error}"
            )

    def _serialize(self, workbook: Workbook) -> bytes:
        buffer = BytesIO()
        try:
            workbook.save(buffer)
        except (OSError, TypeError, ValueError) as e:
            raise SerializationFailedError(f"Failed to serialize timecard workbook: {e}")
        return buffer.getvalue()
