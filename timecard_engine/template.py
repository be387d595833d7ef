"""
Timecard template handling.

The template workbook is held as immutable bytes and every generation
request loads its own openpyxl Workbook from them, so no request can see
another request's writes.
"""

import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Union
from zipfile import BadZipFile

import openpyxl
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .cell_mapper import DAYS_PER_WEEK, LayoutMode, TemplateLayout, load_layout
from .errors import TemplateLayoutError, TemplateUnavailableError
from .models import HourCategory

logger = logging.getLogger(__name__)

DAY_NAMES = ["SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"]
DEFAULT_JOB_BLOCKS = 10
DEFAULT_BLOCK_LABELS = {
    HourCategory.REGULAR: "Regular",
    HourCategory.NIGHT: "Night",
    HourCategory.OVERTIME: "Overtime",
}


class TemplateStore:
    """
    Read-only holder of the template workbook bytes.

    ``open_copy`` returns a fresh Workbook on every call; the stored bytes
    are never mutated.
    """

    def __init__(self, content: bytes, source: str = "<memory>"):
        if not isinstance(content, (bytes, bytearray)) or not content:
            raise TemplateUnavailableError(f"Template {source} is empty")
        self._content = bytes(content)
        self.source = source

    @property
    def content(self) -> bytes:
        return self._content

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> 'TemplateStore':
        """
        Raises:
            TemplateUnavailableError: If the file cannot be read
        """
        try:
            content = Path(path).read_bytes()
        except OSError as e:
            raise TemplateUnavailableError(f"Cannot read template {path}: {e}")
        logger.info(f"Loaded template {path} ({len(content)} bytes)")
        return cls(content, source=str(path))

    @classmethod
    def default(cls, layout: Optional[TemplateLayout] = None) -> 'TemplateStore':
        """Store holding the built-in template for a layout."""
        return cls(build_default_template(layout), source="<default>")

    @classmethod
    def load(cls, path: Optional[Union[str, Path]],
             layout: Optional[TemplateLayout] = None) -> 'TemplateStore':
        """
        Template from ``path``, or the built-in template when no file exists there.

        Raises:
            TemplateUnavailableError: If the file exists but cannot be read
        """
        if path and Path(path).is_file():
            return cls.from_path(path)
        logger.warning(f"Template file {path} not found, using the built-in template")
        return cls.default(layout)

    def open_copy(self) -> Workbook:
        """
        Load a private Workbook from the template bytes.

        Raises:
            TemplateUnavailableError: If the bytes are not a valid .xlsx workbook
        """
        try:
            workbook = openpyxl.load_workbook(BytesIO(self._content))
        except (BadZipFile, KeyError, OSError, ValueError, TypeError) as e:
            raise TemplateUnavailableError(f"Invalid template workbook {self.source}: {e}")

        if not workbook.worksheets:
            raise TemplateUnavailableError(f"Template {self.source} contains no worksheets")
        return workbook


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def validate_layout(worksheet: Worksheet, layout: TemplateLayout) -> None:
    """
    Check that a template sheet carries the labels the layout expects.

    Global-totals labels are read from ``label_column`` of each category row.
    Per-job-block labels are read from column A of the first block, since the
    label column there receives the job code. Layouts without
    ``category_labels`` are not checked.

    Raises:
        TemplateLayoutError: If an expected label is missing
    """
    if not layout.category_labels:
        return

    for category, expected in layout.category_labels.items():
        if layout.mode is LayoutMode.GLOBAL_TOTALS:
            if not layout.label_column:
                raise TemplateLayoutError(f"Layout '{layout.name}' declares labels but no label column")
            row, column = layout.category_rows[category], layout.label_column
        else:
            row, column = layout.block_row(0) + layout.category_offsets[category], 1

        actual = _cell_text(worksheet.cell(row=row, column=column).value)
        if actual.casefold() != expected.strip().casefold():
            raise TemplateLayoutError(
                f"Template does not match layout '{layout.name}': expected '{expected}' at "
                f"{get_column_letter(column)}{row}, found '{actual}'"
            )


def build_default_template(layout: Optional[TemplateLayout] = None) -> bytes:
    """
    Build the built-in timecard template for a layout.

    Args:
        layout: Layout to lay the sheet out for (the active layout by default)

    Returns:
        .xlsx bytes
    """
    layout = layout or load_layout()
    header = layout.header_cells

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Week 1"

    bold = Font(bold=True)
    sheet["A1"] = "TIMECARD"
    sheet["A1"].font = Font(bold=True, size=14)
    sheet["A2"] = "Employee:"
    sheet["A2"].font = bold
    sheet["G2"] = "Pay Period:"
    sheet["G2"].font = bold

    date_row = int(header.get("date_label_row", 4))
    for day_index, day_name in enumerate(DAY_NAMES):
        cell = sheet.cell(row=date_row - 1, column=layout.base_column + day_index, value=day_name)
        cell.font = bold
        cell.alignment = Alignment(horizontal="center")
        sheet.column_dimensions[get_column_letter(layout.base_column + day_index)].width = 11

    if layout.mode is LayoutMode.GLOBAL_TOTALS:
        label_column = layout.label_column or 1
        for category, row in layout.category_rows.items():
            label = layout.category_labels.get(category, DEFAULT_BLOCK_LABELS[category])
            sheet.cell(row=row, column=label_column, value=label).font = bold
        sheet.column_dimensions[get_column_letter(label_column)].width = 18
    else:
        if layout.label_column:
            sheet.cell(row=layout.base_row - 1, column=layout.label_column, value="Job").font = bold
        for job_index in range(DEFAULT_JOB_BLOCKS):
            for category, offset in layout.category_offsets.items():
                label = layout.category_labels.get(category, DEFAULT_BLOCK_LABELS[category])
                sheet.cell(row=layout.block_row(job_index) + offset, column=1, value=label)
        sheet.column_dimensions["A"].width = 12

    buffer = BytesIO()
    workbook.save(buffer)
    logger.debug(f"Built default template for layout '{layout.name}' ({DAYS_PER_WEEK} day columns)")
    return buffer.getvalue()
