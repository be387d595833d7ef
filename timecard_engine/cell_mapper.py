"""
Template cell mapping.

A TemplateLayout is the addressing contract between the engine and the
spreadsheet template. Two modes exist:

* global-totals: one row per hour category, summed across jobs
  (default rows 12 / 13 / 14 for regular / night / overtime)
* per-job-block: a block of rows per job in job-list order
  (row = base_row + job_index * block_height + category offset)

Day columns start at ``base_column`` (column C = Sunday by default).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from openpyxl.utils import get_column_letter

from config.settings import ACTIVE_TEMPLATE_LAYOUT, HEADER_CELLS, TEMPLATE_LAYOUTS
from .errors import OutOfRangeError, TemplateLayoutError, UnknownJobError
from .models import HourCategory

DAYS_PER_WEEK = 7


class LayoutMode(Enum):
    GLOBAL_TOTALS = "global-totals"
    PER_JOB_BLOCK = "per-job-block"


@dataclass(frozen=True)
class CellCoordinate:
    """1-based worksheet coordinate."""
    row: int
    column: int

    @property
    def ref(self) -> str:
        """A1-style reference, e.g. ``C12``."""
        return f"{get_column_letter(self.column)}{self.row}"

    def __str__(self) -> str:
        return self.ref


@dataclass
class TemplateLayout:
    """
    Row/column addressing of a timecard template.

    Attributes:
        mode: Layout mode
        base_column: Column of day index 0
        category_rows: Row per category (global-totals)
        base_row: First row of the first job block (per-job-block)
        block_height: Rows per job block (per-job-block)
        category_offsets: Row offset per category inside a block (per-job-block)
        label_column: Column holding row labels, or the job code in per-job-block mode
        category_labels: Expected label text per category row (global-totals)
        header_cells: Addresses of the header fields
        name: Layout name in settings
    """
    mode: LayoutMode
    base_column: int = 3
    category_rows: Dict[HourCategory, int] = field(default_factory=dict)
    base_row: int = 5
    block_height: int = 4
    category_offsets: Dict[HourCategory, int] = field(default_factory=dict)
    label_column: Optional[int] = None
    category_labels: Dict[HourCategory, str] = field(default_factory=dict)
    header_cells: Dict[str, Any] = field(default_factory=lambda: dict(HEADER_CELLS))
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: str = "") -> 'TemplateLayout':
        """
        Build a layout from its settings dictionary.

        Raises:
            TemplateLayoutError: If the mode is unknown or category rows are missing
        """
        try:
            mode = LayoutMode(data.get("mode"))
        except ValueError:
            raise TemplateLayoutError(f"Layout '{name}': unknown mode {data.get('mode')!r}")

        try:
            layout = cls(
                mode=mode,
                base_column=int(data.get("base_column", 3)),
                category_rows=_category_map(data.get("category_rows", {}), int),
                base_row=int(data.get("base_row", 5)),
                block_height=int(data.get("block_height", 4)),
                category_offsets=_category_map(data.get("category_offsets", {}), int),
                label_column=int(data["label_column"]) if data.get("label_column") else None,
                category_labels=_category_map(data.get("category_labels", {}), str),
                header_cells={**HEADER_CELLS, **data.get("header_cells", {})},
                name=name,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TemplateLayoutError(f"Layout '{name}' is malformed: {e}")

        layout.validate()
        return layout

    def validate(self) -> None:
        """
        Check the layout is internally consistent.

        Raises:
            TemplateLayoutError: If a category has no row / offset or a value is out of range
        """
        if self.base_column < 1:
            raise TemplateLayoutError(f"Layout '{self.name}': base_column must be >= 1")

        if self.mode is LayoutMode.GLOBAL_TOTALS:
            missing = [c.value for c in HourCategory if c not in self.category_rows]
            if missing:
                raise TemplateLayoutError(f"Layout '{self.name}': missing category rows for {missing}")
            if len(set(self.category_rows.values())) != len(self.category_rows):
                raise TemplateLayoutError(f"Layout '{self.name}': category rows must be distinct")
        else:
            missing = [c.value for c in HourCategory if c not in self.category_offsets]
            if missing:
                raise TemplateLayoutError(f"Layout '{self.name}': missing category offsets for {missing}")
            if self.base_row < 1 or self.block_height < 1:
                raise TemplateLayoutError(f"Layout '{self.name}': base_row and block_height must be >= 1")
            if any(not 0 <= offset < self.block_height for offset in self.category_offsets.values()):
                raise TemplateLayoutError(f"Layout '{self.name}': category offsets must fit inside a block")

    def block_row(self, job_index: int) -> int:
        """First row of a job's block (per-job-block mode)."""
        return self.base_row + job_index * self.block_height


def _category_map(raw: Dict[str, Any], convert) -> Dict[HourCategory, Any]:
    return {HourCategory(str(key).upper()): convert(value) for key, value in raw.items()}


def map_cell(job_code: str, day_index: int, category: HourCategory,
             layout: TemplateLayout, job_order: Sequence[str]) -> CellCoordinate:
    """
    Worksheet cell for one (job, day, category) value.

    ``job_order`` is the request's job list order; in per-job-block mode a
    job's position in it selects its block, so reordering jobs moves rows.

    Raises:
        OutOfRangeError: If day_index is not in [0, 6]
        UnknownJobError: If the job is not in job_order (per-job-block mode)
    """
    if isinstance(day_index, bool) or not isinstance(day_index, int) or not 0 <= day_index < DAYS_PER_WEEK:
        raise OutOfRangeError(f"Day index {day_index!r} is outside 0..{DAYS_PER_WEEK - 1}")

    column = layout.base_column + day_index

    if layout.mode is LayoutMode.GLOBAL_TOTALS:
        return CellCoordinate(row=layout.category_rows[category], column=column)

    job_index = job_position(job_code, job_order)
    return CellCoordinate(row=layout.block_row(job_index) + layout.category_offsets[category], column=column)


def job_position(job_code: str, job_order: Sequence[str]) -> int:
    """
    Raises:
        UnknownJobError: If the job is not in job_order
    """
    order: List[str] = list(job_order)
    if job_code not in order:
        raise UnknownJobError(job_code)
    return order.index(job_code)


def load_layout(name: Optional[str] = None,
                layouts: Optional[Dict[str, Dict[str, Any]]] = None) -> TemplateLayout:
    """
    Layout by name from settings, ``ACTIVE_TEMPLATE_LAYOUT`` by default.

    Raises:
        TemplateLayoutError: If no layout with that name is configured
    """
    layouts = TEMPLATE_LAYOUTS if layouts is None else layouts
    name = name or ACTIVE_TEMPLATE_LAYOUT
    if name not in layouts:
        raise TemplateLayoutError(f"Unknown template layout '{name}'. Available: {sorted(layouts)}")
    return TemplateLayout.from_dict(layouts[name], name=name)
