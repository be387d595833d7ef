from __future__ import annotations

import datetime as dt
import threading
from collections import OrderedDict
from io import BytesIO

import openpyxl
import pytest

from timecard_engine.cell_mapper import TemplateLayout
from timecard_engine.errors import (
    GenerationCancelledError,
    OutOfRangeError,
    SerializationFailedError,
    TemplateLayoutError,
    TemplateUnavailableError,
)
from timecard_engine.models import HoursBreakdown, TimecardHeader
from timecard_engine.populator import WorkbookPopulator, is_cancelled
from timecard_engine.template import TemplateStore


@pytest.fixture()
def header(week_start: dt.date) -> TimecardHeader:
    return TimecardHeader(employee_name="Jane Doe", period_number=3, year=2025,
                          week_start=week_start, week_labels=["Week 1"])


@pytest.fixture()
def breakdowns() -> OrderedDict:
    return OrderedDict([
        (("J1", 0), HoursBreakdown(regular=8.0)),
        (("J1", 1), HoursBreakdown(overtime=2.0)),
        (("J1", 2), HoursBreakdown(night=0.5)),
    ])


def test_header_and_sparse_hours(template_store: TemplateStore, header: TimecardHeader,
                                 breakdowns: OrderedDict, global_layout: TemplateLayout, open_workbook):
    content = WorkbookPopulator().populate(template_store, header, breakdowns, global_layout, ["J1"])
    sheet = open_workbook(content).worksheets[0]

    assert sheet["B2"].value == "Jane Doe"
    assert sheet["H2"].value == "PP #3"
    assert sheet["I2"].value == 2025
    assert sheet["A4"].value == "Week 1"
    assert sheet["C4"].value == "01-05-25"
    assert sheet["I4"].value == "01-11-25"

    assert sheet["C12"].value == 8
    assert sheet["D14"].value == 2
    assert sheet["E13"].value == 0.5
    # Zero cells stay blank
    assert sheet["C13"].value is None
    assert sheet["C14"].value is None
    assert sheet["D12"].value is None
    assert sheet["I12"].value is None
    # Template labels untouched
    assert sheet["A12"].value == "TOTAL REGULAR"


def test_template_bytes_are_not_mutated(template_store: TemplateStore, header: TimecardHeader,
                                        breakdowns: OrderedDict, global_layout: TemplateLayout):
    before = template_store.content
    WorkbookPopulator().populate(template_store, header, breakdowns, global_layout, ["J1"])
    assert template_store.content == before
    assert template_store.open_copy().worksheets[0]["C12"].value is None


def test_global_totals_sum_across_jobs(template_store: TemplateStore, header: TimecardHeader,
                                       global_layout: TemplateLayout, open_workbook):
    breakdowns = {
        ("J1", 4): HoursBreakdown(regular=3.0, night=1.0),
        ("J2", 4): HoursBreakdown(regular=4.5),
    }
    content = WorkbookPopulator().populate(template_store, header, breakdowns, global_layout, ["J1", "J2"])
    sheet = open_workbook(content).worksheets[0]
    assert sheet["G12"].value == 7.5
    assert sheet["G13"].value == 1


def test_per_job_blocks(job_block_template: TemplateStore, header: TimecardHeader,
                        job_block_layout: TemplateLayout, open_workbook):
    breakdowns = {
        ("J1", 0): HoursBreakdown(regular=8.0),
        ("J2", 2): HoursBreakdown(night=6.0),
    }
    content = WorkbookPopulator().populate(job_block_template, header, breakdowns, job_block_layout, ["J1", "J2"])
    sheet = open_workbook(content).worksheets[0]

    assert sheet["B5"].value == "J1"
    assert sheet["B9"].value == "J2"
    assert sheet["C5"].value == 8
    assert sheet["E10"].value == 6
    assert sheet["A10"].value == "Night"


def test_two_week_period_fills_a_sheet_per_week(template_store: TemplateStore, week_start: dt.date,
                                                global_layout: TemplateLayout, open_workbook):
    header = TimecardHeader(employee_name="Jane Doe", period_number=3, year=2025,
                            week_start=week_start, week_labels=["Week 1", "Week 2"])
    breakdowns = {("J1", 0): HoursBreakdown(regular=8.0), ("J1", 13): HoursBreakdown(overtime=1.5)}
    workbook = open_workbook(
        WorkbookPopulator().populate(template_store, header, breakdowns, global_layout, ["J1"])
    )

    assert workbook.sheetnames == ["Week 1", "Week 2"]
    first, second = workbook.worksheets
    assert first["C12"].value == 8
    assert first["I14"].value is None
    assert second["A4"].value == "Week 2"
    assert second["C4"].value == "01-12-25"
    assert second["I14"].value == 1.5
    assert second["C12"].value is None


def test_day_index_beyond_the_header_weeks(template_store: TemplateStore, header: TimecardHeader,
                                           global_layout: TemplateLayout):
    with pytest.raises(OutOfRangeError):
        WorkbookPopulator().populate(template_store, header, {("J1", 7): HoursBreakdown(regular=1.0)},
                                     global_layout, ["J1"])


def test_cancellation(template_store: TemplateStore, header: TimecardHeader,
                      breakdowns: OrderedDict, global_layout: TemplateLayout):
    event = threading.Event()
    event.set()
    with pytest.raises(GenerationCancelledError):
        WorkbookPopulator().populate(template_store, header, breakdowns, global_layout, ["J1"], cancel=event)
    with pytest.raises(GenerationCancelledError):
        WorkbookPopulator().populate(template_store, header, breakdowns, global_layout, ["J1"],
                                     cancel=lambda: True)

    assert not is_cancelled(None)
    assert not is_cancelled(threading.Event())
    assert not is_cancelled(lambda: False)


def test_unreadable_templates(header: TimecardHeader, breakdowns: OrderedDict, global_layout: TemplateLayout):
    with pytest.raises(TemplateUnavailableError):
        TemplateStore(b"")
    with pytest.raises(TemplateUnavailableError):
        WorkbookPopulator().populate(TemplateStore(b"not a workbook"), header, breakdowns, global_layout, ["J1"])
    with pytest.raises(TemplateUnavailableError):
        TemplateStore.from_path("/nonexistent/timecard_template.xlsx")


def test_template_that_does_not_match_the_layout(job_block_template: TemplateStore, header: TimecardHeader,
                                                 breakdowns: OrderedDict, global_layout: TemplateLayout):
    with pytest.raises(TemplateLayoutError):
        WorkbookPopulator().populate(job_block_template, header, breakdowns, global_layout, ["J1"])


def test_job_block_layout_on_a_global_totals_template(template_store: TemplateStore, header: TimecardHeader,
                                                     breakdowns: OrderedDict, job_block_layout: TemplateLayout):
    with pytest.raises(TemplateLayoutError):
        WorkbookPopulator().populate(template_store, header, breakdowns, job_block_layout, ["J1"])


def test_first_sheet_takes_the_week_label(template_store: TemplateStore, week_start: dt.date,
                                          breakdowns: OrderedDict, global_layout: TemplateLayout, open_workbook):
    header = TimecardHeader(employee_name="Jane Doe", period_number=3, year=2025,
                            week_start=week_start, week_labels=["Week 7", "Week 8"])
    content = WorkbookPopulator().populate(template_store, header, breakdowns, global_layout, ["J1"])
    assert open_workbook(content).sheetnames == ["Week 7", "Week 8"]

    header.week_labels = ["Week 3/4"]
    content = WorkbookPopulator().populate(template_store, header, breakdowns, global_layout, ["J1"])
    assert open_workbook(content).sheetnames == ["Week 3-4"]


def test_write_into_merged_cell_fails(template_store: TemplateStore, header: TimecardHeader,
                                      global_layout: TemplateLayout):
    workbook = template_store.open_copy()
    workbook.worksheets[0].merge_cells("C12:D12")
    buffer = BytesIO()
    workbook.save(buffer)
    merged = TemplateStore(buffer.getvalue())

    with pytest.raises(SerializationFailedError):
        WorkbookPopulator().populate(merged, header, {("J1", 1): HoursBreakdown(regular=4.0)},
                                     global_layout, ["J1"])


def test_missing_template_file_uses_built_in(tmp_path, global_layout: TemplateLayout):
    store = TemplateStore.load(tmp_path / "missing.xlsx", global_layout)
    assert store.source == "<default>"
    sheet = openpyxl.load_workbook(BytesIO(store.content)).worksheets[0]
    assert sheet["A13"].value == "TOTAL NIGHT"
    assert sheet["C3"].value == "SUN"
