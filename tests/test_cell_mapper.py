from __future__ import annotations

import pytest

from timecard_engine.cell_mapper import CellCoordinate, LayoutMode, TemplateLayout, load_layout, map_cell
from timecard_engine.errors import OutOfRangeError, TemplateLayoutError, UnknownJobError
from timecard_engine.models import HourCategory


def test_global_totals_rows_and_columns(global_layout: TemplateLayout):
    assert global_layout.mode is LayoutMode.GLOBAL_TOTALS
    assert map_cell("J1", 0, HourCategory.REGULAR, global_layout, ["J1"]).ref == "C12"
    assert map_cell("J1", 3, HourCategory.NIGHT, global_layout, ["J1"]).ref == "F13"
    assert map_cell("J1", 6, HourCategory.OVERTIME, global_layout, ["J1"]) == CellCoordinate(14, 9)
    # Every job shares the category rows
    assert map_cell("OTHER", 6, HourCategory.OVERTIME, global_layout, []).ref == "I14"


def test_per_job_block_rows_follow_job_order(job_block_layout: TemplateLayout):
    order = ["A", "B", "C"]
    assert map_cell("A", 0, HourCategory.REGULAR, job_block_layout, order).ref == "C5"
    assert map_cell("B", 2, HourCategory.NIGHT, job_block_layout, order).ref == "E10"
    assert map_cell("C", 6, HourCategory.OVERTIME, job_block_layout, order).ref == "I15"
    assert map_cell("B", 2, HourCategory.NIGHT, job_block_layout, ["B", "A"]).ref == "E6"


@pytest.mark.parametrize("layout_name", ["global_totals", "per_job_block"])
@pytest.mark.parametrize("day_index", [-1, 7, 13])
def test_day_index_out_of_range(layout_name: str, day_index: int):
    with pytest.raises(OutOfRangeError):
        map_cell("A", day_index, HourCategory.REGULAR, load_layout(layout_name), ["A"])


def test_unknown_job_in_per_job_block(job_block_layout: TemplateLayout):
    with pytest.raises(UnknownJobError) as excinfo:
        map_cell("Z", 0, HourCategory.REGULAR, job_block_layout, ["A"])
    assert excinfo.value.job_code == "Z"


def test_layout_from_dict_validation():
    with pytest.raises(TemplateLayoutError):
        TemplateLayout.from_dict({"mode": "sideways"})
    with pytest.raises(TemplateLayoutError):
        TemplateLayout.from_dict({"mode": "global-totals", "category_rows": {"REGULAR": 12, "NIGHT": 13}})
    with pytest.raises(TemplateLayoutError):
        TemplateLayout.from_dict({"mode": "global-totals",
                                  "category_rows": {"REGULAR": 12, "NIGHT": 12, "OVERTIME": 14}})
    with pytest.raises(TemplateLayoutError):
        TemplateLayout.from_dict({"mode": "per-job-block", "block_height": 2,
                                  "category_offsets": {"REGULAR": 0, "NIGHT": 1, "OVERTIME": 2}})
    with pytest.raises(TemplateLayoutError):
        TemplateLayout.from_dict({"mode": "global-totals", "category_rows": {"HOLIDAY": 15}})


def test_custom_layout_and_unknown_name():
    layout = TemplateLayout.from_dict({
        "mode": "global-totals",
        "base_column": 2,
        "category_rows": {"regular": 20, "night": 21, "overtime": 22},
    }, name="custom")
    assert map_cell("J1", 0, HourCategory.NIGHT, layout, []).ref == "B21"
    assert layout.label_column is None

    with pytest.raises(TemplateLayoutError):
        load_layout("does_not_exist")
