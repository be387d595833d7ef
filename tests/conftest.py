from __future__ import annotations

import datetime as dt
import shutil
from io import BytesIO
from pathlib import Path
from typing import Generator

import openpyxl
import pytest
from fastapi.testclient import TestClient

from timecard_engine import api_server
from timecard_engine.cell_mapper import TemplateLayout, load_layout
from timecard_engine.models import Job, PayPeriod
from timecard_engine.settings_manager import SettingsManager
from timecard_engine.template import TemplateStore
from timecard_engine.timecard_builder import TimecardBuilder

PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture()
def global_layout() -> TemplateLayout:
    return load_layout("global_totals")


@pytest.fixture()
def job_block_layout() -> TemplateLayout:
    return load_layout("per_job_block")


@pytest.fixture()
def template_store(global_layout: TemplateLayout) -> TemplateStore:
    return TemplateStore.default(global_layout)


@pytest.fixture()
def job_block_template(job_block_layout: TemplateLayout) -> TemplateStore:
    return TemplateStore.default(job_block_layout)


@pytest.fixture()
def builder(template_store: TemplateStore) -> TimecardBuilder:
    return TimecardBuilder(template=template_store)


@pytest.fixture()
def week_start() -> dt.date:
    # Sunday
    return dt.date(2025, 1, 5)


@pytest.fixture()
def week_period(week_start: dt.date) -> PayPeriod:
    return PayPeriod(start=week_start, end=week_start + dt.timedelta(days=6), number=3)


@pytest.fixture()
def jobs() -> list:
    return [Job("J1", "Site A"), Job("J2", "Site B")]


@pytest.fixture()
def sample_entries(week_start: dt.date) -> list:
    return [
        {"date": week_start.isoformat(), "job_code": "J1", "hours": 8.0, "overtime": False, "night_shift": False},
        {"date": (week_start + dt.timedelta(days=1)).isoformat(), "job_code": "J1", "hours": 2.0,
         "overtime": True, "night_shift": False},
        {"date": (week_start + dt.timedelta(days=2)).isoformat(), "job_code": "J1", "hours": 0.5,
         "overtime": False, "night_shift": True},
    ]


@pytest.fixture()
def request_payload(week_start: dt.date, sample_entries: list) -> dict:
    return {
        "employee_name": "Jane Doe",
        "pay_period_num": 3,
        "year": 2025,
        "week_start_date": week_start.isoformat(),
        "week_number_label": "Week 1",
        "jobs": [{"job_code": "J1", "job_name": "Site A"}],
        "entries": sample_entries,
    }


@pytest.fixture()
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.py"
    shutil.copy(PROJECT_ROOT / "config" / "settings.py", path)
    return path


@pytest.fixture()
def client(builder: TimecardBuilder, settings_file: Path,
           monkeypatch: pytest.MonkeyPatch) -> Generator[TestClient, None, None]:
    monkeypatch.setattr(api_server, "builder", builder)
    monkeypatch.setattr(api_server, "settings_manager", SettingsManager(settings_file))
    with TestClient(api_server.app) as c:
        yield c


@pytest.fixture()
def open_workbook():
    def _open(content: bytes) -> openpyxl.Workbook:
        return openpyxl.load_workbook(BytesIO(content))
    return _open
