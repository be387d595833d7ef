from __future__ import annotations

import json
from pathlib import Path

import pytest

from timecard_engine.main import create_cli_parser, main
from timecard_engine.template import build_default_template


def test_period_command(capsys: pytest.CaptureFixture):
    assert main(["period", "2025-01-08"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["PP #3: 2024-12-29 to 2025-01-11", "Payday: 2025-01-17"]


def test_period_command_errors(capsys: pytest.CaptureFixture):
    assert main(["period", "2025-01-08", "--rule", "monthly"]) == 1
    assert capsys.readouterr().out.startswith("Error:")


def test_holidays_command(capsys: pytest.CaptureFixture):
    assert main(["holidays", "2025", "--region", "CA-BC"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 11
    assert out[0] == "2025-01-01  New Year's Day"
    assert "2025-08-04  BC Day" in out

    assert main(["holidays", "2025", "--region", "ZZ"]) == 1


def test_generate_command(tmp_path: Path, request_payload: dict, open_workbook, capsys: pytest.CaptureFixture):
    template = tmp_path / "template.xlsx"
    template.write_bytes(build_default_template())
    request_file = tmp_path / "request.json"
    request_file.write_text(json.dumps(request_payload), encoding="utf-8")
    output = tmp_path / "out.xlsx"

    assert main(["generate", str(request_file), "-o", str(output), "--template", str(template)]) == 0
    assert "PP #3" in capsys.readouterr().out

    sheet = open_workbook(output.read_bytes()).worksheets[0]
    assert sheet["B2"].value == "Jane Doe"
    assert sheet["C12"].value == 8


def test_generate_command_errors(tmp_path: Path, capsys: pytest.CaptureFixture):
    assert main(["generate", str(tmp_path / "missing.json")]) == 1

    bad_json = tmp_path / "bad.json"
    bad_json.write_text("{", encoding="utf-8")
    assert main(["generate", str(bad_json)]) == 1

    no_employee = tmp_path / "no_employee.json"
    no_employee.write_text(json.dumps({"week_start_date": "2025-01-05"}), encoding="utf-8")
    assert main(["generate", str(no_employee)]) == 1
    assert "employee_name" in capsys.readouterr().out


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        create_cli_parser().parse_args([])
