from __future__ import annotations

from fastapi.testclient import TestClient

from timecard_engine.api_server import CLIENT_CLOSED_REQUEST, http_error
from timecard_engine.errors import (
    GenerationCancelledError,
    SerializationFailedError,
    UnknownRuleError,
)


def test_health(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.text == "OK"


def test_generate_timecard(client: TestClient, request_payload: dict, open_workbook):
    r = client.post("/api/generate-timecard", json=request_payload)
    assert r.status_code == 200, r.text
    assert r.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert r.headers["content-disposition"] == 'attachment; filename="timecard_Jane_Doe.xlsx"'
    assert r.headers["x-timecard-warnings"] == "0"

    sheet = open_workbook(r.content).worksheets[0]
    assert sheet["B2"].value == "Jane Doe"
    assert sheet["C12"].value == 8


def test_generate_reports_warning_count(client: TestClient, request_payload: dict):
    request_payload["entries"].append({"date": "2025-01-06", "job_code": "NOPE", "hours": 1})
    r = client.post("/api/generate-timecard", json=request_payload)
    assert r.status_code == 200
    assert r.headers["x-timecard-warnings"] == "1"


def test_generate_rejects_bad_payloads(client: TestClient, request_payload: dict):
    r = client.post("/api/generate-timecard", content=b"{not json",
                    headers={"Content-Type": "application/json"})
    assert r.status_code == 400

    r = client.post("/api/generate-timecard", json={**request_payload, "employee_name": ""})
    assert r.status_code == 400
    assert "employee_name" in r.json()["detail"]

    r = client.post("/api/generate-timecard", json={**request_payload, "week_start_date": "01/05/2025"})
    assert r.status_code == 400

    r = client.post("/api/generate-timecard", json={**request_payload, "holiday_region": "ZZ"})
    assert r.status_code == 200
    assert r.headers["x-timecard-warnings"] == "1"

    r = client.post("/api/generate-timecard", json={**request_payload, "pay_period_rule": "monthly"})
    assert r.status_code == 422


def test_classify_preview(client: TestClient, request_payload: dict):
    r = client.post("/api/classify", json=request_payload)
    assert r.status_code == 200
    body = r.json()
    assert body["employee_name"] == "Jane Doe"
    assert body["request"]["week_start_date"] == "2025-01-05"
    assert body["request"]["jobs"] == [{"job_code": "J1", "job_name": "Site A"}]
    assert body["period"]["start"] == "2025-01-05"
    assert body["layout"] == "global_totals"
    assert body["classification"]["totals"]["total"] == 10.5
    assert body["classification"]["dropped"] == 0


def test_pay_period(client: TestClient):
    r = client.get("/api/pay-period", params={"date": "2025-01-08"})
    assert r.status_code == 200
    body = r.json()
    assert body["start"] == "2024-12-29"
    assert body["end"] == "2025-01-11"
    assert body["number"] == 3
    assert body["payday"] == "2025-01-17"
    assert body["years"] == [2024, 2025]

    assert client.get("/api/pay-period", params={"date": "2025-01-08", "rule": "monthly"}).status_code == 422
    assert client.get("/api/pay-period", params={"date": "yesterday"}).status_code == 400
    assert client.get("/api/pay-period", params={"date": "2020-01-01"}).status_code == 422


def test_holidays(client: TestClient):
    r = client.get("/api/holidays", params={"year": 2025, "region": "ca-bc"})
    assert r.status_code == 200
    body = r.json()
    assert body["region"] == "CA-BC"
    assert len(body["holidays"]) == 11
    assert body["holidays"][0] == {"name": "New Year's Day", "date": "2025-01-01",
                                   "region": "CA-BC", "is_observed": False}

    assert client.get("/api/holidays", params={"year": 2025, "region": "XX"}).status_code == 422
    assert "CA-BC" in client.get("/api/holidays/regions").json()["regions"]


def test_period_holidays(client: TestClient):
    r = client.get("/api/holidays/period", params={"date": "2025-01-08", "region": "CA-BC"})
    assert r.status_code == 200
    body = r.json()
    assert body["period"]["number"] == 3
    assert [h["name"] for h in body["holidays"]] == ["New Year's Day"]


def test_settings(client: TestClient):
    r = client.get("/api/settings")
    assert r.status_code == 200
    body = r.json()
    assert body["settings"]["holidays"]["HOLIDAY_HOURS_PER_DAY"] == 8.0
    assert "HOLIDAY_HOURS_PER_DAY" in body["setting_info"]

    r = client.put("/api/settings", json={"updates": {"HOLIDAY_HOURS_PER_DAY": 7.5}})
    assert r.status_code == 200
    assert r.json()["updated_count"] == 1
    assert client.get("/api/settings").json()["settings"]["holidays"]["HOLIDAY_HOURS_PER_DAY"] == 7.5

    r = client.put("/api/settings", json={"updates": {"HOLIDAY_HOURS_PER_DAY": -1}})
    assert r.status_code == 400

    r = client.post("/api/settings/reset")
    assert r.status_code == 200
    assert client.get("/api/settings").json()["settings"]["holidays"]["HOLIDAY_HOURS_PER_DAY"] == 8.0


def test_error_status_mapping():
    assert http_error(GenerationCancelledError("gone")).status_code == CLIENT_CLOSED_REQUEST
    assert http_error(UnknownRuleError("monthly")).status_code == 422
    assert http_error(SerializationFailedError("disk")).status_code == 500
