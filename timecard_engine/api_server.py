"""
FastAPI Server for the Timecard Generation Engine.
Provides REST API endpoints for timecard generation, pay periods and holidays.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

import anyio.from_thread
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from config.settings import (
    DEFAULT_HOLIDAY_REGION,
    DEFAULT_PAY_PERIOD_RULE,
    DEFAULT_TEMPLATE_PATH,
    HOLIDAY_REMOTE_LOOKUP_ENABLED,
)
from timecard_engine.cell_mapper import load_layout
from timecard_engine.dates import parse_calendar_date
from timecard_engine.errors import (
    GenerationCancelledError,
    InvalidDateError,
    InvalidEntryError,
    InvalidRequestError,
    OutOfRangeError,
    TimecardError,
    UnknownJobError,
    UnknownRuleError,
    UnsupportedRegionError,
)
from timecard_engine.holidays import HolidayCalendar
from timecard_engine.models import TimecardRequest
from timecard_engine.nager_client import NagerDateClient
from timecard_engine.settings_manager import SettingsManager
from timecard_engine.template import TemplateStore
from timecard_engine.timecard_builder import TimecardBuilder

logger = logging.getLogger(__name__)

# Load environment variables from .env (cwd or project root)
cwd_env = Path.cwd() / '.env'
project_env = Path(__file__).parent.parent / '.env'
if cwd_env.exists():
    load_dotenv(dotenv_path=str(cwd_env))
    logger.info(f"ENV: Loaded .env from cwd: {cwd_env}")
elif project_env.exists():
    load_dotenv(dotenv_path=str(project_env))
    logger.info(f"ENV: Loaded .env from project root: {project_env}")

logging.basicConfig(level=os.getenv("TIMECARD_LOG_LEVEL", "INFO").upper())

# Status for a request the client abandoned (nginx convention)
CLIENT_CLOSED_REQUEST = 499

# Create FastAPI app
app = FastAPI(
    title="Timecard Generation Engine API",
    description="API for generating spreadsheet timecards from time entries",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify actual origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Timecard-Warnings"],
)


# Pydantic models for request/response
class SettingsResponse(BaseModel):
    settings: Dict[str, Any]
    setting_info: Dict[str, Dict[str, Any]]


class SettingsUpdateRequest(BaseModel):
    updates: Dict[str, Any]


def create_builder() -> TimecardBuilder:
    """Builder wired from settings and environment."""
    template_path = os.getenv("TIMECARD_TEMPLATE_PATH", DEFAULT_TEMPLATE_PATH)
    remote = NagerDateClient() if HOLIDAY_REMOTE_LOOKUP_ENABLED else None
    return TimecardBuilder(
        template=TemplateStore.load(template_path, load_layout()),
        calendar=HolidayCalendar(remote_source=remote),
    )


builder = create_builder()
settings_manager = SettingsManager()


def http_error(error: TimecardError) -> HTTPException:
    """Map an engine error to an HTTP error response."""
    if isinstance(error, GenerationCancelledError):
        status_code = CLIENT_CLOSED_REQUEST
    elif isinstance(error, (InvalidRequestError, InvalidDateError, InvalidEntryError)):
        status_code = 400
    elif isinstance(error, (UnsupportedRegionError, OutOfRangeError, UnknownRuleError, UnknownJobError)):
        status_code = 422
    else:
        # TemplateUnavailableError, TemplateLayoutError, SerializationFailedError
        status_code = 500

    if status_code >= 500:
        logger.error(f"{type(error).__name__}: {error}")
    else:
        logger.warning(f"{type(error).__name__}: {error}")
    return HTTPException(status_code=status_code, detail=str(error))


async def read_timecard_request(request: Request) -> TimecardRequest:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")

    try:
        return TimecardRequest.from_dict(payload)
    except TimecardError as e:
        raise http_error(e)


# API Endpoints

@app.get("/health", response_class=PlainTextResponse)
async def health():
    return "OK"


@app.post("/api/generate-timecard")
async def generate_timecard(request: Request):
    """Generate a timecard workbook from a JSON payload."""
    timecard_request = await read_timecard_request(request)

    def cancelled() -> bool:
        # Called from the worker thread
        return anyio.from_thread.run(request.is_disconnected)

    try:
        artifact = await run_in_threadpool(builder.build, timecard_request, cancelled)
    except TimecardError as e:
        raise http_error(e)

    return Response(
        content=artifact.content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f'attachment; filename="{artifact.filename}"',
            "X-Timecard-Warnings": str(len(artifact.warnings)),
        },
    )


@app.post("/api/classify")
async def classify_entries(request: Request):
    """Preview the period, holidays and classification of a payload without building a workbook."""
    timecard_request = await read_timecard_request(request)
    try:
        prepared = await run_in_threadpool(builder.prepare, timecard_request)
    except TimecardError as e:
        raise http_error(e)
    return prepared.to_dict()


@app.get("/api/pay-period")
async def get_pay_period(date: str = Query(..., description="ISO-8601 date"),
                         rule: str = Query(DEFAULT_PAY_PERIOD_RULE)):
    """Pay period containing a date."""
    try:
        period = builder.calculator.compute(date, rule)
    except TimecardError as e:
        raise http_error(e)
    return period.to_dict()


@app.get("/api/holidays")
async def get_holidays(year: int = Query(..., ge=1900, le=2200),
                       region: str = Query(DEFAULT_HOLIDAY_REGION)):
    """Statutory holidays of a region for one year."""
    try:
        resolved = builder.calendar.resolve_region(region)
        holidays = await run_in_threadpool(builder.calendar.stat_holidays, year, resolved)
    except TimecardError as e:
        raise http_error(e)
    return {
        "region": resolved.code,
        "year": year,
        "holidays": [holiday.to_dict() for holiday in holidays],
    }


@app.get("/api/holidays/regions")
async def get_holiday_regions():
    return {"regions": builder.calendar.regions()}


@app.get("/api/holidays/period")
async def get_period_holidays(date: str = Query(..., description="ISO-8601 date"),
                              rule: str = Query(DEFAULT_PAY_PERIOD_RULE),
                              region: str = Query(DEFAULT_HOLIDAY_REGION)):
    """Statutory holidays inside the pay period containing a date."""
    try:
        period = builder.calculator.compute(parse_calendar_date(date), rule)
        holidays = await run_in_threadpool(builder.calendar.holidays_in_period, period, region)
    except TimecardError as e:
        raise http_error(e)
    return {
        "period": period.to_dict(),
        "holidays": [holiday.to_dict() for holiday in holidays],
    }


@app.get("/api/settings", response_model=SettingsResponse)
async def get_settings():
    """Get current application settings."""
    settings = settings_manager.get_all_settings()
    logger.info(f"Loaded {len(settings)} setting categories")
    return SettingsResponse(settings=settings, setting_info=settings_manager.get_setting_info())


@app.put("/api/settings")
async def update_settings(request: SettingsUpdateRequest):
    """Update application settings."""
    if not settings_manager.update_settings(request.updates):
        raise HTTPException(status_code=400, detail=settings_manager.last_errors or "Failed to update settings")
    return {
        "success": True,
        "message": "Settings updated successfully; restart the server to apply them",
        "updated_count": len(request.updates)
    }


@app.post("/api/settings/reset")
async def reset_settings():
    """Reset all settings to default values."""
    if not settings_manager.reset_to_defaults():
        raise HTTPException(status_code=500, detail="Failed to reset settings")
    return {
        "success": True,
        "message": "Settings reset to defaults successfully"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
