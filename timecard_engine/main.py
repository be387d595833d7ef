#!/usr/bin/env python3
"""
Timecard Generation Engine - Command Line Entry Point

Generates timecard workbooks from JSON request files and looks up pay
periods and statutory holidays.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from config.settings import DEFAULT_HOLIDAY_REGION, DEFAULT_PAY_PERIOD_RULE, DEFAULT_TEMPLATE_PATH
from timecard_engine.cell_mapper import load_layout
from timecard_engine.errors import TimecardError
from timecard_engine.holidays import HolidayCalendar
from timecard_engine.models import TimecardRequest
from timecard_engine.pay_period import PayPeriodCalculator
from timecard_engine.template import TemplateStore
from timecard_engine.timecard_builder import TimecardBuilder


class TimecardApp:
    """Command handlers for the timecard CLI."""

    def generate(self, request_file: str, output: Optional[str], template: Optional[str]) -> int:
        """
        Build a timecard workbook from a JSON request file.

        Args:
            request_file: Path of the request JSON
            output: Output .xlsx path (defaults to the generated file name)
            template: Template path (defaults to TIMECARD_TEMPLATE_PATH / settings)
        """
        request_path = Path(request_file)
        if not request_path.is_file():
            print(f"Error: Request file '{request_file}' does not exist.")
            return 1

        try:
            payload = json.loads(request_path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            print(f"Error: '{request_file}' is not valid JSON: {e}")
            return 1

        template_path = template or os.getenv("TIMECARD_TEMPLATE_PATH", DEFAULT_TEMPLATE_PATH)
        try:
            request = TimecardRequest.from_dict(payload)
            builder = TimecardBuilder(template=TemplateStore.load(template_path, load_layout(request.layout)))
            artifact = builder.build(request)
        except TimecardError as e:
            print(f"Error: {e}")
            return 1

        output_path = Path(output) if output else Path(artifact.filename)
        output_path.write_bytes(artifact.content)

        period = artifact.period
        print(f"Wrote {output_path} ({period.label}, {period.start} to {period.end})")
        if artifact.warnings:
            print(artifact.classification.validation.get_error_summary())
        return 0

    def period(self, reference_date: str, rule: str) -> int:
        """Print the pay period containing a date."""
        try:
            period = PayPeriodCalculator().compute(reference_date, rule)
        except TimecardError as e:
            print(f"Error: {e}")
            return 1

        print(f"{period.label}: {period.start} to {period.end}")
        if period.payday:
            print(f"Payday: {period.payday}")
        return 0

    def holidays(self, year: int, region: str) -> int:
        """Print the statutory holidays of a region for one year."""
        try:
            holidays = HolidayCalendar().stat_holidays(year, region)
        except TimecardError as e:
            print(f"Error: {e}")
            return 1

        for holiday in holidays:
            print(f"{holiday.holiday_date}  {holiday.name}")
        return 0


def create_cli_parser() -> argparse.ArgumentParser:
    """Create and configure the command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Timecard Generation Engine - Build spreadsheet timecards from time entries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m timecard_engine.main generate request.json -o timecard.xlsx
  python -m timecard_engine.main period 2025-01-08 --rule sun_sat_biweekly
  python -m timecard_engine.main holidays 2025 --region CA-BC
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Timecard Generation Engine 1.0.0"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("TIMECARD_LOG_LEVEL", "WARNING"),
        help="Logging level (default: WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate a timecard workbook from a JSON request")
    generate.add_argument("request_file", help="Path to the request JSON file")
    generate.add_argument("-o", "--output", help="Output .xlsx path")
    generate.add_argument("--template", help="Template .xlsx path")

    period = subparsers.add_parser("period", help="Show the pay period containing a date")
    period.add_argument("date", help="Reference date (YYYY-MM-DD)")
    period.add_argument("--rule", default=DEFAULT_PAY_PERIOD_RULE, help="Pay period rule variant")

    holidays = subparsers.add_parser("holidays", help="List statutory holidays for a year")
    holidays.add_argument("year", type=int, help="Calendar year")
    holidays.add_argument("--region", default=DEFAULT_HOLIDAY_REGION, help="Region code, e.g. CA-BC")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    load_dotenv()
    parser = create_cli_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=str(args.log_level).upper())

    app = TimecardApp()
    if args.command == "generate":
        return app.generate(args.request_file, args.output, args.template)
    if args.command == "period":
        return app.period(args.date, args.rule)
    return app.holidays(args.year, args.region)


if __name__ == "__main__":
    sys.exit(main())
