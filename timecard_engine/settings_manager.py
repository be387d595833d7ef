"""
Settings Manager for the Timecard Generation Engine.

This module provides functionality to read, write, and validate
configuration settings from config/settings.py through the HTTP API.
"""

import ast
import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .cell_mapper import TemplateLayout
from .errors import TemplateLayoutError, TimecardError
from .pay_period import PayPeriodRule

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "DEFAULT_TEMPLATE_PATH": 'templates/timecard_template.xlsx',
    "ACTIVE_TEMPLATE_LAYOUT": 'global_totals',
    "OUTPUT_FILENAME_PREFIX": 'timecard_',
    "TEMPLATE_LAYOUTS": {
        "global_totals": {
            "mode": "global-totals",
            "base_column": 3,
            "category_rows": {"REGULAR": 12, "NIGHT": 13, "OVERTIME": 14},
            "label_column": 1,
            "category_labels": {"REGULAR": "TOTAL REGULAR", "NIGHT": "TOTAL NIGHT", "OVERTIME": "OVERTIME"},
        },
        "per_job_block": {
            "mode": "per-job-block",
            "base_column": 3,
            "base_row": 5,
            "block_height": 4,
            "category_offsets": {"REGULAR": 0, "NIGHT": 1, "OVERTIME": 2},
            "label_column": 2,
            "category_labels": {"REGULAR": "Regular", "NIGHT": "Night", "OVERTIME": "Overtime"},
        },
    },
    "HEADER_CELLS": {
        "employee_name": 'B2',
        "period_label": 'H2',
        "year": 'I2',
        "week_label": 'A4',
        "date_label_row": 4,
    },
    "DATE_LABEL_FORMAT": '%m-%d-%y',
    "PERIOD_LABEL_FORMAT": 'PP #{number}',
    "DEFAULT_PAY_PERIOD_RULE": 'sun_sat_biweekly',
    "PAY_PERIOD_RULES": {
        "sun_sat_weekly": {
            "start_weekday": 'SUNDAY',
            "weeks": 1,
            "epoch_anchor": '2000-01-02',
            "numbering": 'calendar_year',
            "payday_offset_days": 6,
        },
        "sun_sat_biweekly": {
            "start_weekday": 'SUNDAY',
            "weeks": 2,
            "epoch_anchor": '2024-12-15',
            "numbering": 'odd',
            "payday_offset_days": 6,
        },
        "bc_biweekly": {
            "start_weekday": 'THURSDAY',
            "weeks": 2,
            "epoch_anchor": '2000-01-06',
            "numbering": 'year_anchored',
            "payday_offset_days": 7,
        },
    },
    "HOLIDAY_HOURS_PER_DAY": 8.0,
    "HOLIDAY_JOB_CODE": 'Stat',
    "HOLIDAY_JOB_NAME": 'Statutory Holiday',
    "HOLIDAY_LABOUR_CODE": 'H',
    "HOLIDAY_SKIP_WORKED_DAYS": True,
    "DEFAULT_HOLIDAY_REGION": 'CA-BC',
    "HOLIDAY_REMOTE_LOOKUP_ENABLED": False,
    "NAGER_API_BASE_URL": 'https://date.nager.at/api/v3',
    "NAGER_REQUEST_TIMEOUT": 10,
    "MAX_RETRIES": 3,
    "JOB_CODE_SUGGESTION_CUTOFF": 70.0,
}

SETTING_INFO: Dict[str, Dict[str, Any]] = {
    "DEFAULT_TEMPLATE_PATH": {
        "type": "string",
        "description": "Path of the timecard template workbook",
        "category": "template",
    },
    "ACTIVE_TEMPLATE_LAYOUT": {
        "type": "string",
        "description": "Name of the layout used when a request does not pick one",
        "category": "template",
    },
    "OUTPUT_FILENAME_PREFIX": {
        "type": "string",
        "description": "Prefix of generated timecard file names",
        "category": "template",
    },
    "TEMPLATE_LAYOUTS": {
        "type": "dict",
        "description": "Cell addressing of each supported template layout",
        "category": "template",
    },
    "HEADER_CELLS": {
        "type": "dict",
        "description": "Cell addresses of the header fields",
        "category": "template",
    },
    "DATE_LABEL_FORMAT": {
        "type": "string",
        "description": "strftime format of the per-column date labels",
        "category": "template",
    },
    "PERIOD_LABEL_FORMAT": {
        "type": "string",
        "description": "Pay period label, must contain {number}",
        "category": "template",
    },
    "DEFAULT_PAY_PERIOD_RULE": {
        "type": "string",
        "description": "Pay period rule used by the period endpoints when none is given",
        "category": "pay_periods",
    },
    "PAY_PERIOD_RULES": {
        "type": "dict",
        "description": "Pay period rule variants",
        "category": "pay_periods",
    },
    "HOLIDAY_HOURS_PER_DAY": {
        "type": "number",
        "description": "Hours credited for an injected statutory holiday",
        "category": "holidays",
        "min": 0,
        "max": 24,
    },
    "HOLIDAY_JOB_CODE": {
        "type": "string",
        "description": "Reserved job code of injected holiday entries",
        "category": "holidays",
    },
    "HOLIDAY_JOB_NAME": {
        "type": "string",
        "description": "Job name shown for the reserved holiday job",
        "category": "holidays",
    },
    "HOLIDAY_LABOUR_CODE": {
        "type": "string",
        "description": "Labour code of injected holiday entries",
        "category": "holidays",
    },
    "HOLIDAY_SKIP_WORKED_DAYS": {
        "type": "boolean",
        "description": "Do not inject a holiday on a date that already has worked entries",
        "category": "holidays",
    },
    "DEFAULT_HOLIDAY_REGION": {
        "type": "string",
        "description": "Region used by the holiday endpoints when none is given",
        "category": "holidays",
    },
    "HOLIDAY_REMOTE_LOOKUP_ENABLED": {
        "type": "boolean",
        "description": "Merge holiday names from the Nager.Date API",
        "category": "remote_holidays",
    },
    "NAGER_API_BASE_URL": {
        "type": "url",
        "description": "Base URL of the Nager.Date API",
        "category": "remote_holidays",
    },
    "NAGER_REQUEST_TIMEOUT": {
        "type": "number",
        "description": "Seconds to wait for the Nager.Date API",
        "category": "remote_holidays",
        "min": 1,
    },
    "MAX_RETRIES": {
        "type": "integer",
        "description": "Maximum number of remote API call retries",
        "category": "remote_holidays",
        "min": 0,
    },
    "JOB_CODE_SUGGESTION_CUTOFF": {
        "type": "number",
        "description": "Minimum similarity score to suggest a job code for an unknown one (0-100)",
        "category": "job_matching",
        "min": 0,
        "max": 100,
    },
}


class SettingsManager:
    """
    Manages application settings with read/write capabilities to config/settings.py

    Changes are written to the file; running processes pick them up on restart.
    """

    def __init__(self, settings_file_path: Optional[Union[str, Path]] = None):
        """Initialize the settings manager."""
        if settings_file_path is None:
            # Default to config/settings.py relative to project root
            project_root = Path(__file__).parent.parent
            settings_file_path = project_root / "config" / "settings.py"

        self.settings_file_path = Path(settings_file_path)
        self.settings_cache: Dict[str, Any] = {}
        self.last_errors: List[str] = []
        self._load_settings()

    def _load_settings(self) -> None:
        """Load settings from the settings.py file."""
        try:
            content = self.settings_file_path.read_text(encoding='utf-8')
            tree = ast.parse(content)
        except (OSError, SyntaxError) as e:
            logger.error(f"Failed to load settings from {self.settings_file_path}: {e}")
            self.settings_cache = {}
            return

        settings = {}
        for node in tree.body:
            if not isinstance(node, ast.Assign):
                continue
            for target in node.targets:
                if isinstance(target, ast.Name) and target.id.isupper() and not target.id.startswith('_'):
                    try:
                        settings[target.id] = ast.literal_eval(node.value)
                    except (ValueError, TypeError, SyntaxError):
                        logger.warning(f"Could not parse value for {target.id}, skipping")

        self.settings_cache = settings
        logger.info(f"Loaded {len(settings)} settings from {self.settings_file_path}")

    def get_all_settings(self) -> Dict[str, Dict[str, Any]]:
        """Get all current settings organized by category."""
        grouped: Dict[str, Dict[str, Any]] = {}
        for key, info in SETTING_INFO.items():
            grouped.setdefault(info["category"], {})[key] = self.settings_cache.get(key, DEFAULT_SETTINGS[key])
        return grouped

    def get_setting(self, key: str) -> Any:
        """Get a specific setting value."""
        return self.settings_cache.get(key)

    def get_setting_info(self) -> Dict[str, Dict[str, Any]]:
        """Get metadata about each setting for the UI."""
        return copy.deepcopy(SETTING_INFO)

    def update_settings(self, updates: Dict[str, Any]) -> bool:
        """
        Update multiple settings and write to file.

        Args:
            updates: Dictionary of setting_key -> new_value

        Returns:
            True if successful, False otherwise; ``last_errors`` holds the reasons
        """
        self.last_errors = self._validate_settings(updates)
        if self.last_errors:
            logger.error(f"Settings validation failed: {self.last_errors}")
            return False

        previous = copy.deepcopy(self.settings_cache)
        self.settings_cache.update(copy.deepcopy(updates))
        if not self._write_settings_file():
            self.settings_cache = previous
            return False
        return True

    def reset_to_defaults(self) -> bool:
        """Reset all settings to their default values."""
        return self.update_settings(copy.deepcopy(DEFAULT_SETTINGS))

    def export_settings(self) -> Dict[str, Any]:
        """Export current settings for backup."""
        return copy.deepcopy(self.settings_cache)

    def _validate_settings(self, updates: Dict[str, Any]) -> List[str]:
        """
        Validate setting values before applying them.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        if not isinstance(updates, dict):
            return ["Settings update must be an object"]

        for key, value in updates.items():
            info = SETTING_INFO.get(key)
            if info is None:
                errors.append(f"Unknown setting: {key}")
                continue

            kind = info["type"]
            if kind in ("number", "integer"):
                if isinstance(value, bool) or not isinstance(value, int if kind == "integer" else (int, float)):
                    errors.append(f"{key} must be {'an integer' if kind == 'integer' else 'a number'}")
                    continue
                if "min" in info and value < info["min"]:
                    errors.append(f"{key} must be at least {info['min']}")
                if "max" in info and value > info["max"]:
                    errors.append(f"{key} must be at most {info['max']}")

            elif kind == "boolean":
                if not isinstance(value, bool):
                    errors.append(f"{key} must be true or false")

            elif kind == "url":
                if not isinstance(value, str) or not value.startswith("https://"):
                    errors.append(f"{key} must be a valid HTTPS URL")

            elif kind == "string":
                if not isinstance(value, str) or not value.strip():
                    errors.append(f"{key} must be a non-empty string")

            elif kind == "dict":
                if not isinstance(value, dict):
                    errors.append(f"{key} must be a dictionary")

        if errors:
            return errors

        merged = {**DEFAULT_SETTINGS, **self.settings_cache, **updates}
        errors.extend(self._validate_structures(merged, updates))
        return errors

    def _validate_structures(self, merged: Dict[str, Any], updates: Dict[str, Any]) -> List[str]:
        errors = []

        if "PERIOD_LABEL_FORMAT" in updates and "{number}" not in updates["PERIOD_LABEL_FORMAT"]:
            errors.append("PERIOD_LABEL_FORMAT must contain {number}")

        if "TEMPLATE_LAYOUTS" in updates:
            for name, data in updates["TEMPLATE_LAYOUTS"].items():
                try:
                    TemplateLayout.from_dict(data if isinstance(data, dict) else {}, name=name)
                except TemplateLayoutError as e:
                    errors.append(str(e))

        if "PAY_PERIOD_RULES" in updates:
            for name, data in updates["PAY_PERIOD_RULES"].items():
                try:
                    PayPeriodRule.from_dict(name, data)
                except (KeyError, TypeError, ValueError, TimecardError) as e:
                    errors.append(f"Pay period rule '{name}' is invalid: {e}")

        if merged["ACTIVE_TEMPLATE_LAYOUT"] not in merged["TEMPLATE_LAYOUTS"]:
            errors.append(f"ACTIVE_TEMPLATE_LAYOUT '{merged['ACTIVE_TEMPLATE_LAYOUT']}' is not a configured layout")
        if merged["DEFAULT_PAY_PERIOD_RULE"] not in merged["PAY_PERIOD_RULES"]:
            errors.append(f"DEFAULT_PAY_PERIOD_RULE '{merged['DEFAULT_PAY_PERIOD_RULE']}' is not a configured rule")

        return errors

    def _write_settings_file(self) -> bool:
        """Write current settings back to the settings.py file."""
        try:
            content = self.settings_file_path.read_text(encoding='utf-8')
            tree = ast.parse(content)
        except (OSError, SyntaxError) as e:
            logger.error(f"Failed to read settings file: {e}")
            return False

        lines = content.split('\n')
        ranges = {}
        for node in tree.body:
            if isinstance(node, ast.Assign):
                for target in node.targets:
                    if isinstance(target, ast.Name) and target.id in self.settings_cache:
                        ranges[target.id] = (node.lineno - 1, node.end_lineno - 1)

        # Replace in reverse order to keep line numbers valid
        for key, (start_line, end_line) in sorted(ranges.items(), key=lambda item: item[1][0], reverse=True):
            lines[start_line:end_line + 1] = self._format_setting_value(key, self.settings_cache[key]).split('\n')

        missing = [key for key in self.settings_cache if key not in ranges]
        for key in missing:
            lines.append(self._format_setting_value(key, self.settings_cache[key]))

        try:
            self.settings_file_path.write_text('\n'.join(lines), encoding='utf-8')
        except OSError as e:
            logger.error(f"Failed to write settings file: {e}")
            return False

        logger.info(f"Successfully updated settings file: {self.settings_file_path}")
        return True

    def _format_setting_value(self, key: str, value: Any) -> str:
        """Format a setting value with proper indentation and structure."""
        if isinstance(value, dict):
            if not value:
                return f"{key} = {{}}"

            lines = [f"{key} = {{"]
            for dict_key, dict_value in value.items():
                if isinstance(dict_value, dict) and dict_value:
                    lines.append(f"    {dict_key!r}: {{")
                    for inner_key, inner_value in dict_value.items():
                        lines.append(f"        {inner_key!r}: {inner_value!r},")
                    lines.append("    },")
                else:
                    lines.append(f"    {dict_key!r}: {dict_value!r},")
            lines.append("}")
            return "\n".join(lines)

        return f"{key} = {value!r}"
