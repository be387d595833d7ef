"""
Configuration settings for the Timecard Generation Engine.

This module contains application configuration constants and settings
that can be adjusted for different deployments or templates.
"""

# Template Configuration
DEFAULT_TEMPLATE_PATH = 'templates/timecard_template.xlsx'
ACTIVE_TEMPLATE_LAYOUT = 'global_totals'
OUTPUT_FILENAME_PREFIX = 'timecard_'

# Template layouts (row/column addressing contract of the template file)
TEMPLATE_LAYOUTS = {
    "global_totals": {
        "mode": "global-totals",
        "base_column": 3,  # Column C = Sunday
        "category_rows": {"REGULAR": 12, "NIGHT": 13, "OVERTIME": 14},
        "label_column": 1,  # Column A holds the TOTAL REGULAR / TOTAL NIGHT labels
        "category_labels": {"REGULAR": "TOTAL REGULAR", "NIGHT": "TOTAL NIGHT", "OVERTIME": "OVERTIME"},
    },
    "per_job_block": {
        "mode": "per-job-block",
        "base_column": 3,
        "base_row": 5,  # First job block starts here
        "block_height": 4,  # Rows per job
        "category_offsets": {"REGULAR": 0, "NIGHT": 1, "OVERTIME": 2},
        "label_column": 2,  # Column B receives the job code
        "category_labels": {"REGULAR": "Regular", "NIGHT": "Night", "OVERTIME": "Overtime"},  # Read from column A
    },
}

# Header cell addresses
HEADER_CELLS = {
    "employee_name": 'B2',
    "period_label": 'H2',
    "year": 'I2',
    "week_label": 'A4',
    "date_label_row": 4,
}
DATE_LABEL_FORMAT = '%m-%d-%y'
PERIOD_LABEL_FORMAT = 'PP #{number}'

# Pay Period Configuration
DEFAULT_PAY_PERIOD_RULE = 'sun_sat_biweekly'
PAY_PERIOD_RULES = {
    "sun_sat_weekly": {
        "start_weekday": 'SUNDAY',
        "weeks": 1,
        "epoch_anchor": '2000-01-02',
        "numbering": 'calendar_year',
        "payday_offset_days": 6,  # Saturday -> next Friday
    },
    "sun_sat_biweekly": {
        "start_weekday": 'SUNDAY',
        "weeks": 2,
        "epoch_anchor": '2024-12-15',  # PP #1 ends Sat 2024-12-28, payday Fri 2025-01-03
        "numbering": 'odd',
        "payday_offset_days": 6,
    },
    "bc_biweekly": {
        "start_weekday": 'THURSDAY',
        "weeks": 2,
        "epoch_anchor": '2000-01-06',  # First Thursday of 2000
        "numbering": 'year_anchored',
        "payday_offset_days": 7,  # Wednesday -> next Wednesday
    },
}

# Holiday Processing
HOLIDAY_HOURS_PER_DAY = 8.0
HOLIDAY_JOB_CODE = 'Stat'
HOLIDAY_JOB_NAME = 'Statutory Holiday'
HOLIDAY_LABOUR_CODE = 'H'
HOLIDAY_SKIP_WORKED_DAYS = True
DEFAULT_HOLIDAY_REGION = 'CA-BC'

# Remote holiday lookup (Nager.Date)
HOLIDAY_REMOTE_LOOKUP_ENABLED = False
NAGER_API_BASE_URL = 'https://date.nager.at/api/v3'
NAGER_REQUEST_TIMEOUT = 10
MAX_RETRIES = 3

# Job Code Matching
JOB_CODE_SUGGESTION_CUTOFF = 70.0
