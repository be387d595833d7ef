"""
Pay period calculation.

Each rule variant describes a lattice of fixed-length periods (one or two
weeks) starting on an anchor weekday, an epoch anchor date whose period is
number 1, and a numbering policy. The period containing a date is found by
integer division of its day offset from the anchor.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from config.settings import PAY_PERIOD_RULES
from .dates import parse_calendar_date
from .errors import OutOfRangeError, UnknownRuleError
from .models import PayPeriod

logger = logging.getLogger(__name__)

WEEKDAYS = {
    "MONDAY": 0,
    "TUESDAY": 1,
    "WEDNESDAY": 2,
    "THURSDAY": 3,
    "FRIDAY": 4,
    "SATURDAY": 5,
    "SUNDAY": 6,
}


class Numbering(Enum):
    """Period numbering (annual reset) policies."""
    SEQUENTIAL = "sequential"
    ODD = "odd"
    CALENDAR_YEAR = "calendar_year"
    YEAR_ANCHORED = "year_anchored"


def first_weekday_on_or_after(day: date, weekday: int) -> date:
    return day + timedelta(days=(weekday - day.weekday()) % 7)


@dataclass(frozen=True)
class PayPeriodRule:
    """
    A pay period rule variant.

    Attributes:
        name: Variant identifier used by callers
        start_weekday: Weekday periods start on (Monday=0 .. Sunday=6)
        weeks: Period length in weeks (1 or 2)
        epoch_anchor: Start date of period number 1; earlier dates are out of range
        numbering: Numbering policy
        payday_offset_days: Days from the period end to payday
    """
    name: str
    start_weekday: int
    weeks: int
    epoch_anchor: date
    numbering: Numbering = Numbering.SEQUENTIAL
    payday_offset_days: int = 0

    def __post_init__(self):
        if self.weeks not in (1, 2):
            raise ValueError(f"Rule {self.name}: period length must be 1 or 2 weeks, got {self.weeks}")
        if self.epoch_anchor.weekday() != self.start_weekday:
            raise ValueError(
                f"Rule {self.name}: epoch anchor {self.epoch_anchor} is not on the start weekday"
            )

    @property
    def period_days(self) -> int:
        return 7 * self.weeks

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> 'PayPeriodRule':
        weekday = data["start_weekday"]
        if isinstance(weekday, str):
            weekday = WEEKDAYS[weekday.strip().upper()]
        return cls(
            name=name,
            start_weekday=int(weekday),
            weeks=int(data.get("weeks", 1)),
            epoch_anchor=parse_calendar_date(data["epoch_anchor"]),
            numbering=Numbering(data.get("numbering", Numbering.SEQUENTIAL.value)),
            payday_offset_days=int(data.get("payday_offset_days", 0)),
        )


def load_rules(config: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, PayPeriodRule]:
    """Build the rule table from settings (``PAY_PERIOD_RULES`` by default)."""
    config = PAY_PERIOD_RULES if config is None else config
    return {name: PayPeriodRule.from_dict(name, data) for name, data in config.items()}


class PayPeriodCalculator:
    """
    Computes pay period windows from a rule table.

    The calculator is stateless apart from its rule table and can be shared
    freely between requests.
    """

    def __init__(self, rules: Optional[Dict[str, PayPeriodRule]] = None):
        self.rules = rules if rules is not None else load_rules()

    def get_rule(self, variant: str) -> PayPeriodRule:
        try:
            return self.rules[variant]
        except KeyError:
            raise UnknownRuleError(
                f"Unknown pay period rule '{variant}'. Available: {sorted(self.rules)}"
            )

    def compute(self, reference_date: Any, variant: str) -> PayPeriod:
        """
        Return the pay period containing a date.

        Args:
            reference_date: Date, or ISO-8601 / RFC 3339 string
            variant: Rule variant name

        Returns:
            PayPeriod with start <= reference_date <= end

        Raises:
            InvalidDateError: If the reference date is malformed
            OutOfRangeError: If the date precedes the rule's epoch anchor
            UnknownRuleError: If the variant is not configured
        """
        day = parse_calendar_date(reference_date)
        rule = self.get_rule(variant)

        if day < rule.epoch_anchor:
            raise OutOfRangeError(
                f"Date {day} is before the {rule.name} epoch anchor {rule.epoch_anchor}"
            )

        if rule.numbering is Numbering.YEAR_ANCHORED:
            return self._compute_year_anchored(day, rule)

        index = (day - rule.epoch_anchor).days // rule.period_days
        start = rule.epoch_anchor + timedelta(days=index * rule.period_days)
        return self._build(rule, start, self._number(rule, index, start))

    def shift(self, period: PayPeriod, offset: int) -> PayPeriod:
        """Return the period ``offset`` steps away from ``period`` under the same rule."""
        rule = self.get_rule(period.rule)
        return self.compute(period.start + timedelta(days=offset * rule.period_days), rule.name)

    def week_range(self, period: PayPeriod, index: int) -> Tuple[date, date]:
        """Inclusive date range of week ``index`` (0 or 1) inside a period."""
        start = period.week_start(index)
        return start, start + timedelta(days=6)

    def _number(self, rule: PayPeriodRule, index: int, start: date) -> int:
        if rule.numbering is Numbering.ODD:
            return 2 * index + 1
        if rule.numbering is Numbering.CALENDAR_YEAR:
            # First lattice start on or after January 1 of the start's year
            offset = (date(start.year, 1, 1) - rule.epoch_anchor).days
            steps = max(0, -(-offset // rule.period_days))
            first = rule.epoch_anchor + timedelta(days=steps * rule.period_days)
            return (start - first).days // rule.period_days + 1
        return index + 1

    def _compute_year_anchored(self, day: date, rule: PayPeriodRule) -> PayPeriod:
        # The lattice restarts on the first anchor weekday of each year; dates
        # before it belong to the previous year's schedule.
        first = first_weekday_on_or_after(date(day.year, 1, 1), rule.start_weekday)
        if day < first:
            first = first_weekday_on_or_after(date(day.year - 1, 1, 1), rule.start_weekday)

        index = (day - first).days // rule.period_days
        start = first + timedelta(days=index * rule.period_days)
        return self._build(rule, start, index + 1)

    def _build(self, rule: PayPeriodRule, start: date, number: int) -> PayPeriod:
        end = start + timedelta(days=rule.period_days - 1)
        period = PayPeriod(
            start=start,
            end=end,
            number=number,
            week_count=rule.weeks,
            payday=end + timedelta(days=rule.payday_offset_days),
            rule=rule.name,
        )
        logger.debug(f"Pay period {rule.name} #{number}: {start} to {end}")
        return period
