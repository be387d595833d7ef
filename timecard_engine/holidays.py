"""
Statutory holiday rules and holiday augmentation.

Holidays come from a data-driven rule table keyed by region code
("CA-BC", "US-NM", ...). The table is a plain dictionary passed into
HolidayCalendar, so regions can be added or replaced without touching
the calendar logic.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from config.settings import (
    HOLIDAY_HOURS_PER_DAY,
    HOLIDAY_JOB_CODE,
    HOLIDAY_LABOUR_CODE,
    HOLIDAY_SKIP_WORKED_DAYS,
)
from .errors import UnsupportedRegionError
from .models import PayPeriod, StatHoliday, TimeEntry
from .nager_client import NagerDateClient, NagerDateError

logger = logging.getLogger(__name__)

MON, TUE, WED, THU, FRI, SAT, SUN = range(7)


def easter_sunday(year: int) -> date:
    """Gregorian Easter Sunday (Meeus/Jones/Butcher)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    """
    The n-th given weekday of a month; ``n=-1`` is the last one.
    """
    if n > 0:
        first = date(year, month, 1)
        return first + timedelta(days=(weekday - first.weekday()) % 7 + 7 * (n - 1))
    next_month = date(year + month // 12, month % 12 + 1, 1)
    last = next_month - timedelta(days=1)
    return last - timedelta(days=(last.weekday() - weekday) % 7 + 7 * (-n - 1))


class Observance(Enum):
    """How a fixed-date holiday falling on a weekend is observed."""
    NONE = "none"
    NEXT_MONDAY = "next_monday"  # Sat/Sun -> Monday (Canadian practice)
    NEAREST_WEEKDAY = "nearest_weekday"  # Sat -> Friday, Sun -> Monday (US federal)

    def observed_date(self, day: date) -> Optional[date]:
        if self is Observance.NONE or day.weekday() < SAT:
            return None
        if self is Observance.NEXT_MONDAY:
            return day + timedelta(days=7 - day.weekday())
        return day - timedelta(days=1) if day.weekday() == SAT else day + timedelta(days=1)


class HolidayRule(ABC):
    """A rule producing at most one holiday date per year (plus observance)."""

    name: str
    since: Optional[int]

    @abstractmethod
    def occurrence(self, year: int) -> date:
        pass

    def holidays(self, year: int, region: str) -> List[StatHoliday]:
        if self.since is not None and year < self.since:
            return []
        return [StatHoliday(self.name, self.occurrence(year), region)]


@dataclass(frozen=True)
class FixedDateRule(HolidayRule):
    name: str
    month: int
    day: int
    observance: Observance = Observance.NONE
    since: Optional[int] = None

    def occurrence(self, year: int) -> date:
        return date(year, self.month, self.day)

    def holidays(self, year: int, region: str) -> List[StatHoliday]:
        found = super().holidays(year, region)
        if found:
            observed = self.observance.observed_date(found[0].holiday_date)
            if observed is not None:
                found.append(StatHoliday(f"{self.name} (Observed)", observed, region, is_observed=True))
        return found


@dataclass(frozen=True)
class NthWeekdayRule(HolidayRule):
    """n-th weekday of a month, optionally shifted (e.g. the day after Thanksgiving)."""
    name: str
    month: int
    weekday: int
    n: int
    offset_days: int = 0
    since: Optional[int] = None

    def occurrence(self, year: int) -> date:
        return nth_weekday(year, self.month, self.weekday, self.n) + timedelta(days=self.offset_days)


@dataclass(frozen=True)
class WeekdayOnOrBeforeRule(HolidayRule):
    """Last given weekday on or before a date (Victoria Day: Monday on or before May 24)."""
    name: str
    month: int
    day: int
    weekday: int
    since: Optional[int] = None

    def occurrence(self, year: int) -> date:
        base = date(year, self.month, self.day)
        return base - timedelta(days=(base.weekday() - self.weekday) % 7)


@dataclass(frozen=True)
class EasterRule(HolidayRule):
    name: str
    offset_days: int
    since: Optional[int] = None

    def occurrence(self, year: int) -> date:
        return easter_sunday(year) + timedelta(days=self.offset_days)


# Canada
NEW_YEARS_CA = FixedDateRule("New Year's Day", 1, 1, Observance.NEXT_MONDAY)
GOOD_FRIDAY = EasterRule("Good Friday", -2)
VICTORIA_DAY = WeekdayOnOrBeforeRule("Victoria Day", 5, 24, MON)
CANADA_DAY = FixedDateRule("Canada Day", 7, 1, Observance.NEXT_MONDAY)
LABOUR_DAY = NthWeekdayRule("Labour Day", 9, MON, 1)
THANKSGIVING_CA = NthWeekdayRule("Thanksgiving Day", 10, MON, 2)
REMEMBRANCE_DAY = FixedDateRule("Remembrance Day", 11, 11, Observance.NEXT_MONDAY)
CHRISTMAS_CA = FixedDateRule("Christmas Day", 12, 25, Observance.NEXT_MONDAY)
BOXING_DAY = FixedDateRule("Boxing Day", 12, 26, Observance.NEXT_MONDAY)
TRUTH_AND_RECONCILIATION = FixedDateRule(
    "National Day for Truth and Reconciliation", 9, 30, Observance.NEXT_MONDAY, since=2023
)

CANADA_CORE = [
    NEW_YEARS_CA, GOOD_FRIDAY, VICTORIA_DAY, CANADA_DAY,
    LABOUR_DAY, THANKSGIVING_CA, REMEMBRANCE_DAY, CHRISTMAS_CA,
]

# United States
NEW_YEARS_US = FixedDateRule("New Year's Day", 1, 1, Observance.NEAREST_WEEKDAY)
MLK_DAY = NthWeekdayRule("Martin Luther King Jr. Day", 1, MON, 3)
WASHINGTONS_BIRTHDAY = NthWeekdayRule("Washington's Birthday", 2, MON, 3)
MEMORIAL_DAY = NthWeekdayRule("Memorial Day", 5, MON, -1)
JUNETEENTH = FixedDateRule("Juneteenth", 6, 19, Observance.NEAREST_WEEKDAY, since=2021)
INDEPENDENCE_DAY = FixedDateRule("Independence Day", 7, 4, Observance.NEAREST_WEEKDAY)
LABOR_DAY_US = NthWeekdayRule("Labor Day", 9, MON, 1)
COLUMBUS_DAY = NthWeekdayRule("Columbus Day", 10, MON, 2)
VETERANS_DAY = FixedDateRule("Veterans Day", 11, 11, Observance.NEAREST_WEEKDAY)
THANKSGIVING_US = NthWeekdayRule("Thanksgiving Day", 11, THU, 4)
CHRISTMAS_US = FixedDateRule("Christmas Day", 12, 25, Observance.NEAREST_WEEKDAY)

US_FEDERAL = [
    NEW_YEARS_US, MLK_DAY, WASHINGTONS_BIRTHDAY, MEMORIAL_DAY, JUNETEENTH, INDEPENDENCE_DAY,
    LABOR_DAY_US, COLUMBUS_DAY, VETERANS_DAY, THANKSGIVING_US, CHRISTMAS_US,
]

DEFAULT_RULE_TABLE: Dict[str, List[HolidayRule]] = {
    "CA": CANADA_CORE,
    "CA-AB": CANADA_CORE + [
        NthWeekdayRule("Family Day", 2, MON, 3, since=1990),
    ],
    "CA-BC": CANADA_CORE + [
        NthWeekdayRule("Family Day", 2, MON, 3, since=2019),
        NthWeekdayRule("BC Day", 8, MON, 1),
        TRUTH_AND_RECONCILIATION,
    ],
    "CA-MB": CANADA_CORE + [
        NthWeekdayRule("Louis Riel Day", 2, MON, 3, since=2008),
        TRUTH_AND_RECONCILIATION,
    ],
    "CA-ON": [
        NEW_YEARS_CA, NthWeekdayRule("Family Day", 2, MON, 3, since=2008), GOOD_FRIDAY,
        VICTORIA_DAY, CANADA_DAY, LABOUR_DAY, THANKSGIVING_CA, CHRISTMAS_CA, BOXING_DAY,
    ],
    "CA-SK": CANADA_CORE + [
        NthWeekdayRule("Family Day", 2, MON, 3, since=2007),
        NthWeekdayRule("Saskatchewan Day", 8, MON, 1),
    ],
    "US": US_FEDERAL,
    "US-NM": [
        NEW_YEARS_US, MLK_DAY, MEMORIAL_DAY, JUNETEENTH, INDEPENDENCE_DAY, LABOR_DAY_US,
        NthWeekdayRule("Indigenous Peoples' Day", 10, MON, 2), VETERANS_DAY, THANKSGIVING_US,
        NthWeekdayRule("Day after Thanksgiving", 11, THU, 4, offset_days=1), CHRISTMAS_US,
    ],
}


@dataclass(frozen=True)
class Region:
    """A holiday region: ISO country code plus optional subdivision code."""
    country: str
    subdivision: Optional[str] = None

    @property
    def code(self) -> str:
        if self.subdivision:
            return f"{self.country}-{self.subdivision}"
        return self.country

    @classmethod
    def parse(cls, value: Union['Region', str]) -> 'Region':
        if isinstance(value, Region):
            return value
        if not isinstance(value, str) or not value.strip():
            raise UnsupportedRegionError(str(value))
        parts = value.strip().upper().replace('/', '-').replace('_', '-').split('-', 1)
        return cls(country=parts[0], subdivision=parts[1] if len(parts) > 1 and parts[1] else None)


@dataclass
class AugmentResult:
    """Outcome of a holiday augmentation run."""
    entries: List[TimeEntry]
    added: List[TimeEntry] = field(default_factory=list)
    holidays: List[StatHoliday] = field(default_factory=list)


class HolidayCalendar:
    """
    Resolves statutory holidays for a region and injects holiday entries.

    The rule table is injected; the calendar keeps no global state. Results
    are cached per (region, year) on the instance.
    """

    def __init__(self, rule_table: Optional[Dict[str, List[HolidayRule]]] = None,
                 remote_source: Optional[NagerDateClient] = None,
                 holiday_hours: float = HOLIDAY_HOURS_PER_DAY,
                 holiday_job_code: str = HOLIDAY_JOB_CODE,
                 labour_code: str = HOLIDAY_LABOUR_CODE,
                 skip_worked_days: bool = HOLIDAY_SKIP_WORKED_DAYS):
        self.rule_table = rule_table if rule_table is not None else DEFAULT_RULE_TABLE
        self.remote_source = remote_source
        self.holiday_hours = holiday_hours
        self.holiday_job_code = holiday_job_code
        self.labour_code = labour_code
        self.skip_worked_days = skip_worked_days
        self._cache: Dict[str, List[StatHoliday]] = {}

    def regions(self) -> List[str]:
        return sorted(self.rule_table)

    def resolve_region(self, region: Union[Region, str]) -> Region:
        """
        Normalise a region selector and check it has a rule table.

        Raises:
            UnsupportedRegionError: If the region is unknown
        """
        parsed = Region.parse(region)
        if parsed.code not in self.rule_table:
            raise UnsupportedRegionError(parsed.code)
        return parsed

    def stat_holidays(self, year: int, region: Union[Region, str]) -> List[StatHoliday]:
        """
        Statutory holidays of a region for one year, sorted by date.

        Raises:
            UnsupportedRegionError: If the region is unknown
        """
        resolved = self.resolve_region(region)
        cache_key = f"{resolved.code}-{year}"
        if cache_key in self._cache:
            return list(self._cache[cache_key])

        holidays: List[StatHoliday] = []
        for rule in self.rule_table[resolved.code]:
            holidays.extend(rule.holidays(year, resolved.code))
        holidays = self._separate_observed_dates(holidays)

        if self.remote_source is not None:
            holidays = self._merge_remote(holidays, year, resolved)

        holidays.sort(key=lambda h: (h.holiday_date, h.name))
        self._cache[cache_key] = holidays
        return list(holidays)

    def holidays_in_period(self, period: PayPeriod, region: Union[Region, str]) -> List[StatHoliday]:
        """Holidays inside ``[period.start, period.end]`` across every year the period touches."""
        seen = set()
        found: List[StatHoliday] = []
        for year in range(period.start.year - 1, period.end.year + 2):
            # Neighbouring years too: an observed date can cross a year boundary
            for holiday in self.stat_holidays(year, region):
                key = (holiday.holiday_date, holiday.name)
                if period.contains(holiday.holiday_date) and key not in seen:
                    seen.add(key)
                    found.append(holiday)
        found.sort(key=lambda h: (h.holiday_date, h.name))
        return found

    def is_stat_holiday(self, day: date, region: Union[Region, str]) -> bool:
        return any(h.holiday_date == day
                   for year in (day.year - 1, day.year, day.year + 1)
                   for h in self.stat_holidays(year, region))

    def is_holiday_entry(self, entry: TimeEntry) -> bool:
        labour_code = (entry.labour_code or "").strip().upper()
        return (entry.job_code.strip().casefold() == self.holiday_job_code.casefold()
                or labour_code in {self.labour_code.upper(), "STAT"})

    def augment(self, entries: Iterable[TimeEntry], period: PayPeriod,
                region: Union[Region, str]) -> AugmentResult:
        """
        Inject one regular holiday entry per statutory holiday in the period.

        A holiday is skipped when its date already has a holiday entry, which
        makes repeated runs idempotent, and (unless ``skip_worked_days`` is
        off) when the date already has worked entries.

        Raises:
            UnsupportedRegionError: If the region is unknown
        """
        result_entries = list(entries)
        holidays = self.holidays_in_period(period, region)
        added: List[TimeEntry] = []

        for holiday in holidays:
            day = holiday.holiday_date
            on_day = [entry for entry in result_entries if entry.entry_date == day]
            if any(self.is_holiday_entry(entry) for entry in on_day):
                continue
            if self.skip_worked_days and on_day:
                logger.info(f"Not adding {holiday.name} on {day}: {len(on_day)} worked entries exist")
                continue

            holiday_entry = TimeEntry(
                entry_date=day,
                job_code=self.holiday_job_code,
                hours=self.holiday_hours,
                notes=holiday.name,
                labour_code=self.labour_code,
            )
            result_entries.append(holiday_entry)
            added.append(holiday_entry)
            logger.info(f"Added holiday entry {holiday.name} on {day}")

        result_entries.sort(key=lambda entry: entry.entry_date)
        return AugmentResult(entries=result_entries, added=added, holidays=holidays)

    def _separate_observed_dates(self, holidays: List[StatHoliday]) -> List[StatHoliday]:
        """
        Move an observed date that lands on another holiday to the next free
        weekday, in rule order (Christmas Sat + Boxing Day Sun observe Mon + Tue).
        """
        taken = {h.holiday_date for h in holidays if not h.is_observed}
        result = [h for h in holidays if not h.is_observed]
        for holiday in holidays:
            if not holiday.is_observed:
                continue
            day = holiday.holiday_date
            while day in taken or day.weekday() >= SAT:
                day += timedelta(days=1)
            taken.add(day)
            result.append(holiday if day == holiday.holiday_date else replace(holiday, holiday_date=day))
        return result

    def _merge_remote(self, local: List[StatHoliday], year: int, region: Region) -> List[StatHoliday]:
        try:
            remote = self.remote_source.fetch_public_holidays(year, region.country)
        except NagerDateError as e:
            logger.warning(f"Remote holiday lookup failed for {region.code} {year}: {e}. Using local rules.")
            return local

        # Same-date entries are replaced so remote titles win
        by_day: Dict[date, StatHoliday] = {h.holiday_date: h for h in local}
        for item in remote:
            holiday = self._from_remote(item, region)
            if holiday is not None:
                by_day[holiday.holiday_date] = holiday
        logger.debug(f"Holidays {region.code} {year}: local={len(local)} remote={len(remote)} merged={len(by_day)}")
        return list(by_day.values())

    def _from_remote(self, item: Dict[str, Any], region: Region) -> Optional[StatHoliday]:
        counties = item.get("counties") or []
        if not item.get("global", True) and region.code not in counties:
            return None
        try:
            holiday_date = date.fromisoformat(str(item.get("date")))
        except ValueError:
            logger.warning(f"Skipping remote holiday with bad date: {item!r}")
            return None
        name = item.get("localName") or item.get("name") or "Holiday"
        return StatHoliday(name, holiday_date, region.code)
