"""
Entry classification for the Timecard Generation Engine.

Turns raw time entries into per-(job, day) hour aggregates. Each entry lands
wholly in exactly one of the regular / night / overtime buckets; entries that
cannot be placed are dropped with a warning instead of failing the request.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .errors import InvalidEntryError
from .models import HourCategory, HoursBreakdown, Job, PayPeriod, TimeEntry
from .validation import JobCodeMatcher, ValidationResult

logger = logging.getLogger(__name__)

CellKey = Tuple[str, int]


@dataclass
class ClassificationResult:
    """
    Aggregated hours for one pay period.

    ``breakdowns`` maps ``(job_code, day_index)`` to the hours of that cell.
    Only keys that received at least one entry are present.
    """
    breakdowns: Dict[CellKey, HoursBreakdown] = field(default_factory=OrderedDict)
    validation: ValidationResult = field(default_factory=ValidationResult)
    accepted: List[TimeEntry] = field(default_factory=list)
    dropped: int = 0

    @property
    def warnings(self):
        return self.validation.warnings

    @property
    def totals(self) -> HoursBreakdown:
        """Per-category totals across every job and day."""
        totals = HoursBreakdown()
        for breakdown in self.breakdowns.values():
            for category in HourCategory:
                totals.add(category, breakdown.get(category))
        return totals

    def to_dict(self) -> Dict[str, Any]:
        totals = self.totals
        return {
            "cells": [
                {"job_code": job_code, "day_index": day_index, **breakdown.to_dict()}
                for (job_code, day_index), breakdown in self.breakdowns.items()
            ],
            "totals": {**totals.to_dict(), "total": totals.total},
            "accepted": len(self.accepted),
            "dropped": self.dropped,
            "warnings": [warning.to_dict() for warning in self.warnings],
        }


class EntryClassifier:
    """
    Classifies time entries into hour buckets per job and day.

    Precedence is overtime > night > regular. Hours are added as floats
    with no rounding, so the sum over all buckets equals the sum of the
    accepted entries' hours.
    """

    def parse_entries(self, raw_entries: Iterable[Union[Dict[str, Any], TimeEntry]],
                      validation: Optional[ValidationResult] = None) -> Tuple[List[TimeEntry], ValidationResult]:
        """
        Parse raw entry dictionaries, dropping malformed ones with a warning.

        Args:
            raw_entries: Wire-format dictionaries or TimeEntry objects
            validation: Result to record warnings into (a new one by default)

        Returns:
            Tuple of (parsed entries, validation result)
        """
        validation = validation if validation is not None else ValidationResult()
        entries: List[TimeEntry] = []

        for index, raw in enumerate(raw_entries):
            validation.validated_items += 1
            if isinstance(raw, TimeEntry):
                entries.append(raw)
                continue
            try:
                entries.append(TimeEntry.from_dict(raw))
            except InvalidEntryError as e:
                validation.add_warning("InvalidEntry", str(e), field_name=e.field_name, entry_index=index)
                logger.warning(f"Dropping entry {index}: {e}")

        return entries, validation

    def classify(self, entries: Iterable[Union[Dict[str, Any], TimeEntry]], jobs: List[Job],
                 period: PayPeriod) -> ClassificationResult:
        """
        Aggregate entries into ``(job_code, day_index)`` hour breakdowns.

        Args:
            entries: Raw dictionaries or TimeEntry objects
            jobs: Jobs of the request; entries for other codes are dropped
            period: Pay period the entries must fall into

        Returns:
            ClassificationResult with breakdowns, warnings and counts
        """
        entries = list(entries)
        result = ClassificationResult()
        parsed, result.validation = self.parse_entries(entries)
        result.dropped = len(entries) - len(parsed)

        known_codes = {job.code for job in jobs}
        matcher = JobCodeMatcher(known_codes)

        for entry in parsed:
            if entry.job_code not in known_codes:
                suggestion = matcher.suggest(entry.job_code)
                result.validation.add_warning(
                    "UnknownJob",
                    f"Entry on {entry.entry_date} references unknown job code '{entry.job_code}'",
                    field_name="job_code",
                    suggested_fix=f"Did you mean '{suggestion}'?" if suggestion else None,
                )
                logger.warning(f"Dropping entry on {entry.entry_date}: unknown job code '{entry.job_code}'")
                result.dropped += 1
                continue

            if not period.contains(entry.entry_date):
                result.validation.add_warning(
                    "OutsidePeriod",
                    f"Entry on {entry.entry_date} is outside pay period {period.start} to {period.end}",
                    field_name="date",
                )
                logger.warning(f"Dropping entry on {entry.entry_date}: outside pay period")
                result.dropped += 1
                continue

            key = (entry.job_code, period.day_index(entry.entry_date))
            if key not in result.breakdowns:
                result.breakdowns[key] = HoursBreakdown()
            result.breakdowns[key].add(entry.category, entry.hours)
            result.accepted.append(entry)

        logger.info(
            f"Classified {len(result.accepted)} entries into {len(result.breakdowns)} cells "
            f"({result.dropped} dropped)"
        )
        return result
