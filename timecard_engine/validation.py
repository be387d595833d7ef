"""
Validation results and job code matching for the Timecard Generation Engine.

This module contains the structures used to report recoverable problems
(dropped entries) without aborting a generation request, and a fuzzy
matcher that suggests the intended job code for a mistyped one.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from rapidfuzz import fuzz, process

from config.settings import JOB_CODE_SUGGESTION_CUTOFF


class ValidationStatus(Enum):
    """Status of validation operations."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    WARNING = "WARNING"


@dataclass
class ValidationError:
    """Represents a single validation error or warning."""
    error_type: str
    message: str
    field_name: Optional[str] = None
    suggested_fix: Optional[str] = None
    entry_index: Optional[int] = None

    def __str__(self) -> str:
        """String representation of the validation error."""
        if self.field_name:
            return f"{self.error_type} in {self.field_name}: {self.message}"
        return f"{self.error_type}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.error_type,
            "message": self.message,
            "field": self.field_name,
            "suggestion": self.suggested_fix,
            "entry_index": self.entry_index,
        }


@dataclass
class ValidationResult:
    """
    Result of a validation operation.

    Contains the validation status, any errors found, and counters for the
    items that were checked.
    """
    status: ValidationStatus = ValidationStatus.SUCCESS
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationError] = field(default_factory=list)
    validated_items: int = 0

    @property
    def is_valid(self) -> bool:
        """Check if validation passed without errors."""
        return self.status != ValidationStatus.FAILED and len(self.errors) == 0

    @property
    def has_warnings(self) -> bool:
        """Check if validation has warnings."""
        return len(self.warnings) > 0

    def add_warning(self, error_type: str, message: str, field_name: Optional[str] = None,
                    suggested_fix: Optional[str] = None, entry_index: Optional[int] = None) -> None:
        """Add a validation warning."""
        self.warnings.append(ValidationError(error_type, message, field_name, suggested_fix, entry_index))
        if self.status == ValidationStatus.SUCCESS:
            self.status = ValidationStatus.WARNING

    def merge(self, other: 'ValidationResult') -> None:
        """Fold another result into this one."""
        for error in other.errors:
            self.errors.append(error)
            self.status = ValidationStatus.FAILED
        for warning in other.warnings:
            self.warnings.append(warning)
            if self.status == ValidationStatus.SUCCESS:
                self.status = ValidationStatus.WARNING
        self.validated_items += other.validated_items

    def get_error_summary(self) -> str:
        """Get a formatted summary of all errors and warnings."""
        lines = []

        if self.errors:
            lines.append("Validation errors:")
            for error in self.errors:
                lines.append(f"   - {error}")
                if error.suggested_fix:
                    lines.append(f"     Action: {error.suggested_fix}")

        if self.warnings:
            lines.append("Validation warnings:")
            for warning in self.warnings:
                lines.append(f"   - {warning}")
                if warning.suggested_fix:
                    lines.append(f"     Suggestion: {warning.suggested_fix}")

        if not lines:
            lines.append("Validation passed")

        return "\n".join(lines)


class JobCodeMatcher:
    """
    Suggests the closest known job code for an unknown one.

    Matching is advisory only: an unknown code is always dropped, the
    suggestion just ends up in the warning so the user can fix the entry.
    """

    def __init__(self, job_codes: Iterable[str], cutoff: float = JOB_CODE_SUGGESTION_CUTOFF):
        self.job_codes = list(job_codes)
        self.cutoff = cutoff

    def suggest(self, job_code: str) -> Optional[str]:
        """
        Best known code scoring at least ``cutoff`` (0-100), or None.
        """
        if not job_code or not self.job_codes:
            return None

        match = process.extractOne(
            job_code.strip().lower(),
            {code: code.lower() for code in self.job_codes},
            scorer=fuzz.ratio,
            score_cutoff=self.cutoff,
        )
        if match is None:
            return None
        # Mapping choices yield (choice, score, key)
        return match[2]
