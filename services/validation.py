"""Pre-write validation of candidate rows against a target status."""
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Sequence

from models.purchasing import Column, is_blank
from schemas.statuses import Status

logger = logging.getLogger(__name__)


def recommended_warning(column: Column) -> str:
    return (
        f'One or more items is missing a value for "{column.label}". '
        "Will mark anyway with default value."
    )


def required_error(column: Column) -> str:
    return (
        f'Cannot submit: one or more items is missing a value for "{column.label}". '
        "This value is required."
    )


@dataclass
class ValidationResult:
    """Outcome of validating one row or a whole batch."""
    warnings: List[str] = field(default_factory=list)
    blocking: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.blocking

    def merge(self, other: "ValidationResult") -> None:
        """Fold another result in, keeping each message once."""
        for message in other.warnings:
            if message not in self.warnings:
                self.warnings.append(message)
        for message in other.blocking:
            if message not in self.blocking:
                self.blocking.append(message)


def validate_row(row: Sequence[Any], status: Status) -> ValidationResult:
    """Check a row's values against `status`' recommended and required columns.

    Every empty recommended column yields a warning; every empty required
    column yields a blocking failure. Status eligibility is not checked here.
    """
    result = ValidationResult()
    for column in status.recommended_columns:
        if is_blank(column.value_in(row)):
            result.warnings.append(recommended_warning(column))
    for column in status.required_columns:
        if is_blank(column.value_in(row)):
            result.blocking.append(required_error(column))
    return result


def validate_rows(rows: Iterable[Sequence[Any]], status: Status) -> ValidationResult:
    """Validate every row of a batch, collecting all warnings and failures."""
    result = ValidationResult()
    for row in rows:
        result.merge(validate_row(row, status))
    if result.blocking:
        logger.info(f"Validation for {status.text!r} blocked: {result.blocking}")
    elif result.warnings:
        logger.info(f"Validation for {status.text!r} passed with warnings: {result.warnings}")
    return result
