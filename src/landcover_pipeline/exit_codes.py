"""Structured exit codes for pipeline commands."""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable

from landcover_pipeline.batch.outcome import OutcomeStatus, YearOutcome


class ExitCode(IntEnum):
    SUCCESS = 0
    PARTIAL_FAILURE = 1
    TOTAL_FAILURE = 2
    BAD_INPUT = 3
    MISSING_DEPENDENCY = 4
    USER_ABORT = 5
    NO_WORK = 6  # Every requested year was skipped


def exit_code_from_outcomes(outcomes: Iterable[YearOutcome]) -> ExitCode:
    """Derive an exit code from per-year outcomes.  Skipped years are not failures."""
    outcomes = list(outcomes)
    if not outcomes:
        return ExitCode.NO_WORK
    failed = sum(1 for o in outcomes if o.status is OutcomeStatus.FAILED)
    skipped = sum(1 for o in outcomes if o.status is OutcomeStatus.SKIPPED)
    if failed == len(outcomes):
        return ExitCode.TOTAL_FAILURE
    if failed > 0:
        return ExitCode.PARTIAL_FAILURE
    if skipped == len(outcomes):
        return ExitCode.NO_WORK
    return ExitCode.SUCCESS
