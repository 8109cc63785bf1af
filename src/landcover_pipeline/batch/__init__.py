"""Year-range orchestration of analytics and exports."""

from landcover_pipeline.batch.driver import BatchDriver, Mode
from landcover_pipeline.batch.outcome import OutcomeStatus, YearOutcome

__all__ = ["BatchDriver", "Mode", "OutcomeStatus", "YearOutcome"]
