"""Outcome tracking, reporting and run metadata persistence."""

from landcover_pipeline.tracking.outcome_tracker import OutcomeTracker
from landcover_pipeline.tracking.run_metadata import PipelineRun, YearRecord
from landcover_pipeline.tracking.run_store import RunStore

__all__ = [
    "OutcomeTracker",
    "PipelineRun",
    "RunStore",
    "YearRecord",
]
