"""Batch step: analytics and/or exports for a year range, with reports."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from loguru import logger

from landcover_pipeline.batch.driver import BatchDriver, Mode
from landcover_pipeline.batch.outcome import OutcomeStatus, YearOutcome
from landcover_pipeline.steps.context import PipelineContext
from landcover_pipeline.tracking import OutcomeTracker, PipelineRun, RunStore


def _run_status(outcomes: Dict[int, YearOutcome], cancelled: bool) -> str:
    if cancelled:
        return "cancelled"
    statuses = [o.status for o in outcomes.values()]
    if statuses and all(s is OutcomeStatus.FAILED for s in statuses):
        return "failed"
    if any(s is OutcomeStatus.FAILED for s in statuses):
        return "partial"
    return "completed"


def run_batch(
    ctx: PipelineContext,
    mode: Mode | str,
    run_id: str,
    *,
    years: Optional[List[int]] = None,
    report_dir: str = "reports",
    store: Optional[RunStore] = None,
) -> Tuple[Dict[int, YearOutcome], OutcomeTracker]:
    """Run the batch driver over *years* (default: configured range).

    Outcomes are streamed into an :class:`OutcomeTracker` and, when *store*
    is given, into persisted run metadata after each year.
    """
    mode = Mode(mode)
    years = years or ctx.cfg.years
    tracker = OutcomeTracker(report_dir, run_id=run_id)

    pipeline_run = PipelineRun(
        run_id=run_id,
        started_at=datetime.now(timezone.utc).isoformat(),
        config_snapshot=dataclasses.asdict(ctx.cfg),
        mode=mode.value,
    )
    if store is not None:
        store.save(pipeline_run)

    def _on_outcome(outcome: YearOutcome) -> None:
        tracker.add_outcome(outcome)
        pipeline_run.record_outcome(outcome)
        logger.info(f"Year {outcome.year}: {outcome.status.value}"
                    + (f" ({outcome.reason})" if outcome.reason else ""))
        if store is not None:
            store.save(pipeline_run)

    driver = BatchDriver(
        ctx.resolver,
        ctx.engine,
        ctx.exporter,
        scale=ctx.cfg.scale_meters,
        groups=ctx.groups,
        export_cfg=ctx.cfg.export,
        concurrency=ctx.cfg.concurrency,
        on_outcome=_on_outcome,
    )
    try:
        outcomes = driver.run(ctx.region, years, mode)
    except KeyboardInterrupt:
        # The driver has already cancelled its queued years
        pipeline_run.status = "cancelled"
        pipeline_run.finished_at = datetime.now(timezone.utc).isoformat()
        if store is not None:
            store.save(pipeline_run)
        raise

    pipeline_run.status = _run_status(outcomes, driver.cancelled)
    pipeline_run.finished_at = datetime.now(timezone.utc).isoformat()
    if store is not None:
        store.save(pipeline_run)

    tracker.print_summary()
    tracker.save_reports()
    return outcomes, tracker
