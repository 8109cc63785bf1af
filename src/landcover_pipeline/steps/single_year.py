"""Single-year helpers behind the ``stats``, ``export`` and ``resolve`` commands."""

from __future__ import annotations

import time
from typing import Dict, Iterable

from loguru import logger

from landcover_pipeline.export.job import ExportJob
from landcover_pipeline.raster.resolver import Found
from landcover_pipeline.steps.context import PipelineContext
from landcover_pipeline.zonal.results import Analysis


def run_year_stats(ctx: PipelineContext, year: int) -> Analysis:
    """Histogram and group areas for one year.

    Raises:
        MissingYearError: no frame for *year*.
    """
    frame = ctx.resolver.resolve_or_raise(year)
    future = ctx.engine.submit_analysis(frame, ctx.region, ctx.cfg.scale_meters, ctx.groups)
    return future.result()


def run_year_export(ctx: PipelineContext, year: int) -> ExportJob:
    """Submit the export for one year and return its handle."""
    frame = ctx.resolver.resolve_or_raise(year)
    return ctx.exporter.submit_from_config(frame, ctx.region, ctx.cfg.scale_meters, ctx.cfg.export)


def year_availability(ctx: PipelineContext, years: Iterable[int]) -> Dict[int, Dict]:
    """For each year: whether a frame exists, which one, and how many matched."""
    out: Dict[int, Dict] = {}
    for year in years:
        res = ctx.resolver.resolve(year)
        if isinstance(res, Found):
            out[year] = {
                "available": True,
                "source": res.frame.source,
                "acquired": res.frame.acquired.isoformat(),
                "candidates": res.candidates,
            }
        else:
            out[year] = {"available": False, "reason": res.reason}
    return out


def wait_for_export(ctx: PipelineContext, job: ExportJob, interval: float = 10.0,
                    timeout: float | None = None) -> ExportJob:
    """Poll *job* until it reaches a terminal state or *timeout* seconds pass."""
    deadline = None if timeout is None else time.monotonic() + timeout
    job = ctx.exporter.poll(job)
    while not job.state.terminal:
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning(f"Export {job.name} still {job.state.value} after {timeout:.0f}s")
            break
        time.sleep(interval)
        job = ctx.exporter.poll(job)
    return job
