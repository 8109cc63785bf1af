"""Run analytics and/or exports for every year in a range on a bounded pool."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Sequence, Union

from loguru import logger

from landcover_pipeline.batch.outcome import OutcomeStatus, YearOutcome
from landcover_pipeline.config import ExportConfig
from landcover_pipeline.errors import ConfigError, MissingYearError
from landcover_pipeline.export.manager import ExportJobManager
from landcover_pipeline.raster.resolver import Missing, YearResolver
from landcover_pipeline.region.catalog import Region, RegionCatalog
from landcover_pipeline.zonal.engine import ZonalStatsEngine
from landcover_pipeline.zonal.groups import GroupingScheme


class Mode(str, Enum):
    ANALYZE = "analyze"
    EXPORT = "export"
    BOTH = "both"

    @property
    def analyzes(self) -> bool:
        return self in (Mode.ANALYZE, Mode.BOTH)

    @property
    def exports(self) -> bool:
        return self in (Mode.EXPORT, Mode.BOTH)


class BatchDriver:
    """Per-year orchestration.

    Every requested year gets exactly one :class:`YearOutcome`.  Errors in a
    year are recorded against that year; only an invalid ROI aborts the run,
    and it does so before any year is touched.
    """

    def __init__(
        self,
        resolver: YearResolver,
        engine: Optional[ZonalStatsEngine],
        exporter: Optional[ExportJobManager],
        *,
        scale: float,
        groups: GroupingScheme,
        export_cfg: Optional[ExportConfig] = None,
        concurrency: int = 4,
        on_outcome: Optional[Callable[[YearOutcome], None]] = None,
    ):
        if concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {concurrency}")
        self.resolver = resolver
        self.engine = engine
        self.exporter = exporter
        self.scale = scale
        self.groups = groups
        self.export_cfg = export_cfg or ExportConfig()
        self.concurrency = concurrency
        self.on_outcome = on_outcome
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop starting new years.  Jobs already accepted remotely keep running."""
        logger.warning("Batch cancellation requested")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(
        self,
        region: Union[Region, Sequence[Sequence[float]]],
        years: Iterable[int],
        mode: Union[Mode, str] = Mode.ANALYZE,
    ) -> Dict[int, YearOutcome]:
        """Process *years* and return outcomes keyed by year, ascending.

        Raises:
            GeometryError: *region* is not a valid ROI (nothing is processed).
            ConfigError: *mode* needs a component that was not provided.
        """
        if not isinstance(region, Region):
            region = RegionCatalog.validate(region)
        mode = Mode(mode)
        if mode.analyzes and self.engine is None:
            raise ConfigError(f"Mode {mode.value} needs a ZonalStatsEngine")
        if mode.exports and self.exporter is None:
            raise ConfigError(f"Mode {mode.value} needs an ExportJobManager")

        ordered = sorted(set(years))
        logger.info(
            f"Batch {mode.value}: {len(ordered)} years "
            f"({ordered[0] if ordered else '-'}..{ordered[-1] if ordered else '-'}), "
            f"concurrency={self.concurrency}"
        )

        outcomes: Dict[int, YearOutcome] = {}
        pool = ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="lc-year")
        try:
            futures = {
                pool.submit(self._process_year, region, year, mode): year
                for year in ordered
            }
            for fut in as_completed(futures):
                outcome = fut.result()
                outcomes[outcome.year] = outcome
                if self.on_outcome is not None:
                    self.on_outcome(outcome)
        except BaseException:
            # Queued years must not start once the caller is unwinding
            self.cancel()
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        pool.shutdown(wait=True)

        return {year: outcomes[year] for year in ordered}

    def _process_year(self, region: Region, year: int, mode: Mode) -> YearOutcome:
        with logger.contextualize(year=year):
            return self._run_year(region, year, mode)

    def _run_year(self, region: Region, year: int, mode: Mode) -> YearOutcome:
        if self._cancel.is_set():
            return YearOutcome.skipped(year, "cancelled")

        t0 = time.perf_counter()
        try:
            resolution = self.resolver.resolve(year)
        except Exception as e:
            logger.error(f"Year {year}: frame resolution failed: {e}")
            return YearOutcome.failed(year, e, duration_sec=time.perf_counter() - t0)

        if isinstance(resolution, Missing):
            return YearOutcome.skipped(
                year, MissingYearError(year), duration_sec=time.perf_counter() - t0,
            )

        frame = resolution.frame
        common = {"frame_source": frame.source, "ambiguous": resolution.ambiguous}
        analysis = None
        job = None
        try:
            if mode.analyzes:
                analysis = self.engine.analyze(frame, region, self.scale, self.groups)
            if mode.exports:
                job = self.exporter.submit_from_config(frame, region, self.scale, self.export_cfg)
        except Exception as e:
            logger.error(f"Year {year}: {type(e).__name__}: {e}")
            return YearOutcome.failed(
                year, e, analysis=analysis, export=job,
                duration_sec=time.perf_counter() - t0, **common,
            )

        if mode is Mode.BOTH:
            status = OutcomeStatus.ANALYZED_AND_EXPORTED
        elif mode is Mode.EXPORT:
            status = OutcomeStatus.EXPORTED
        else:
            status = OutcomeStatus.ANALYZED
        return YearOutcome(
            year=year,
            status=status,
            analysis=analysis,
            export=job,
            duration_sec=time.perf_counter() - t0,
            **common,
        )
