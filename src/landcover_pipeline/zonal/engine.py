"""Zonal statistics engine: histograms and grouped areas against the ROI.

Each call describes a reduction evaluated by a :class:`ComputeBackend`,
possibly remotely.  ``submit_*`` methods return futures from a bounded
pool; the plain methods block.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from loguru import logger

from landcover_pipeline.backends.base import FREQUENCY_HISTOGRAM, SUM, ComputeBackend
from landcover_pipeline.raster.frame import RasterFrame
from landcover_pipeline.region.catalog import Region
from landcover_pipeline.retry import RetryPolicy, retry_with_backoff
from landcover_pipeline.zonal.groups import GroupingScheme
from landcover_pipeline.zonal.results import Analysis, AreaResult, Histogram


class ZonalStatsEngine:
    """Computes per-class histograms and per-group areas.

    Args:
        compute: Backend that evaluates ``reduce_region``.
        max_pixels: Ceiling on pixels processed per reduction; exceeding it
            raises :class:`ComputeLimitExceeded` (retried per *retry*).
        retry: Backoff schedule for pixel ceilings and transient backend errors.
        max_workers: Size of the pool behind ``submit_*``.
    """

    def __init__(
        self,
        compute: ComputeBackend,
        max_pixels: float = 1e13,
        retry: RetryPolicy = RetryPolicy(),
        max_workers: int = 2,
    ):
        self.compute = compute
        self.max_pixels = max_pixels
        self.retry = retry
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lc-zonal")

    # ------------------------------------------------------------------
    # Blocking API
    # ------------------------------------------------------------------

    def histogram(self, frame: RasterFrame, region: Region, scale: float) -> Histogram:
        """Pixel count per class code of *frame* inside *region* at *scale* metres."""
        result, _ = retry_with_backoff(
            lambda: self.compute.reduce_region(
                frame, region, FREQUENCY_HISTOGRAM, scale, self.max_pixels,
            ),
            f"Histogram {frame.year}",
            self.retry,
        )
        counts = {int(code): int(n) for code, n in sorted(result["histogram"].items())}
        return Histogram(year=frame.year, scale_meters=scale, counts=counts)

    def group_area(
        self,
        frame: RasterFrame,
        region: Region,
        scale: float,
        groups: GroupingScheme,
        total_pixels: Optional[int] = None,
    ) -> AreaResult:
        """Matched pixels and km² per class group; ungrouped codes count nowhere."""
        pixel_counts = {}
        for group in groups:
            result, _ = retry_with_backoff(
                lambda g=group: self.compute.reduce_region(
                    frame, region, SUM, scale, self.max_pixels, codes=g.codes(),
                ),
                f"Group area {group.name} {frame.year}",
                self.retry,
            )
            pixel_counts[group.name] = int(result["sum"])
            if total_pixels is None and result.get("pixels") is not None:
                total_pixels = int(result["pixels"])
        return AreaResult(
            year=frame.year,
            scale_meters=scale,
            pixel_counts=pixel_counts,
            total_pixels=total_pixels,
        )

    def analyze(
        self, frame: RasterFrame, region: Region, scale: float, groups: GroupingScheme,
    ) -> Analysis:
        hist = self.histogram(frame, region, scale)
        areas = self.group_area(frame, region, scale, groups, total_pixels=hist.total_pixels)
        logger.info(
            f"Year {frame.year}: {hist.total_pixels} ROI pixels, "
            + ", ".join(f"{k}={v:.2f} km²" for k, v in areas.areas_km2.items())
        )
        return Analysis(histogram=hist, areas=areas)

    # ------------------------------------------------------------------
    # Non-blocking API
    # ------------------------------------------------------------------

    def submit_histogram(self, frame: RasterFrame, region: Region, scale: float) -> Future:
        return self._pool.submit(self.histogram, frame, region, scale)

    def submit_analysis(
        self, frame: RasterFrame, region: Region, scale: float, groups: GroupingScheme,
    ) -> Future:
        return self._pool.submit(self.analyze, frame, region, scale, groups)

    def close(self) -> None:
        self._pool.shutdown(wait=True)

    def __enter__(self) -> "ZonalStatsEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
