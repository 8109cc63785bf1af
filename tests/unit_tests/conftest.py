"""Shared fixtures: a tiny synthetic land cover series over a 4x4 degree box."""
import itertools
import sys
from datetime import date

import numpy as np
import pytest
import rasterio
from loguru import logger
from rasterio.transform import from_origin

from landcover_pipeline.backends.base import ExportBackend
from landcover_pipeline.backends.local_catalog import InMemoryCatalog
from landcover_pipeline.backends.local_compute import LocalComputeBackend
from landcover_pipeline.errors import ComputeLimitExceeded
from landcover_pipeline.export.job import JobHandle, JobState
from landcover_pipeline.raster.frame import RasterFrame
from landcover_pipeline.raster.resolver import YearResolver
from landcover_pipeline.raster.timeseries import RasterTimeSeries
from landcover_pipeline.region.catalog import RegionCatalog
from landcover_pipeline.retry import RetryPolicy
from landcover_pipeline.zonal.engine import ZonalStatsEngine
from landcover_pipeline.zonal.groups import canonical_scheme

BAND = "LC_Type1"

# Six pixels of class 2 (Forest), two Savanna (6, 7), two Agriculture (12, 14),
# the rest water/ungrouped.
GRID = np.array([
    [0, 2, 2, 2],
    [2, 2, 2, 6],
    [7, 12, 14, 0],
    [16, 16, 13, 10],
], dtype=np.uint8)

TRANSFORM = from_origin(0.0, 4.0, 1.0, 1.0)


def write_frame(path, band=BAND, tags=None, crs="EPSG:4326", transform=TRANSFORM):
    """Write GRID as a single-band GeoTIFF the directory catalog can read."""
    with rasterio.open(
        path, "w", driver="GTiff", height=4, width=4, count=1, dtype="uint8",
        crs=crs, transform=transform,
    ) as dst:
        dst.write(GRID, 1)
        if band:
            dst.set_band_description(1, band)
        if tags:
            dst.update_tags(**tags)


def make_frame(year, grid=None, month=1, day=1, scale=500.0, nodata=None, source=None):
    return RasterFrame(
        band=BAND,
        acquired=date(year, month, day),
        scale_meters=scale,
        crs="EPSG:4326",
        source=source or f"memory://MCD12Q1/{year}_{month:02d}_{day:02d}",
        transform=TRANSFORM,
        data=GRID if grid is None else grid,
        nodata=nodata,
    )


@pytest.fixture(autouse=True)
def _reset_logger():
    """CLI tests swap the loguru sink; give every test a fresh stderr sink."""
    yield
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")


@pytest.fixture
def fast_retry():
    return RetryPolicy(max_attempts=3, initial_backoff=0.0, max_backoff=0.0, jitter=0.0)


@pytest.fixture
def region():
    return RegionCatalog.from_bounds(0.0, 0.0, 4.0, 4.0)


@pytest.fixture
def groups():
    return canonical_scheme()


@pytest.fixture
def catalog():
    # 2002 deliberately absent
    return InMemoryCatalog([make_frame(2001), make_frame(2003)])


@pytest.fixture
def series(catalog, fast_retry):
    return RasterTimeSeries(catalog, retry=fast_retry).select_band(BAND)


@pytest.fixture
def resolver(series):
    return YearResolver(series)


@pytest.fixture
def engine(fast_retry):
    with ZonalStatsEngine(LocalComputeBackend(), retry=fast_retry) as eng:
        yield eng


class RecordingExportBackend(ExportBackend):
    """Accepts every job and remembers what it was asked to do."""

    name = "recording"

    def __init__(self, reject=None):
        self.requests = []
        self.reject = reject
        self._ids = itertools.count(1)

    def submit_export(self, frame, request):
        if self.reject is not None:
            raise self.reject
        self.requests.append(request)
        return JobHandle(job_id=f"job-{next(self._ids)}", backend=self.name)

    def status(self, handle):
        return JobState.COMPLETED


class FlakyCompute(LocalComputeBackend):
    """Raises ComputeLimitExceeded for the first *failures* calls."""

    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    def reduce_region(self, *args, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise ComputeLimitExceeded("quota exceeded", pixels=10, max_pixels=1)
        return super().reduce_region(*args, **kwargs)


class FailingYearCompute(LocalComputeBackend):
    """Fails every reduction for the given years with a non-retryable error."""

    def __init__(self, years):
        self.years = set(years)

    def reduce_region(self, frame, *args, **kwargs):
        if frame.year in self.years:
            raise RuntimeError(f"backend exploded on {frame.year}")
        return super().reduce_region(frame, *args, **kwargs)
