"""Google Earth Engine adapters for the catalog, compute and export interfaces.

Requires the ``earthengine`` extra (``earthengine-api``) and an authenticated
session; ``ee`` is imported lazily so the rest of the package works without it.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from landcover_pipeline.backends.base import (
    FREQUENCY_HISTOGRAM,
    REDUCERS,
    CatalogBackend,
    ComputeBackend,
    ExportBackend,
)
from landcover_pipeline.errors import BackendQueryError, ComputeLimitExceeded, SubmissionError
from landcover_pipeline.export.job import ExportRequest, JobHandle, JobState
from landcover_pipeline.raster.frame import RasterFrame
from landcover_pipeline.region.catalog import Region

_TASK_STATES = {
    "UNSUBMITTED": JobState.SUBMITTED,
    "READY": JobState.SUBMITTED,
    "RUNNING": JobState.RUNNING,
    "COMPLETED": JobState.COMPLETED,
    "SUCCEEDED": JobState.COMPLETED,
    "FAILED": JobState.FAILED,
    "CANCEL_REQUESTED": JobState.CANCELLED,
    "CANCELLING": JobState.CANCELLED,
    "CANCELLED": JobState.CANCELLED,
}


def initialize(project: Optional[str] = None) -> None:
    """Initialize the Earth Engine client once per process."""
    import ee

    try:
        ee.Initialize(project=project)
    except Exception as e:
        raise BackendQueryError(f"Earth Engine initialization failed: {e}", original_exception=e) from e
    logger.info(f"Earth Engine initialized (project={project})")


def translate_ee_error(exc: Exception, what: str) -> Exception:
    """Map an ``ee.EEException`` onto the pipeline taxonomy by message."""
    msg = str(exc)
    low = msg.lower()
    if "too many pixels" in low or "maxpixels" in low:
        return ComputeLimitExceeded(f"{what}: {msg}")
    if "quota" in low or "too many concurrent" in low or "rate limit" in low:
        return ComputeLimitExceeded(f"{what}: {msg}")
    transient = any(kw in low for kw in ("timed out", "timeout", "deadline", "503", "500", "unavailable"))
    return BackendQueryError(f"{what}: {msg}", transient=transient, original_exception=exc)


def _ee_geometry(region: Region):
    import ee

    return ee.Geometry.Polygon(region.to_geojson()["coordinates"], None, False)


class EarthEngineCatalog(CatalogBackend):
    """Frames of an ``ee.ImageCollection`` (e.g. ``MODIS/061/MCD12Q1``)."""

    def __init__(self, collection_id: str, scale_meters: float):
        self.collection_id = collection_id
        self.scale_meters = scale_meters

    def query(self, band: str, start: date, end: date) -> List[RasterFrame]:
        import ee

        # filterDate end is exclusive
        col = (
            ee.ImageCollection(self.collection_id)
            .select(band)
            .filterDate(start.isoformat(), (end + timedelta(days=1)).isoformat())
            .sort("system:time_start")
        )
        try:
            rows = col.reduceColumns(
                ee.Reducer.toList(2), ["system:index", "system:time_start"]
            ).get("list").getInfo()
            crs = col.first().projection().crs().getInfo() if rows else "EPSG:4326"
        except ee.EEException as e:
            raise translate_ee_error(e, f"Query {self.collection_id}/{band}") from e

        frames = []
        for index, time_start in rows:
            acquired = datetime.fromtimestamp(time_start / 1000, tz=timezone.utc).date()
            frames.append(RasterFrame(
                band=band,
                acquired=acquired,
                scale_meters=self.scale_meters,
                crs=crs,
                source=f"{self.collection_id}/{index}",
            ))
        return frames


class EarthEngineCompute(ComputeBackend):
    """``reduceRegion`` on the Earth Engine servers."""

    def reduce_region(
        self,
        frame: RasterFrame,
        region: Region,
        reducer: str,
        scale: float,
        max_pixels: float,
        codes: Optional[Iterable[int]] = None,
    ) -> Dict[str, Any]:
        import ee

        if reducer not in REDUCERS:
            raise ValueError(f"Unknown reducer {reducer!r}; expected one of {REDUCERS}")
        geom = _ee_geometry(region)
        image = ee.Image(frame.source).select(frame.band).clip(geom)

        if reducer == FREQUENCY_HISTOGRAM:
            ee_reducer = ee.Reducer.frequencyHistogram().unweighted()
        else:
            members = sorted(set(codes or ()))
            image = image.remap(members, [1] * len(members), 0).rename(frame.band) if members else image.multiply(0)
            ee_reducer = ee.Reducer.sum().unweighted()

        try:
            value = image.reduceRegion(
                reducer=ee_reducer,
                geometry=geom,
                scale=scale,
                maxPixels=max_pixels,
            ).get(frame.band).getInfo()
        except ee.EEException as e:
            raise translate_ee_error(e, f"reduceRegion {reducer} {frame.source}") from e

        if reducer == FREQUENCY_HISTOGRAM:
            hist = {int(float(k)): int(round(v)) for k, v in (value or {}).items()}
            return {"histogram": hist, "pixels": sum(hist.values())}
        return {"sum": int(round(value or 0)), "pixels": None}


class EarthEngineExport(ExportBackend):
    """``Export.image.toDrive`` tasks; status polled through ``ee.data``."""

    name = "earthengine"

    def submit_export(self, frame: RasterFrame, request: ExportRequest) -> JobHandle:
        import ee

        geom = ee.Geometry.Polygon(request.region["coordinates"], None, False)
        image = ee.Image(frame.source).select(frame.band).clip(geom)
        try:
            task = ee.batch.Export.image.toDrive(
                image=image,
                description=request.name,
                folder=request.folder,
                fileNamePrefix=request.name,
                region=geom,
                scale=request.scale,
                crs=request.crs,
                maxPixels=request.max_pixels,
                fileFormat=request.format,
            )
            task.start()
        except ee.EEException as e:
            raise SubmissionError(f"Earth Engine rejected export {request.name}: {e}") from e
        logger.info(f"Started Earth Engine task {task.id} ({request.name})")
        return JobHandle(
            job_id=task.id,
            backend=self.name,
            location=f"drive://{request.folder}/{request.name}",
        )

    def status(self, handle: JobHandle) -> JobState:
        import ee

        try:
            info = ee.data.getTaskStatus(handle.job_id)[0]
        except ee.EEException as e:
            raise translate_ee_error(e, f"Task status {handle.job_id}") from e
        state = _TASK_STATES.get(info.get("state", ""), JobState.SUBMITTED)
        if state is JobState.FAILED:
            logger.warning(f"Task {handle.job_id} failed: {info.get('error_message')}")
        return state
