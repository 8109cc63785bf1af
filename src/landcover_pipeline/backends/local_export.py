"""Export backend that writes clipped GeoTIFFs through obstore.

Validation happens on the caller's thread so rejections surface at submit
time; clipping, encoding and upload run on a bounded thread pool.
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as futures_wait
from typing import Dict, Tuple

import numpy as np
from affine import Affine
from loguru import logger

from landcover_pipeline.backends.base import ExportBackend
from landcover_pipeline.backends.local_compute import region_geometry, roi_mask, sample_grid
from landcover_pipeline.errors import BackendQueryError, SubmissionError
from landcover_pipeline.export.job import ExportRequest, JobHandle, JobState
from landcover_pipeline.raster.frame import RasterFrame
from landcover_pipeline.region.catalog import Region
from landcover_pipeline.storage.export_paths import export_key, export_location
from landcover_pipeline.storage.obstore_utils import from_dest, object_exists, obstore_put_bytes


def _fill_value(frame: RasterFrame) -> int:
    if frame.nodata is not None:
        return frame.nodata
    # MCD12Q1 fill value
    return 255 if frame.data.dtype == np.uint8 else 0


def roi_window(region: Region, frame: RasterFrame, transform: Affine, shape) -> Tuple[int, int, int, int]:
    """Pixel window (row0, row1, col0, col1) covering the ROI bounds, clamped to *shape*."""
    from rasterio.features import bounds as geom_bounds

    left, bottom, right, top = geom_bounds(region_geometry(region, frame.crs))
    inv = ~transform
    c0, r0 = inv @ (left, top)
    c1, r1 = inv @ (right, bottom)
    col0, col1 = int(np.floor(min(c0, c1))), int(np.ceil(max(c0, c1)))
    row0, row1 = int(np.floor(min(r0, r1))), int(np.ceil(max(r0, r1)))
    return max(row0, 0), min(row1, shape[0]), max(col0, 0), min(col1, shape[1])


def clip_frame(frame: RasterFrame, region: Region, scale: float) -> Tuple[np.ndarray, Affine]:
    """Crop *frame* to the ROI bounding window and blank pixels outside the ROI."""
    grid, transform = sample_grid(frame, scale)
    row0, row1, col0, col1 = roi_window(region, frame, transform, grid.shape)
    if row0 >= row1 or col0 >= col1:
        raise BackendQueryError(f"ROI does not overlap frame {frame.source}")
    sub = np.array(grid[row0:row1, col0:col1])
    sub_transform = transform @ Affine.translation(col0, row0)
    mask = roi_mask(frame, region, sub, sub_transform)
    sub[~mask] = _fill_value(frame)
    return sub, sub_transform


def encode_geotiff(arr: np.ndarray, transform: Affine, crs: str, nodata: int, dst_crs: str) -> bytes:
    """Encode a single-band categorical GeoTIFF, reprojecting (nearest) when *dst_crs* differs."""
    from rasterio.crs import CRS
    from rasterio.io import MemoryFile
    from rasterio.warp import Resampling, calculate_default_transform, reproject

    src_crs = CRS.from_user_input(crs)
    target = CRS.from_user_input(dst_crs)
    height, width = arr.shape
    out, out_transform = arr, transform
    if src_crs != target:
        left = transform.c
        top = transform.f
        right = left + transform.a * width
        bottom = top + transform.e * height
        out_transform, w, h = calculate_default_transform(
            src_crs, target, width, height, left=left, bottom=bottom, right=right, top=top,
        )
        out = np.full((h, w), nodata, dtype=arr.dtype)
        reproject(
            arr, out,
            src_transform=transform, src_crs=src_crs,
            dst_transform=out_transform, dst_crs=target,
            src_nodata=nodata, dst_nodata=nodata,
            resampling=Resampling.nearest,
        )

    profile = {
        "driver": "GTiff",
        "height": out.shape[0],
        "width": out.shape[1],
        "count": 1,
        "dtype": out.dtype.name,
        "crs": target,
        "transform": out_transform,
        "nodata": nodata,
        "compress": "lzw",
    }
    with MemoryFile() as memfile:
        with memfile.open(**profile) as dst:
            dst.write(out, 1)
        return memfile.read()


class LocalExportBackend(ExportBackend):
    """Write per-year extracts to a local directory or object-store prefix."""

    name = "local"

    def __init__(self, max_workers: int = 2, root: str | None = None):
        self.root = root
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lc-export")
        self._jobs: Dict[str, Tuple[Future, str, str]] = {}
        self._lock = threading.Lock()

    def _folder(self, folder: str) -> str:
        if self.root is None or folder.startswith(("s3://", "gs://", "az://", "/")):
            return folder
        return f"{self.root.rstrip('/')}/{folder}"

    def _validate(self, frame: RasterFrame, request: ExportRequest) -> None:
        from rasterio.crs import CRS
        from rasterio.errors import CRSError

        if request.format != "GeoTIFF":
            raise SubmissionError(f"Local export supports GeoTIFF only, got {request.format!r}")
        if not frame.is_local:
            raise SubmissionError(f"Frame {frame.source} has no local grid to export")
        try:
            CRS.from_user_input(request.crs)
        except CRSError as e:
            raise SubmissionError(f"Invalid CRS {request.crs!r}: {e}") from e

    def submit_export(self, frame: RasterFrame, request: ExportRequest) -> JobHandle:
        self._validate(frame, request)
        region = Region(ring=tuple(tuple(p) for p in request.region["coordinates"][0]))

        # Estimate pixels from the ROI window before accepting the job
        try:
            grid, transform = sample_grid(frame, request.scale)
        except BackendQueryError as e:
            raise SubmissionError(str(e)) from e
        row0, row1, col0, col1 = roi_window(region, frame, transform, grid.shape)
        if row0 >= row1 or col0 >= col1:
            raise SubmissionError(f"ROI does not overlap frame {frame.source}")
        est = (row1 - row0) * (col1 - col0)
        if est > request.max_pixels:
            raise SubmissionError(
                f"Export {request.name} needs ~{est:.0f} pixels, above maxPixels={request.max_pixels:g}"
            )

        folder = self._folder(request.folder)
        key = export_key(request.name, request.format)
        job_id = f"local-{uuid.uuid4().hex[:12]}"
        fut = self._pool.submit(self._run, frame, region, request, folder, key)
        with self._lock:
            self._jobs[job_id] = (fut, folder, key)
        logger.debug(f"Queued export {request.name} as {job_id}")
        return JobHandle(
            job_id=job_id,
            backend=self.name,
            location=export_location(folder, request.name, request.format),
        )

    def _run(self, frame: RasterFrame, region: Region, request: ExportRequest,
             folder: str, key: str) -> str:
        arr, transform = clip_frame(frame, region, request.scale)
        data = encode_geotiff(arr, transform, frame.crs, _fill_value(frame), request.crs)
        store = from_dest(folder)
        obstore_put_bytes(store, key, data)
        logger.info(f"Export {request.name} written to {folder}/{key} ({len(data) / 1024:.1f} KB)")
        return key

    def status(self, handle: JobHandle) -> JobState:
        with self._lock:
            entry = self._jobs.get(handle.job_id)
        if entry is None:
            # Job from another session: completion is visible only as the object
            if handle.location is None:
                return JobState.SUBMITTED
            folder, _, key = handle.location.rpartition("/")
            return JobState.COMPLETED if object_exists(from_dest(folder), key) else JobState.SUBMITTED
        fut = entry[0]
        if fut.cancelled():
            return JobState.CANCELLED
        if not fut.done():
            return JobState.RUNNING if fut.running() else JobState.SUBMITTED
        if fut.exception() is not None:
            logger.warning(f"Export {handle.job_id} failed: {fut.exception()}")
            return JobState.FAILED
        return JobState.COMPLETED

    def wait(self, handle: JobHandle, timeout: float | None = None) -> JobState:
        """Block until a job from this session finishes (tests and small runs)."""
        with self._lock:
            entry = self._jobs.get(handle.job_id)
        if entry is not None:
            futures_wait([entry[0]], timeout=timeout)
        return self.status(handle)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
