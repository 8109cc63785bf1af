"""In-process numpy evaluation of region reductions over local frames."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np
from affine import Affine

from landcover_pipeline.backends.base import FREQUENCY_HISTOGRAM, REDUCERS, ComputeBackend
from landcover_pipeline.errors import BackendQueryError, ComputeLimitExceeded
from landcover_pipeline.raster.frame import RasterFrame
from landcover_pipeline.region.catalog import Region


def resample_step(frame: RasterFrame, scale: float) -> int:
    """Integer decimation factor taking *frame* to *scale* metres."""
    factor = scale / frame.scale_meters
    step = int(round(factor))
    if step < 1 or abs(factor - step) > 1e-6:
        raise BackendQueryError(
            f"Scale {scale} m is not an integer multiple of the native "
            f"{frame.scale_meters} m of {frame.source}"
        )
    return step


def sample_grid(frame: RasterFrame, scale: float) -> Tuple[np.ndarray, Affine]:
    """Nearest-neighbour view of the frame grid at *scale*.

    Categorical data is never averaged; each coarse pixel takes the code of
    the fine pixel nearest its centre.
    """
    step = resample_step(frame, scale)
    if step == 1:
        return frame.data, frame.transform
    rows, cols = (frame.data.shape[0] // step) * step, (frame.data.shape[1] // step) * step
    off = step // 2
    grid = frame.data[off:rows:step, off:cols:step]
    return grid, frame.transform @ Affine.scale(step)


def region_geometry(region: Region, crs: str) -> Dict[str, Any]:
    """ROI GeoJSON in the frame's CRS."""
    from rasterio.crs import CRS
    from rasterio.warp import transform_geom

    geom = region.to_geojson()
    if CRS.from_user_input(crs) == CRS.from_epsg(4326):
        return geom
    return transform_geom("EPSG:4326", crs, geom)


def roi_mask(frame: RasterFrame, region: Region, grid: np.ndarray, transform: Affine) -> np.ndarray:
    """Boolean mask of grid pixels whose centre falls inside the ROI."""
    from rasterio.features import geometry_mask

    mask = geometry_mask(
        [region_geometry(region, frame.crs)],
        out_shape=grid.shape,
        transform=transform,
        invert=True,
    )
    if frame.nodata is not None:
        mask &= grid != frame.nodata
    return mask


class LocalComputeBackend(ComputeBackend):
    """Evaluates reductions with numpy over frames that carry their grid."""

    def reduce_region(
        self,
        frame: RasterFrame,
        region: Region,
        reducer: str,
        scale: float,
        max_pixels: float,
        codes: Optional[Iterable[int]] = None,
    ) -> Dict[str, Any]:
        if reducer not in REDUCERS:
            raise ValueError(f"Unknown reducer {reducer!r}; expected one of {REDUCERS}")
        if not frame.is_local:
            raise BackendQueryError(f"Frame {frame.source} has no local grid to reduce")

        grid, transform = sample_grid(frame, scale)
        mask = roi_mask(frame, region, grid, transform)
        n_pixels = int(mask.sum())
        if n_pixels > max_pixels:
            raise ComputeLimitExceeded(
                f"{n_pixels} pixels in ROI exceed maxPixels={max_pixels:g} at {scale} m",
                pixels=n_pixels,
                max_pixels=max_pixels,
            )
        values = grid[mask]

        if reducer == FREQUENCY_HISTOGRAM:
            uniq, counts = np.unique(values, return_counts=True)
            return {
                "histogram": {int(c): int(n) for c, n in zip(uniq, counts)},
                "pixels": n_pixels,
            }

        member = np.isin(values, np.fromiter(codes or (), dtype=np.int64))
        return {"sum": int(member.sum()), "pixels": n_pixels}
