"""Catalogs backed by GeoTIFF files on disk or by frames held in memory."""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import numpy as np
from loguru import logger

from landcover_pipeline.backends.base import CatalogBackend
from landcover_pipeline.errors import BackendQueryError
from landcover_pipeline.raster.frame import RasterFrame

# ..._2001-01-01.tif, ..._20010101.tif, ..._2001.tif
DATE_RE = re.compile(
    r"(?P<y>(19|20)\d{2})(?:[-_]?(?P<m>[01]\d)[-_]?(?P<d>[0-3]\d))?$"
)


def parse_acquisition_date(stem: str) -> Optional[date]:
    """Pull the trailing acquisition date out of a file stem."""
    m = DATE_RE.search(stem)
    if m is None:
        return None
    year = int(m.group("y"))
    if m.group("m"):
        try:
            return date(year, int(m.group("m")), int(m.group("d")))
        except ValueError:
            return None
    return date(year, 1, 1)


class InMemoryCatalog(CatalogBackend):
    """Catalog over a fixed list of frames (tests, notebooks)."""

    def __init__(self, frames: Iterable[RasterFrame]):
        self._frames: Tuple[RasterFrame, ...] = tuple(
            sorted(frames, key=lambda fr: fr.acquired)
        )

    def query(self, band: str, start: date, end: date) -> List[RasterFrame]:
        return [
            fr for fr in self._frames
            if fr.band == band and start <= fr.acquired <= end
        ]


class DirectoryCatalog(CatalogBackend):
    """Annual GeoTIFFs in a directory, one file per acquisition.

    The acquisition date comes from the end of the file name.  The band is
    matched against the rasterio band descriptions; single-band files with
    no description are taken as the requested band.
    """

    def __init__(self, root: str, scale_meters: float, pattern: str = "*.tif"):
        self.root = Path(root)
        self.scale_meters = scale_meters
        self.pattern = pattern

    def _candidates(self, start: date, end: date) -> List[Tuple[date, Path]]:
        if not self.root.is_dir():
            raise BackendQueryError(f"Catalog directory {self.root} does not exist")
        found = []
        for path in sorted(self.root.glob(self.pattern)):
            acquired = parse_acquisition_date(path.stem)
            if acquired is None:
                logger.debug(f"Skipping {path.name}: no acquisition date in name")
                continue
            if start <= acquired <= end:
                found.append((acquired, path))
        return sorted(found)

    def query(self, band: str, start: date, end: date) -> List[RasterFrame]:
        import rasterio
        from rasterio.errors import RasterioIOError

        frames: List[RasterFrame] = []
        for acquired, path in self._candidates(start, end):
            try:
                with rasterio.open(path) as src:
                    index = _band_index(src.descriptions, band)
                    if index is None:
                        logger.debug(f"{path.name} has no band {band!r}")
                        continue
                    arr = src.read(index)
                    nodata = src.nodatavals[index - 1]
                    frames.append(RasterFrame(
                        band=band,
                        acquired=acquired,
                        scale_meters=_native_scale(src, self.scale_meters),
                        crs=src.crs.to_string() if src.crs else "EPSG:4326",
                        source=str(path),
                        transform=src.transform,
                        data=arr if np.issubdtype(arr.dtype, np.integer) else arr.astype(np.int32),
                        nodata=int(nodata) if nodata is not None else None,
                    ))
            except RasterioIOError as e:
                raise BackendQueryError(f"Cannot read {path}: {e}", original_exception=e) from e
        return frames


def _native_scale(src, fallback: float) -> float:
    """Pixel size in metres: the SCALE_METERS tag, else the projected resolution, else *fallback*."""
    tagged = src.tags().get("SCALE_METERS")
    if tagged is not None:
        return float(tagged)
    if src.crs is not None and src.crs.is_projected:
        _, metres_per_unit = src.crs.linear_units_factor
        return float(src.res[0]) * metres_per_unit
    return float(fallback)


def _band_index(descriptions: Tuple[Optional[str], ...], band: str) -> Optional[int]:
    for i, desc in enumerate(descriptions, start=1):
        if desc == band:
            return i
    if len(descriptions) == 1 and not descriptions[0]:
        return 1
    return None
