"""Resolve a calendar year to one representative raster frame."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from loguru import logger

from landcover_pipeline.errors import AmbiguousYearError, MissingYearError
from landcover_pipeline.raster.frame import RasterFrame
from landcover_pipeline.raster.timeseries import RasterTimeSeries


@dataclass(frozen=True)
class Found:
    frame: RasterFrame
    candidates: int = 1

    @property
    def ambiguous(self) -> bool:
        return self.candidates > 1


@dataclass(frozen=True)
class Missing:
    year: int
    reason: str = "no frame acquired in this year"


Resolution = Union[Found, Missing]


class YearResolver:
    """Maps a year to the single frame acquired in it.

    Annual composites are expected to have exactly one frame per year.  When
    several match, the earliest acquisition is picked and the result is
    flagged ambiguous; with ``strict=True`` an :class:`AmbiguousYearError`
    is raised instead.
    """

    def __init__(self, series: RasterTimeSeries, strict: bool = False):
        self.series = series
        self.strict = strict

    def resolve(self, year: int) -> Resolution:
        frames = self.series.filter_year(year).frames()
        # Catalogs filter by date already; guard against loose backends
        frames = [fr for fr in frames if fr.year == year]
        if not frames:
            logger.info(f"Year {year}: no frame found")
            return Missing(year)
        if len(frames) > 1:
            if self.strict:
                raise AmbiguousYearError(year, len(frames))
            logger.warning(
                f"Year {year}: {len(frames)} frames matched; using earliest "
                f"({frames[0].acquired.isoformat()}, {frames[0].source})"
            )
        return Found(frame=frames[0], candidates=len(frames))

    def resolve_or_raise(self, year: int) -> RasterFrame:
        result = self.resolve(year)
        if isinstance(result, Missing):
            raise MissingYearError(year)
        return result.frame

    def available_years(self, years) -> Tuple[int, ...]:
        return tuple(y for y in years if isinstance(self.resolve(y), Found))
