"""Lazy description of a catalog query: band selection and date filtering."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import List, Optional

from loguru import logger

from landcover_pipeline.backends.base import CatalogBackend
from landcover_pipeline.errors import BackendQueryError
from landcover_pipeline.raster.frame import RasterFrame
from landcover_pipeline.retry import RetryPolicy, retry_with_backoff


@dataclass(frozen=True)
class RasterTimeSeries:
    """Immutable query over a :class:`CatalogBackend`.

    ``select_band`` and ``filter_date_range`` only narrow the description;
    the catalog is hit when :meth:`frames` is called.
    """

    catalog: CatalogBackend
    band: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None
    retry: RetryPolicy = RetryPolicy()

    def select_band(self, name: str) -> "RasterTimeSeries":
        return replace(self, band=name)

    def filter_date_range(self, start: date, end: date) -> "RasterTimeSeries":
        """Restrict to the inclusive period ``[start, end]``, intersected with any prior range."""
        if start > end:
            raise ValueError(f"Empty date range: {start} > {end}")
        new_start = start if self.start is None else max(start, self.start)
        new_end = end if self.end is None else min(end, self.end)
        return replace(self, start=new_start, end=new_end)

    def filter_year(self, year: int) -> "RasterTimeSeries":
        return self.filter_date_range(date(year, 1, 1), date(year, 12, 31))

    @property
    def is_empty_range(self) -> bool:
        return self.start is not None and self.end is not None and self.start > self.end

    def frames(self) -> List[RasterFrame]:
        """Materialize the query, ascending by acquisition date.

        Raises:
            BackendQueryError: catalog failure (after retries when transient).
        """
        if self.band is None:
            raise BackendQueryError("No band selected; call select_band() first")
        if self.is_empty_range:
            return []
        start = self.start or date.min
        end = self.end or date.max

        def _query() -> List[RasterFrame]:
            try:
                return self.catalog.query(self.band, start, end)
            except BackendQueryError:
                raise
            except Exception as e:
                raise BackendQueryError(
                    f"Catalog query failed for {self.band} {start}..{end}: {e}",
                    original_exception=e,
                ) from e

        frames, attempts = retry_with_backoff(
            _query, f"Catalog query {self.band} {start}..{end}", self.retry,
        )
        logger.debug(f"Catalog returned {len(frames)} frames for {self.band} {start}..{end}")
        return sorted(frames, key=lambda fr: fr.acquired)
