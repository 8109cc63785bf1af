"""Immutable zonal statistics results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


def pixel_area_km2(scale_meters: float) -> float:
    """Area of one square pixel of side *scale_meters*, in km²."""
    return (scale_meters / 1000.0) ** 2


@dataclass(frozen=True)
class Histogram:
    """Pixel count per class code inside the ROI for one frame."""

    year: int
    scale_meters: float
    counts: Dict[int, int] = field(default_factory=dict)

    @property
    def total_pixels(self) -> int:
        return sum(self.counts.values())

    @property
    def total_area_km2(self) -> float:
        return self.total_pixels * pixel_area_km2(self.scale_meters)

    def to_dict(self) -> Dict[str, int]:
        # JSON object keys must be strings
        return {str(code): n for code, n in sorted(self.counts.items())}


@dataclass(frozen=True)
class AreaResult:
    """Area per class group for one year.

    Codes outside every group do not contribute to any entry, so the sum of
    ``areas_km2`` can be below ``total_area_km2``.
    """

    year: int
    scale_meters: float
    pixel_counts: Dict[str, int] = field(default_factory=dict)
    total_pixels: Optional[int] = None

    @property
    def areas_km2(self) -> Dict[str, float]:
        px = pixel_area_km2(self.scale_meters)
        return {name: n * px for name, n in self.pixel_counts.items()}

    @property
    def total_area_km2(self) -> Optional[float]:
        if self.total_pixels is None:
            return None
        return self.total_pixels * pixel_area_km2(self.scale_meters)

    def area(self, group: str) -> float:
        return self.areas_km2[group]


@dataclass(frozen=True)
class Analysis:
    histogram: Histogram
    areas: AreaResult

    def to_dict(self, ndigits: Optional[int] = None) -> Dict[str, Any]:
        """Presentation form; rounding applies here only."""
        areas = self.areas.areas_km2
        total = self.histogram.total_area_km2
        if ndigits is not None:
            areas = {k: round(v, ndigits) for k, v in areas.items()}
            total = round(total, ndigits)
        return {
            "histogram": self.histogram.to_dict(),
            "area_by_group": areas,
            "pixels_by_group": dict(self.areas.pixel_counts),
            "total_area_km2": total,
        }
