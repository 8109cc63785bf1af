"""Zonal statistics over categorical rasters."""

from landcover_pipeline.zonal.groups import ClassGroup, GroupingScheme, canonical_scheme
from landcover_pipeline.zonal.results import Analysis, AreaResult, Histogram, pixel_area_km2

__all__ = [
    "Analysis",
    "AreaResult",
    "ClassGroup",
    "GroupingScheme",
    "Histogram",
    "canonical_scheme",
    "pixel_area_km2",
]
