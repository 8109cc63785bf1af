"""Raster frames, time-series queries and per-year resolution."""

from landcover_pipeline.raster.frame import RasterFrame

__all__ = ["RasterFrame"]
