"""Yearly land-cover statistics and per-year raster export pipeline."""

__version__ = "0.1.0"
