"""External collaborators: raster catalog, compute engine, export execution."""

from landcover_pipeline.backends.base import CatalogBackend, ComputeBackend, ExportBackend

__all__ = ["CatalogBackend", "ComputeBackend", "ExportBackend"]
