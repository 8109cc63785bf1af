"""Per-year raster export jobs."""

from landcover_pipeline.export.job import (
    ExportJob,
    ExportRequest,
    JobHandle,
    JobState,
    SUPPORTED_FORMATS,
)

__all__ = ["ExportJob", "ExportRequest", "JobHandle", "JobState", "SUPPORTED_FORMATS"]
