"""Exception taxonomy for the land-cover pipeline.

Only :class:`GeometryError` is fatal to a whole run; everything else is
caught per year by the batch driver and recorded as that year's outcome.
"""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""


class ConfigError(PipelineError):
    """Run configuration is malformed (bad group spec, unknown backend...)."""


class GeometryError(PipelineError):
    """The region of interest is not a closed, simple polygon."""


class BackendQueryError(PipelineError):
    """Catalog or compute backend unreachable or returned a malformed response."""

    def __init__(self, message: str, *, transient: bool = False,
                 original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.transient = transient
        self.original_exception = original_exception


class MissingYearError(PipelineError):
    """No frame exists for a requested year."""

    def __init__(self, year: int):
        super().__init__(f"No raster frame available for year {year}")
        self.year = year


class AmbiguousYearError(PipelineError):
    """More than one frame matched a year and the resolver is strict."""

    def __init__(self, year: int, count: int):
        super().__init__(f"{count} raster frames matched year {year}; expected exactly one")
        self.year = year
        self.count = count


class ComputeLimitExceeded(PipelineError):
    """Pixel or quota ceiling hit while computing zonal statistics."""

    def __init__(self, message: str, *, pixels: Optional[int] = None,
                 max_pixels: Optional[float] = None):
        super().__init__(message)
        self.pixels = pixels
        self.max_pixels = max_pixels


class SubmissionError(PipelineError):
    """Export job rejected at submit time."""


class DuplicateJobError(SubmissionError):
    """An export with the same name was already submitted in this session."""

    def __init__(self, name: str):
        super().__init__(f"Export job {name!r} was already submitted in this session")
        self.name = name
