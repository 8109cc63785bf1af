"""Narrow interfaces to the external catalog, compute and export services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from landcover_pipeline.export.job import ExportRequest, JobHandle, JobState
from landcover_pipeline.raster.frame import RasterFrame
from landcover_pipeline.region.catalog import Region

FREQUENCY_HISTOGRAM = "frequencyHistogram"
SUM = "sum"
REDUCERS = (FREQUENCY_HISTOGRAM, SUM)


class CatalogBackend(ABC):
    """Source of timestamped categorical rasters."""

    @abstractmethod
    def query(self, band: str, start: date, end: date) -> List[RasterFrame]:
        """Frames of *band* acquired in ``[start, end]``, ascending by date.

        Raises:
            BackendQueryError: catalog unreachable or response malformed.
        """


class ComputeBackend(ABC):
    """Evaluates region reductions over a frame."""

    @abstractmethod
    def reduce_region(
        self,
        frame: RasterFrame,
        region: Region,
        reducer: str,
        scale: float,
        max_pixels: float,
        codes: Optional[Iterable[int]] = None,
    ) -> Dict[str, Any]:
        """Reduce *frame* over *region*.

        ``frequencyHistogram`` returns ``{"histogram": {code: count}}``.
        ``sum`` sums a 0/1 mask of pixels whose code is in *codes* and
        returns ``{"sum": n, "pixels": total}``.

        Raises:
            ComputeLimitExceeded: more than *max_pixels* pixels to process.
            BackendQueryError: authentication, timeout, malformed result.
        """


class ExportBackend(ABC):
    """Executes export jobs asynchronously."""

    name: str = "abstract"

    @abstractmethod
    def submit_export(self, frame: RasterFrame, request: ExportRequest) -> JobHandle:
        """Enqueue *request* and return without waiting for completion.

        Raises:
            SubmissionError: the backend rejected the job.
        """

    @abstractmethod
    def status(self, handle: JobHandle) -> JobState:
        """Current remote state of a submitted job."""

    def shutdown(self, wait: bool = True) -> None:
        """Release backend resources.  Remote jobs keep running."""
