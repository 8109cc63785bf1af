"""Build, name, dedupe and submit per-year export jobs."""

from __future__ import annotations

import threading
from typing import List, Optional, Set

from loguru import logger

from landcover_pipeline.backends.base import ExportBackend
from landcover_pipeline.errors import DuplicateJobError, SubmissionError
from landcover_pipeline.export.job import SUPPORTED_FORMATS, ExportJob, ExportRequest
from landcover_pipeline.raster.frame import RasterFrame
from landcover_pipeline.region.catalog import Region


def job_name(naming_template: str, year: int) -> str:
    """Deterministic job name: ``{year}`` is substituted, or ``_<year>`` appended."""
    if "{year}" in naming_template:
        return naming_template.replace("{year}", str(year))
    return f"{naming_template}_{year}"


class ExportJobManager:
    """Submits export jobs fire-and-forget and hands back their handles.

    With ``dedupe=True`` a session-scoped set of submitted names rejects a
    second submission of the same name with :class:`DuplicateJobError`.
    The set is the only shared mutable state and sits behind one lock.
    """

    def __init__(self, backend: ExportBackend, folder: str = "exports", dedupe: bool = False):
        self.backend = backend
        self.folder = folder
        self.dedupe = dedupe
        self._seen: Set[str] = set()
        self._lock = threading.Lock()
        self.jobs: List[ExportJob] = []

    def submit(
        self,
        frame: RasterFrame,
        region: Region,
        naming_template: str,
        scale: float,
        crs: str,
        max_pixels: float,
        format: str = "GeoTIFF",
        folder: Optional[str] = None,
    ) -> ExportJob:
        """Name, enqueue and return the job without waiting for completion.

        Raises:
            DuplicateJobError: name already submitted and dedupe is on.
            SubmissionError: rejected by local checks or by the backend.
        """
        name = job_name(naming_template, frame.year)
        if format not in SUPPORTED_FORMATS:
            raise SubmissionError(f"Unsupported export format {format!r}; expected {SUPPORTED_FORMATS}")
        if max_pixels <= 0:
            raise SubmissionError(f"maxPixels must be positive, got {max_pixels}")

        job = ExportJob(request=ExportRequest(
            year=frame.year,
            name=name,
            folder=folder or self.folder,
            region=region.to_geojson(),
            scale=scale,
            crs=crs,
            max_pixels=max_pixels,
            format=format,
        ))

        if self.dedupe:
            with self._lock:
                if name in self._seen:
                    raise DuplicateJobError(name)
                self._seen.add(name)

        try:
            handle = self.backend.submit_export(frame, job.request)
        except SubmissionError:
            self._forget(name)
            raise
        except Exception as e:
            self._forget(name)
            raise SubmissionError(f"Export {name} could not be submitted: {e}") from e

        job = job.submitted(handle)
        with self._lock:
            self.jobs.append(job)
        logger.info(f"Submitted export {name} ({handle.backend} job {handle.job_id})")
        return job

    def submit_from_config(self, frame: RasterFrame, region: Region, scale: float, export_cfg) -> ExportJob:
        """Submit using an :class:`ExportConfig` destination."""
        return self.submit(
            frame,
            region,
            export_cfg.naming_template,
            scale,
            export_cfg.crs,
            export_cfg.max_pixels,
            format=export_cfg.format,
            folder=export_cfg.folder,
        )

    def _forget(self, name: str) -> None:
        # A rejected job never reached the backend; allow resubmission
        if self.dedupe:
            with self._lock:
                self._seen.discard(name)

    def poll(self, job: ExportJob) -> ExportJob:
        """Ask the backend for the job's current state."""
        if job.handle is None:
            return job
        state = self.backend.status(job.handle)
        return job if state is job.state else job.with_state(state)

    def seen_names(self) -> Set[str]:
        with self._lock:
            return set(self._seen)
