"""Export job descriptors and lifecycle states."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

SUPPORTED_FORMATS = ("GeoTIFF", "TFRecord")


class JobState(str, Enum):
    CREATED = "created"
    SUBMITTED = "submitted"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED)


@dataclass(frozen=True)
class ExportRequest:
    """Everything an execution backend needs to produce one extract."""

    year: int
    name: str
    folder: str
    region: Dict[str, Any]  # GeoJSON polygon
    scale: float
    crs: str
    max_pixels: float
    format: str = "GeoTIFF"


@dataclass(frozen=True)
class JobHandle:
    """Opaque backend identifier used to poll a submitted job."""

    job_id: str
    backend: str
    location: Optional[str] = None  # where the extract lands, when known


@dataclass(frozen=True)
class ExportJob:
    request: ExportRequest
    state: JobState = JobState.CREATED
    handle: Optional[JobHandle] = None
    submitted_at: Optional[str] = None

    @property
    def name(self) -> str:
        return self.request.name

    @property
    def year(self) -> int:
        return self.request.year

    def submitted(self, handle: JobHandle) -> "ExportJob":
        """Created -> Submitted, the only transition owned by this package."""
        if self.state is not JobState.CREATED:
            raise ValueError(f"Job {self.name} is {self.state.value}, not created")
        return replace(
            self,
            state=JobState.SUBMITTED,
            handle=handle,
            submitted_at=datetime.now(timezone.utc).isoformat(),
        )

    def with_state(self, state: JobState) -> "ExportJob":
        return replace(self, state=state)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "year": self.year,
            "folder": self.request.folder,
            "format": self.request.format,
            "crs": self.request.crs,
            "scale": self.request.scale,
            "state": self.state.value,
            "job_id": self.handle.job_id if self.handle else None,
            "backend": self.handle.backend if self.handle else None,
            "location": self.handle.location if self.handle else None,
            "submitted_at": self.submitted_at,
        }
