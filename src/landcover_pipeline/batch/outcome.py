"""Per-year outcome of a batch run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from landcover_pipeline.export.job import ExportJob
from landcover_pipeline.zonal.results import Analysis


class OutcomeStatus(str, Enum):
    ANALYZED = "analyzed"
    EXPORTED = "exported"
    ANALYZED_AND_EXPORTED = "analyzed_and_exported"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def succeeded(self) -> bool:
        return self not in (OutcomeStatus.SKIPPED, OutcomeStatus.FAILED)


@dataclass(frozen=True)
class YearOutcome:
    year: int
    status: OutcomeStatus
    reason: Optional[str] = None
    error_type: Optional[str] = None
    analysis: Optional[Analysis] = None
    export: Optional[ExportJob] = None
    frame_source: Optional[str] = None
    ambiguous: bool = False
    duration_sec: Optional[float] = None

    @classmethod
    def skipped(cls, year: int, reason: Exception | str, **kwargs) -> "YearOutcome":
        return cls(
            year=year,
            status=OutcomeStatus.SKIPPED,
            reason=str(reason),
            error_type=type(reason).__name__ if isinstance(reason, Exception) else None,
            **kwargs,
        )

    @classmethod
    def failed(cls, year: int, error: Exception, **kwargs) -> "YearOutcome":
        return cls(
            year=year,
            status=OutcomeStatus.FAILED,
            reason=str(error),
            error_type=type(error).__name__,
            **kwargs,
        )

    def to_record(self, run_id: Optional[str] = None, ndigits: Optional[int] = None) -> Dict[str, Any]:
        """One structured reporting record (a JSON line)."""
        analysis = self.analysis.to_dict(ndigits) if self.analysis else {}
        return {
            "run_id": run_id,
            "year": self.year,
            "status": self.status.value,
            "reason": self.reason,
            "error_type": self.error_type,
            "frame_source": self.frame_source,
            "ambiguous": self.ambiguous,
            "histogram": analysis.get("histogram"),
            "area_by_group": analysis.get("area_by_group"),
            "total_area_km2": analysis.get("total_area_km2"),
            "export": self.export.to_dict() if self.export else None,
            "duration_sec": self.duration_sec,
        }
