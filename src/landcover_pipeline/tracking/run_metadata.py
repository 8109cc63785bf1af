"""Per-run metadata: config snapshot, per-year status and export descriptors."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class YearRecord:
    status: str = "pending"  # "pending" or an OutcomeStatus value
    reason: str | None = None
    error_type: str | None = None
    frame_source: str | None = None
    export: dict[str, Any] | None = None  # ExportJob.to_dict()


@dataclass
class PipelineRun:
    run_id: str
    started_at: str
    config_snapshot: dict[str, Any]
    mode: str
    years: dict[str, YearRecord] = field(default_factory=dict)  # JSON keys, so "2001"
    status: str = "running"  # running | completed | partial | failed | cancelled
    finished_at: str | None = None

    def record_outcome(self, outcome) -> None:
        """Store a YearOutcome, replacing any earlier record for that year."""
        self.years[str(outcome.year)] = YearRecord(
            status=outcome.status.value,
            reason=outcome.reason,
            error_type=outcome.error_type,
            frame_source=outcome.frame_source,
            export=outcome.export.to_dict() if outcome.export else None,
        )

    def export_records(self) -> list[dict[str, Any]]:
        """Export descriptors in year order, for years that submitted one."""
        return [
            self.years[y].export for y in sorted(self.years, key=int)
            if self.years[y].export is not None
        ]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PipelineRun":
        data = dict(data)
        years = {y: YearRecord(**rec) for y, rec in data.pop("years", {}).items()}
        return cls(**data, years=years)
