"""Poll the export jobs recorded for a previous run."""

from __future__ import annotations

from typing import Dict, List

from loguru import logger

from landcover_pipeline.backends.base import ExportBackend
from landcover_pipeline.export.job import JobHandle, JobState
from landcover_pipeline.tracking import RunStore


def poll_run_exports(store: RunStore, run_id: str, backend: ExportBackend) -> List[Dict]:
    """Return one ``{year, name, job_id, state}`` row per recorded export.

    Raises:
        FileNotFoundError: *run_id* has no saved metadata.
    """
    run = store.load(run_id)
    rows = []
    for rec in run.export_records():
        if rec.get("job_id") is None:
            continue
        handle = JobHandle(job_id=rec["job_id"], backend=rec["backend"], location=rec.get("location"))
        if handle.backend != backend.name:
            logger.warning(f"Job {handle.job_id} belongs to backend {handle.backend!r}; skipping")
            state = None
        else:
            state = backend.status(handle)
        rows.append({
            "year": rec["year"],
            "name": rec["name"],
            "job_id": handle.job_id,
            "state": state.value if isinstance(state, JobState) else "unknown",
        })
    return rows
