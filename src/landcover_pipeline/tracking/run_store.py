"""Run metadata persisted as one JSON document per run id."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Optional

from loguru import logger

from landcover_pipeline.tracking.run_metadata import PipelineRun


class RunStore:
    """Directory of ``<run_id>.json`` files, rewritten after every recorded year."""

    def __init__(self, base_dir: str = ".lc_runs"):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, run_id: str) -> Path:
        return self.base_dir / f"{run_id}.json"

    def save(self, run: PipelineRun) -> Path:
        # Readers (``lc-pipeline status``) may open the file mid-run
        path = self.path_for(run.run_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(run.to_dict(), indent=2, default=str))
        os.replace(tmp, path)
        logger.debug(f"Run metadata saved to {path}")
        return path

    def load(self, run_id: str) -> PipelineRun:
        """Raises FileNotFoundError for unknown run ids."""
        return PipelineRun.from_dict(json.loads(self.path_for(run_id).read_text()))

    def list_runs(self) -> List[str]:
        """Saved run ids, most recently written first."""
        paths = sorted(self.base_dir.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True)
        return [p.stem for p in paths]

    def latest(self) -> Optional[str]:
        runs = self.list_runs()
        return runs[0] if runs else None
