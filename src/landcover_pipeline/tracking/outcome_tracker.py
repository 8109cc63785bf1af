"""Collect per-year outcomes and write run reports."""

from __future__ import annotations

import csv
import json
import os
import threading
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd
from loguru import logger

from landcover_pipeline.batch.outcome import OutcomeStatus, YearOutcome


class OutcomeTracker:
    """Centralized outcome tracking and reporting."""

    def __init__(self, output_dir: str = "reports", run_id: Optional[str] = None):
        self.output_dir = output_dir
        self.run_id = run_id
        self.outcomes: List[YearOutcome] = []
        self.start_time = datetime.now()
        self._lock = threading.Lock()
        os.makedirs(output_dir, exist_ok=True)

    def add_outcome(self, outcome: YearOutcome) -> None:
        with self._lock:
            self.outcomes.append(outcome)

    def sorted_outcomes(self) -> List[YearOutcome]:
        with self._lock:
            return sorted(self.outcomes, key=lambda o: o.year)

    # ------------------------------------------------------------------
    # Report generation
    # ------------------------------------------------------------------

    def save_reports(self) -> Dict[str, str]:
        """Save JSON-lines, CSV, area table, text and failed-years reports."""
        timestamp = self.start_time.strftime("%Y%m%d_%H%M%S")
        outcomes = self.sorted_outcomes()
        paths: Dict[str, str] = {}

        # 1. One record per year
        jsonl_path = os.path.join(self.output_dir, f"year_outcomes_{timestamp}.jsonl")
        with open(jsonl_path, "w") as f:
            for o in outcomes:
                f.write(json.dumps(o.to_record(self.run_id), default=str) + "\n")
        paths["jsonl"] = jsonl_path

        # 2. CSV summary
        csv_path = os.path.join(self.output_dir, f"year_summary_{timestamp}.csv")
        self._save_csv_summary(csv_path, outcomes)
        paths["csv"] = csv_path

        # 3. Area table (year x group)
        table = self.area_table()
        if not table.empty:
            area_path = os.path.join(self.output_dir, f"area_by_group_{timestamp}.csv")
            table.to_csv(area_path)
            paths["areas"] = area_path

        # 4. Human-readable text
        txt_path = os.path.join(self.output_dir, f"run_report_{timestamp}.txt")
        self._save_text_report(txt_path, outcomes)
        paths["txt"] = txt_path

        # 5. Failed years only
        failed = [o for o in outcomes if o.status is OutcomeStatus.FAILED]
        if failed:
            failed_path = os.path.join(self.output_dir, f"failed_years_{timestamp}.json")
            with open(failed_path, "w") as f:
                json.dump([o.to_record(self.run_id) for o in failed], f, indent=2, default=str)
            paths["failed"] = failed_path

        logger.info(f"Reports saved to {self.output_dir}/")
        return paths

    def _save_csv_summary(self, path: str, outcomes: List[YearOutcome]) -> None:
        fieldnames = [
            "year", "status", "error_type", "reason", "frame_source", "ambiguous",
            "total_area_km2", "export_name", "export_job_id", "export_state",
            "duration_sec",
        ]
        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for o in outcomes:
                writer.writerow({
                    "year": o.year,
                    "status": o.status.value,
                    "error_type": o.error_type,
                    "reason": o.reason[:100] if o.reason else None,
                    "frame_source": o.frame_source,
                    "ambiguous": o.ambiguous,
                    "total_area_km2": (
                        o.analysis.histogram.total_area_km2 if o.analysis else None
                    ),
                    "export_name": o.export.name if o.export else None,
                    "export_job_id": (
                        o.export.handle.job_id if o.export and o.export.handle else None
                    ),
                    "export_state": o.export.state.value if o.export else None,
                    "duration_sec": o.duration_sec,
                })

    def area_table(self) -> pd.DataFrame:
        """Area in km² per group (columns) and year (index) for analyzed years."""
        rows = []
        for o in self.sorted_outcomes():
            if o.analysis is None:
                continue
            row = {"year": o.year, **o.analysis.areas.areas_km2}
            row["total_roi_km2"] = o.analysis.histogram.total_area_km2
            rows.append(row)
        if not rows:
            return pd.DataFrame()
        return pd.DataFrame(rows).set_index("year").sort_index()

    def _save_text_report(self, path: str, outcomes: List[YearOutcome]) -> None:
        total = len(outcomes)
        if total == 0:
            with open(path, "w") as f:
                f.write("No years were processed.\n")
            return

        counts = {s: 0 for s in OutcomeStatus}
        for o in outcomes:
            counts[o.status] += 1

        with open(path, "w") as f:
            f.write("=" * 60 + "\n")
            f.write("LAND COVER PIPELINE RUN REPORT\n")
            if self.run_id:
                f.write(f"Run: {self.run_id}\n")
            f.write(f"Generated: {datetime.now():%Y-%m-%d %H:%M:%S}\n")
            f.write("=" * 60 + "\n\n")

            f.write("OVERALL SUMMARY\n")
            f.write("-" * 40 + "\n")
            f.write(f"Years:             {total}\n")
            for status, cnt in counts.items():
                if cnt:
                    f.write(f"{status.value + ':':<19}{cnt} ({cnt / total * 100:.1f}%)\n")

            table = self.area_table()
            if not table.empty:
                f.write("\nAREA BY GROUP (km²)\n")
                f.write("-" * 40 + "\n")
                f.write(table.round(2).to_string() + "\n")

            problems = [o for o in outcomes if not o.status.succeeded]
            if problems:
                f.write("\nSKIPPED / FAILED YEARS\n")
                f.write("-" * 40 + "\n")
                for o in problems:
                    f.write(f"{o.year}: {o.status.value} ({o.error_type or 'n/a'}) "
                            f"{(o.reason or '')[:200]}\n")

    def print_summary(self) -> None:
        """Print a quick summary to console."""
        outcomes = self.sorted_outcomes()
        total = len(outcomes)
        if total == 0:
            logger.info("No years were processed.")
            return

        ok = sum(1 for o in outcomes if o.status.succeeded)
        skipped = sum(1 for o in outcomes if o.status is OutcomeStatus.SKIPPED)
        failed = total - ok - skipped
        logger.info(
            f"Year summary: {ok} succeeded, {skipped} skipped, {failed} failed "
            f"out of {total} total"
        )
        for o in outcomes:
            if o.status is OutcomeStatus.FAILED:
                logger.info(f"  {o.year}: {o.error_type}: {o.reason}")
