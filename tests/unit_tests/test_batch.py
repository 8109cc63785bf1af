"""Tests for the per-year batch driver."""
import threading

import pytest
from conftest import FailingYearCompute, RecordingExportBackend

from landcover_pipeline.batch import BatchDriver, Mode, OutcomeStatus
from landcover_pipeline.config import ExportConfig
from landcover_pipeline.errors import ConfigError, GeometryError
from landcover_pipeline.export.manager import ExportJobManager
from landcover_pipeline.zonal.engine import ZonalStatsEngine


def _driver(resolver, engine, groups, exporter=None, **kwargs):
    return BatchDriver(
        resolver, engine, exporter,
        scale=500, groups=groups, export_cfg=ExportConfig(folder="out"), **kwargs,
    )


def test_missing_year_is_skipped(resolver, engine, groups, region):
    outcomes = _driver(resolver, engine, groups).run(region, [2001, 2002, 2003])

    assert list(outcomes) == [2001, 2002, 2003]
    assert outcomes[2001].status is OutcomeStatus.ANALYZED
    assert outcomes[2003].status is OutcomeStatus.ANALYZED
    assert outcomes[2002].status is OutcomeStatus.SKIPPED
    assert outcomes[2002].error_type == "MissingYearError"
    assert outcomes[2001].analysis.areas.area("Forest") == 1.5


def test_outcomes_ordered_regardless_of_input_order(resolver, engine, groups, region):
    outcomes = _driver(resolver, engine, groups, concurrency=3).run(region, [2003, 2001, 2002, 2001])
    assert list(outcomes) == [2001, 2002, 2003]


def test_mode_both(resolver, engine, groups, region):
    backend = RecordingExportBackend()
    driver = _driver(resolver, engine, groups, exporter=ExportJobManager(backend, dedupe=True))
    outcomes = driver.run(region, [2001, 2002, 2003], Mode.BOTH)

    assert outcomes[2001].status is OutcomeStatus.ANALYZED_AND_EXPORTED
    assert outcomes[2001].analysis is not None
    assert outcomes[2001].export.name == "MCD12Q1_Maranhao_2001"
    assert outcomes[2002].status is OutcomeStatus.SKIPPED
    assert sorted(r.year for r in backend.requests) == [2001, 2003]


def test_export_mode_skips_analysis(resolver, engine, groups, region):
    driver = _driver(resolver, engine, groups, exporter=ExportJobManager(RecordingExportBackend()))
    outcomes = driver.run(region, [2001], "export")
    assert outcomes[2001].status is OutcomeStatus.EXPORTED
    assert outcomes[2001].analysis is None


def test_failure_is_contained_to_its_year(resolver, groups, region, fast_retry):
    with ZonalStatsEngine(FailingYearCompute({2003}), retry=fast_retry) as engine:
        outcomes = _driver(resolver, engine, groups).run(region, [2001, 2003])
    assert outcomes[2001].status is OutcomeStatus.ANALYZED
    assert outcomes[2003].status is OutcomeStatus.FAILED
    assert outcomes[2003].error_type == "RuntimeError"
    assert "exploded" in outcomes[2003].reason


def test_export_failure_keeps_analysis(resolver, engine, groups, region):
    exporter = ExportJobManager(RecordingExportBackend(reject=RuntimeError("drive full")))
    outcomes = _driver(resolver, engine, groups, exporter=exporter).run(region, [2001], Mode.BOTH)
    assert outcomes[2001].status is OutcomeStatus.FAILED
    assert outcomes[2001].error_type == "SubmissionError"
    assert outcomes[2001].analysis is not None


def test_duplicate_export_fails_year(resolver, engine, groups, region):
    exporter = ExportJobManager(RecordingExportBackend(), dedupe=True)
    driver = _driver(resolver, engine, groups, exporter=exporter)
    driver.run(region, [2001], Mode.EXPORT)
    again = driver.run(region, [2001], Mode.EXPORT)
    assert again[2001].status is OutcomeStatus.FAILED
    assert again[2001].error_type == "DuplicateJobError"


def test_invalid_region_aborts_before_any_year(resolver, engine, groups):
    seen = []
    driver = _driver(resolver, engine, groups, on_outcome=seen.append)
    with pytest.raises(GeometryError):
        driver.run([(0, 0), (1, 0), (1, 1), (0, 1)], [2001, 2003])
    assert seen == []


def test_raw_ring_accepted(resolver, engine, groups):
    ring = [(0, 0), (4, 0), (4, 4), (0, 4), (0, 0)]
    outcomes = _driver(resolver, engine, groups).run(ring, [2001])
    assert outcomes[2001].analysis.histogram.total_pixels == 16


def test_export_mode_needs_exporter(resolver, engine, groups, region):
    with pytest.raises(ConfigError, match="ExportJobManager"):
        _driver(resolver, engine, groups).run(region, [2001], Mode.EXPORT)


def test_on_outcome_called_once_per_year(resolver, engine, groups, region):
    seen = []
    lock = threading.Lock()

    def record(outcome):
        with lock:
            seen.append(outcome.year)

    _driver(resolver, engine, groups, on_outcome=record).run(region, range(2001, 2004))
    assert sorted(seen) == [2001, 2002, 2003]


def test_cancel_skips_unstarted_years(resolver, engine, groups, region):
    driver = _driver(resolver, engine, groups)
    driver.cancel()
    outcomes = driver.run(region, [2001, 2003])
    assert driver.cancelled
    assert all(o.status is OutcomeStatus.SKIPPED for o in outcomes.values())
    assert outcomes[2001].reason == "cancelled"


def test_concurrency_must_be_positive(resolver, engine, groups):
    with pytest.raises(ConfigError):
        _driver(resolver, engine, groups, concurrency=0)


class _CountingResolver:
    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def resolve(self, year):
        self.calls.append(year)
        return self.inner.resolve(year)


def test_interrupt_stops_queued_years(resolver, engine, groups, region):
    counting = _CountingResolver(resolver)

    def interrupt(outcome):
        raise KeyboardInterrupt

    driver = _driver(counting, engine, groups, concurrency=1, on_outcome=interrupt)
    with pytest.raises(KeyboardInterrupt):
        driver.run(region, range(2001, 2011))

    assert driver.cancelled
    assert len(counting.calls) <= 2
