"""Tests for export naming, dedupe and the local GeoTIFF backend."""
import os
import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
import rasterio
from conftest import RecordingExportBackend, make_frame

from landcover_pipeline.backends.local_export import LocalExportBackend
from landcover_pipeline.config import ExportConfig
from landcover_pipeline.errors import DuplicateJobError, SubmissionError
from landcover_pipeline.export.job import JobHandle, JobState
from landcover_pipeline.export.manager import ExportJobManager, job_name
from landcover_pipeline.region.catalog import RegionCatalog


def _submit(manager, frame, region, **kwargs):
    params = dict(naming_template="MCD12Q1_Maranhao_{year}", scale=500, crs="EPSG:4326",
                  max_pixels=1e13)
    params.update(kwargs)
    return manager.submit(frame, region, **params)


@pytest.fixture
def local_backend():
    backend = LocalExportBackend(max_workers=2)
    yield backend
    backend.shutdown(wait=True)


def test_job_name_substitutes_year():
    assert job_name("MCD12Q1_Maranhao_{year}", 2001) == "MCD12Q1_Maranhao_2001"
    assert job_name("MCD12Q1_Maranhao", 2001) == "MCD12Q1_Maranhao_2001"


def test_naming_template_from_config():
    assert ExportConfig().naming_template == "MCD12Q1_Maranhao_{year}"
    assert ExportConfig(name_prefix="lc_{year}_v2").naming_template == "lc_{year}_v2"


def test_submit_returns_submitted_job(region):
    backend = RecordingExportBackend()
    manager = ExportJobManager(backend, folder="out")
    job = _submit(manager, make_frame(2001), region)
    assert job.state is JobState.SUBMITTED
    assert job.name == "MCD12Q1_Maranhao_2001"
    assert job.handle.job_id == "job-1"
    assert backend.requests[0].folder == "out"
    assert backend.requests[0].region == region.to_geojson()


def test_dedupe_rejects_second_submission(region):
    backend = RecordingExportBackend()
    manager = ExportJobManager(backend, dedupe=True)
    _submit(manager, make_frame(2001), region)
    with pytest.raises(DuplicateJobError, match="MCD12Q1_Maranhao_2001"):
        _submit(manager, make_frame(2001), region)
    assert len(backend.requests) == 1


def test_concurrent_duplicates_accept_one(region):
    backend = RecordingExportBackend()
    manager = ExportJobManager(backend, dedupe=True)
    barrier = threading.Barrier(8)

    def attempt(_):
        barrier.wait()
        try:
            _submit(manager, make_frame(2001), region)
        except DuplicateJobError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        accepted = list(pool.map(attempt, range(8)))

    assert accepted.count(True) == 1
    assert accepted.count(False) == 7
    assert len(backend.requests) == 1
    assert manager.seen_names() == {"MCD12Q1_Maranhao_2001"}


def test_without_dedupe_both_submissions_accepted(region):
    backend = RecordingExportBackend()
    manager = ExportJobManager(backend, dedupe=False)
    first = _submit(manager, make_frame(2001), region)
    second = _submit(manager, make_frame(2001), region)
    assert first.handle.job_id != second.handle.job_id
    assert len(manager.jobs) == 2


def test_backend_rejection_releases_name(region):
    backend = RecordingExportBackend(reject=RuntimeError("quota"))
    manager = ExportJobManager(backend, dedupe=True)
    with pytest.raises(SubmissionError, match="quota"):
        _submit(manager, make_frame(2001), region)
    assert manager.seen_names() == set()


@pytest.mark.parametrize("kwargs, match", [
    ({"format": "PNG"}, "Unsupported export format"),
    ({"max_pixels": 0}, "maxPixels must be positive"),
])
def test_submission_rejected_locally(region, kwargs, match):
    manager = ExportJobManager(RecordingExportBackend())
    with pytest.raises(SubmissionError, match=match):
        _submit(manager, make_frame(2001), region, **kwargs)


def test_local_backend_rejects_bad_crs(region, local_backend):
    manager = ExportJobManager(local_backend)
    with pytest.raises(SubmissionError, match="Invalid CRS"):
        _submit(manager, make_frame(2001), region, crs="EPSG:not-a-code")


def test_local_backend_rejects_tfrecord(region, local_backend):
    manager = ExportJobManager(local_backend)
    with pytest.raises(SubmissionError, match="GeoTIFF only"):
        _submit(manager, make_frame(2001), region, format="TFRecord")


def test_local_backend_rejects_pixel_ceiling(region, local_backend):
    manager = ExportJobManager(local_backend)
    with pytest.raises(SubmissionError, match="maxPixels"):
        _submit(manager, make_frame(2001), region, max_pixels=4)


def test_local_export_writes_clipped_geotiff(tmp_path, local_backend):
    corner = RegionCatalog.from_bounds(0.0, 2.0, 2.0, 4.0)
    manager = ExportJobManager(local_backend, folder=str(tmp_path / "exports"))
    job = _submit(manager, make_frame(2001), corner)

    assert local_backend.wait(job.handle, timeout=60) is JobState.COMPLETED
    assert manager.poll(job).state is JobState.COMPLETED

    path = tmp_path / "exports" / "MCD12Q1_Maranhao_2001.tif"
    assert job.handle.location == f"{tmp_path / 'exports'}/MCD12Q1_Maranhao_2001.tif"
    assert os.path.exists(path)
    with rasterio.open(path) as src:
        assert src.crs.to_epsg() == 4326
        assert (src.height, src.width) == (2, 2)
        np.testing.assert_array_equal(src.read(1), np.array([[0, 2], [2, 2]]))


def test_local_status_of_unknown_job_checks_destination(tmp_path, local_backend, region):
    manager = ExportJobManager(local_backend, folder=str(tmp_path))
    job = _submit(manager, make_frame(2001), region)
    local_backend.wait(job.handle, timeout=60)

    fresh = LocalExportBackend()
    try:
        assert fresh.status(job.handle) is JobState.COMPLETED
        missing = JobHandle(job_id="local-x", backend="local",
                            location=f"{tmp_path}/nothing.tif")
        assert fresh.status(missing) is JobState.SUBMITTED
    finally:
        fresh.shutdown()


def test_job_to_dict(region):
    manager = ExportJobManager(RecordingExportBackend(), folder="f")
    record = _submit(manager, make_frame(2003), region).to_dict()
    assert record["name"] == "MCD12Q1_Maranhao_2003"
    assert record["year"] == 2003
    assert record["state"] == "submitted"
    assert record["job_id"] == "job-1"
