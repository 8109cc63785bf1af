"""Tests for YAML config loading."""
import pytest

from landcover_pipeline.config import DEFAULT_BOUNDS, PipelineConfig, load_config
from landcover_pipeline.errors import ConfigError


def test_defaults_reproduce_maranhao_run():
    cfg = PipelineConfig()
    assert cfg.band == "LC_Type1"
    assert cfg.years[0] == 2001 and cfg.years[-1] == 2024
    assert cfg.scale_meters == 500.0
    assert cfg.region.bounds == DEFAULT_BOUNDS
    assert cfg.export.folder == "MODIS_Land_Cover_Maranhao"
    assert cfg.export.crs == "EPSG:4326"
    assert cfg.export.max_pixels == 1e13
    assert cfg.grouping().names == ["Forest", "Savanna", "Agriculture"]


def test_missing_default_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_config() == PipelineConfig()


def test_yaml_overrides(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "start_year: 2010\n"
        "end_year: 2012\n"
        "scale_meters: 1000\n"
        "groups:\n"
        "  Water: [17]\n"
        "region:\n"
        "  coordinates: [[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]\n"
        "catalog:\n"
        "  path: /data/lc\n"
        "export:\n"
        "  name_prefix: lc\n"
        "  max_pixels: 1e9\n"
        "retry:\n"
        "  max_attempts: 2\n"
    )
    cfg = load_config(str(path))
    assert cfg.years == [2010, 2011, 2012]
    assert cfg.scale_meters == 1000.0
    assert cfg.groups == {"Water": [17]}
    assert cfg.region.bounds is None
    assert cfg.region.coordinates[0] == [0, 0]
    assert cfg.catalog.path == "/data/lc"
    assert cfg.catalog.type == "directory"
    assert cfg.export.max_pixels == 1e9
    assert cfg.export.naming_template == "lc_{year}"
    assert cfg.retry.policy().max_attempts == 2


@pytest.mark.parametrize("body, match", [
    ("start_year: 2020\nend_year: 2001\n", "after end_year"),
    ("groups:\n  A: ['1-5']\n  B: [5]\n", "overlap"),
    ("catalog:\n  type: ftp\n", "Unknown catalog type"),
    ("scale_meters: fast\n", "Invalid numeric"),
    ("- just\n- a list\n", "YAML mapping"),
    ("catalog: local\n", "catalog must be a mapping"),
    ("retry:\n  - 3\n", "retry must be a mapping"),
])
def test_invalid_config_rejected(tmp_path, body, match):
    path = tmp_path / "config.yaml"
    path.write_text(body)
    with pytest.raises(ConfigError, match=match):
        load_config(str(path))


def test_empty_sections_keep_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("region:\ncatalog:\nexport:\ncompute:\nretry:\n")
    cfg = load_config(str(path))
    assert cfg.catalog.type == "directory"
    assert cfg.export.naming_template == "MCD12Q1_Maranhao_{year}"
    assert cfg.region.bounds is not None
    assert cfg.retry.max_attempts == 4
