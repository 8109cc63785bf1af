"""Tests for ROI construction and validation."""
import json
import math

import pytest

from landcover_pipeline.config import DEFAULT_BOUNDS, RegionConfig
from landcover_pipeline.errors import GeometryError
from landcover_pipeline.region.catalog import Region, RegionCatalog


def test_from_bounds_builds_closed_rectangle():
    region = RegionCatalog.from_bounds(-48.7, -10.2, -41.8, -1.0)
    assert isinstance(region, Region)
    assert len(region.ring) == 5
    assert region.ring[0] == region.ring[-1]
    assert region.bounding_box() == (-48.7, -10.2, -41.8, -1.0)


def test_default_bounds_are_valid():
    region = RegionCatalog.from_config(RegionConfig())
    min_lon, min_lat, max_lon, max_lat = region.bounding_box()
    assert math.isclose(min_lon, DEFAULT_BOUNDS[0])
    assert math.isclose(max_lat, DEFAULT_BOUNDS[3])


def test_open_ring_rejected():
    with pytest.raises(GeometryError, match="not closed"):
        RegionCatalog.validate([(0, 0), (1, 0), (1, 1), (0, 1)])


def test_too_few_vertices_rejected():
    with pytest.raises(GeometryError, match="at least 4"):
        RegionCatalog.validate([(0, 0), (1, 1), (0, 0)])


def test_self_intersecting_ring_rejected():
    bowtie = [(0, 0), (1, 1), (1, 0), (0, 1), (0, 0)]
    with pytest.raises(GeometryError, match="self-intersects"):
        RegionCatalog.validate(bowtie)


def test_out_of_range_vertex_rejected():
    with pytest.raises(GeometryError, match="outside lon/lat range"):
        RegionCatalog.validate([(0, 0), (200, 0), (200, 1), (0, 1), (0, 0)])


def test_collinear_ring_rejected():
    with pytest.raises(GeometryError):
        RegionCatalog.validate([(0, 0), (1, 0), (2, 0), (0, 0)])


def test_inverted_bounds_rejected():
    with pytest.raises(GeometryError, match="Invalid bounds"):
        RegionCatalog.from_bounds(5, 0, 1, 1)


def test_region_is_immutable(region):
    with pytest.raises(AttributeError):
        region.ring = ()


def test_geojson_round_trip(region):
    again = RegionCatalog.from_geojson(json.loads(json.dumps(region.to_geojson())))
    assert again.bounding_box() == region.bounding_box()


def test_geojson_feature_collection_dissolves():
    fc = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {}, "geometry": {
                "type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]}},
            {"type": "Feature", "properties": {}, "geometry": {
                "type": "Polygon", "coordinates": [[[1, 0], [2, 0], [2, 1], [1, 1], [1, 0]]]}},
        ],
    }
    region = RegionCatalog.from_geojson(fc)
    assert region.bounding_box() == (0.0, 0.0, 2.0, 1.0)


def test_multipolygon_rejected():
    mp = {
        "type": "MultiPolygon",
        "coordinates": [
            [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
            [[[5, 5], [6, 5], [6, 6], [5, 6], [5, 5]]],
        ],
    }
    with pytest.raises(GeometryError, match="single Polygon"):
        RegionCatalog.from_geojson(mp)


def test_from_file(tmp_path):
    path = tmp_path / "roi.geojson"
    path.write_text(json.dumps({
        "type": "FeatureCollection",
        "features": [{"type": "Feature", "properties": {"name": "box"}, "geometry": {
            "type": "Polygon", "coordinates": [[[0, 0], [4, 0], [4, 4], [0, 4], [0, 0]]]}}],
    }))
    region = RegionCatalog.from_file(str(path))
    assert region.bounding_box() == (0.0, 0.0, 4.0, 4.0)


def test_config_without_any_source_rejected():
    with pytest.raises(GeometryError, match="No ROI configured"):
        RegionCatalog.from_config(RegionConfig(bounds=None))
