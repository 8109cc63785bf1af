"""Region of interest: validated once per run, reused by every component."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

from loguru import logger
from shapely.geometry import LinearRing, Polygon, mapping, shape
from shapely.ops import unary_union

from landcover_pipeline.errors import GeometryError

Coord = Tuple[float, float]


@dataclass(frozen=True)
class Region:
    """Immutable ROI polygon with lon/lat vertices (EPSG:4326).

    Only :class:`RegionCatalog` should construct these; the ring is
    assumed closed and simple.
    """

    ring: Tuple[Coord, ...]
    name: str = "roi"

    @property
    def polygon(self) -> Polygon:
        return Polygon(self.ring)

    def bounding_box(self) -> Tuple[float, float, float, float]:
        """Return ``(minLon, minLat, maxLon, maxLat)``."""
        lons = [p[0] for p in self.ring]
        lats = [p[1] for p in self.ring]
        return min(lons), min(lats), max(lons), max(lats)

    def to_geojson(self) -> Dict[str, Any]:
        return {"type": "Polygon", "coordinates": [[list(p) for p in self.ring]]}


class RegionCatalog:
    """Builds and validates :class:`Region` objects from the supported ROI sources."""

    @staticmethod
    def validate(polygon: Sequence[Sequence[float]], name: str = "roi") -> Region:
        """Validate an ordered lon/lat ring and freeze it into a :class:`Region`.

        Raises:
            GeometryError: ring not closed, degenerate, out of lon/lat range,
                or self-intersecting.
        """
        try:
            ring = tuple((float(p[0]), float(p[1])) for p in polygon)
        except (TypeError, ValueError, IndexError):
            raise GeometryError("ROI ring must be a sequence of (lon, lat) pairs") from None

        if len(ring) < 4:
            raise GeometryError(f"ROI ring needs at least 4 vertices, got {len(ring)}")
        if ring[0] != ring[-1]:
            raise GeometryError(f"ROI ring is not closed: {ring[0]} != {ring[-1]}")
        for lon, lat in ring:
            if not (math.isfinite(lon) and math.isfinite(lat)):
                raise GeometryError(f"ROI vertex ({lon}, {lat}) is not finite")
            if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
                raise GeometryError(f"ROI vertex ({lon}, {lat}) is outside lon/lat range")

        lr = LinearRing(ring)
        if not lr.is_simple:
            raise GeometryError("ROI ring self-intersects")
        poly = Polygon(lr)
        if poly.area == 0:
            raise GeometryError("ROI polygon has zero area")

        region = Region(ring=ring, name=name)
        logger.debug(f"Validated ROI {name!r}, bbox={region.bounding_box()}")
        return region

    @classmethod
    def from_bounds(cls, min_lon: float, min_lat: float, max_lon: float, max_lat: float,
                    name: str = "roi") -> Region:
        """Axis-aligned rectangle, counter-clockwise from the south-west corner."""
        if min_lon >= max_lon or min_lat >= max_lat:
            raise GeometryError(
                f"Invalid bounds: ({min_lon}, {min_lat}, {max_lon}, {max_lat})"
            )
        ring = [
            (min_lon, min_lat), (max_lon, min_lat), (max_lon, max_lat),
            (min_lon, max_lat), (min_lon, min_lat),
        ]
        return cls.validate(ring, name=name)

    @classmethod
    def from_coordinates(cls, coordinates: Sequence[Sequence[float]], name: str = "roi") -> Region:
        return cls.validate(coordinates, name=name)

    @classmethod
    def from_geojson(cls, geojson: Dict[str, Any], name: str = "roi") -> Region:
        """Accept a Polygon geometry, Feature, or FeatureCollection."""
        kind = geojson.get("type")
        try:
            if kind == "FeatureCollection":
                geom = unary_union([shape(f["geometry"]) for f in geojson.get("features", [])])
            elif kind == "Feature":
                geom = shape(geojson["geometry"])
            else:
                geom = shape(geojson)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise GeometryError(f"Unreadable GeoJSON ROI: {e}") from None
        return cls._from_shapely(geom, name)

    @classmethod
    def from_file(cls, path: str, name: str | None = None) -> Region:
        """Load polygons from GeoJSON/GeoPackage/Shapefile and dissolve them."""
        import geopandas as gpd

        try:
            gdf = gpd.read_file(path)
        except Exception as e:
            raise GeometryError(f"Cannot read ROI file {path}: {e}") from e
        if gdf.empty:
            raise GeometryError(f"ROI file {path} has no features")
        if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
            gdf = gdf.to_crs("EPSG:4326")
        geom = unary_union(list(gdf.geometry))
        return cls._from_shapely(geom, name or path)

    @classmethod
    def _from_shapely(cls, geom, name: str) -> Region:
        if geom.is_empty:
            raise GeometryError("ROI geometry is empty")
        if geom.geom_type != "Polygon":
            raise GeometryError(f"ROI must be a single Polygon, got {geom.geom_type}")
        if len(geom.interiors):
            logger.warning(f"ROI {name!r} has {len(geom.interiors)} holes; using exterior ring only")
        ring = mapping(geom)["coordinates"][0]
        return cls.validate(ring, name=name)

    @classmethod
    def from_config(cls, region_cfg) -> Region:
        """Pick the ROI source named in a :class:`RegionConfig`."""
        if region_cfg.path:
            return cls.from_file(region_cfg.path)
        if region_cfg.coordinates:
            return cls.from_coordinates(region_cfg.coordinates)
        if region_cfg.bounds:
            if len(region_cfg.bounds) != 4:
                raise GeometryError(f"bounds needs 4 values, got {region_cfg.bounds}")
            return cls.from_bounds(*region_cfg.bounds)
        raise GeometryError("No ROI configured: set region.bounds, region.coordinates or region.path")
