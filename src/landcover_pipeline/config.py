"""YAML config loading with dataclass defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

from landcover_pipeline.errors import ConfigError
from landcover_pipeline.retry import RetryPolicy
from landcover_pipeline.zonal.groups import CANONICAL_GROUPS, GroupingScheme

# Maranhão, Brazil (GADM bounds, EPSG:4326)
DEFAULT_BOUNDS = [-48.75515073699995, -10.261764701999937,
                  -41.796069069999874, -1.0493281209999736]


@dataclass
class RegionConfig:
    bounds: Optional[List[float]] = field(default_factory=lambda: list(DEFAULT_BOUNDS))
    coordinates: Optional[List[List[float]]] = None
    path: Optional[str] = None


@dataclass
class CatalogConfig:
    type: str = "directory"  # "directory" | "earthengine"
    path: str = "data/mcd12q1"
    collection: str = "MODIS/061/MCD12Q1"


@dataclass
class ExportConfig:
    backend: str = "local"  # "local" | "earthengine"
    folder: str = "MODIS_Land_Cover_Maranhao"
    name_prefix: str = "MCD12Q1_Maranhao"
    crs: str = "EPSG:4326"
    max_pixels: float = 1e13
    format: str = "GeoTIFF"
    max_workers: int = 2

    @property
    def naming_template(self) -> str:
        if "{year}" in self.name_prefix:
            return self.name_prefix
        return f"{self.name_prefix}_{{year}}"


@dataclass
class ComputeConfig:
    max_pixels: float = 1e13


@dataclass
class RetryConfig:
    max_attempts: int = 4
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    backoff_factor: float = 2.0
    jitter: float = 0.5

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_backoff=self.initial_backoff,
            max_backoff=self.max_backoff,
            backoff_factor=self.backoff_factor,
            jitter=self.jitter,
        )


@dataclass
class PipelineConfig:
    band: str = "LC_Type1"
    start_year: int = 2001
    end_year: int = 2024
    scale_meters: float = 500.0
    groups: Dict[str, List[Any]] = field(default_factory=lambda: dict(CANONICAL_GROUPS))
    concurrency: int = 4
    dedupe_exports: bool = True
    strict_years: bool = False
    region: RegionConfig = field(default_factory=RegionConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    compute: ComputeConfig = field(default_factory=ComputeConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)

    @property
    def years(self) -> List[int]:
        return list(range(self.start_year, self.end_year + 1))

    def grouping(self) -> GroupingScheme:
        return GroupingScheme.from_mapping(self.groups)

    def validate(self) -> None:
        """Raise :class:`ConfigError` for values no run could use."""
        if self.start_year > self.end_year:
            raise ConfigError(f"start_year {self.start_year} is after end_year {self.end_year}")
        if self.scale_meters <= 0:
            raise ConfigError(f"scale_meters must be positive, got {self.scale_meters}")
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.catalog.type not in ("directory", "earthengine"):
            raise ConfigError(f"Unknown catalog type {self.catalog.type!r}")
        if self.export.backend not in ("local", "earthengine"):
            raise ConfigError(f"Unknown export backend {self.export.backend!r}")
        self.grouping()


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return the mapping under *name*; a key with nothing under it counts as empty."""
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{name} must be a mapping, got {type(section).__name__}")
    return section


_SCALARS = ("band", "start_year", "end_year", "scale_meters", "concurrency",
            "dedupe_exports", "strict_years")


def load_config(path: Optional[str] = None) -> PipelineConfig:
    """Load config from YAML, falling back to defaults for missing keys."""
    if path is None:
        # Try default location
        default = Path("config.yaml")
        if not default.exists():
            logger.warning("No config file found; using built-in defaults")
            return PipelineConfig()
        path = str(default)

    logger.info(f"Using config: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config {path} must be a YAML mapping")

    cfg = PipelineConfig()

    for key in _SCALARS:
        if raw.get(key) is not None:
            setattr(cfg, key, raw[key])

    if raw.get("groups"):
        if not isinstance(raw["groups"], dict):
            raise ConfigError("groups must map group name -> list of codes")
        cfg.groups = dict(raw["groups"])

    reg = _section(raw, "region")
    if reg:
        # An explicit ROI source replaces the default bounds entirely
        cfg.region = RegionConfig(bounds=None)
        for key in ("bounds", "coordinates", "path"):
            if reg.get(key) is not None:
                setattr(cfg.region, key, reg[key])

    cat = _section(raw, "catalog")
    for key in ("type", "path", "collection"):
        if cat.get(key) is not None:
            setattr(cfg.catalog, key, cat[key])

    exp = _section(raw, "export")
    for key in ("backend", "folder", "name_prefix", "crs", "max_pixels", "format", "max_workers"):
        if exp.get(key) is not None:
            setattr(cfg.export, key, exp[key])

    comp = _section(raw, "compute")
    if comp.get("max_pixels") is not None:
        cfg.compute.max_pixels = comp["max_pixels"]

    # PyYAML reads "1e13" (no decimal point) as a string
    try:
        cfg.scale_meters = float(cfg.scale_meters)
        cfg.export.max_pixels = float(cfg.export.max_pixels)
        cfg.compute.max_pixels = float(cfg.compute.max_pixels)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid numeric value in {path}: {e}") from None

    rt = _section(raw, "retry")
    for key in ("max_attempts", "initial_backoff", "max_backoff", "backoff_factor", "jitter"):
        if rt.get(key) is not None:
            setattr(cfg.retry, key, rt[key])

    cfg.validate()
    return cfg
