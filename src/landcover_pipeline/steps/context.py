"""Assemble the pipeline components for one run from a PipelineConfig."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from loguru import logger

from landcover_pipeline.backends.factory import Backends, build_backends
from landcover_pipeline.config import PipelineConfig
from landcover_pipeline.export.manager import ExportJobManager
from landcover_pipeline.raster.resolver import YearResolver
from landcover_pipeline.raster.timeseries import RasterTimeSeries
from landcover_pipeline.region.catalog import Region, RegionCatalog
from landcover_pipeline.zonal.engine import ZonalStatsEngine
from landcover_pipeline.zonal.groups import GroupingScheme


@dataclass
class PipelineContext:
    cfg: PipelineConfig
    region: Region
    groups: GroupingScheme
    backends: Backends
    series: RasterTimeSeries
    resolver: YearResolver
    engine: ZonalStatsEngine
    exporter: ExportJobManager

    def close(self) -> None:
        self.engine.close()
        # Let queued local exports finish writing
        self.backends.export.shutdown(wait=True)


def build_context(
    cfg: PipelineConfig,
    backends: Backends | None = None,
    region: Region | None = None,
) -> PipelineContext:
    """Validate the ROI and wire catalog, resolver, engine and exporter.

    Raises:
        GeometryError: invalid ROI; nothing else is built.
    """
    region = region or RegionCatalog.from_config(cfg.region)
    logger.info(f"ROI bbox: {tuple(round(v, 4) for v in region.bounding_box())}")
    groups = cfg.grouping()
    backends = backends or build_backends(cfg)
    policy = cfg.retry.policy()

    series = (
        RasterTimeSeries(backends.catalog, retry=policy)
        .select_band(cfg.band)
        .filter_date_range(date(cfg.start_year, 1, 1), date(cfg.end_year, 12, 31))
    )
    resolver = YearResolver(series, strict=cfg.strict_years)
    engine = ZonalStatsEngine(
        backends.compute,
        max_pixels=cfg.compute.max_pixels,
        retry=policy,
        max_workers=cfg.concurrency,
    )
    exporter = ExportJobManager(
        backends.export, folder=cfg.export.folder, dedupe=cfg.dedupe_exports,
    )
    return PipelineContext(
        cfg=cfg,
        region=region,
        groups=groups,
        backends=backends,
        series=series,
        resolver=resolver,
        engine=engine,
        exporter=exporter,
    )
