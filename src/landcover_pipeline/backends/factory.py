"""Build backend instances from the run configuration."""

from __future__ import annotations

from dataclasses import dataclass

from landcover_pipeline.backends.base import CatalogBackend, ComputeBackend, ExportBackend
from landcover_pipeline.config import PipelineConfig
from landcover_pipeline.errors import ConfigError


@dataclass
class Backends:
    catalog: CatalogBackend
    compute: ComputeBackend
    export: ExportBackend


def build_backends(cfg: PipelineConfig, *, export_root: str | None = None) -> Backends:
    """Instantiate catalog, compute and export backends named in *cfg*.

    Local catalogs pair with local compute; Earth Engine catalogs with
    Earth Engine compute, since frames only exist where they were found.
    """
    if cfg.catalog.type == "directory":
        from landcover_pipeline.backends.local_catalog import DirectoryCatalog
        from landcover_pipeline.backends.local_compute import LocalComputeBackend

        catalog: CatalogBackend = DirectoryCatalog(cfg.catalog.path, cfg.scale_meters)
        compute: ComputeBackend = LocalComputeBackend()
    elif cfg.catalog.type == "earthengine":
        from landcover_pipeline.backends.earthengine import (
            EarthEngineCatalog,
            EarthEngineCompute,
            initialize,
        )

        initialize()
        catalog = EarthEngineCatalog(cfg.catalog.collection, cfg.scale_meters)
        compute = EarthEngineCompute()
    else:
        raise ConfigError(f"Unknown catalog type {cfg.catalog.type!r}")

    if cfg.export.backend == "local":
        from landcover_pipeline.backends.local_export import LocalExportBackend

        export: ExportBackend = LocalExportBackend(
            max_workers=cfg.export.max_workers, root=export_root,
        )
    elif cfg.export.backend == "earthengine":
        if cfg.catalog.type != "earthengine":
            raise ConfigError("Earth Engine export needs an earthengine catalog")
        from landcover_pipeline.backends.earthengine import EarthEngineExport

        export = EarthEngineExport()
    else:
        raise ConfigError(f"Unknown export backend {cfg.export.backend!r}")

    return Backends(catalog=catalog, compute=compute, export=export)
