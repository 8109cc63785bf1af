"""Region of interest handling."""

from landcover_pipeline.region.catalog import Region, RegionCatalog

__all__ = ["Region", "RegionCatalog"]
