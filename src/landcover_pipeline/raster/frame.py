"""RasterFrame: one timestamped categorical raster obtained from a catalog."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Tuple

import numpy as np
from affine import Affine


@dataclass(frozen=True, eq=False)
class RasterFrame:
    """One categorical raster for a single acquisition date.

    ``data`` holds the class-code grid for locally materialized frames and is
    ``None`` for frames that live on a remote engine (``source`` then names
    the remote asset).  The grid is made read-only on construction.
    """

    band: str
    acquired: date
    scale_meters: float
    crs: str
    source: str
    transform: Optional[Affine] = None
    data: Optional[np.ndarray] = field(default=None, repr=False)
    nodata: Optional[int] = None

    def __post_init__(self):
        if self.data is None:
            return
        arr = np.array(self.data, copy=True)
        if arr.ndim != 2:
            raise ValueError(f"Frame grid must be 2-D, got shape {arr.shape}")
        if not np.issubdtype(arr.dtype, np.integer):
            raise ValueError(f"Categorical frame must hold integer codes, got {arr.dtype}")
        if self.transform is None:
            raise ValueError("Local frames need an affine transform")
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)

    @property
    def year(self) -> int:
        return self.acquired.year

    @property
    def is_local(self) -> bool:
        return self.data is not None

    @property
    def shape(self) -> Optional[Tuple[int, int]]:
        return None if self.data is None else self.data.shape

    def describe(self) -> dict:
        return {
            "band": self.band,
            "acquired": self.acquired.isoformat(),
            "year": self.year,
            "scale_meters": self.scale_meters,
            "crs": self.crs,
            "source": self.source,
        }
