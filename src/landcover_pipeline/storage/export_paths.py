"""Object keys for per-year export extracts."""

from __future__ import annotations

_EXTENSIONS = {"GeoTIFF": "tif", "TFRecord": "tfrecord.gz"}


def export_key(name: str, fmt: str = "GeoTIFF") -> str:
    """Return the object key an export named *name* is written to."""
    return f"{name}.{_EXTENSIONS.get(fmt, 'tif')}"


def export_location(folder: str, name: str, fmt: str = "GeoTIFF") -> str:
    return f"{folder.rstrip('/')}/{export_key(name, fmt)}"
