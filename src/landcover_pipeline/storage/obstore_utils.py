"""Shared obstore helpers for export destinations."""

from __future__ import annotations

import os

import obstore as obs
from obstore.store import LocalStore, from_url


def from_dest(dest: str, *, region: str = "us-west-2"):
    """Build an obstore Store from an ``s3://`` / ``gs://`` URI or local path."""
    if dest.startswith(("s3://", "gs://", "az://")):
        return from_url(dest, region=region) if dest.startswith("s3://") else from_url(dest)
    os.makedirs(dest, exist_ok=True)
    return LocalStore(prefix=os.path.abspath(dest))


def obstore_put_bytes(store, relpath: str, data: bytes) -> None:
    """Write raw bytes to *store* at *relpath*."""
    obs.put(store, relpath, data)


def object_exists(store, relpath: str) -> bool:
    try:
        obs.head(store, relpath)
    except FileNotFoundError:
        return False
    return True
