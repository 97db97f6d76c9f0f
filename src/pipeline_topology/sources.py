"""Acquire GeoJSON feature collections from files, bytes, URLs and uploads."""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx

from .errors import AcquisitionError
from .kml_reader import read_kmz
from .reader import read_shapefile_zip

logger = logging.getLogger(__name__)

GEOJSON_EXTS = (".geojson", ".json")
KML_EXTS = (".kml", ".kmz")


def _check_collection(data: Any) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        raise AcquisitionError(f"Expected a GeoJSON object, got {type(data).__name__}")
    if not isinstance(data.get("features"), list):
        raise AcquisitionError("GeoJSON object has no 'features' array")
    return dict(data)


def parse_feature_collection(content: str | bytes) -> dict[str, Any]:
    """Decode GeoJSON text into a FeatureCollection mapping."""
    try:
        data = json.loads(content)
    except (ValueError, UnicodeDecodeError) as exc:
        raise AcquisitionError(f"Invalid GeoJSON: {exc}") from exc
    return _check_collection(data)


def load_feature_collection(source: str | Path | bytes | Mapping[str, Any]) -> dict[str, Any]:
    """Load a FeatureCollection.

    Args:
        source: Path to a GeoJSON file (``str`` or ``Path``), GeoJSON text
            (a ``str`` starting with ``{`` or ``[``), raw GeoJSON bytes, or an
            already decoded mapping.
    """
    if isinstance(source, Mapping):
        return _check_collection(source)
    if isinstance(source, bytes):
        return parse_feature_collection(source)
    if isinstance(source, str) and source.lstrip().startswith(("{", "[")):
        return parse_feature_collection(source)

    path = Path(source)
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise AcquisitionError(f"Cannot read {path}: {exc}") from exc
    return parse_feature_collection(content)


async def fetch_feature_collection(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
    follow_redirects: bool = True,
) -> dict[str, Any]:
    """Download and decode a remote GeoJSON FeatureCollection.

    No retries: any transport error, non-2xx status (including an unfollowed
    redirect) or undecodable body is reported once as ``AcquisitionError``.
    """
    logger.info("Fetching %s", url)
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                response = await own_client.get(url, follow_redirects=follow_redirects)
        else:
            response = await client.get(url, follow_redirects=follow_redirects)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise AcquisitionError(f"Could not fetch {url}: {exc}") from exc

    return parse_feature_collection(response.content)


def load_upload(filename: str, content: bytes) -> dict[str, Any]:
    """Turn a single uploaded file into a FeatureCollection, by extension."""
    name = filename.lower()
    if name.endswith(GEOJSON_EXTS):
        return parse_feature_collection(content)
    if name.endswith(KML_EXTS):
        return read_kmz(io.BytesIO(content))
    if name.endswith(".zip"):
        return read_shapefile_zip(content)
    raise AcquisitionError(f"Unsupported file type: {filename}")
