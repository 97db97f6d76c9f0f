"""Polyline shapefile reader producing GeoJSON line features in WGS84."""

from __future__ import annotations

import io
import logging
import tempfile
import zipfile
from pathlib import Path
from typing import Any, BinaryIO

import shapefile
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from .errors import AcquisitionError

logger = logging.getLogger(__name__)

POLYLINE_TYPES = (shapefile.POLYLINE, shapefile.POLYLINEZ, shapefile.POLYLINEM)


def detect_crs(prj_source: str | Path | None) -> CRS | None:
    """Parse a CRS from a .prj WKT string or file path, or None if there isn't a usable one."""
    if prj_source is None:
        return None

    wkt = prj_source if isinstance(prj_source, str) else ""
    if isinstance(prj_source, Path):
        if not prj_source.exists():
            return None
        wkt = prj_source.read_text()

    if not wkt.strip():
        return None

    try:
        return CRS.from_wkt(wkt)
    except CRSError:
        logger.warning("Ignoring unparseable .prj WKT")
        return None


def read_shapefile(
    shp_path: str | Path | None = None,
    *,
    shp_file: BinaryIO | None = None,
    shx_file: BinaryIO | None = None,
    dbf_file: BinaryIO | None = None,
    prj_wkt: str | None = None,
) -> dict[str, Any]:
    """Read a polyline shapefile into a GeoJSON FeatureCollection.

    Supports two modes:
    - File path: pass ``shp_path`` (the .prj is auto-discovered)
    - File objects: pass ``shp_file``, ``shx_file``, ``dbf_file``, and optionally ``prj_wkt``

    Each record becomes one feature: a LineString for a single-part record
    and a MultiLineString otherwise. Projected coordinates are transformed
    to WGS84 longitude/latitude.
    """
    try:
        if shp_path is not None:
            shp_path = Path(shp_path)
            sf = shapefile.Reader(str(shp_path))
            prj_path = _sibling(shp_path, ".prj")
            crs = detect_crs(prj_path if prj_path.exists() else None)
            has_dbf = _sibling(shp_path, ".dbf").exists()
        elif shp_file is not None:
            sf = shapefile.Reader(shp=shp_file, shx=shx_file, dbf=dbf_file)
            crs = detect_crs(prj_wkt)
            has_dbf = dbf_file is not None
        else:
            raise ValueError("Provide either shp_path or shp_file")
    except (shapefile.ShapefileException, OSError) as exc:
        raise AcquisitionError(f"Cannot open shapefile: {exc}") from exc

    with sf:
        if sf.shapeType not in POLYLINE_TYPES:
            raise AcquisitionError(
                f"Unsupported shape type: {sf.shapeTypeName}. Only POLYLINE shapes are supported."
            )

        transformer = None
        if crs is not None and crs.is_projected:
            transformer = Transformer.from_crs(crs, "EPSG:4326", always_xy=True)

        try:
            if has_dbf:
                records = [(rec.shape, rec.record.as_dict()) for rec in sf.iterShapeRecords()]
            else:
                # no attribute table: geometry only
                records = [(shape, {}) for shape in sf.iterShapes()]
        except shapefile.ShapefileException as exc:
            raise AcquisitionError(f"Cannot read shapefile records: {exc}") from exc
        features = [_record_to_feature(shape, props, transformer) for shape, props in records]

    logger.info("Read %d shapefile records (%s)", len(features), crs.name if crs else "no CRS")
    return {"type": "FeatureCollection", "features": features}


def _sibling(shp_path: Path, ext: str) -> Path:
    """Companion file next to ``shp_path``, with or without a .shp suffix on it."""
    if shp_path.suffix.lower() == ".shp":
        return shp_path.with_suffix(ext)
    return Path(str(shp_path) + ext)


def read_shapefile_zip(content: bytes) -> dict[str, Any]:
    """Read the first .shp found inside a zip archive."""
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as zf, tempfile.TemporaryDirectory() as extract_dir:
            zf.extractall(extract_dir)
            shp_files = sorted(Path(extract_dir).rglob("*.shp"))
            if not shp_files:
                raise AcquisitionError("No .shp file found in zip archive")
            return read_shapefile(shp_files[0])
    except zipfile.BadZipFile as exc:
        raise AcquisitionError(f"Invalid zip archive: {exc}") from exc


def _record_to_feature(
    shape: shapefile.Shape, properties: dict[str, Any], transformer: Transformer | None
) -> dict[str, Any]:
    if shape.shapeType == shapefile.NULL or not shape.points:
        return {"type": "Feature", "geometry": None, "properties": properties}

    points = [(p[0], p[1]) for p in shape.points]
    if transformer is not None:
        xs, ys = zip(*points)
        lons, lats = transformer.transform(list(xs), list(ys))
        points = list(zip(lons, lats))

    part_starts = list(shape.parts)
    lines = []
    for part_idx, start in enumerate(part_starts):
        end = part_starts[part_idx + 1] if part_idx + 1 < len(part_starts) else len(points)
        lines.append([[x, y] for x, y in points[start:end]])

    if len(lines) == 1:
        geometry = {"type": "LineString", "coordinates": lines[0]}
    else:
        geometry = {"type": "MultiLineString", "coordinates": lines}
    return {"type": "Feature", "geometry": geometry, "properties": properties}
