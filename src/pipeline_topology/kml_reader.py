"""KMZ/KML reader — turns Placemark line geometry into GeoJSON features.

KMZ is a ZIP archive containing KML. KML coordinates are always WGS84 (EPSG:4326)
in ``longitude,latitude,altitude`` format.
"""

from __future__ import annotations

import io
import zipfile
import xml.etree.ElementTree as ET
from typing import Any, BinaryIO

from .errors import AcquisitionError


def read_kmz(file: str | bytes | BinaryIO) -> dict[str, Any]:
    """Read a KMZ (or plain KML) file and return a GeoJSON FeatureCollection.

    Args:
        file: Path to a .kmz/.kml file, raw bytes, or a file-like object containing KMZ/KML bytes.
    """
    data = _read_bytes(file)

    # KMZ is a ZIP; plain KML is XML text
    if _is_zip(data):
        kml_text = _extract_kml_from_kmz(data)
    else:
        kml_text = data.decode("utf-8", errors="replace")

    try:
        root = ET.fromstring(kml_text)
    except ET.ParseError as exc:
        raise AcquisitionError(f"Invalid KML: {exc}") from exc

    features = [
        _placemark_to_feature(placemark)
        for placemark in root.iter()
        if _local(placemark.tag) == "Placemark" and _find_all(placemark, "LineString")
    ]
    return {"type": "FeatureCollection", "features": features}


def _read_bytes(file: str | bytes | BinaryIO) -> bytes:
    if isinstance(file, (str, bytes)):
        if isinstance(file, str):
            try:
                with open(file, "rb") as f:
                    return f.read()
            except OSError as exc:
                raise AcquisitionError(f"Cannot read {file}: {exc}") from exc
        return file
    return file.read()


def _is_zip(data: bytes) -> bool:
    return data[:4] == b"PK\x03\x04"


def _extract_kml_from_kmz(data: bytes) -> str:
    """Extract the first .kml file from a KMZ (ZIP) archive."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            # Prefer doc.kml, fall back to any .kml
            names = zf.namelist()
            kml_name = next((n for n in names if n.lower() == "doc.kml"), None)
            if kml_name is None:
                kml_name = next((n for n in names if n.lower().endswith(".kml")), None)
            if kml_name is None:
                raise AcquisitionError("No .kml file found in KMZ archive")
            return zf.read(kml_name).decode("utf-8", errors="replace")
    except zipfile.BadZipFile as exc:
        raise AcquisitionError(f"Invalid KMZ archive: {exc}") from exc


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find_all(elem: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in elem.iter() if _local(child.tag) == name]


def _child_text(elem: ET.Element, name: str) -> str | None:
    for child in elem:
        if _local(child.tag) == name:
            return (child.text or "").strip()
    return None


def _placemark_to_feature(placemark: ET.Element) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    for key in ("name", "description"):
        text = _child_text(placemark, key)
        if text is not None:
            properties[key] = text
    for data in _find_all(placemark, "Data"):
        name = data.get("name")
        if name:
            properties[name] = _child_text(data, "value")

    lines = []
    for line in _find_all(placemark, "LineString"):
        coords = _child_text(line, "coordinates")
        parsed = _parse_coordinates_text(coords or "")
        if parsed is None:
            # leave it to the ingestor to skip
            return {"type": "Feature", "geometry": None, "properties": properties}
        lines.append(parsed)

    if len(lines) == 1:
        geometry = {"type": "LineString", "coordinates": lines[0]}
    else:
        geometry = {"type": "MultiLineString", "coordinates": lines}
    return {"type": "Feature", "geometry": geometry, "properties": properties}


def _parse_coordinates_text(text: str) -> list[list[float]] | None:
    """Parse a KML ``<coordinates>`` text block.

    Format: ``lon,lat[,alt] lon,lat[,alt] ...`` (whitespace-separated tuples).
    Returns None if any tuple isn't numeric.
    """
    positions: list[list[float]] = []
    for token in text.split():
        parts = token.split(",")
        if len(parts) < 2:
            continue
        try:
            positions.append([float(p) for p in parts[:3]])
        except ValueError:
            return None
    return positions
