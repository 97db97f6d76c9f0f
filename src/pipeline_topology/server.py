"""FastAPI server exposing the topology model."""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse

from .config import get_settings
from .errors import AcquisitionError
from .models import Node, TopologyModel
from .reader import read_shapefile
from .sources import fetch_feature_collection, load_upload
from .topology import build_topology

logger = logging.getLogger(__name__)

app = FastAPI(title="Pipeline Topology", version="0.1.0")

COMPANION_EXTS = {".shp", ".shx", ".dbf", ".prj"}
NODE_FIELDS = ["id", "index", "lng", "lat", "connections", "type"]


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/topology")
async def topology_from_upload(
    files: list[UploadFile],
    format: str = Query("json", pattern="^(csv|json)$"),
):
    """Build the topology of uploaded line data.

    Accepts:
    - A single .geojson or .json FeatureCollection
    - A single .kmz or .kml file
    - A single .zip containing shapefile components
    - Multiple files (.shp, .shx, .dbf, and optionally .prj)
    """
    max_bytes = int(get_settings().max_upload_mb * 1024 * 1024)
    contents = []
    for f in files:
        if f.size is not None and f.size > max_bytes:
            raise HTTPException(status_code=413, detail=f"{f.filename} exceeds upload limit")
        # read at most one byte past the limit
        data = await f.read(max_bytes + 1)
        if len(data) > max_bytes:
            raise HTTPException(status_code=413, detail=f"{f.filename} exceeds upload limit")
        contents.append((f.filename or "", data))

    try:
        if len(contents) == 1 and Path(contents[0][0]).suffix.lower() not in COMPANION_EXTS:
            collection = load_upload(*contents[0])
        else:
            collection = _load_shapefile_parts(contents)
    except AcquisitionError as exc:
        logger.error("Upload rejected: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return _respond(build_topology(collection), format)


@app.get("/topology")
async def topology_from_url(
    url: str = Query(..., min_length=1),
    format: str = Query("json", pattern="^(csv|json)$"),
):
    """Fetch a remote GeoJSON FeatureCollection and build its topology.

    Only hosts listed in ``fetch_allowed_hosts`` are fetched, and redirects
    are not followed.
    """
    settings = get_settings()
    try:
        target = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise HTTPException(status_code=400, detail=f"Invalid URL: {exc}") from exc

    if target.scheme not in ("http", "https"):
        raise HTTPException(status_code=400, detail="Only http and https URLs can be fetched")
    allowed = {host.lower() for host in settings.fetch_allowed_hosts}
    if target.host.lower() not in allowed:
        logger.warning("Refusing to fetch from host %r", target.host)
        raise HTTPException(status_code=403, detail=f"Host {target.host!r} is not allowed")

    try:
        collection = await fetch_feature_collection(
            url, timeout=settings.fetch_timeout_s, follow_redirects=False
        )
    except AcquisitionError as exc:
        logger.error("Fetch failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return _respond(build_topology(collection), format)


def _load_shapefile_parts(contents: list[tuple[str, bytes]]) -> dict[str, Any]:
    """Build a FeatureCollection from loose shapefile component uploads."""
    file_map: dict[str, bytes] = {}
    for filename, data in contents:
        ext = Path(filename).suffix.lower()
        if ext in COMPANION_EXTS:
            file_map[ext] = data

    if ".shp" not in file_map:
        raise AcquisitionError("Missing required .shp file")

    return read_shapefile(
        shp_file=io.BytesIO(file_map[".shp"]),
        shx_file=io.BytesIO(file_map[".shx"]) if ".shx" in file_map else None,
        dbf_file=io.BytesIO(file_map[".dbf"]) if ".dbf" in file_map else None,
        prj_wkt=file_map[".prj"].decode("utf-8", errors="replace") if ".prj" in file_map else None,
    )


def _respond(model: TopologyModel, format: str):
    if format == "json":
        return model.model_dump(mode="json")
    return _nodes_to_csv_response(model.nodes)


def node_row(node: Node) -> dict[str, Any]:
    return {
        "id": node.id,
        "index": node.index,
        "lng": node.lng,
        "lat": node.lat,
        "connections": node.connections,
        "type": node.type.value,
    }


def _nodes_to_csv_response(nodes: list[Node]) -> StreamingResponse:
    """Convert nodes to a streaming CSV response."""

    def generate():
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=NODE_FIELDS)
        writer.writeheader()
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for node in nodes:
            writer.writerow(node_row(node))
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    return StreamingResponse(
        generate(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=pipeline_nodes.csv"},
    )
