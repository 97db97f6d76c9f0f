"""Summary figures and spatial extent of an ingested network."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .models import BoundingBox, LineSegment, Node, NodeType, Statistics
from .segments import WGS84, IngestResult


def bounding_box(segments: Iterable[LineSegment]) -> BoundingBox | None:
    """Extent of every segment coordinate, or None when there are none."""
    west = south = float("inf")
    east = north = float("-inf")
    for segment in segments:
        for lng, lat in segment.coordinates:
            west = min(west, lng)
            east = max(east, lng)
            south = min(south, lat)
            north = max(north, lat)

    if west > east:
        return None

    area_m2 = 0.0
    if -90.0 <= south and north <= 90.0:
        area_m2, _ = WGS84.polygon_area_perimeter([west, east, east, west], [south, south, north, north])
    return BoundingBox(west=west, south=south, east=east, north=north, area_km2=abs(area_m2) / 1e6)


def compute_statistics(
    ingested: IngestResult,
    nodes: Sequence[Node],
    segments: Sequence[LineSegment] | None = None,
) -> Statistics:
    """Count features, lines and nodes and measure the network.

    A MultiLineString counts as one line however many segments it expands to.
    """
    if segments is None:
        segments = list(ingested.segments)

    junctions = sum(1 for node in nodes if node.type is NodeType.JUNCTION)
    total_length_m = sum(segment.length_m for segment in segments)

    return Statistics(
        total_features=ingested.total_features,
        line_count=ingested.line_count,
        node_count=len(nodes),
        junction_count=junctions,
        endpoint_count=len(nodes) - junctions,
        kind_counts=ingested.kind_counts,
        total_length_km=total_length_m / 1000,
        bounding_box=bounding_box(segments),
    )
