"""Topology extraction: vertex aggregation and node classification.

Building a model is a two-phase batch job. ``aggregate`` walks every vertex
of every segment and counts how often each exact coordinate occurs.
``classify`` then turns the finished tally into indexed, typed nodes. A
node's count depends on every feature that touches it, so classification
never starts before aggregation has seen the whole collection.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .models import LineSegment, Node, NodeType, TopologyModel
from .normalize import Coordinate, node_key
from .segments import ingest
from .statistics import compute_statistics

logger = logging.getLogger(__name__)

NODE_ID_PREFIX = "NODE_"


@dataclass
class CoordinateTally:
    """Occurrence counts per node key, plus the order keys were first seen in."""

    counts: dict[str, int] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)
    coordinates: dict[str, Coordinate] = field(default_factory=dict)
    vertex_count: int = 0

    def add(self, coordinate: Coordinate) -> str:
        key = node_key(coordinate)
        if key in self.counts:
            self.counts[key] += 1
        else:
            self.counts[key] = 1
            self.order.append(key)
            self.coordinates[key] = (coordinate[0], coordinate[1])
        self.vertex_count += 1
        return key


def aggregate(segments: Iterable[LineSegment]) -> CoordinateTally:
    """Count every vertex of every segment, interior points included."""
    tally = CoordinateTally()
    for segment in segments:
        for coordinate in segment.coordinates:
            tally.add(coordinate)
    return tally


def node_id(index: int) -> str:
    return f"{NODE_ID_PREFIX}{index}"


def classify(tally: CoordinateTally) -> list[Node]:
    """Assign ids and types to the tallied keys in first-encounter order."""
    nodes: list[Node] = []
    for index, key in enumerate(tally.order):
        connections = tally.counts[key]
        nodes.append(
            Node(
                id=node_id(index),
                index=index,
                key=key,
                coordinate=tally.coordinates[key],
                connections=connections,
                type=NodeType.JUNCTION if connections > 1 else NodeType.ENDPOINT,
            )
        )
    return nodes


def build_topology(features: Mapping[str, Any] | Sequence[Any]) -> TopologyModel:
    """Derive the full topology model from a feature collection.

    Pure: nothing is cached or shared between calls, and the same input
    always produces the same ids, indices, types and statistics.
    """
    ingested = ingest(features)
    segments = list(ingested.segments)

    tally = aggregate(segments)
    nodes = classify(tally)
    statistics = compute_statistics(ingested, nodes, segments)

    logger.info(
        "Built topology: %d features (%d skipped), %d segments, %d vertices, "
        "%d nodes (%d junctions)",
        statistics.total_features,
        len(ingested.skipped),
        len(segments),
        tally.vertex_count,
        statistics.node_count,
        statistics.junction_count,
    )

    return TopologyModel(
        nodes=nodes,
        segments=segments,
        connections={key: tally.counts[key] for key in tally.order},
        statistics=statistics,
        skipped=list(ingested.skipped),
    )
