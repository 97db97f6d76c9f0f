"""Pydantic data models for the pipeline topology."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, computed_field

from .normalize import Coordinate, node_key


class GeometryKind(str, Enum):
    LINE_STRING = "LineString"
    MULTI_LINE_STRING = "MultiLineString"


class NodeType(str, Enum):
    ENDPOINT = "Endpoint"
    JUNCTION = "Junction"


class LineSegment(BaseModel):
    """One renderable coordinate sequence and the feature it came from."""

    model_config = ConfigDict(frozen=True)

    coordinates: list[Coordinate]
    feature_index: int
    part: int = 0
    geometry_type: GeometryKind
    properties: dict[str, Any] = Field(default_factory=dict)
    length_m: float = 0.0


class Node(BaseModel):
    """A distinct vertex location and how many vertices share it."""

    model_config = ConfigDict(frozen=True)

    id: str
    index: int
    key: str
    coordinate: Coordinate
    connections: int = Field(ge=1)
    type: NodeType

    @property
    def lng(self) -> float:
        return self.coordinate[0]

    @property
    def lat(self) -> float:
        return self.coordinate[1]

    @property
    def is_junction(self) -> bool:
        return self.type is NodeType.JUNCTION


class SkippedFeature(BaseModel):
    """A feature the ingestor rejected, with the reason."""

    model_config = ConfigDict(frozen=True)

    feature_index: int
    reason: str


class KindCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_string: int = 0
    multi_line_string: int = 0


class BoundingBox(BaseModel):
    """Extent of all rendered geometry, in WGS84 degrees."""

    model_config = ConfigDict(frozen=True)

    west: float
    south: float
    east: float
    north: float
    area_km2: float = 0.0

    @computed_field
    @property
    def center(self) -> tuple[float, float]:
        """(lat, lng) of the box centre."""
        return (self.south + self.north) / 2, (self.west + self.east) / 2

    @computed_field
    @property
    def coverage_deg2(self) -> float:
        return (self.north - self.south) * (self.east - self.west)


class Statistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_features: int
    line_count: int
    node_count: int
    junction_count: int
    endpoint_count: int
    kind_counts: KindCounts
    total_length_km: float = 0.0
    bounding_box: BoundingBox | None = None


class TopologyModel(BaseModel):
    """Complete result of one ingestion cycle."""

    model_config = ConfigDict(frozen=True)

    nodes: list[Node]
    segments: list[LineSegment]
    connections: dict[str, int]
    statistics: Statistics
    skipped: list[SkippedFeature] = Field(default_factory=list)

    _index_by_key: dict[str, int] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._index_by_key = {node.key: node.index for node in self.nodes}

    def node_at(self, index: int) -> Node:
        """Return the node with the given index (nodes are stored in index order)."""
        if not 0 <= index < len(self.nodes):
            raise IndexError(f"No node with index {index}")
        return self.nodes[index]

    def node_by_id(self, node_id: str) -> Node | None:
        prefix, _, number = node_id.partition("_")
        if prefix != "NODE" or not number.isdigit():
            return None
        index = int(number)
        if index >= len(self.nodes) or self.nodes[index].id != node_id:
            return None
        return self.nodes[index]

    def node_for(self, coordinate: Coordinate) -> Node | None:
        """Look up the node sitting exactly on ``coordinate``."""
        index = self._index_by_key.get(node_key(coordinate))
        return None if index is None else self.nodes[index]

    def junctions(self) -> list[Node]:
        return [node for node in self.nodes if node.type is NodeType.JUNCTION]

    def endpoints(self) -> list[Node]:
        return [node for node in self.nodes if node.type is NodeType.ENDPOINT]
