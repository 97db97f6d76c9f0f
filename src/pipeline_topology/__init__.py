"""Pipeline network topology extraction from line geometry."""

from .errors import AcquisitionError, FeatureParseError, TopologyError
from .kml_reader import read_kmz
from .models import (
    BoundingBox,
    GeometryKind,
    KindCounts,
    LineSegment,
    Node,
    NodeType,
    SkippedFeature,
    Statistics,
    TopologyModel,
)
from .normalize import node_key, parse_node_key
from .reader import detect_crs, read_shapefile, read_shapefile_zip
from .segments import IngestResult, SegmentSequence, ingest
from .sources import fetch_feature_collection, load_feature_collection, load_upload
from .statistics import bounding_box, compute_statistics
from .topology import CoordinateTally, aggregate, build_topology, classify

__all__ = [
    "AcquisitionError",
    "BoundingBox",
    "CoordinateTally",
    "FeatureParseError",
    "GeometryKind",
    "IngestResult",
    "KindCounts",
    "LineSegment",
    "Node",
    "NodeType",
    "SegmentSequence",
    "SkippedFeature",
    "Statistics",
    "TopologyError",
    "TopologyModel",
    "aggregate",
    "bounding_box",
    "build_topology",
    "classify",
    "compute_statistics",
    "detect_crs",
    "fetch_feature_collection",
    "ingest",
    "load_feature_collection",
    "load_upload",
    "node_key",
    "parse_node_key",
    "read_kmz",
    "read_shapefile",
    "read_shapefile_zip",
]
