"""Geometry ingestion: flatten line features into renderable segments."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from pyproj import Geod

from .errors import AcquisitionError, FeatureParseError
from .models import GeometryKind, KindCounts, LineSegment, SkippedFeature
from .normalize import Coordinate

logger = logging.getLogger(__name__)

WGS84 = Geod(ellps="WGS84")

SUPPORTED_KINDS = {kind.value for kind in GeometryKind}


def _position(value: Any) -> Coordinate:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        raise ValueError(f"position {value!r} needs at least two ordinates")
    ordinates = []
    for ordinate in value[:2]:
        if isinstance(ordinate, bool) or not isinstance(ordinate, (int, float)):
            raise ValueError(f"ordinate {ordinate!r} is not a number")
        try:
            ordinate = float(ordinate)
        except OverflowError as exc:
            raise ValueError("ordinate is too large for a float") from exc
        if not math.isfinite(ordinate):
            raise ValueError(f"ordinate {ordinate!r} is not finite")
        ordinates.append(ordinate)
    return ordinates[0], ordinates[1]


def _is_geographic(coordinates: Sequence[Coordinate]) -> bool:
    return all(-90.0 <= c[1] <= 90.0 for c in coordinates)


def _line(value: Any) -> list[Coordinate]:
    if not isinstance(value, (list, tuple)):
        raise ValueError("line coordinates must be an array")
    if len(value) < 2:
        raise ValueError("a line needs at least two positions")
    return [_position(p) for p in value]


class LineStringGeometry(BaseModel):
    type: Literal["LineString"]
    coordinates: list[Coordinate]

    @field_validator("coordinates", mode="before")
    @classmethod
    def _check_line(cls, value: Any) -> list[Coordinate]:
        return _line(value)

    def lines(self) -> list[list[Coordinate]]:
        return [self.coordinates]


class MultiLineStringGeometry(BaseModel):
    type: Literal["MultiLineString"]
    coordinates: list[list[Coordinate]]

    @field_validator("coordinates", mode="before")
    @classmethod
    def _check_lines(cls, value: Any) -> list[list[Coordinate]]:
        if not isinstance(value, (list, tuple)) or not value:
            raise ValueError("a MultiLineString needs at least one line")
        return [_line(line) for line in value]

    def lines(self) -> list[list[Coordinate]]:
        return self.coordinates


LineGeometry = Annotated[
    Union[LineStringGeometry, MultiLineStringGeometry],
    Field(discriminator="type"),
]

_geometry_adapter = TypeAdapter(LineGeometry)


@dataclass(frozen=True)
class _AcceptedFeature:
    index: int
    geometry: LineStringGeometry | MultiLineStringGeometry
    properties: dict[str, Any]


def parse_feature(index: int, feature: Any) -> _AcceptedFeature:
    """Validate one raw feature, raising ``FeatureParseError`` if it can't be used."""
    if not isinstance(feature, Mapping):
        raise FeatureParseError(index, "feature is not an object")

    geometry = feature.get("geometry")
    if not isinstance(geometry, Mapping):
        raise FeatureParseError(index, "feature has no geometry")

    kind = geometry.get("type")
    if kind not in SUPPORTED_KINDS:
        raise FeatureParseError(index, f"unsupported geometry type {kind!r}")

    try:
        parsed = _geometry_adapter.validate_python(dict(geometry))
    except ValidationError as exc:
        reason = "; ".join(err["msg"] for err in exc.errors())
        raise FeatureParseError(index, reason) from exc

    properties = feature.get("properties")
    return _AcceptedFeature(
        index=index,
        geometry=parsed,
        properties=dict(properties) if isinstance(properties, Mapping) else {},
    )


def segment_length_m(coordinates: Sequence[Coordinate]) -> float:
    """Geodesic length of a polyline on the WGS84 ellipsoid, in metres.

    Lines whose latitudes aren't geographic (e.g. projected metres) measure 0.
    """
    if len(coordinates) < 2 or not _is_geographic(coordinates):
        return 0.0
    lons = [c[0] for c in coordinates]
    lats = [c[1] for c in coordinates]
    return WGS84.line_length(lons, lats)


class SegmentSequence:
    """Lazy, restartable sequence of the segments of the accepted features.

    Every iteration walks the features again in input order, so the sequence
    can be consumed once for aggregation and again for rendering.
    """

    def __init__(self, features: Sequence[_AcceptedFeature]):
        self._features = tuple(features)

    def __iter__(self) -> Iterator[LineSegment]:
        for feature in self._features:
            kind = GeometryKind(feature.geometry.type)
            for part, coords in enumerate(feature.geometry.lines()):
                yield LineSegment(
                    coordinates=coords,
                    feature_index=feature.index,
                    part=part,
                    geometry_type=kind,
                    properties=feature.properties,
                    length_m=segment_length_m(coords),
                )

    def coordinates(self) -> Iterator[Coordinate]:
        """Every vertex of every segment, interior points included."""
        for feature in self._features:
            for coords in feature.geometry.lines():
                yield from coords


@dataclass(frozen=True)
class IngestResult:
    total_features: int
    kind_counts: KindCounts
    segments: SegmentSequence
    skipped: tuple[SkippedFeature, ...] = ()

    @property
    def line_count(self) -> int:
        return self.kind_counts.line_string + self.kind_counts.multi_line_string


def _features_of(collection: Any) -> Sequence[Any]:
    if isinstance(collection, Mapping):
        features = collection.get("features")
        if not isinstance(features, list):
            raise AcquisitionError("Feature collection has no 'features' array")
        return features
    if isinstance(collection, Sequence) and not isinstance(collection, (str, bytes)):
        return collection
    raise AcquisitionError(f"Expected a feature collection, got {type(collection).__name__}")


def ingest(collection: Mapping[str, Any] | Sequence[Any]) -> IngestResult:
    """Accept the line features of a collection and skip everything else.

    ``collection`` is either a GeoJSON FeatureCollection mapping or a plain
    sequence of features. A bad feature is logged and recorded in
    ``skipped``; it never stops the remaining features from being read.
    """
    accepted: list[_AcceptedFeature] = []
    skipped: list[SkippedFeature] = []
    line_string = multi_line_string = 0

    for index, feature in enumerate(_features_of(collection)):
        try:
            parsed = parse_feature(index, feature)
        except FeatureParseError as exc:
            logger.warning("Skipping %s", exc)
            skipped.append(SkippedFeature(feature_index=index, reason=exc.reason))
            continue

        accepted.append(parsed)
        if parsed.geometry.type == GeometryKind.LINE_STRING.value:
            line_string += 1
        else:
            multi_line_string += 1

    return IngestResult(
        total_features=len(accepted),
        kind_counts=KindCounts(line_string=line_string, multi_line_string=multi_line_string),
        segments=SegmentSequence(accepted),
        skipped=tuple(skipped),
    )
