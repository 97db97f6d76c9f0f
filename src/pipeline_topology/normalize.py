"""Exact-match node keys for raw coordinates.

Keys are built from the shortest round-trip text of each ordinate, so two
coordinates share a key only when their longitude and latitude values are
equal. Nothing is rounded: ``1.0000001`` and ``1.0`` are different nodes.
"""

from __future__ import annotations

from collections.abc import Sequence

Coordinate = tuple[float, float]


def _ordinate_text(value: float) -> str:
    value = float(value)
    if value == 0.0:
        # -0.0 == 0.0, keep them on one node
        value = 0.0
    return repr(value)


def node_key(coordinate: Sequence[float]) -> str:
    """Return the ``"<lng>,<lat>"`` key for a coordinate; extra ordinates are ignored."""
    return f"{_ordinate_text(coordinate[0])},{_ordinate_text(coordinate[1])}"


def parse_node_key(key: str) -> Coordinate:
    lng, lat = key.split(",")
    return float(lng), float(lat)
