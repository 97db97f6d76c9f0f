import pytest


def line(coords, **properties):
    return {"type": "Feature", "geometry": {"type": "LineString", "coordinates": coords}, "properties": properties}


def multi_line(lines, **properties):
    return {"type": "Feature", "geometry": {"type": "MultiLineString", "coordinates": lines}, "properties": properties}


def collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


@pytest.fixture
def two_lines():
    """Two LineStrings sharing (2, 2)."""
    return collection(
        line([[0, 0], [1, 1], [2, 2]], Layer="A"),
        line([[2, 2], [3, 3]], Layer="B"),
    )


@pytest.fixture
def branching_network():
    """A trunk, a MultiLineString branch pair, and features that must be skipped."""
    return collection(
        line([[10.0, 50.0], [10.1, 50.0], [10.2, 50.0]], Layer="trunk"),
        multi_line(
            [
                [[10.1, 50.0], [10.1, 50.1]],
                [[10.1, 50.1], [10.15, 50.2]],
            ],
            Layer="branch",
        ),
        {"type": "Feature", "geometry": {"type": "Point", "coordinates": [10.0, 50.0]}, "properties": {}},
        {"type": "Feature", "geometry": None, "properties": {}},
        line([[10.2, 50.0], ["x", 50.1]]),
    )
