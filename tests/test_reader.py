"""Tests for shapefile, KMZ/KML and GeoJSON acquisition."""

import io
import json
import zipfile

import httpx
import pytest
import shapefile
from pyproj import CRS

from pipeline_topology import (
    AcquisitionError,
    build_topology,
    fetch_feature_collection,
    load_feature_collection,
    load_upload,
    read_kmz,
    read_shapefile,
    read_shapefile_zip,
)


@pytest.fixture
def polyline_shp(tmp_path):
    base = tmp_path / "lines"
    with shapefile.Writer(str(base), shapeType=shapefile.POLYLINE) as w:
        w.field("name", "C")
        w.line([[[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]]])
        w.record("trunk")
        w.line([[[2.0, 2.0], [3.0, 3.0]], [[2.0, 2.0], [2.0, 3.0]]])
        w.record("branch")
    return base


@pytest.fixture
def utm_shp(tmp_path):
    base = tmp_path / "utm"
    with shapefile.Writer(str(base), shapeType=shapefile.POLYLINE) as w:
        w.field("name", "C")
        w.line([[[500000.0, 0.0], [500000.0, 1000.0]]])
        w.record("north")
    (tmp_path / "utm.prj").write_text(CRS.from_epsg(32630).to_wkt())
    return base


class TestShapefile:
    def test_reads_lines_and_multilines(self, polyline_shp):
        fc = read_shapefile(polyline_shp)
        assert [f["geometry"]["type"] for f in fc["features"]] == ["LineString", "MultiLineString"]
        assert fc["features"][0]["properties"] == {"name": "trunk"}
        assert fc["features"][1]["geometry"]["coordinates"][1] == [[2.0, 2.0], [2.0, 3.0]]

    def test_topology(self, polyline_shp):
        model = build_topology(read_shapefile(polyline_shp))
        assert model.node_for((2, 2)).connections == 3
        assert model.statistics.line_count == 2
        assert model.statistics.node_count == 5

    def test_projected_crs_transformed_to_wgs84(self, utm_shp):
        fc = read_shapefile(utm_shp)
        (lng0, lat0), (lng1, lat1) = fc["features"][0]["geometry"]["coordinates"]
        assert lng0 == pytest.approx(-3.0)
        assert lat0 == pytest.approx(0.0, abs=1e-9)
        assert lat1 == pytest.approx(0.00904, abs=1e-4)

    def test_file_objects(self, polyline_shp):
        fc = read_shapefile(
            shp_file=io.BytesIO(polyline_shp.with_suffix(".shp").read_bytes()),
            shx_file=io.BytesIO(polyline_shp.with_suffix(".shx").read_bytes()),
            dbf_file=io.BytesIO(polyline_shp.with_suffix(".dbf").read_bytes()),
        )
        assert len(fc["features"]) == 2

    def test_file_objects_without_dbf(self, polyline_shp):
        fc = read_shapefile(
            shp_file=io.BytesIO(polyline_shp.with_suffix(".shp").read_bytes()),
            shx_file=io.BytesIO(polyline_shp.with_suffix(".shx").read_bytes()),
        )
        assert [f["properties"] for f in fc["features"]] == [{}, {}]
        assert build_topology(fc).node_for((2, 2)).connections == 3

    def test_path_without_dbf(self, polyline_shp):
        polyline_shp.with_suffix(".dbf").unlink()
        fc = read_shapefile(polyline_shp.with_suffix(".shp"))
        assert len(fc["features"]) == 2
        assert fc["features"][0]["properties"] == {}

    def test_zip(self, polyline_shp):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            for ext in (".shp", ".shx", ".dbf"):
                p = polyline_shp.with_suffix(ext)
                zf.writestr(f"data/{p.name}", p.read_bytes())
        fc = read_shapefile_zip(buf.getvalue())
        assert len(fc["features"]) == 2

    def test_zip_without_shp(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("readme.txt", "nothing here")
        with pytest.raises(AcquisitionError, match="No .shp"):
            read_shapefile_zip(buf.getvalue())

    def test_point_shapefile_rejected(self, tmp_path):
        base = tmp_path / "points"
        with shapefile.Writer(str(base), shapeType=shapefile.POINT) as w:
            w.field("name", "C")
            w.point(0.0, 0.0)
            w.record("p")
        with pytest.raises(AcquisitionError, match="Unsupported shape type"):
            read_shapefile(base)


class TestKmlInline:
    KML_LINES = """\
<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <Placemark>
      <name>Trunk</name>
      <LineString>
        <coordinates>-3.5,53.5,-10 -3.4,53.6,-20 -3.3,53.7,-30</coordinates>
      </LineString>
    </Placemark>
    <Placemark>
      <name>Spurs</name>
      <ExtendedData><Data name="Layer"><value>FRK</value></Data></ExtendedData>
      <MultiGeometry>
        <LineString><coordinates>-3.4,53.6 -3.4,53.8</coordinates></LineString>
        <LineString><coordinates>-3.4,53.6 -3.2,53.6</coordinates></LineString>
      </MultiGeometry>
    </Placemark>
    <Placemark><Point><coordinates>1.0,2.0</coordinates></Point></Placemark>
    <Placemark>
      <LineString><coordinates>0,0 abc,1</coordinates></LineString>
    </Placemark>
  </Document>
</kml>"""

    def test_placemarks_to_features(self):
        fc = read_kmz(io.BytesIO(self.KML_LINES.encode()))
        features = fc["features"]
        assert len(features) == 3
        assert features[0]["geometry"]["type"] == "LineString"
        assert features[0]["properties"] == {"name": "Trunk"}
        assert features[1]["geometry"]["type"] == "MultiLineString"
        assert features[1]["properties"] == {"name": "Spurs", "Layer": "FRK"}
        assert features[2]["geometry"] is None

    def test_topology(self):
        model = build_topology(read_kmz(io.BytesIO(self.KML_LINES.encode())))
        assert model.node_for((-3.4, 53.6)).connections == 3
        assert model.statistics.total_features == 2
        assert len(model.skipped) == 1

    def test_kmz_from_bytes(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("doc.kml", self.KML_LINES)
        fc = read_kmz(buf.getvalue())
        assert len(fc["features"]) == 3

    def test_invalid_xml(self):
        with pytest.raises(AcquisitionError):
            read_kmz(b"<kml><Document>")


class TestGeoJson:
    def test_path(self, tmp_path, two_lines):
        path = tmp_path / "network.geojson"
        path.write_text(json.dumps(two_lines))
        assert load_feature_collection(path) == two_lines
        assert load_feature_collection(str(path)) == two_lines

    def test_bytes_and_mapping(self, two_lines):
        assert load_feature_collection(json.dumps(two_lines).encode()) == two_lines
        assert load_feature_collection(two_lines) == two_lines

    def test_json_text(self, two_lines):
        assert load_feature_collection(json.dumps(two_lines)) == two_lines
        assert load_feature_collection('  {"type": "FeatureCollection", "features": []}') == {
            "type": "FeatureCollection",
            "features": [],
        }
        with pytest.raises(AcquisitionError, match="Invalid GeoJSON"):
            load_feature_collection("{broken")

    @pytest.mark.parametrize("content", [b"{not json", b"[]", b'{"type": "FeatureCollection"}'])
    def test_unusable_content(self, content):
        with pytest.raises(AcquisitionError):
            load_feature_collection(content)

    def test_missing_file(self, tmp_path):
        with pytest.raises(AcquisitionError):
            load_feature_collection(tmp_path / "missing.geojson")

    def test_upload_dispatch(self, two_lines):
        assert load_upload("NETWORK.GEOJSON", json.dumps(two_lines).encode()) == two_lines
        with pytest.raises(AcquisitionError, match="Unsupported file type"):
            load_upload("network.csv", b"a,b")


@pytest.mark.asyncio
class TestFetch:
    async def test_fetch(self, two_lines):
        def handler(request):
            assert request.url.path == "/network.geojson"
            return httpx.Response(200, json=two_lines)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fc = await fetch_feature_collection("http://data.test/network.geojson", client=client)
        assert fc == two_lines

    async def test_http_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(AcquisitionError, match="Could not fetch"):
                await fetch_feature_collection("http://data.test/missing.geojson", client=client)

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(AcquisitionError):
                await fetch_feature_collection("http://data.test/network.geojson", client=client)
