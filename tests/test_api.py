"""
Tests for the HTTP service, using FastAPI's TestClient against a fresh app.
"""

import json

import pytest
from fastapi.testclient import TestClient

from geoconvert.main import create_app


@pytest.fixture()
def client(history) -> TestClient:
    return TestClient(create_app(history))


def _upload(text, filename="points.csv"):
    return {"file": (filename, text.encode("utf-8"), "text/csv")}


class TestSingleConversion:

    def test_to_utm(self, client, history):
        response = client.post("/convert/to-utm", json={"latitude": "0", "longitude": "15", "title": "Equator"})
        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "WGS84_TO_UTM"
        assert body["output"]["zone"] == 33
        assert body["output"]["hemisphere"] == "N"
        assert body["output"]["easting"] == pytest.approx(500000, abs=0.01)
        assert body["title"] == "Equator"
        assert len(history) == 1

    def test_to_utm_with_target_zone(self, client):
        response = client.post("/convert/to-utm", json={"latitude": "41.39", "longitude": "2.17", "target_zone": 32})
        assert response.json()["output"]["zone"] == 32

    def test_to_wgs84(self, client):
        response = client.post(
            "/convert/to-wgs84",
            json={"easting": "500000", "northing": "0", "zone": "33", "hemisphere": "n"},
        )
        assert response.status_code == 200
        assert response.json()["output"]["longitude"] == pytest.approx(15)

    @pytest.mark.parametrize("path,payload", [
        ("/convert/to-wgs84", {"easting": "500000", "northing": "0", "zone": "61", "hemisphere": "N"}),
        ("/convert/to-utm", {"latitude": "91", "longitude": "0"}),
    ])
    def test_invalid_input_is_400(self, client, history, path, payload):
        response = client.post(path, json=payload)
        assert response.status_code == 400
        assert len(history) == 0


class TestImport:

    def test_preview_reports_detection(self, client, utm_csv_text):
        response = client.post("/import/preview", files=_upload(utm_csv_text))
        assert response.status_code == 200
        body = response.json()
        assert body["row_count"] == 5
        assert body["detected_coordinate_type"] == "UTM"
        assert body["field_status"]["zone"] == "validated"

    def test_preview_rejects_header_only_file(self, client):
        response = client.post("/import/preview", files=_upload("lat,lon"))
        assert response.status_code == 400
        assert "header and one data row" in response.json()["detail"]

    @pytest.mark.parametrize("path", ["/import/preview", "/convert/batch"])
    def test_legacy_xls_upload_is_400(self, client, path):
        ole2_header = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 504
        files = {"file": ("points.xls", ole2_header, "application/vnd.ms-excel")}
        response = client.post(path, files=files)
        assert response.status_code == 400
        assert ".xls" in response.json()["detail"]


class TestBatchConversion:

    def test_json_result_and_history(self, client, history, wgs84_csv_text):
        response = client.post("/convert/batch", files=_upload(wgs84_csv_text))
        assert response.status_code == 200
        body = response.json()
        assert body["converted_count"] == 3
        assert body["errors"] == []
        assert len(history) == 3

    def test_csv_download(self, client, utm_csv_text):
        response = client.post("/convert/batch", files=_upload(utm_csv_text), data={"output_format": "csv"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="converted_points.csv"' in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0] == "easting,northing,zone,hemisphere,converted_latitude,converted_longitude"
        assert len(lines) == 6

    def test_geojson_output(self, client, wgs84_csv_text):
        response = client.post("/convert/batch", files=_upload(wgs84_csv_text), data={"output_format": "geojson"})
        assert response.status_code == 200
        assert response.json()["type"] == "FeatureCollection"

    def test_manual_mapping_override(self, client):
        csv_text = "A,B,C\n10,20,x\n30,40,y"
        response = client.post(
            "/convert/batch",
            files=_upload(csv_text),
            data={
                "coordinate_type": "WGS84",
                "column_mapping": json.dumps({"latitude": "A", "longitude": "B"}),
            },
        )
        assert response.status_code == 200
        assert response.json()["converted_count"] == 2

    def test_undetected_without_type_is_422(self, client):
        response = client.post("/convert/batch", files=_upload("A,B\n1,2"))
        assert response.status_code == 422

    def test_override_without_mapping_is_422(self, client, wgs84_csv_text):
        response = client.post("/convert/batch", files=_upload(wgs84_csv_text), data={"coordinate_type": "UTM"})
        assert response.status_code == 422

    def test_incomplete_mapping_is_422(self, client):
        response = client.post(
            "/convert/batch",
            files=_upload("A,B\n10,20"),
            data={"coordinate_type": "WGS84", "column_mapping": json.dumps({"latitude": "A"})},
        )
        assert response.status_code == 422
        assert "longitude" in response.json()["detail"]

    def test_no_valid_rows_is_422(self, client, history):
        response = client.post(
            "/convert/batch",
            files=_upload("A,B\nfoo,bar"),
            data={"coordinate_type": "WGS84", "column_mapping": json.dumps({"latitude": "A", "longitude": "B"})},
        )
        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "No valid data"
        assert len(history) == 0

    def test_bad_mapping_json_is_400(self, client, wgs84_csv_text):
        response = client.post(
            "/convert/batch",
            files=_upload(wgs84_csv_text),
            data={"column_mapping": "{not json"},
        )
        assert response.status_code == 400


class TestBulkAndHistory:

    def test_bulk_entries(self, client, history):
        payload = {
            "coordinate_type": "UTM",
            "entries": [
                {"title": "A", "easting": 500000, "northing": 0, "zone": 33, "hemisphere": "N"},
                {"easting": 500000, "northing": 0},
            ],
        }
        response = client.post("/convert/bulk", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert body["converted_count"] == 1
        assert body["errors"][0]["row_index"] == 1
        assert len(history) == 1

    def test_history_lifecycle(self, client):
        record = client.post("/convert/to-utm", json={"latitude": "10", "longitude": "10"}).json()

        listing = client.get("/history").json()
        assert [r["id"] for r in listing] == [record["id"]]

        renamed = client.patch(f"/history/{record['id']}", json={"title": "Renamed"})
        assert renamed.json()["title"] == "Renamed"

        exported = client.get("/history/export")
        assert exported.status_code == 200
        assert exported.json()[0]["type"] == "WGS84_TO_UTM"

        assert client.delete(f"/history/{record['id']}").status_code == 204
        assert client.delete(f"/history/{record['id']}").status_code == 404
        assert client.get("/history/export").status_code == 404

    def test_clear_history(self, client, history):
        client.post("/convert/to-utm", json={"latitude": "10", "longitude": "10"})
        assert client.delete("/history").status_code == 204
        assert len(history) == 0
