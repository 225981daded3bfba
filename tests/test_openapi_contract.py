import json
from pathlib import Path

from dealfinder.main import app


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_multipart_endpoints_document_camel_case_fields():
    schema = app.openapi()
    operation = schema["paths"]["/api/promotions"]["post"]
    ref = operation["requestBody"]["content"]["multipart/form-data"]["schema"]["$ref"]
    body = schema["components"]["schemas"][ref.rsplit("/", 1)[-1]]
    assert {"business", "redirectUrl", "endDate", "images"} <= set(body["properties"])
