import json
from pathlib import Path

from produce_ledger.main import app


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_event_endpoints_document_error_envelope():
    paths = app.openapi()["paths"]
    for path in ("/procurement/entries", "/sales/entries", "/damages", "/payments"):
        responses = paths[path]["post"]["responses"]
        assert {"400", "404", "422"} <= set(responses)


def test_documented_error_statuses_are_ones_the_api_emits():
    emitted = {"400", "404", "422", "500"}
    for path, operations in app.openapi()["paths"].items():
        for method, operation in operations.items():
            errors = {code for code in operation.get("responses", {}) if code.startswith(("4", "5"))}
            assert errors <= emitted, f"{method.upper()} {path} documents {errors - emitted}"


def test_search_endpoints_document_bad_range():
    paths = app.openapi()["paths"]
    for path in ("/procurement/entries", "/sales/entries", "/reports/profit"):
        assert "400" in paths[path]["get"]["responses"]
