import base64
import gzip
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from cellforge.catalog.store import CatalogStore
from cellforge.core.config import Settings
from cellforge.core.errors import SchemaError
from cellforge_api.main import build_app


def _client(tmp_path: Path) -> TestClient:
    settings = Settings(data_dir=tmp_path / "appdata", bundled_library_path=None)
    return TestClient(build_app(settings))


def test_api_catalog_routes(tmp_path: Path) -> None:
    client = _client(tmp_path)

    cells = client.get("/v1/cells")
    assert cells.status_code == 200
    assert len(cells.json()["items"]) == 5

    search = client.get("/v1/cells", params={"search": "lg"})
    assert [item["model"] for item in search.json()["items"]] == ["HG2"]

    cell = client.get("/v1/cells/1")
    assert cell.status_code == 200
    assert cell.json()["form_factor"] == "18650"

    assert client.get("/v1/cells/404").status_code == 404
    assert client.get("/v1/cells", params={"search": "()"}).status_code == 422
    assert len(client.get("/v1/materials").json()["items"]) == 3
    assert client.get("/v1/shapes").json() == {"items": []}
    assert client.get("/v1/bms").json() == {"items": []}


def test_api_project_round_trip(tmp_path: Path) -> None:
    client = _client(tmp_path)
    target = tmp_path / "pack.cellforge"

    created = client.post("/v1/projects/new", json={"name": "Pack A"})
    assert created.status_code == 200
    project = created.json()
    project["scene"]["cells"]["c1"] = {"uuid": "c1", "cell_id": 999, "position": [1, 2, 3]}

    saved = client.post("/v1/projects/save", json={"project": project, "path": str(target)})
    assert saved.status_code == 200

    loaded = client.post("/v1/projects/load", json={"path": str(target)})
    assert loaded.status_code == 200
    body = loaded.json()
    assert body["project"]["metadata"]["name"] == "Pack A"
    assert body["project"]["scene"]["cells"]["c1"]["position"] == [1.0, 2.0, 3.0]
    assert [item["entity_uuid"] for item in body["warnings"]] == ["c1"]

    autosaved = client.post("/v1/projects/autosave", json={"project": project})
    assert autosaved.status_code == 200
    assert Path(autosaved.json()["path"]).is_file()


def test_api_maps_error_kinds_to_status(tmp_path: Path) -> None:
    client = _client(tmp_path)
    project = client.post("/v1/projects/new", json={"name": "bad"}).json()
    project["scene"]["groups"]["g1"] = {"uuid": "g1", "name": "loop", "member_uuids": ["g1"]}

    invalid = client.post("/v1/projects/save", json={"project": project, "path": str(tmp_path / "bad.cellforge")})
    assert invalid.status_code == 422
    assert invalid.json()["detail"]["kind"] == "validation_error"
    assert invalid.json()["detail"]["details"]["violations"][0]["code"] == "group_cycle"

    plain = tmp_path / "plain.cellforge"
    plain.write_text("{}", encoding="utf-8")
    assert client.post("/v1/projects/load", json={"path": str(plain)}).status_code == 415

    newer = tmp_path / "newer.cellforge"
    newer.write_bytes(gzip.compress(json.dumps({"version": "9.0.0"}).encode("utf-8")))
    response = client.post("/v1/projects/load", json={"path": str(newer)})
    assert response.status_code == 415
    assert response.json()["detail"]["kind"] == "unsupported_version"

    missing = client.post("/v1/projects/load", json={"path": str(tmp_path / "missing.cellforge")})
    assert missing.status_code == 500
    assert missing.json()["detail"]["kind"] == "io_error"


def test_api_export_and_import(tmp_path: Path) -> None:
    client = _client(tmp_path)
    payload = b"\x00\x01binary mesh\xff"
    encoded = base64.b64encode(payload).decode("ascii")
    target = tmp_path / "out.stl"

    written = client.post(
        "/v1/export/stl",
        json={"data": encoded, "path": str(target), "options": {"selection": "all", "file_name": "out.stl"}},
    )
    assert written.status_code == 200
    assert written.json()["bytes"] == len(payload)
    assert target.read_bytes() == payload

    rejected = client.post(
        "/v1/export/3mf",
        json={"data": encoded, "path": str(tmp_path / "out.3mf"), "options": {"selection": "holders-only"}},
    )
    assert rejected.status_code == 422
    assert rejected.json()["detail"]["kind"] == "option_error"

    imported = client.post("/v1/mesh/import", json={"path": str(target)})
    assert imported.status_code == 200
    assert base64.b64decode(imported.json()["data"]) == payload

    formats = client.get("/v1/export/formats").json()
    assert formats["formats"] == ["stl", "3mf"]


def test_api_uses_injected_catalog(tmp_path: Path) -> None:
    catalog = CatalogStore(f"sqlite:///{tmp_path / 'injected.db'}")
    catalog.initialize_schema()
    settings = Settings(app_name="packlab", data_dir=tmp_path / "appdata", bundled_library_path=None)

    app = build_app(settings, catalog=catalog)
    client = TestClient(app)

    assert app.title == "packlab API"
    assert client.get("/v1/cells").json() == {"items": []}


def test_build_app_fails_fast_on_schema_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(SchemaError):
        build_app(Settings(data_dir=blocker / "appdata", bundled_library_path=None))
