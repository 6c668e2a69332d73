from __future__ import annotations

import base64
from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from app.config import AppSettings
from app.web_main import create_app
from tests.helpers.scene_fixtures import chain_page, frame, load_scene_payload, page


@pytest.fixture
def client(app_settings: AppSettings) -> TestClient:
    return TestClient(create_app(app_settings), raise_server_exceptions=False)


def test_tiers_endpoint(client: TestClient) -> None:
    response = client.get("/api/tiers")

    assert response.status_code == 200
    payload = response.json()
    assert payload["default_tier"] == "free"
    tiers = {tier["name"]: tier for tier in payload["tiers"]}
    assert tiers["free"]["max_screens"] == 10
    assert tiers["pro"]["max_screens"] is None
    assert tiers["pro"]["pdf_export"] is True


def test_scan_returns_graph(client: TestClient) -> None:
    response = client.post("/api/scan", json={"page": load_scene_payload()})

    assert response.status_code == 200
    payload = response.json()
    assert payload["type"] == "scan-result"
    assert payload["screen_count"] == 4
    assert payload["connection_count"] == 5
    assert payload["graph"]["starting_point_ids"] == ["1:1"]
    assert payload["notifications"] == ["Found 4 screens, 5 connections"]


def test_scan_empty_page_returns_structured_error(client: TestClient) -> None:
    scene = page(frame("a"), frame("b")).model_dump(by_alias=True)
    response = client.post("/api/scan", json={"page": scene})

    assert response.status_code == 404
    assert response.json() == {
        "type": "error",
        "message": (
            "No prototype connections found on this page. "
            "Add some prototype links between frames first."
        ),
    }


def test_scan_over_tier_limit_is_forbidden(client: TestClient) -> None:
    scene = chain_page(11).model_dump()
    response = client.post("/api/scan", json={"page": scene, "tier": "free"})

    assert response.status_code == 403
    message = response.json()["message"]
    assert "10" in message and "11" in message


def test_scan_with_unlinked_screens(client: TestClient) -> None:
    scene = page(frame("solo")).model_dump()
    response = client.post("/api/scan", json={"page": scene, "include_unlinked_screens": True})

    assert response.status_code == 200
    assert response.json()["screen_count"] == 1


def test_layout_endpoint(client: TestClient) -> None:
    graph = {
        "nodes": [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}],
        "edges": [{"source_id": "a", "target_id": "b"}],
    }
    response = client.post("/api/layout", json={"graph": graph, "direction": "TB"})

    assert response.status_code == 200
    nodes = {node["id"]: node for node in response.json()["layout"]["nodes"]}
    assert nodes["a"]["y"] < nodes["b"]["y"]
    assert nodes["a"]["x"] == nodes["b"]["x"]


def test_layout_rejects_dangling_edges(client: TestClient) -> None:
    graph = {"nodes": [{"id": "a"}], "edges": [{"source_id": "a", "target_id": "ghost"}]}
    response = client.post("/api/layout", json={"graph": graph})

    assert response.status_code == 422


def test_layout_rejects_unknown_direction(client: TestClient) -> None:
    graph = {"nodes": [{"id": "a"}], "edges": []}
    response = client.post("/api/layout", json={"graph": graph, "direction": "diagonal"})

    assert response.status_code == 422


def test_unexpected_failure_returns_unknown_error(
    app_settings: AppSettings,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    app = create_app(app_settings)

    def explode(*args: object, **kwargs: object) -> None:
        raise RuntimeError("layout engine exploded")

    monkeypatch.setattr(app.state.context.service, "layout", explode)
    client = TestClient(app, raise_server_exceptions=False)
    graph = {"nodes": [{"id": "a"}], "edges": []}
    response = client.post("/api/layout", json={"graph": graph})

    assert response.status_code == 500
    assert response.json() == {"type": "error", "message": "Unknown error"}
    assert "Unhandled error on POST /api/layout" in caplog.text


def test_diagram_endpoint_returns_excalidraw_scene(client: TestClient) -> None:
    response = client.post("/api/diagram", json={"page": load_scene_payload(), "tier": "pro"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["type"] == "diagram-generated"
    assert payload["page_name"] == "Onboarding - Flow Diagram"
    assert len(payload["diagram"]["cards"]) == 4
    assert len(payload["diagram"]["badges"]) == 5
    assert payload["excalidraw"]["type"] == "excalidraw"
    assert payload["notifications"][-1] == "Flow diagram generated!"


def test_export_png_binary(client: TestClient) -> None:
    response = client.post("/api/export", json={"page": load_scene_payload(), "format": "png"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")
    assert response.headers["content-disposition"] == (
        'attachment; filename="Onboarding - Flow Diagram.png"; '
        "filename*=UTF-8''Onboarding%20-%20Flow%20Diagram.png"
    )


def test_export_binary_with_non_latin_page_name(client: TestClient) -> None:
    scene = load_scene_payload()
    scene["name"] = "Экраны"
    response = client.post("/api/export", json={"page": scene, "format": "png"})

    assert response.status_code == 200
    assert response.content.startswith(b"\x89PNG")
    disposition = response.headers["content-disposition"]
    assert 'filename="______ - Flow Diagram.png"' in disposition
    assert "filename*=UTF-8''%D0%AD%D0%BA%D1%80%D0%B0%D0%BD%D1%8B%20-%20Flow%20Diagram.png" in disposition


def test_export_pdf_is_gated_for_free(client: TestClient) -> None:
    response = client.post(
        "/api/export",
        json={"page": load_scene_payload(), "format": "pdf", "tier": "free"},
    )

    assert response.status_code == 403
    assert response.json() == {"type": "error", "message": "PDF export is a Pro feature."}


def test_export_pdf_base64_for_pro(client: TestClient) -> None:
    response = client.post(
        "/api/export",
        json={"page": load_scene_payload(), "format": "pdf", "tier": "pro", "encoding": "base64"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["format"] == "pdf"
    assert base64.b64decode(payload["data"]).startswith(b"%PDF")


def test_default_tier_from_settings(app_settings_factory: Callable[..., AppSettings]) -> None:
    client = TestClient(create_app(app_settings_factory(default_tier="pro")))
    response = client.post("/api/scan", json={"page": chain_page(12).model_dump()})

    assert response.status_code == 200
    assert response.json()["screen_count"] == 12
