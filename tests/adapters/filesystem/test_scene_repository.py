from __future__ import annotations

from pathlib import Path

import orjson
import pytest
from pydantic import ValidationError

from adapters.excalidraw.repository import FileSystemExcalidrawRepository
from adapters.filesystem.scene_repository import FileSystemSceneRepository
from domain.models import ExcalidrawDocument
from tests.helpers.scene_fixtures import load_scene_payload, sample_scene_path


def test_load_page_from_sample() -> None:
    scene_page = FileSystemSceneRepository().load_page(sample_scene_path())

    assert scene_page.name == "Onboarding"
    assert [child.id for child in scene_page.children][:4] == ["1:1", "1:2", "1:3", "1:4"]


def test_load_page_accepts_wrapped_documents(tmp_path: Path) -> None:
    path = tmp_path / "wrapped.json"
    path.write_bytes(orjson.dumps({"page": load_scene_payload()}))

    scene_page = FileSystemSceneRepository().load_page(path)
    assert scene_page.flow_starting_points[0].node_id == "1:1"


def test_load_page_rejects_invalid_documents(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_bytes(orjson.dumps({"children": [{"name": "no id"}]}))

    with pytest.raises(ValidationError):
        FileSystemSceneRepository().load_page(path)


@pytest.mark.parametrize("root", [[], "page", 3])
def test_load_page_rejects_non_object_roots(tmp_path: Path, root: object) -> None:
    path = tmp_path / "list.json"
    path.write_bytes(orjson.dumps(root))

    with pytest.raises(ValueError, match="Expected a JSON object"):
        FileSystemSceneRepository().load_page(path)


def test_save_json_and_bytes_atomically(tmp_path: Path) -> None:
    repo = FileSystemSceneRepository()
    json_path = tmp_path / "nested" / "graph.json"
    png_path = tmp_path / "nested" / "diagram.png"

    repo.save_json({"nodes": [1, 2]}, json_path)
    repo.save_bytes(b"\x89PNG data", png_path)

    assert orjson.loads(json_path.read_bytes()) == {"nodes": [1, 2]}
    assert png_path.read_bytes() == b"\x89PNG data"
    assert not (tmp_path / "nested" / "graph.json.tmp").exists()


def test_excalidraw_repository_roundtrip(tmp_path: Path) -> None:
    repo = FileSystemExcalidrawRepository()
    document = ExcalidrawDocument(
        elements=[{"id": "x", "type": "rectangle"}],
        app_state={"viewBackgroundColor": "#ffffff"},
        files={},
    )
    path = tmp_path / "out" / "flow.excalidraw"

    repo.save(document, path)
    loaded = repo.load(path)

    assert loaded == document
    assert orjson.loads(path.read_bytes())["type"] == "excalidraw"
