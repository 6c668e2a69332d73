from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from filelock import FileLock

from adapters.filesystem.json_utils import load_json, write_bytes_atomic, write_json_atomic
from domain.ports.repositories import SceneRepository
from domain.scene import ScenePage


class FileSystemSceneRepository(SceneRepository):
    def load_page(self, path: Path) -> ScenePage:
        data = load_json(path)
        # Documents exported with a wrapper keep the page under "page".
        page = data.get("page", data)
        return ScenePage.model_validate(page)

    def save_json(self, payload: Mapping[str, Any], path: Path) -> None:
        with self._locked(path):
            write_json_atomic(path, dict(payload))

    def save_bytes(self, data: bytes, path: Path) -> None:
        with self._locked(path):
            write_bytes_atomic(path, data)

    @contextmanager
    def _locked(self, path: Path) -> Iterator[None]:
        path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = path.with_suffix(f"{path.suffix}.lock")
        with FileLock(str(lock_path)):
            yield
