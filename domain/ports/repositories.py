from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from domain.models import ExcalidrawDocument
from domain.scene import ScenePage


class SceneRepository(Protocol):
    def load_page(self, path: Path) -> ScenePage: ...

    def save_json(self, payload: Mapping[str, Any], path: Path) -> None: ...

    def save_bytes(self, data: bytes, path: Path) -> None: ...


class ExcalidrawRepository(Protocol):
    def load(self, path: Path) -> ExcalidrawDocument: ...

    def save(self, document: ExcalidrawDocument, path: Path) -> None: ...
