from __future__ import annotations

from pathlib import Path

from adapters.filesystem.json_utils import load_json, write_json_atomic
from domain.models import ExcalidrawDocument
from domain.ports.repositories import ExcalidrawRepository


class FileSystemExcalidrawRepository(ExcalidrawRepository):
    def load(self, path: Path) -> ExcalidrawDocument:
        data = load_json(path)
        return ExcalidrawDocument(
            elements=list(data.get("elements", [])),
            app_state=dict(data.get("appState", {})),
            files=dict(data.get("files", {})),
        )

    def save(self, document: ExcalidrawDocument, path: Path) -> None:
        write_json_atomic(path, document.to_dict())
