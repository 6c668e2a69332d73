from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

from domain.models import DiagramHandle, FlowDiagram
from domain.scene import FlowStartingPoint, SceneElement

ExportFormat = Literal["png", "pdf"]


@dataclass(frozen=True)
class ExportSettings:
    format: ExportFormat
    scale: float | None = None


class SceneHost(Protocol):
    """Narrow view of the host document the pipeline reads from and publishes to."""

    @property
    def page_name(self) -> str: ...

    def page_children(self) -> Sequence[SceneElement]: ...

    def flow_starting_points(self) -> Sequence[FlowStartingPoint]: ...

    def resolve_by_id(self, element_id: str) -> SceneElement | None: ...

    def parent_of(self, element: SceneElement) -> SceneElement | None: ...

    def rasterize(self, element_id: str, scale: float) -> bytes: ...

    def publish_diagram(self, diagram: FlowDiagram) -> DiagramHandle: ...

    def export_diagram(self, handle: DiagramHandle, settings: ExportSettings) -> bytes: ...

    def notify(self, message: str) -> None: ...
