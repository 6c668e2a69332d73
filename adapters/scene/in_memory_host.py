from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from adapters.render.pillow_renderer import PillowDiagramRenderer
from domain.errors import HostError
from domain.models import DiagramHandle, FlowDiagram
from domain.ports.host import ExportSettings, SceneHost
from domain.scene import FlowStartingPoint, SceneElement, ScenePage

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SUFFIX = " - Flow Diagram"


@dataclass(frozen=True)
class LiveDiagram:
    handle: DiagramHandle
    diagram: FlowDiagram


class InMemorySceneHost(SceneHost):
    """Scene host backed by a parsed page document, rendering through Pillow."""

    def __init__(
        self,
        page: ScenePage,
        renderer: PillowDiagramRenderer | None = None,
        page_suffix: str = DEFAULT_PAGE_SUFFIX,
        notifier: Callable[[str], None] | None = None,
    ) -> None:
        self.page = page
        self.renderer = renderer or PillowDiagramRenderer()
        self.page_suffix = page_suffix
        self.notifier = notifier
        self.notifications: list[str] = []
        self._elements: dict[str, SceneElement] = {}
        self._parents: dict[str, SceneElement] = {}
        self._diagrams: dict[str, LiveDiagram] = {}
        self._revision = 0
        self._index(page)

    def _index(self, page: ScenePage) -> None:
        stack: list[tuple[SceneElement, SceneElement | None]] = [
            (child, None) for child in page.children
        ]
        while stack:
            element, parent = stack.pop()
            self._elements.setdefault(element.id, element)
            if parent is not None:
                self._parents[element.id] = parent
            stack.extend((child, element) for child in element.children)

    @property
    def page_name(self) -> str:
        return self.page.name

    @property
    def diagram_page_name(self) -> str:
        return f"{self.page.name}{self.page_suffix}"

    def page_children(self) -> Sequence[SceneElement]:
        return list(self.page.children)

    def flow_starting_points(self) -> Sequence[FlowStartingPoint]:
        return list(self.page.flow_starting_points)

    def resolve_by_id(self, element_id: str) -> SceneElement | None:
        return self._elements.get(element_id)

    def parent_of(self, element: SceneElement) -> SceneElement | None:
        return self._parents.get(element.id)

    def rasterize(self, element_id: str, scale: float) -> bytes:
        element = self._elements.get(element_id)
        if element is None:
            msg = f"Element not found: {element_id}"
            raise HostError(msg)
        try:
            return self.renderer.render_thumbnail(element, scale)
        except (OSError, ValueError) as exc:
            raise HostError(f"Failed to rasterize {element.name or element_id}: {exc}") from exc

    def publish_diagram(self, diagram: FlowDiagram) -> DiagramHandle:
        page_name = self.diagram_page_name
        previous = self._diagrams.pop(page_name, None)
        if previous is not None:
            logger.info("Clearing previous diagram revision %d on %s", previous.handle.revision, page_name)
        self._revision += 1
        handle = DiagramHandle(
            page_name=page_name,
            diagram_name=diagram.name,
            revision=self._revision,
        )
        self._diagrams[page_name] = LiveDiagram(handle=handle, diagram=diagram)
        return handle

    def live_diagram(self, page_name: str | None = None) -> LiveDiagram | None:
        return self._diagrams.get(page_name or self.diagram_page_name)

    def export_diagram(self, handle: DiagramHandle, settings: ExportSettings) -> bytes:
        live = self._diagrams.get(handle.page_name)
        if live is None or live.handle != handle:
            msg = f"{handle.diagram_name} frame not found."
            raise HostError(msg)
        try:
            return self.renderer.render_diagram(
                live.diagram, settings.format, settings.scale or 1.0
            )
        except (OSError, ValueError) as exc:
            raise HostError(str(exc)) from exc

    def notify(self, message: str) -> None:
        self.notifications.append(message)
        if self.notifier is not None:
            self.notifier(message)
