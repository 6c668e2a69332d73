from __future__ import annotations

from collections.abc import Callable

from adapters.layout.layered import LayeredLayoutEngine
from adapters.render.pillow_renderer import PillowDiagramRenderer
from adapters.scene.in_memory_host import InMemorySceneHost
from app.config import AppSettings
from domain.scene import ScenePage
from domain.services.extract_flow_graph import ExtractFlowGraph
from domain.services.flow_diagram_service import FlowDiagramService


def build_flow_service(
    settings: AppSettings,
    include_unlinked_screens: bool | None = None,
) -> FlowDiagramService:
    flow = settings.flow
    if include_unlinked_screens is None:
        include_unlinked_screens = flow.include_unlinked_screens
    return FlowDiagramService(
        LayeredLayoutEngine(flow.layout.to_layout_config()),
        extractor=ExtractFlowGraph(include_unlinked_screens=include_unlinked_screens),
        thumbnail_scale=flow.thumbnail_scale,
        png_export_scale=flow.png_export_scale,
    )


def build_scene_host(
    settings: AppSettings,
    page: ScenePage,
    notifier: Callable[[str], None] | None = None,
) -> InMemorySceneHost:
    return InMemorySceneHost(
        page,
        renderer=PillowDiagramRenderer(),
        page_suffix=settings.flow.diagram_page_suffix,
        notifier=notifier,
    )
