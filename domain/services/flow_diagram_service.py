from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Dict

from domain.errors import (
    DiagramNotFoundError,
    EmptyFlowError,
    ExportFailedError,
    FeatureGatedError,
    HostError,
    TierLimitError,
)
from domain.models import (
    DiagramHandle,
    FlowDiagram,
    FlowGraph,
    GeneratedDiagram,
    LayoutDirection,
    LayoutResult,
)
from domain.ports.host import ExportFormat, ExportSettings, SceneHost
from domain.ports.layout import LayoutEngine
from domain.services.compose_flow_diagram import FlowDiagramComposer
from domain.services.extract_flow_graph import ExtractFlowGraph
from domain.tiers import TierConfig, resolve_tier

logger = logging.getLogger(__name__)

EXPORT_FORMATS: tuple[ExportFormat, ...] = ("png", "pdf")


@dataclass(frozen=True)
class ExportedDiagram:
    format: ExportFormat
    data: bytes

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def enforce_screen_limit(graph: FlowGraph, tier: TierConfig) -> None:
    if not tier.allows_screens(len(graph.nodes)):
        raise TierLimitError(tier.name, int(tier.max_screens), len(graph.nodes))


class FlowDiagramService:
    """Scan, lay out, compose and export flow diagrams against a scene host.

    The tier is passed into every call and the live diagram handle is returned to the
    caller, so one service instance can serve any number of independent requests.
    """

    def __init__(
        self,
        layout_engine: LayoutEngine,
        composer: FlowDiagramComposer | None = None,
        extractor: ExtractFlowGraph | None = None,
        thumbnail_scale: float = 0.25,
        png_export_scale: float = 2.0,
    ) -> None:
        self.layout_engine = layout_engine
        self.composer = composer or FlowDiagramComposer()
        self.extractor = extractor or ExtractFlowGraph()
        self.thumbnail_scale = thumbnail_scale
        self.png_export_scale = png_export_scale

    def scan(self, host: SceneHost, tier: TierConfig | str | None) -> FlowGraph:
        tier_config = resolve_tier(tier)
        graph = self.extractor.extract(host)
        if graph.is_empty:
            raise EmptyFlowError()
        enforce_screen_limit(graph, tier_config)
        host.notify(f"Found {len(graph.nodes)} screens, {len(graph.edges)} connections")
        return graph

    def layout(self, graph: FlowGraph, direction: LayoutDirection | str) -> LayoutResult:
        return self.layout_engine.layout(graph, LayoutDirection.parse(direction))

    def compose(
        self,
        layout: LayoutResult,
        tier: TierConfig | str | None,
        thumbnails: Dict[str, bytes] | None = None,
        page_name: str = "",
    ) -> FlowDiagram:
        return self.composer.compose(layout, tier, thumbnails=thumbnails, page_name=page_name)

    def generate(
        self,
        host: SceneHost,
        graph: FlowGraph,
        direction: LayoutDirection | str,
        tier: TierConfig | str | None,
    ) -> GeneratedDiagram:
        tier_config = resolve_tier(tier)
        if graph.is_empty:
            raise EmptyFlowError()
        enforce_screen_limit(graph, tier_config)

        layout = self.layout(graph, direction)
        host.notify("Generating thumbnails...")
        thumbnails = self._collect_thumbnails(host, layout)
        diagram = self.compose(layout, tier_config, thumbnails=thumbnails, page_name=host.page_name)
        handle = host.publish_diagram(diagram)
        logger.info(
            "Generated diagram revision %d with %d cards and %d arrows",
            handle.revision,
            len(diagram.cards),
            len(diagram.arrows),
        )
        host.notify("Flow diagram generated!")
        return GeneratedDiagram(handle=handle, diagram=diagram, layout=layout)

    def check_export_allowed(self, format: str, tier: TierConfig | str | None) -> ExportFormat:
        normalized = str(format or "").strip().lower()
        if normalized not in EXPORT_FORMATS:
            raise ExportFailedError(f"unsupported format {format!r}")
        if normalized == "pdf" and not resolve_tier(tier).pdf_export:
            raise FeatureGatedError("PDF export")
        return "pdf" if normalized == "pdf" else "png"

    def export(
        self,
        host: SceneHost,
        handle: DiagramHandle | None,
        format: str,
        tier: TierConfig | str | None,
    ) -> ExportedDiagram:
        export_format = self.check_export_allowed(format, tier)
        if handle is None:
            raise DiagramNotFoundError()

        settings = ExportSettings(
            format=export_format,
            scale=self.png_export_scale if export_format == "png" else None,
        )
        try:
            data = host.export_diagram(handle, settings)
        except HostError as exc:
            raise ExportFailedError(exc.message) from exc
        host.notify(f"{export_format.upper()} exported!")
        return ExportedDiagram(format=export_format, data=data)

    def _collect_thumbnails(self, host: SceneHost, layout: LayoutResult) -> Dict[str, bytes]:
        thumbnails: Dict[str, bytes] = {}
        for node in layout.nodes:
            try:
                thumbnails[node.id] = host.rasterize(node.id, self.thumbnail_scale)
            except HostError as exc:
                logger.warning("Failed to export thumbnail for %s: %s", node.name, exc.message)
        return thumbnails
