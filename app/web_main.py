from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, cast
from urllib.parse import quote

from fastapi import Depends, FastAPI, Request
from fastapi.responses import ORJSONResponse, Response
from pydantic import BaseModel, field_validator

from app.config import AppSettings, load_settings
from app.flow_wiring import build_flow_service, build_scene_host
from domain.errors import (
    DiagramNotFoundError,
    EmptyFlowError,
    ExportFailedError,
    FeatureGatedError,
    FlowDiagramError,
    TierLimitError,
)
from domain.models import FlowGraph, LayoutDirection
from domain.scene import ScenePage
from domain.services.convert_flow_diagram_to_excalidraw import FlowDiagramToExcalidrawConverter
from domain.services.flow_diagram_service import FlowDiagramService
from domain.tiers import TIERS

logger = logging.getLogger(__name__)

MEDIA_TYPES = {"png": "image/png", "pdf": "application/pdf"}


def _parse_direction(value: object) -> LayoutDirection | None:
    if value is None or value == "":
        return None
    return LayoutDirection.parse(value)


class ScanRequest(BaseModel):
    page: ScenePage
    tier: str | None = None
    include_unlinked_screens: bool | None = None


class LayoutRequest(BaseModel):
    graph: FlowGraph
    direction: LayoutDirection | None = None

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, value: object) -> LayoutDirection | None:
        return _parse_direction(value)


class DiagramRequest(BaseModel):
    page: ScenePage
    tier: str | None = None
    direction: LayoutDirection | None = None
    include_unlinked_screens: bool | None = None

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, value: object) -> LayoutDirection | None:
        return _parse_direction(value)


class ExportRequest(DiagramRequest):
    format: Literal["png", "pdf"] = "png"
    encoding: Literal["binary", "base64"] = "binary"


@dataclass(frozen=True)
class FlowContext:
    settings: AppSettings
    service: FlowDiagramService
    to_excalidraw: FlowDiagramToExcalidrawConverter


def create_app(settings: AppSettings) -> FastAPI:
    app = FastAPI(title=settings.flow.title)
    app.state.context = FlowContext(
        settings=settings,
        service=build_flow_service(settings),
        to_excalidraw=FlowDiagramToExcalidrawConverter(),
    )

    @app.exception_handler(FlowDiagramError)
    async def handle_flow_error(request: Request, exc: FlowDiagramError) -> ORJSONResponse:
        return ORJSONResponse(
            {"type": "error", "message": exc.message},
            status_code=error_status(exc),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return ORJSONResponse({"type": "error", "message": "Unknown error"}, status_code=500)

    @app.get("/api/tiers")
    def api_tiers() -> ORJSONResponse:
        return ORJSONResponse(
            {
                "default_tier": settings.flow.default_tier,
                "tiers": [tier.to_dict() for tier in TIERS.values()],
            }
        )

    @app.post("/api/scan")
    def api_scan(
        payload: ScanRequest,
        context: FlowContext = Depends(get_context),
    ) -> ORJSONResponse:
        service = resolve_service(context, payload.include_unlinked_screens)
        host = build_scene_host(context.settings, payload.page)
        graph = service.scan(host, payload.tier or context.settings.flow.default_tier)
        return ORJSONResponse(
            {
                "type": "scan-result",
                "screen_count": len(graph.nodes),
                "connection_count": len(graph.edges),
                "graph": graph.model_dump(),
                "notifications": host.notifications,
            }
        )

    @app.post("/api/layout")
    def api_layout(
        payload: LayoutRequest,
        context: FlowContext = Depends(get_context),
    ) -> ORJSONResponse:
        direction = payload.direction or context.settings.flow.default_direction
        layout = context.service.layout(payload.graph, direction)
        return ORJSONResponse({"type": "layout-result", "layout": layout.to_dict()})

    @app.post("/api/diagram")
    def api_diagram(
        payload: DiagramRequest,
        context: FlowContext = Depends(get_context),
    ) -> ORJSONResponse:
        service = resolve_service(context, payload.include_unlinked_screens)
        host = build_scene_host(context.settings, payload.page)
        tier = payload.tier or context.settings.flow.default_tier
        graph = service.scan(host, tier)
        generated = service.generate(
            host,
            graph,
            payload.direction or context.settings.flow.default_direction,
            tier,
        )
        document = context.to_excalidraw.convert(generated.diagram)
        return ORJSONResponse(
            {
                "type": "diagram-generated",
                "page_name": generated.handle.page_name,
                "revision": generated.handle.revision,
                "diagram": generated.diagram.to_dict(),
                "excalidraw": document.to_dict(),
                "notifications": host.notifications,
            }
        )

    @app.post("/api/export")
    def api_export(
        payload: ExportRequest,
        context: FlowContext = Depends(get_context),
    ) -> Response:
        service = resolve_service(context, payload.include_unlinked_screens)
        host = build_scene_host(context.settings, payload.page)
        tier = payload.tier or context.settings.flow.default_tier
        service.check_export_allowed(payload.format, tier)
        graph = service.scan(host, tier)
        generated = service.generate(
            host,
            graph,
            payload.direction or context.settings.flow.default_direction,
            tier,
        )
        exported = service.export(host, generated.handle, payload.format, tier)
        if payload.encoding == "base64":
            return ORJSONResponse(
                {
                    "type": "export-result",
                    "format": exported.format,
                    "data": exported.base64,
                }
            )
        filename = f"{generated.handle.page_name}.{exported.format}"
        return Response(
            content=exported.data,
            media_type=MEDIA_TYPES[exported.format],
            headers={"Content-Disposition": content_disposition(filename)},
        )

    return app


def get_context(request: Request) -> FlowContext:
    return cast(FlowContext, request.app.state.context)


def resolve_service(context: FlowContext, include_unlinked_screens: bool | None) -> FlowDiagramService:
    if include_unlinked_screens is None:
        return context.service
    return build_flow_service(context.settings, include_unlinked_screens=include_unlinked_screens)


def content_disposition(filename: str) -> str:
    fallback = "".join(
        char if char.isascii() and char.isprintable() and char not in '"\\' else "_"
        for char in filename
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def error_status(exc: FlowDiagramError) -> int:
    if isinstance(exc, (EmptyFlowError, DiagramNotFoundError)):
        return 404
    if isinstance(exc, (TierLimitError, FeatureGatedError)):
        return 403
    if isinstance(exc, ExportFailedError):
        return 502
    return 422


app = create_app(load_settings())
