from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from adapters.excalidraw.repository import FileSystemExcalidrawRepository
from adapters.filesystem.scene_repository import FileSystemSceneRepository
from app.config import AppSettings, load_settings
from app.flow_wiring import build_flow_service, build_scene_host
from domain.errors import FlowDiagramError
from domain.models import LayoutDirection
from domain.scene import ScenePage
from domain.services.convert_flow_diagram_to_excalidraw import FlowDiagramToExcalidrawConverter

app = typer.Typer(no_args_is_help=True)
console = Console()
logger = logging.getLogger(__name__)


def _load(page_path: Path, config_path: Path | None) -> tuple[AppSettings, ScenePage]:
    if not page_path.exists():
        console.print(f"[red]File not found:[/] {page_path}")
        raise typer.Exit(code=1)
    settings = load_settings(config_path)
    try:
        page = FileSystemSceneRepository().load_page(page_path)
    except ValueError as exc:
        console.print(f"[red]Invalid scene document:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    return settings, page


def _notify(message: str) -> None:
    console.print(f"[cyan]{message}[/]")


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]{escape(message)}[/]")
    return typer.Exit(code=1)


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except typer.Exit:
        raise
    except FlowDiagramError as exc:
        raise _fail(exc.message) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected failure while building the flow diagram")
        raise _fail("Unknown error") from exc


def _direction(value: str | None, settings: AppSettings) -> LayoutDirection:
    if not value:
        return settings.flow.default_direction
    try:
        return LayoutDirection.parse(value)
    except ValueError as exc:
        raise _fail(str(exc)) from exc


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("scan")
def scan(
    page_path: Path = typer.Argument(..., help="Scene page JSON document."),
    tier: Optional[str] = typer.Option(None, help="Tier name (free or pro)."),
    include_unlinked: Optional[bool] = typer.Option(
        None,
        "--include-unlinked/--linked-only",
        help="Also register top-level screens without connections.",
    ),
    config: Optional[Path] = typer.Option(None, help="YAML config file."),
) -> None:
    settings, page = _load(page_path, config)
    service = build_flow_service(settings, include_unlinked_screens=include_unlinked)
    host = build_scene_host(settings, page, notifier=_notify)
    with _reported_errors():
        graph = service.scan(host, tier or settings.flow.default_tier)

    screens = Table(title="Screens")
    screens.add_column("id")
    screens.add_column("name")
    screens.add_column("size")
    starts = set(graph.starting_point_ids)
    for node in graph.nodes:
        marker = " *" if node.id in starts else ""
        screens.add_row(node.id, f"{node.name}{marker}", f"{node.width}x{node.height}")
    console.print(screens)

    transitions = Table(title="Connections")
    transitions.add_column("from")
    transitions.add_column("to")
    transitions.add_column("trigger")
    transitions.add_column("action")
    for edge in graph.edges:
        transitions.add_row(edge.source_id, edge.target_id, edge.trigger, edge.action)
    console.print(transitions)


@app.command("generate")
def generate(
    page_path: Path = typer.Argument(..., help="Scene page JSON document."),
    tier: Optional[str] = typer.Option(None, help="Tier name (free or pro)."),
    direction: Optional[str] = typer.Option(None, help="Layout direction: LR or TB."),
    output_dir: Optional[Path] = typer.Option(None, help="Directory to write diagram files."),
    png: bool = typer.Option(False, "--png/--no-png", help="Also write a PNG rendering."),
    include_unlinked: Optional[bool] = typer.Option(
        None,
        "--include-unlinked/--linked-only",
        help="Also register top-level screens without connections.",
    ),
    config: Optional[Path] = typer.Option(None, help="YAML config file."),
) -> None:
    settings, page = _load(page_path, config)
    service = build_flow_service(settings, include_unlinked_screens=include_unlinked)
    host = build_scene_host(settings, page, notifier=_notify)
    tier_name = tier or settings.flow.default_tier
    layout_direction = _direction(direction, settings)
    target_dir = output_dir or settings.flow.output_dir
    with _reported_errors():
        graph = service.scan(host, tier_name)
        generated = service.generate(
            host,
            graph,
            layout_direction,
            tier_name,
        )
        exported = service.export(host, generated.handle, "png", tier_name) if png else None

        document = FlowDiagramToExcalidrawConverter().convert(generated.diagram)
        scene_path = target_dir / f"{page_path.stem}.excalidraw"
        FileSystemExcalidrawRepository().save(document, scene_path)
        console.print(f"[green]Wrote[/] {scene_path}")
        if exported is not None:
            png_path = target_dir / f"{page_path.stem}.png"
            FileSystemSceneRepository().save_bytes(exported.data, png_path)
            console.print(f"[green]Wrote[/] {png_path}")


@app.command("export")
def export(
    page_path: Path = typer.Argument(..., help="Scene page JSON document."),
    format: str = typer.Option("png", "--format", "-f", help="Export format: png or pdf."),
    tier: Optional[str] = typer.Option(None, help="Tier name (free or pro)."),
    direction: Optional[str] = typer.Option(None, help="Layout direction: LR or TB."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Target file."),
    config: Optional[Path] = typer.Option(None, help="YAML config file."),
) -> None:
    settings, page = _load(page_path, config)
    service = build_flow_service(settings)
    host = build_scene_host(settings, page, notifier=_notify)
    tier_name = tier or settings.flow.default_tier
    layout_direction = _direction(direction, settings)
    with _reported_errors():
        service.check_export_allowed(format, tier_name)
        graph = service.scan(host, tier_name)
        generated = service.generate(
            host,
            graph,
            layout_direction,
            tier_name,
        )
        exported = service.export(host, generated.handle, format, tier_name)

        target = output or settings.flow.output_dir / f"{page_path.stem}.{exported.format}"
        FileSystemSceneRepository().save_bytes(exported.data, target)
        console.print(f"[green]Wrote[/] {target}")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
    config: Optional[Path] = typer.Option(None, help="YAML config file."),
) -> None:
    from app.web_main import create_app

    settings = load_settings(config)
    uvicorn.run(create_app(settings), host=host, port=port)


@app.command("validate")
def validate(input_path: Path = typer.Argument(..., help="Scene page JSON document to validate.")) -> None:
    if not input_path.exists():
        console.print(f"[red]File not found:[/] {input_path}")
        raise typer.Exit(code=1)

    try:
        page = FileSystemSceneRepository().load_page(input_path)
    except ValueError as exc:
        console.print(f"[red]Validation failed:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    console.print(
        f"[green]Valid scene page:[/] {input_path} "
        f"({len(page.children)} top-level elements, "
        f"{len(page.flow_starting_points)} starting points)"
    )


if __name__ == "__main__":
    app()
