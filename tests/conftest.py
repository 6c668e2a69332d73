from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from app.config import AppSettings, FlowSettings, LayoutSettings


def _clear_flow_env() -> None:
    for key in list(os.environ):
        if key.startswith("FLOW_"):
            os.environ.pop(key, None)


_clear_flow_env()


@pytest.fixture(autouse=True)
def clear_flow_env() -> Generator[None, None, None]:
    _clear_flow_env()
    yield
    _clear_flow_env()


@pytest.fixture
def flow_settings(tmp_path: Path) -> FlowSettings:
    return FlowSettings(
        title="Test Flow Diagrams",
        default_tier="free",
        default_direction="LR",
        include_unlinked_screens=False,
        thumbnail_scale=0.25,
        png_export_scale=2.0,
        diagram_page_suffix=" - Flow Diagram",
        output_dir=tmp_path / "flow_out",
        layout=LayoutSettings(),
    )


@pytest.fixture
def flow_settings_factory(flow_settings: FlowSettings) -> Callable[..., FlowSettings]:
    def _factory(**overrides: object) -> FlowSettings:
        return flow_settings.model_copy(update=overrides)

    return _factory


@pytest.fixture
def app_settings(flow_settings: FlowSettings) -> AppSettings:
    return AppSettings(flow=flow_settings)


@pytest.fixture
def app_settings_factory(
    flow_settings_factory: Callable[..., FlowSettings],
) -> Callable[..., AppSettings]:
    def _factory(**overrides: object) -> AppSettings:
        return AppSettings(flow=flow_settings_factory(**overrides))

    return _factory
