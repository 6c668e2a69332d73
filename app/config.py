from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from adapters.layout.layered import LayoutConfig
from domain.models import LayoutDirection
from domain.tiers import FREE_TIER, resolve_tier

DEFAULT_CONFIG_PATH = Path("config/flow/app.yaml")


class LayoutSettings(BaseModel):
    node_sep: float = Field(default=80.0, ge=0)
    rank_sep: float = Field(default=120.0, ge=0)
    edge_sep: float = Field(default=20.0, ge=0)
    margin: float = Field(default=20.0, ge=0)
    max_sweeps: int = Field(default=24, ge=0)

    def to_layout_config(self) -> LayoutConfig:
        return LayoutConfig(
            node_sep=self.node_sep,
            rank_sep=self.rank_sep,
            edge_sep=self.edge_sep,
            margin=self.margin,
            max_sweeps=self.max_sweeps,
        )


class FlowSettings(BaseModel):
    title: str = "Screen Flow Diagrams"
    default_tier: str = FREE_TIER
    default_direction: LayoutDirection = LayoutDirection.LEFT_TO_RIGHT
    include_unlinked_screens: bool = False
    thumbnail_scale: float = Field(default=0.25, gt=0)
    png_export_scale: float = Field(default=2.0, gt=0)
    diagram_page_suffix: str = " - Flow Diagram"
    output_dir: Path = Path("data/flow_out")
    layout: LayoutSettings = LayoutSettings()

    @field_validator("default_tier", mode="before")
    @classmethod
    def normalize_tier(cls, value: object) -> str:
        return resolve_tier(str(value or "")).name

    @field_validator("default_direction", mode="before")
    @classmethod
    def normalize_direction(cls, value: object) -> LayoutDirection:
        if value is None or value == "":
            return LayoutDirection.LEFT_TO_RIGHT
        return LayoutDirection.parse(value)


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FLOW_", env_nested_delimiter="__")

    flow: FlowSettings = FlowSettings()

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("FLOW_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
