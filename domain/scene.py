from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

SCREEN_CONTAINER_TYPES = frozenset({"FRAME", "COMPONENT", "COMPONENT_SET"})


class Trigger(BaseModel):
    type: Optional[str] = None


class Action(BaseModel):
    type: Optional[str] = None
    destination_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("destination_id", "destinationId")
    )

    @field_validator("destination_id", mode="before")
    @classmethod
    def blank_destination_is_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Reaction(BaseModel):
    trigger: Optional[Trigger] = None
    action: Optional[Action] = None


class SceneElement(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    type: str = "FRAME"
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    fill: Optional[str] = None
    reactions: List[Reaction] = Field(default_factory=list)
    children: List[SceneElement] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: object) -> str:
        return str(value or "FRAME").strip().upper()

    @property
    def is_screen_container(self) -> bool:
        return self.type in SCREEN_CONTAINER_TYPES


class FlowStartingPoint(BaseModel):
    node_id: str = Field(..., validation_alias=AliasChoices("node_id", "nodeId"))
    name: str = ""


class ScenePage(BaseModel):
    id: str = "0:1"
    name: str = "Page 1"
    children: List[SceneElement] = Field(default_factory=list)
    flow_starting_points: List[FlowStartingPoint] = Field(
        default_factory=list,
        validation_alias=AliasChoices("flow_starting_points", "flowStartingPoints"),
    )
