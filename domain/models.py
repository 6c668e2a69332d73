from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator

METADATA_SCHEMA_VERSION = "1.0"
CUSTOM_DATA_KEY = "flow"

DEFAULT_TRIGGER = "ON_CLICK"
DEFAULT_ACTION = "NAVIGATE"


class LayoutDirection(str, Enum):
    LEFT_TO_RIGHT = "LR"
    TOP_TO_BOTTOM = "TB"

    @classmethod
    def parse(cls, value: object) -> LayoutDirection:
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().upper()
        aliases = {
            "LR": cls.LEFT_TO_RIGHT,
            "LEFT-TO-RIGHT": cls.LEFT_TO_RIGHT,
            "LEFT_TO_RIGHT": cls.LEFT_TO_RIGHT,
            "TB": cls.TOP_TO_BOTTOM,
            "TD": cls.TOP_TO_BOTTOM,
            "TOP-TO-BOTTOM": cls.TOP_TO_BOTTOM,
            "TOP_TO_BOTTOM": cls.TOP_TO_BOTTOM,
        }
        if normalized not in aliases:
            msg = f"Unknown layout direction: {value!r}"
            raise ValueError(msg)
        return aliases[normalized]


class ScreenNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    width: int = 0
    height: int = 0


class Transition(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_id: str = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1)
    trigger: str = DEFAULT_TRIGGER
    action: str = DEFAULT_ACTION

    @model_validator(mode="after")
    def reject_self_loop(self) -> Transition:
        if self.source_id == self.target_id:
            msg = f"Self-loop transitions are not allowed: {self.source_id}"
            raise ValueError(msg)
        return self

    @property
    def pair(self) -> tuple[str, str]:
        return self.source_id, self.target_id


class FlowGraph(BaseModel):
    model_config = ConfigDict(frozen=True)

    nodes: List[ScreenNode] = Field(default_factory=list)
    edges: List[Transition] = Field(default_factory=list)
    starting_point_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def ensure_consistent(self) -> FlowGraph:
        seen: Set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                msg = f"Duplicate screen id found: {node.id}"
                raise ValueError(msg)
            seen.add(node.id)
        for edge in self.edges:
            if edge.source_id not in seen or edge.target_id not in seen:
                msg = f"Transition references unknown screen: {edge.source_id} -> {edge.target_id}"
                raise ValueError(msg)
        for start_id in self.starting_point_ids:
            if start_id not in seen:
                msg = f"Starting point references unknown screen: {start_id}"
                raise ValueError(msg)
        return self

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class LayoutNode:
    id: str
    name: str
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class LayoutEdge:
    source_id: str
    target_id: str
    trigger: str
    action: str
    points: List[Point] = field(default_factory=list)


@dataclass(frozen=True)
class LayoutResult:
    nodes: List[LayoutNode] = field(default_factory=list)
    edges: List[LayoutEdge] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[LayoutNode]:
        return next((node for node in self.nodes if node.id == node_id), None)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CardGeometry:
    thumbnail_size: Size = Size(300, 200)
    padding: float = 12.0
    label_row: float = 40.0
    label_offset: float = 10.0
    label_height: float = 20.0
    corner_radius: float = 12.0

    @property
    def size(self) -> Size:
        return Size(
            self.thumbnail_size.width + self.padding * 2,
            self.thumbnail_size.height + self.padding * 2 + self.label_row,
        )


@dataclass(frozen=True)
class Thumbnail:
    position: Point
    size: Size
    image: bytes
    corner_radius: float = 6.0


@dataclass(frozen=True)
class CardLabel:
    text: str
    position: Point
    size: Size
    font_size: float = 14.0
    color: str = "#212121"


@dataclass(frozen=True)
class ScreenCard:
    node_id: str
    name: str
    position: Point
    size: Size
    label: CardLabel
    thumbnail: Optional[Thumbnail] = None
    corner_radius: float = 12.0
    fill: str = "#ffffff"


@dataclass(frozen=True)
class VectorPath:
    data: str
    winding_rule: str = "NONZERO"


@dataclass(frozen=True)
class Arrow:
    source_id: str
    target_id: str
    position: Point
    size: Size
    paths: List[VectorPath]
    color: str
    stroke_weight: float = 2.0
    stroke_cap: str = "ROUND"


@dataclass(frozen=True)
class Badge:
    source_id: str
    target_id: str
    text: str
    position: Point
    size: Size
    color: str
    background_opacity: float = 0.12
    font_size: float = 11.0
    corner_radius: float = 10.0


@dataclass(frozen=True)
class FlowDiagram:
    page_name: str
    name: str
    size: Size
    background: str
    cards: List[ScreenCard]
    arrows: List[Arrow]
    badges: List[Badge]

    def card(self, node_id: str) -> Optional[ScreenCard]:
        return next((card for card in self.cards if card.node_id == node_id), None)

    def to_dict(self) -> dict:
        """Plain payload of the diagram; thumbnail bytes are reduced to a flag."""
        return {
            "page_name": self.page_name,
            "name": self.name,
            "size": asdict(self.size),
            "background": self.background,
            "cards": [
                {
                    "node_id": card.node_id,
                    "name": card.name,
                    "label": card.label.text,
                    "position": asdict(card.position),
                    "size": asdict(card.size),
                    "has_thumbnail": card.thumbnail is not None,
                }
                for card in self.cards
            ],
            "arrows": [asdict(arrow) for arrow in self.arrows],
            "badges": [asdict(badge) for badge in self.badges],
        }


@dataclass(frozen=True)
class DiagramHandle:
    page_name: str
    diagram_name: str
    revision: int


@dataclass(frozen=True)
class GeneratedDiagram:
    handle: DiagramHandle
    diagram: FlowDiagram
    layout: LayoutResult


@dataclass(frozen=True)
class ExcalidrawDocument:
    elements: List[dict]
    app_state: dict
    files: dict

    def to_dict(self) -> dict:
        return {
            "type": "excalidraw",
            "version": 2,
            "source": "screen-flow-diagrams",
            "elements": self.elements,
            "appState": self.app_state,
            "files": self.files,
        }
