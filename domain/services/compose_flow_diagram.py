from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, List, Tuple

from domain.models import (
    Arrow,
    Badge,
    CardGeometry,
    CardLabel,
    FlowDiagram,
    LayoutResult,
    Point,
    ScreenCard,
    Size,
    Thumbnail,
    VectorPath,
)
from domain.services.flow_styles import assign_flow_colors, resolve_edge_color, trigger_label
from domain.tiers import TierConfig, resolve_tier


@dataclass(frozen=True)
class ComposerConfig:
    card: CardGeometry = CardGeometry()
    outer_padding: float = 40.0
    background: str = "#f7f7fa"
    diagram_name: str = "Flow Diagram"
    arrow_gap: float = 8.0
    arrowhead_length: float = 10.0
    stroke_weight: float = 2.0
    badge_offset_x: float = 20.0
    badge_offset_y: float = 12.0
    badge_padding_x: float = 8.0
    badge_padding_y: float = 4.0
    badge_font_size: float = 11.0
    text_width_factor: float = 0.6
    line_height: float = 1.35


@dataclass(frozen=True)
class ArrowGeometry:
    origin: Point
    size: Size
    shaft: str
    head: str


def format_coordinate(value: float) -> str:
    rounded = round(value, 3)
    if rounded == 0:
        return "0"
    text = f"{rounded:.3f}".rstrip("0").rstrip(".")
    return text


def parse_path_commands(data: str) -> List[Tuple[str, float, float]]:
    tokens = data.split()
    return [
        (tokens[idx], float(tokens[idx + 1]), float(tokens[idx + 2]))
        for idx in range(0, len(tokens) - 2, 3)
    ]


def build_arrow_geometry(
    start: Point,
    end: Point,
    gap: float,
    head_length: float,
) -> ArrowGeometry | None:
    """Shaft plus a two-stroke arrowhead, with path data relative to the arrow origin.

    Both ends are pulled in by ``gap`` along the edge direction. The arrowhead strokes
    start at the shortened end point and go back ``head_length`` along the direction,
    offset sideways by half of ``head_length`` on the perpendicular.
    Returns None for a zero-length edge, where the direction is undefined.
    """
    dx = end.x - start.x
    dy = end.y - start.y
    length = math.hypot(dx, dy)
    if length == 0:
        return None
    ux = dx / length
    uy = dy / length

    sx = start.x + ux * gap
    sy = start.y + uy * gap
    ex = end.x - ux * gap
    ey = end.y - uy * gap

    half = head_length * 0.5
    ax1 = ex - ux * head_length - uy * half
    ay1 = ey - uy * head_length + ux * half
    ax2 = ex - ux * head_length + uy * half
    ay2 = ey - uy * head_length - ux * half

    xs = (sx, ex, ax1, ax2)
    ys = (sy, ey, ay1, ay2)
    origin_x = min(xs)
    origin_y = min(ys)

    def rel(x: float, y: float) -> str:
        return f"{format_coordinate(x - origin_x)} {format_coordinate(y - origin_y)}"

    return ArrowGeometry(
        origin=Point(origin_x, origin_y),
        size=Size(max(xs) - origin_x, max(ys) - origin_y),
        shaft=f"M {rel(sx, sy)} L {rel(ex, ey)}",
        head=f"M {rel(ex, ey)} L {rel(ax1, ay1)} M {rel(ex, ey)} L {rel(ax2, ay2)}",
    )


class FlowDiagramComposer:
    def __init__(self, config: ComposerConfig | None = None) -> None:
        self.config = config or ComposerConfig()

    def compose(
        self,
        layout: LayoutResult,
        tier: TierConfig | str | None,
        thumbnails: Mapping[str, bytes] | None = None,
        page_name: str = "",
    ) -> FlowDiagram:
        tier_config = resolve_tier(tier)
        thumbnails = thumbnails or {}
        config = self.config
        card_size = config.card.size
        padding = config.outer_padding

        min_x = min((node.x for node in layout.nodes), default=0.0)
        min_y = min((node.y for node in layout.nodes), default=0.0)
        max_x = max((node.x + card_size.width for node in layout.nodes), default=0.0)
        max_y = max((node.y + card_size.height for node in layout.nodes), default=0.0)
        container = Size(max_x - min_x + padding * 2, max_y - min_y + padding * 2)

        cards: List[ScreenCard] = []
        card_index: Dict[str, ScreenCard] = {}
        for node in layout.nodes:
            card = self._card(
                node_id=node.id,
                name=node.name,
                position=Point(node.x - min_x + padding, node.y - min_y + padding),
                thumbnail=thumbnails.get(node.id),
            )
            cards.append(card)
            card_index[node.id] = card

        colors = assign_flow_colors(layout.edges)
        arrows: List[Arrow] = []
        badges: List[Badge] = []
        for edge in layout.edges:
            source = card_index.get(edge.source_id)
            target = card_index.get(edge.target_id)
            if source is None or target is None:
                continue
            color = resolve_edge_color(
                colors, edge.source_id, edge.target_id, tier_config.flow_highlighting
            )
            start = self._anchor(source, "right")
            end = self._anchor(target, "left")
            geometry = build_arrow_geometry(start, end, config.arrow_gap, config.arrowhead_length)
            if geometry is not None:
                arrows.append(
                    Arrow(
                        source_id=edge.source_id,
                        target_id=edge.target_id,
                        position=geometry.origin,
                        size=geometry.size,
                        paths=[VectorPath(geometry.shaft), VectorPath(geometry.head)],
                        color=color,
                        stroke_weight=config.stroke_weight,
                    )
                )
            if tier_config.interaction_labels:
                mid = Point((start.x + end.x) / 2, (start.y + end.y) / 2)
                badges.append(
                    self._badge(edge.source_id, edge.target_id, trigger_label(edge.trigger), mid, color)
                )

        return FlowDiagram(
            page_name=page_name,
            name=config.diagram_name,
            size=container,
            background=config.background,
            cards=cards,
            arrows=arrows,
            badges=badges,
        )

    def _card(
        self,
        node_id: str,
        name: str,
        position: Point,
        thumbnail: bytes | None,
    ) -> ScreenCard:
        geometry = self.config.card
        label = CardLabel(
            text=name,
            position=Point(
                geometry.padding,
                geometry.thumbnail_size.height + geometry.padding + geometry.label_offset,
            ),
            size=Size(geometry.thumbnail_size.width, geometry.label_height),
        )
        thumb = None
        if thumbnail:
            thumb = Thumbnail(
                position=Point(geometry.padding, geometry.padding),
                size=geometry.thumbnail_size,
                image=thumbnail,
            )
        return ScreenCard(
            node_id=node_id,
            name=f"Screen: {name}",
            position=position,
            size=geometry.size,
            label=label,
            thumbnail=thumb,
            corner_radius=geometry.corner_radius,
        )

    def _anchor(self, card: ScreenCard, side: str) -> Point:
        y = card.position.y + card.size.height / 2
        if side == "left":
            return Point(card.position.x, y)
        return Point(card.position.x + card.size.width, y)

    def _badge(
        self,
        source_id: str,
        target_id: str,
        text: str,
        mid: Point,
        color: str,
    ) -> Badge:
        config = self.config
        width = len(text) * config.badge_font_size * config.text_width_factor
        height = config.badge_font_size * config.line_height
        return Badge(
            source_id=source_id,
            target_id=target_id,
            text=text,
            position=Point(mid.x - config.badge_offset_x, mid.y - config.badge_offset_y),
            size=Size(width + config.badge_padding_x * 2, height + config.badge_padding_y * 2),
            color=color,
            font_size=config.badge_font_size,
        )
