from __future__ import annotations

from collections.abc import Iterable
from typing import Dict, List, Tuple

from domain.models import LayoutEdge, Transition

FLOW_COLORS: Tuple[str, ...] = (
    "#2ecc70",  # green, happy path
    "#e84d3d",  # red, error
    "#3399db",  # blue
    "#f29c12",  # orange
    "#8f45ad",  # purple
)
NEUTRAL_EDGE_COLOR = "#666673"

TRIGGER_LABELS: Dict[str, str] = {
    "ON_CLICK": "Tap",
    "ON_HOVER": "Hover",
    "ON_DRAG": "Drag",
    "ON_PRESS": "Press",
    "AFTER_TIMEOUT": "Timer",
    "MOUSE_ENTER": "Hover In",
    "MOUSE_LEAVE": "Hover Out",
    "MOUSE_DOWN": "Press",
    "MOUSE_UP": "Release",
}

EdgeKey = Tuple[str, str]


def assign_flow_colors(
    edges: Iterable[Transition | LayoutEdge],
    palette: Tuple[str, ...] = FLOW_COLORS,
) -> Dict[EdgeKey, str]:
    edge_list = list(edges)
    sources: List[str] = []
    for edge in edge_list:
        if edge.source_id not in sources:
            sources.append(edge.source_id)
    source_index = {source_id: idx for idx, source_id in enumerate(sources)}
    return {
        (edge.source_id, edge.target_id): palette[source_index[edge.source_id] % len(palette)]
        for edge in edge_list
    }


def trigger_label(trigger: str) -> str:
    return TRIGGER_LABELS.get(trigger, trigger)


def resolve_edge_color(
    colors: Dict[EdgeKey, str],
    source_id: str,
    target_id: str,
    highlighting: bool,
) -> str:
    if not highlighting:
        return NEUTRAL_EDGE_COLOR
    return colors.get((source_id, target_id), FLOW_COLORS[0])
