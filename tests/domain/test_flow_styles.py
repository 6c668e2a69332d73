from __future__ import annotations

from domain.services.flow_styles import (
    FLOW_COLORS,
    NEUTRAL_EDGE_COLOR,
    assign_flow_colors,
    resolve_edge_color,
    trigger_label,
)
from tests.helpers.scene_fixtures import graph


def test_edges_from_the_same_source_share_a_color() -> None:
    flow = graph(["a", "b", "c", "d"], [("a", "b"), ("b", "c"), ("a", "c"), ("c", "d")])
    colors = assign_flow_colors(flow.edges)

    assert colors[("a", "b")] == colors[("a", "c")] == FLOW_COLORS[0]
    assert colors[("b", "c")] == FLOW_COLORS[1]
    assert colors[("c", "d")] == FLOW_COLORS[2]


def test_palette_wraps_after_five_sources() -> None:
    ids = [f"n{idx}" for idx in range(7)]
    flow = graph(ids, [(ids[idx], ids[idx + 1]) for idx in range(6)])
    colors = assign_flow_colors(flow.edges)

    assert colors[("n5", "n6")] == FLOW_COLORS[0]
    assert colors[("n4", "n5")] == FLOW_COLORS[4]


def test_trigger_labels() -> None:
    assert trigger_label("ON_CLICK") == "Tap"
    assert trigger_label("AFTER_TIMEOUT") == "Timer"
    assert trigger_label("MOUSE_ENTER") == "Hover In"
    assert trigger_label("ON_KEY_DOWN") == "ON_KEY_DOWN"


def test_edge_color_is_neutral_without_highlighting() -> None:
    colors = {("a", "b"): FLOW_COLORS[3]}

    assert resolve_edge_color(colors, "a", "b", highlighting=False) == NEUTRAL_EDGE_COLOR
    assert resolve_edge_color(colors, "a", "b", highlighting=True) == FLOW_COLORS[3]
