from __future__ import annotations

import pytest

from domain.models import LayoutEdge, LayoutNode, LayoutResult, Point
from domain.services.compose_flow_diagram import (
    FlowDiagramComposer,
    build_arrow_geometry,
    format_coordinate,
    parse_path_commands,
)
from domain.services.flow_styles import FLOW_COLORS, NEUTRAL_EDGE_COLOR


def _node(node_id: str, x: float, y: float) -> LayoutNode:
    return LayoutNode(id=node_id, name=node_id.title(), x=x, y=y, width=324, height=264)


def _edge(source: str, target: str, trigger: str = "ON_CLICK") -> LayoutEdge:
    return LayoutEdge(source_id=source, target_id=target, trigger=trigger, action="NAVIGATE")


def _layout(offset_x: float = 0.0, offset_y: float = 0.0) -> LayoutResult:
    return LayoutResult(
        nodes=[
            _node("a", 20 + offset_x, 20 + offset_y),
            _node("b", 464 + offset_x, 20 + offset_y),
            _node("c", 464 + offset_x, 352 + offset_y),
        ],
        edges=[_edge("a", "b"), _edge("a", "c", "ON_HOVER"), _edge("b", "c", "AFTER_TIMEOUT")],
    )


def test_container_wraps_cards_with_padding() -> None:
    diagram = FlowDiagramComposer().compose(_layout(), "free", page_name="Checkout")

    assert (diagram.size.width, diagram.size.height) == (444 + 324 + 80, 332 + 264 + 80)
    assert diagram.page_name == "Checkout"
    assert diagram.name == "Flow Diagram"
    first = diagram.card("a")
    assert first is not None
    assert (first.position.x, first.position.y) == (40, 40)
    assert first.name == "Screen: A"
    assert first.label.text == "A"
    assert (first.label.position.x, first.label.position.y) == (12, 222)


def test_arrows_run_from_right_center_to_left_center() -> None:
    diagram = FlowDiagramComposer().compose(_layout(), "free")
    arrow = diagram.arrows[0]
    source = diagram.card("a")
    target = diagram.card("b")
    assert source is not None and target is not None

    shaft = parse_path_commands(arrow.paths[0].data)
    start = (arrow.position.x + shaft[0][1], arrow.position.y + shaft[0][2])
    end = (arrow.position.x + shaft[1][1], arrow.position.y + shaft[1][2])
    assert start == pytest.approx((source.position.x + 324 + 8, source.position.y + 132))
    assert end == pytest.approx((target.position.x - 8, target.position.y + 132))
    assert len(arrow.paths) == 2


def test_arrow_paths_are_relative_to_their_origin() -> None:
    diagram = FlowDiagramComposer().compose(_layout(), "pro")

    for arrow in diagram.arrows:
        for path in arrow.paths:
            for _, x, y in parse_path_commands(path.data):
                assert x >= 0 and y >= 0
                assert x <= arrow.size.width + 1e-3
                assert y <= arrow.size.height + 1e-3


def test_composition_is_translation_invariant() -> None:
    composer = FlowDiagramComposer()
    base = composer.compose(_layout(), "pro")
    shifted = composer.compose(_layout(offset_x=-500, offset_y=1234), "pro")

    assert base.size == shifted.size
    assert [card.position for card in base.cards] == [card.position for card in shifted.cards]
    assert [arrow.paths for arrow in base.arrows] == [arrow.paths for arrow in shifted.arrows]
    assert [badge.position for badge in base.badges] == [badge.position for badge in shifted.badges]


def test_free_tier_uses_neutral_arrows_without_badges() -> None:
    diagram = FlowDiagramComposer().compose(_layout(), "free")

    assert {arrow.color for arrow in diagram.arrows} == {NEUTRAL_EDGE_COLOR}
    assert diagram.badges == []


def test_pro_tier_highlights_flows_and_labels_interactions() -> None:
    diagram = FlowDiagramComposer().compose(_layout(), "pro")

    colors = {(arrow.source_id, arrow.target_id): arrow.color for arrow in diagram.arrows}
    assert colors[("a", "b")] == colors[("a", "c")] == FLOW_COLORS[0]
    assert colors[("b", "c")] == FLOW_COLORS[1]
    assert [badge.text for badge in diagram.badges] == ["Tap", "Hover", "Timer"]
    badge = diagram.badges[0]
    assert badge.background_opacity == pytest.approx(0.12)
    assert badge.color == FLOW_COLORS[0]


def test_badge_sits_at_offset_midpoint() -> None:
    diagram = FlowDiagramComposer().compose(_layout(), "pro")
    source = diagram.card("a")
    target = diagram.card("b")
    assert source is not None and target is not None

    mid_x = (source.position.x + 324 + target.position.x) / 2
    mid_y = source.position.y + 132
    assert (diagram.badges[0].position.x, diagram.badges[0].position.y) == (mid_x - 20, mid_y - 12)


def test_edges_with_missing_cards_are_skipped() -> None:
    layout = LayoutResult(
        nodes=[_node("a", 0, 0), _node("b", 500, 0)],
        edges=[_edge("a", "b"), _edge("a", "ghost"), _edge("ghost", "b")],
    )
    diagram = FlowDiagramComposer().compose(layout, "pro")

    assert [(arrow.source_id, arrow.target_id) for arrow in diagram.arrows] == [("a", "b")]
    assert len(diagram.badges) == 1


def test_zero_length_edges_produce_no_arrow() -> None:
    assert build_arrow_geometry(Point(10, 10), Point(10, 10), gap=8, head_length=10) is None


def test_arrow_geometry_for_horizontal_edge() -> None:
    geometry = build_arrow_geometry(Point(0, 100), Point(100, 100), gap=8, head_length=10)
    assert geometry is not None

    assert (geometry.origin.x, geometry.origin.y) == (8, 95)
    assert geometry.shaft == "M 0 5 L 84 5"
    assert geometry.head == "M 84 5 L 74 10 M 84 5 L 74 0"


def test_thumbnails_are_attached_when_present() -> None:
    diagram = FlowDiagramComposer().compose(_layout(), "free", thumbnails={"a": b"png-bytes"})

    with_thumb = diagram.card("a")
    without_thumb = diagram.card("b")
    assert with_thumb is not None and without_thumb is not None
    assert with_thumb.thumbnail is not None
    assert with_thumb.thumbnail.image == b"png-bytes"
    assert (with_thumb.thumbnail.size.width, with_thumb.thumbnail.size.height) == (300, 200)
    assert without_thumb.thumbnail is None


def test_empty_layout_yields_padding_only_container() -> None:
    diagram = FlowDiagramComposer().compose(LayoutResult(), "pro")

    assert (diagram.size.width, diagram.size.height) == (80, 80)
    assert diagram.cards == []


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.0, "0"), (-0.0001, "0"), (12.5, "12.5"), (3.0, "3"), (1.23456, "1.235")],
)
def test_format_coordinate(value: float, expected: str) -> None:
    assert format_coordinate(value) == expected
