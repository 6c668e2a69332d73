from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List

from domain.models import (
    DEFAULT_ACTION,
    DEFAULT_TRIGGER,
    FlowGraph,
    ScreenNode,
    Transition,
)
from domain.ports.host import SceneHost
from domain.scene import Reaction, SceneElement

logger = logging.getLogger(__name__)


def round_dimension(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def find_top_screen(host: SceneHost, element: SceneElement) -> SceneElement | None:
    """Walk parents up to the page and return the top-level screen container, if any."""
    current: SceneElement | None = element
    while current is not None:
        parent = host.parent_of(current)
        if parent is None:
            return current if current.is_screen_container else None
        current = parent
    return None


class ExtractFlowGraph:
    def __init__(self, include_unlinked_screens: bool = False) -> None:
        self.include_unlinked_screens = include_unlinked_screens

    def extract(self, host: SceneHost) -> FlowGraph:
        nodes: Dict[str, ScreenNode] = {}
        edges: List[Transition] = []

        def register(screen: SceneElement) -> None:
            if screen.id in nodes:
                return
            nodes[screen.id] = ScreenNode(
                id=screen.id,
                name=screen.name,
                width=round_dimension(screen.width),
                height=round_dimension(screen.height),
            )

        def visit(element: SceneElement) -> None:
            for reaction in element.reactions:
                transition = self._resolve_reaction(host, element, reaction)
                if transition is None:
                    continue
                source, target, edge = transition
                register(source)
                register(target)
                edges.append(edge)
            for child in element.children:
                visit(child)

        for child in host.page_children():
            visit(child)

        if self.include_unlinked_screens:
            for child in host.page_children():
                if child.is_screen_container:
                    register(child)

        starting_point_ids = self._starting_points(host, nodes, edges)
        logger.info(
            "Extracted %d screens, %d transitions, %d entry points from %s",
            len(nodes),
            len(edges),
            len(starting_point_ids),
            host.page_name,
        )
        return FlowGraph(
            nodes=list(nodes.values()),
            edges=edges,
            starting_point_ids=starting_point_ids,
        )

    def _resolve_reaction(
        self,
        host: SceneHost,
        element: SceneElement,
        reaction: Reaction,
    ) -> tuple[SceneElement, SceneElement, Transition] | None:
        action = reaction.action
        if action is None or not action.destination_id:
            return None
        source_screen = find_top_screen(host, element)
        destination = host.resolve_by_id(action.destination_id)
        target_screen = find_top_screen(host, destination) if destination else None
        if source_screen is None or target_screen is None:
            return None
        if source_screen.id == target_screen.id:
            return None
        trigger = (reaction.trigger.type if reaction.trigger else None) or DEFAULT_TRIGGER
        edge = Transition(
            source_id=source_screen.id,
            target_id=target_screen.id,
            trigger=trigger,
            action=action.type or DEFAULT_ACTION,
        )
        return source_screen, target_screen, edge

    def _starting_points(
        self,
        host: SceneHost,
        nodes: Dict[str, ScreenNode],
        edges: List[Transition],
    ) -> List[str]:
        starting_point_ids: List[str] = []
        for marker in host.flow_starting_points():
            if marker.node_id in nodes and marker.node_id not in starting_point_ids:
                starting_point_ids.append(marker.node_id)
        if starting_point_ids:
            return starting_point_ids

        has_incoming = {edge.target_id for edge in edges}
        return [node_id for node_id in nodes if node_id not in has_incoming]
