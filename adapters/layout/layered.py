from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

import networkx as nx

from domain.models import (
    CardGeometry,
    FlowGraph,
    LayoutDirection,
    LayoutEdge,
    LayoutNode,
    LayoutResult,
    Point,
    Size,
)
from domain.ports.layout import LayoutEngine

DUMMY_PREFIX = "__dummy__"

Edge = Tuple[str, str]


@dataclass(frozen=True)
class LayoutConfig:
    card_size: Size = CardGeometry().size
    node_sep: float = 80.0
    rank_sep: float = 120.0
    edge_sep: float = 20.0
    margin: float = 20.0
    dummy_size: float = 20.0
    max_sweeps: int = 24


@dataclass
class RankedGraph:
    """Acyclic, rank-assigned graph where every edge spans exactly one rank."""

    graph: nx.DiGraph
    ranks: Dict[str, int]
    chains: Dict[Edge, List[str]] = field(default_factory=dict)
    sequence: Dict[str, int] = field(default_factory=dict)

    @property
    def rank_count(self) -> int:
        return max(self.ranks.values(), default=-1) + 1


def _round(value: float) -> int:
    return math.floor(value + 0.5)


def _is_dummy(node_id: str) -> bool:
    return node_id.startswith(DUMMY_PREFIX)


class LayeredLayoutEngine(LayoutEngine):
    def __init__(self, config: LayoutConfig | None = None) -> None:
        self.config = config or LayoutConfig()

    def layout(self, graph: FlowGraph, direction: LayoutDirection | str) -> LayoutResult:
        if graph.is_empty:
            return LayoutResult()
        direction = LayoutDirection.parse(direction)
        sequence = {node.id: idx for idx, node in enumerate(graph.nodes)}

        digraph = nx.DiGraph()
        digraph.add_nodes_from(sequence)
        digraph.add_edges_from(edge.pair for edge in graph.edges)

        reversed_edges = self._find_back_edges(digraph, sequence)
        dag = nx.DiGraph()
        dag.add_nodes_from(sequence)
        for source, target in digraph.edges:
            if (source, target) in reversed_edges:
                dag.add_edge(target, source)
            else:
                dag.add_edge(source, target)

        ranked = self._insert_dummies(dag, self._assign_ranks(dag, sequence), sequence)
        ordering = self._order_ranks(ranked)
        centers = self._assign_centers(ranked, ordering, direction)

        card = self.config.card_size
        nodes = [
            LayoutNode(
                id=node.id,
                name=node.name,
                x=_round(centers[node.id].x - card.width / 2),
                y=_round(centers[node.id].y - card.height / 2),
                width=card.width,
                height=card.height,
            )
            for node in graph.nodes
        ]

        routes = self._route_chains(ranked, centers)
        edges: List[LayoutEdge] = []
        for edge in graph.edges:
            if edge.pair in reversed_edges:
                points = list(reversed(routes.get((edge.target_id, edge.source_id), [])))
            else:
                points = routes.get(edge.pair, [])
            edges.append(
                LayoutEdge(
                    source_id=edge.source_id,
                    target_id=edge.target_id,
                    trigger=edge.trigger,
                    action=edge.action,
                    points=points,
                )
            )
        return LayoutResult(nodes=nodes, edges=edges)

    def _find_back_edges(self, graph: nx.DiGraph, sequence: Dict[str, int]) -> Set[Edge]:
        # Only edges inside a strongly connected component can close a cycle.
        component_of: Dict[str, int] = {}
        for idx, component in enumerate(nx.strongly_connected_components(graph)):
            for node in component:
                component_of[node] = idx
        internal = nx.DiGraph()
        internal.add_nodes_from(graph.nodes)
        internal.add_edges_from(
            (source, target)
            for source, target in graph.edges
            if component_of[source] == component_of[target]
        )
        position = {
            node: idx for idx, node in enumerate(self._greedy_fas_ordering(internal, sequence))
        }
        return {
            (source, target)
            for source, target in internal.edges
            if position[source] > position[target]
        }

    def _greedy_fas_ordering(self, graph: nx.DiGraph, sequence: Dict[str, int]) -> List[str]:
        nodes = sorted(graph.nodes, key=sequence.__getitem__)
        remaining = set(nodes)
        out_deg = {node: graph.out_degree(node) for node in nodes}
        in_deg = {node: graph.in_degree(node) for node in nodes}
        head: List[str] = []
        tail: List[str] = []

        def remove(node: str) -> None:
            remaining.discard(node)
            for succ in graph.successors(node):
                if succ in remaining:
                    in_deg[succ] -= 1
            for pred in graph.predecessors(node):
                if pred in remaining:
                    out_deg[pred] -= 1

        while remaining:
            changed = True
            while changed:
                changed = False
                for node in nodes:
                    if node in remaining and out_deg[node] == 0:
                        remove(node)
                        tail.append(node)
                        changed = True
            changed = True
            while changed:
                changed = False
                for node in nodes:
                    if node in remaining and in_deg[node] == 0:
                        remove(node)
                        head.append(node)
                        changed = True
            if remaining:
                best = max(
                    (node for node in nodes if node in remaining),
                    key=lambda node: (out_deg[node] - in_deg[node], -sequence[node]),
                )
                remove(best)
                head.append(best)

        return head + list(reversed(tail))

    def _assign_ranks(self, dag: nx.DiGraph, sequence: Dict[str, int]) -> Dict[str, int]:
        ranks: Dict[str, int] = {node: 0 for node in dag.nodes}
        for node in nx.lexicographical_topological_sort(dag, key=sequence.__getitem__):
            for succ in dag.successors(node):
                ranks[succ] = max(ranks[succ], ranks[node] + 1)
        return ranks

    def _insert_dummies(
        self,
        dag: nx.DiGraph,
        ranks: Dict[str, int],
        sequence: Dict[str, int],
    ) -> RankedGraph:
        augmented = nx.DiGraph()
        augmented.add_nodes_from(dag.nodes)
        layered_ranks = dict(ranks)
        layered_sequence = dict(sequence)
        chains: Dict[Edge, List[str]] = {}

        edges = sorted(dag.edges, key=lambda edge: (sequence[edge[0]], sequence[edge[1]]))
        for source, target in edges:
            chain = [source]
            for step in range(1, ranks[target] - ranks[source]):
                dummy_id = f"{DUMMY_PREFIX}{source}->{target}#{step}"
                augmented.add_node(dummy_id)
                layered_ranks[dummy_id] = ranks[source] + step
                layered_sequence[dummy_id] = len(layered_sequence)
                chain.append(dummy_id)
            chain.append(target)
            for upper, lower in zip(chain, chain[1:]):
                augmented.add_edge(upper, lower)
            chains[(source, target)] = chain

        return RankedGraph(
            graph=augmented,
            ranks=layered_ranks,
            chains=chains,
            sequence=layered_sequence,
        )

    def _order_ranks(self, ranked: RankedGraph) -> List[List[str]]:
        ordering: List[List[str]] = [[] for _ in range(ranked.rank_count)]
        for node_id in sorted(ranked.ranks, key=ranked.sequence.__getitem__):
            ordering[ranked.ranks[node_id]].append(node_id)

        best = [list(layer) for layer in ordering]
        best_crossings = self._count_crossings(best, ranked.graph)
        for _ in range(self.config.max_sweeps):
            if best_crossings == 0:
                break
            for idx in range(1, len(ordering)):
                self._sort_by_barycenter(ordering[idx], ordering[idx - 1], ranked.graph, "in")
            for idx in range(len(ordering) - 2, -1, -1):
                self._sort_by_barycenter(ordering[idx], ordering[idx + 1], ranked.graph, "out")
            crossings = self._count_crossings(ordering, ranked.graph)
            if crossings >= best_crossings:
                break
            best = [list(layer) for layer in ordering]
            best_crossings = crossings
        return best

    def _sort_by_barycenter(
        self,
        layer: List[str],
        neighbor_layer: List[str],
        graph: nx.DiGraph,
        side: str,
    ) -> None:
        neighbor_pos = {node_id: float(idx) for idx, node_id in enumerate(neighbor_layer)}
        current_pos = {node_id: float(idx) for idx, node_id in enumerate(layer)}

        def barycenter(node_id: str) -> Tuple[float, float]:
            neighbors = graph.predecessors(node_id) if side == "in" else graph.successors(node_id)
            positions = [neighbor_pos[nb] for nb in neighbors if nb in neighbor_pos]
            if not positions:
                return current_pos[node_id], current_pos[node_id]
            return sum(positions) / len(positions), current_pos[node_id]

        layer.sort(key=barycenter)

    def _count_crossings(self, ordering: List[List[str]], graph: nx.DiGraph) -> int:
        total = 0
        for idx in range(len(ordering) - 1):
            lower_pos = {node_id: pos for pos, node_id in enumerate(ordering[idx + 1])}
            segments: List[Tuple[int, int]] = []
            for upper_pos, node_id in enumerate(ordering[idx]):
                for succ in graph.successors(node_id):
                    if succ in lower_pos:
                        segments.append((upper_pos, lower_pos[succ]))
            for i, (a_upper, a_lower) in enumerate(segments):
                for b_upper, b_lower in segments[i + 1 :]:
                    if (a_upper - b_upper) * (a_lower - b_lower) < 0:
                        total += 1
        return total

    def _assign_centers(
        self,
        ranked: RankedGraph,
        ordering: List[List[str]],
        direction: LayoutDirection,
    ) -> Dict[str, Point]:
        config = self.config
        horizontal = direction == LayoutDirection.LEFT_TO_RIGHT
        primary_size = config.card_size.width if horizontal else config.card_size.height
        cross_size = config.card_size.height if horizontal else config.card_size.width

        def slot(node_id: str) -> float:
            return config.dummy_size if _is_dummy(node_id) else cross_size

        def gap(left: str, right: str) -> float:
            if _is_dummy(left) or _is_dummy(right):
                return config.edge_sep
            return config.node_sep

        spans: List[List[Tuple[str, float]]] = []
        totals: List[float] = []
        for layer in ordering:
            cursor = 0.0
            placed: List[Tuple[str, float]] = []
            for idx, node_id in enumerate(layer):
                if idx:
                    cursor += gap(layer[idx - 1], node_id)
                placed.append((node_id, cursor + slot(node_id) / 2))
                cursor += slot(node_id)
            spans.append(placed)
            totals.append(cursor)

        widest = max(totals, default=0.0)
        centers: Dict[str, Point] = {}
        for rank, placed in enumerate(spans):
            offset = (widest - totals[rank]) / 2
            primary = config.margin + rank * (primary_size + config.rank_sep) + primary_size / 2
            for node_id, cross in placed:
                cross_center = config.margin + offset + cross
                if horizontal:
                    centers[node_id] = Point(primary, cross_center)
                else:
                    centers[node_id] = Point(cross_center, primary)
        return centers

    def _route_chains(
        self,
        ranked: RankedGraph,
        centers: Dict[str, Point],
    ) -> Dict[Edge, List[Point]]:
        card = self.config.card_size
        routes: Dict[Edge, List[Point]] = {}
        for (source, target), chain in ranked.chains.items():
            anchors = [centers[node_id] for node_id in chain]
            start = self._intersect_card(anchors[0], card, anchors[1])
            end = self._intersect_card(anchors[-1], card, anchors[-2])
            points = [start, *anchors[1:-1], end]
            routes[(source, target)] = [Point(_round(p.x), _round(p.y)) for p in points]
        return routes

    def _intersect_card(self, center: Point, size: Size, toward: Point) -> Point:
        dx = toward.x - center.x
        dy = toward.y - center.y
        if dx == 0 and dy == 0:
            return center
        half_w = size.width / 2
        half_h = size.height / 2
        if abs(dy) * half_w > abs(dx) * half_h:
            if dy < 0:
                half_h = -half_h
            return Point(center.x + half_h * dx / dy, center.y + half_h)
        if dx < 0:
            half_w = -half_w
        return Point(center.x + half_w, center.y + half_w * dy / dx)
