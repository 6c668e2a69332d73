from __future__ import annotations

from typing import Protocol

from domain.models import FlowGraph, LayoutDirection, LayoutResult


class LayoutEngine(Protocol):
    def layout(self, graph: FlowGraph, direction: LayoutDirection) -> LayoutResult:
        ...
