from __future__ import annotations

import base64
import random
import uuid
from typing import Any, Dict, List

from domain.models import (
    CUSTOM_DATA_KEY,
    METADATA_SCHEMA_VERSION,
    Arrow,
    Badge,
    ExcalidrawDocument,
    FlowDiagram,
    Point,
    ScreenCard,
    Size,
)
from domain.services.compose_flow_diagram import parse_path_commands

Element = Dict[str, Any]


class FlowDiagramToExcalidrawConverter:
    def __init__(self) -> None:
        self.namespace = uuid.uuid5(uuid.NAMESPACE_DNS, "screen-flow-diagrams")

    def convert(self, diagram: FlowDiagram) -> ExcalidrawDocument:
        elements: List[Element] = []
        files: Dict[str, Any] = {}
        base_metadata = {
            "schema_version": METADATA_SCHEMA_VERSION,
            "page_name": diagram.page_name,
        }

        frame_id = self._stable_id("frame", diagram.page_name, diagram.name)
        elements.append(
            self._base_shape(
                element_id=frame_id,
                type_name="frame",
                position=Point(0.0, 0.0),
                size=diagram.size,
                metadata={**base_metadata, "role": "diagram"},
                extra={
                    "name": diagram.name,
                    "strokeColor": "#bbb",
                    "backgroundColor": diagram.background,
                    "fillStyle": "solid",
                },
            )
        )

        for card in diagram.cards:
            elements.extend(self._card_elements(card, frame_id, base_metadata, files))
        for index, arrow in enumerate(diagram.arrows):
            elements.append(self._arrow_element(arrow, index, frame_id, base_metadata))
        for index, badge in enumerate(diagram.badges):
            elements.extend(self._badge_elements(badge, index, frame_id, base_metadata))

        app_state = {
            "viewBackgroundColor": "#ffffff",
            "gridSize": None,
            "currentItemFontFamily": 1,
            "currentItemFontSize": 14,
            "currentItemStrokeColor": "#1e1e1e",
        }
        return ExcalidrawDocument(elements=elements, app_state=app_state, files=files)

    def _card_elements(
        self,
        card: ScreenCard,
        frame_id: str,
        base_metadata: dict,
        files: Dict[str, Any],
    ) -> List[Element]:
        group_id = self._stable_id("card-group", card.node_id)
        metadata = {**base_metadata, "screen_id": card.node_id}
        elements: List[Element] = [
            self._base_shape(
                element_id=self._stable_id("card", card.node_id),
                type_name="rectangle",
                position=card.position,
                size=card.size,
                metadata={**metadata, "role": "card"},
                frame_id=frame_id,
                group_ids=[group_id],
                extra={
                    "strokeColor": "#e0e0e0",
                    "backgroundColor": card.fill,
                    "fillStyle": "solid",
                    "roundness": {"type": 3, "value": card.corner_radius},
                    "name": card.name,
                },
            )
        ]
        if card.thumbnail is not None:
            file_id = self._stable_id("thumbnail-file", card.node_id)
            files[file_id] = {
                "id": file_id,
                "mimeType": "image/png",
                "dataURL": "data:image/png;base64,"
                + base64.b64encode(card.thumbnail.image).decode("ascii"),
                "created": 0,
            }
            elements.append(
                self._base_shape(
                    element_id=self._stable_id("thumbnail", card.node_id),
                    type_name="image",
                    position=self._offset(card.position, card.thumbnail.position),
                    size=card.thumbnail.size,
                    metadata={**metadata, "role": "thumbnail"},
                    frame_id=frame_id,
                    group_ids=[group_id],
                    extra={
                        "strokeColor": "transparent",
                        "backgroundColor": "transparent",
                        "fileId": file_id,
                        "status": "saved",
                        "scale": [1, 1],
                    },
                )
            )
        elements.append(
            self._text_element(
                element_id=self._stable_id("card-label", card.node_id),
                text=card.label.text,
                position=self._offset(card.position, card.label.position),
                size=card.label.size,
                font_size=card.label.font_size,
                color=card.label.color,
                text_align="left",
                metadata={**metadata, "role": "card_label"},
                frame_id=frame_id,
                group_ids=[group_id],
            )
        )
        return elements

    def _arrow_element(
        self,
        arrow: Arrow,
        index: int,
        frame_id: str,
        base_metadata: dict,
    ) -> Element:
        shaft = parse_path_commands(arrow.paths[0].data) if arrow.paths else []
        if len(shaft) >= 2:
            (_, x0, y0), (_, x1, y1) = shaft[0], shaft[-1]
        else:
            x0, y0, x1, y1 = 0.0, 0.0, arrow.size.width, arrow.size.height
        start = Point(arrow.position.x + x0, arrow.position.y + y0)
        dx = x1 - x0
        dy = y1 - y0
        return self._base_shape(
            element_id=self._stable_id("arrow", arrow.source_id, arrow.target_id, str(index)),
            type_name="arrow",
            position=start,
            size=Size(abs(dx), abs(dy)),
            metadata={
                **base_metadata,
                "role": "transition",
                "source_screen_id": arrow.source_id,
                "target_screen_id": arrow.target_id,
            },
            frame_id=frame_id,
            extra={
                "strokeColor": arrow.color,
                "backgroundColor": "transparent",
                "fillStyle": "solid",
                "strokeWidth": arrow.stroke_weight,
                "roundness": {"type": 2},
                "points": [[0.0, 0.0], [dx, dy]],
                "startBinding": {
                    "elementId": self._stable_id("card", arrow.source_id),
                    "focus": 0.0,
                    "gap": 8,
                },
                "endBinding": {
                    "elementId": self._stable_id("card", arrow.target_id),
                    "focus": 0.0,
                    "gap": 8,
                },
                "startArrowhead": None,
                "endArrowhead": "arrow",
            },
        )

    def _badge_elements(
        self,
        badge: Badge,
        index: int,
        frame_id: str,
        base_metadata: dict,
    ) -> List[Element]:
        key = (badge.source_id, badge.target_id, str(index))
        group_id = self._stable_id("badge-group", *key)
        metadata = {
            **base_metadata,
            "source_screen_id": badge.source_id,
            "target_screen_id": badge.target_id,
        }
        panel = self._base_shape(
            element_id=self._stable_id("badge", *key),
            type_name="rectangle",
            position=badge.position,
            size=badge.size,
            metadata={**metadata, "role": "badge"},
            frame_id=frame_id,
            group_ids=[group_id],
            extra={
                "strokeColor": "transparent",
                "backgroundColor": badge.color,
                "fillStyle": "solid",
                "opacity": int(round(badge.background_opacity * 100)),
                "roundness": {"type": 3, "value": badge.corner_radius},
            },
        )
        text = self._text_element(
            element_id=self._stable_id("badge-text", *key),
            text=badge.text,
            position=badge.position,
            size=badge.size,
            font_size=badge.font_size,
            color=badge.color,
            text_align="center",
            metadata={**metadata, "role": "badge_label"},
            frame_id=frame_id,
            group_ids=[group_id],
        )
        return [panel, text]

    def _text_element(
        self,
        element_id: str,
        text: str,
        position: Point,
        size: Size,
        font_size: float,
        color: str,
        text_align: str,
        metadata: dict,
        frame_id: str | None,
        group_ids: List[str] | None = None,
    ) -> Element:
        return self._base_shape(
            element_id=element_id,
            type_name="text",
            position=position,
            size=size,
            metadata=metadata,
            frame_id=frame_id,
            group_ids=group_ids,
            extra={
                "strokeColor": color,
                "backgroundColor": "transparent",
                "fillStyle": "solid",
                "text": text,
                "originalText": text,
                "fontSize": font_size,
                "fontFamily": 1,
                "textAlign": text_align,
                "verticalAlign": "middle",
                "baseline": size.height / 2,
                "containerId": None,
            },
        )

    def _base_shape(
        self,
        element_id: str,
        type_name: str,
        position: Point,
        size: Size,
        metadata: dict,
        frame_id: str | None = None,
        group_ids: List[str] | None = None,
        extra: dict | None = None,
    ) -> Element:
        return {
            "id": element_id,
            "type": type_name,
            "x": position.x,
            "y": position.y,
            "width": size.width,
            "height": size.height,
            "angle": 0,
            "strokeWidth": 1,
            "strokeStyle": "solid",
            "roughness": 0,
            "opacity": 100,
            "groupIds": group_ids or [],
            "roundness": None,
            "seed": self._rand_seed(),
            "version": 1,
            "versionNonce": self._rand_seed(),
            "isDeleted": False,
            "boundElements": [],
            "locked": False,
            "frameId": frame_id,
            "customData": {CUSTOM_DATA_KEY: metadata},
            **(extra or {}),
        }

    def _offset(self, origin: Point, offset: Point) -> Point:
        return Point(origin.x + offset.x, origin.y + offset.y)

    def _stable_id(self, *parts: str) -> str:
        return str(uuid.uuid5(self.namespace, "|".join(parts)))

    def _rand_seed(self) -> int:
        return random.randint(1, 2**31 - 1)
