from __future__ import annotations

import io
from pathlib import Path

from PIL import Image, ImageColor, ImageDraw, ImageFont, ImageOps

from domain.models import Arrow, Badge, FlowDiagram, ScreenCard
from domain.ports.host import ExportFormat
from domain.scene import SceneElement
from domain.services.compose_flow_diagram import parse_path_commands

FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
)
SHADOW_RGBA = (0, 0, 0, 26)
ELEMENT_OUTLINE = (0, 0, 0, 64)
DEFAULT_ELEMENT_FILL = "#ffffff"

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


def _load_font(size: float) -> Font:
    for candidate in FONT_CANDIDATES:
        if Path(candidate).exists():
            return ImageFont.truetype(candidate, size=max(1, int(round(size))))
    return ImageFont.load_default(size=max(1.0, size))


def _rgba(color: str, opacity: float = 1.0) -> tuple[int, int, int, int]:
    r, g, b = ImageColor.getrgb(color)[:3]
    return r, g, b, int(round(255 * opacity))


class PillowDiagramRenderer:
    def render_thumbnail(self, element: SceneElement, scale: float) -> bytes:
        width = max(1, int(round(element.width * scale)))
        height = max(1, int(round(element.height * scale)))
        image = Image.new("RGBA", (width, height), _rgba(element.fill or DEFAULT_ELEMENT_FILL))
        draw = ImageDraw.Draw(image, "RGBA")
        stack: list[tuple[SceneElement, float, float]] = [
            (child, 0.0, 0.0) for child in reversed(element.children)
        ]
        while stack:
            child, offset_x, offset_y = stack.pop()
            x0 = (offset_x + child.x) * scale
            y0 = (offset_y + child.y) * scale
            x1 = x0 + max(child.width * scale, 1.0)
            y1 = y0 + max(child.height * scale, 1.0)
            fill = _rgba(child.fill, 1.0) if child.fill else None
            draw.rectangle((x0, y0, x1, y1), fill=fill, outline=ELEMENT_OUTLINE)
            for grandchild in reversed(child.children):
                stack.append((grandchild, offset_x + child.x, offset_y + child.y))
        return self._encode(image, "png")

    def render_diagram(self, diagram: FlowDiagram, format: ExportFormat, scale: float = 1.0) -> bytes:
        width = max(1, int(round(diagram.size.width * scale)))
        height = max(1, int(round(diagram.size.height * scale)))
        image = Image.new("RGBA", (width, height), _rgba(diagram.background))
        draw = ImageDraw.Draw(image, "RGBA")
        for card in diagram.cards:
            self._draw_card(image, draw, card, scale)
        for arrow in diagram.arrows:
            self._draw_arrow(draw, arrow, scale)
        for badge in diagram.badges:
            self._draw_badge(draw, badge, scale)
        return self._encode(image, format)

    def _draw_card(
        self,
        image: Image.Image,
        draw: ImageDraw.ImageDraw,
        card: ScreenCard,
        scale: float,
    ) -> None:
        x0 = card.position.x * scale
        y0 = card.position.y * scale
        x1 = x0 + card.size.width * scale
        y1 = y0 + card.size.height * scale
        radius = card.corner_radius * scale
        shadow_offset = 4 * scale
        draw.rounded_rectangle(
            (x0, y0 + shadow_offset, x1, y1 + shadow_offset), radius=radius, fill=SHADOW_RGBA
        )
        draw.rounded_rectangle((x0, y0, x1, y1), radius=radius, fill=_rgba(card.fill))

        if card.thumbnail is not None:
            thumb_w = max(1, int(round(card.thumbnail.size.width * scale)))
            thumb_h = max(1, int(round(card.thumbnail.size.height * scale)))
            with Image.open(io.BytesIO(card.thumbnail.image)) as source:
                fitted = ImageOps.contain(source.convert("RGBA"), (thumb_w, thumb_h))
            left = int(round(x0 + card.thumbnail.position.x * scale)) + (thumb_w - fitted.width) // 2
            top = int(round(y0 + card.thumbnail.position.y * scale)) + (thumb_h - fitted.height) // 2
            image.alpha_composite(fitted, (left, top))

        font = _load_font(card.label.font_size * scale)
        max_width = card.label.size.width * scale
        text = card.label.text
        if draw.textlength(text, font=font) > max_width:
            while text and draw.textlength(f"{text}...", font=font) > max_width:
                text = text[:-1]
            text = f"{text}..."
        draw.text(
            (x0 + card.label.position.x * scale, y0 + card.label.position.y * scale),
            text,
            fill=_rgba(card.label.color),
            font=font,
        )

    def _draw_arrow(self, draw: ImageDraw.ImageDraw, arrow: Arrow, scale: float) -> None:
        color = _rgba(arrow.color)
        stroke = max(1, int(round(arrow.stroke_weight * scale)))
        for path in arrow.paths:
            cursor: tuple[float, float] | None = None
            for command, x, y in parse_path_commands(path.data):
                point = ((arrow.position.x + x) * scale, (arrow.position.y + y) * scale)
                if command == "L" and cursor is not None:
                    draw.line((cursor, point), fill=color, width=stroke)
                cursor = point

    def _draw_badge(self, draw: ImageDraw.ImageDraw, badge: Badge, scale: float) -> None:
        x0 = badge.position.x * scale
        y0 = badge.position.y * scale
        x1 = x0 + badge.size.width * scale
        y1 = y0 + badge.size.height * scale
        draw.rounded_rectangle(
            (x0, y0, x1, y1),
            radius=badge.corner_radius * scale,
            fill=_rgba(badge.color, badge.background_opacity),
        )
        font = _load_font(badge.font_size * scale)
        text_width = draw.textlength(badge.text, font=font)
        draw.text(
            ((x0 + x1 - text_width) / 2, y0 + 4 * scale),
            badge.text,
            fill=_rgba(badge.color),
            font=font,
        )

    def _encode(self, image: Image.Image, format: ExportFormat) -> bytes:
        buffer = io.BytesIO()
        if format == "pdf":
            image.convert("RGB").save(buffer, format="PDF")
        else:
            image.save(buffer, format="PNG")
        return buffer.getvalue()
