from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Any

import numpy as np

from plume_text import MarkupLayout, RunStyle, layout_markup, parse_markup
from plume_text.markup import plain
from plume_plot.colors import to_rgba_u8
from plume_plot.compose import ImagePrimitive, PointPrimitive, PolygonPrimitive, Primitive, SegmentPrimitive, TextPrimitive
from plume_plot.errors import PlotDataError
from plume_plot.layers import ColumnRef, Layer
from plume_plot.legend import DEFAULT_INK, build_legends, draw_legends, legend_extent
from plume_plot.plot import BuiltPlot
from plume_plot.raster import (
    RasterTextMeasurer,
    blit,
    draw_hline,
    draw_marker,
    draw_markup,
    draw_polyline,
    draw_segment,
    draw_vline,
    fill_polygon,
    fill_rect,
    load_image,
    new_canvas,
)
from plume_plot.raster.canvas import RGBA
from plume_plot.resolve import SIZE_RANGE
from plume_plot.scales import PanelTransform
from plume_plot.theme import Theme


LOGGER = logging.getLogger(__name__)

# point sizes are millimetres, like the grammar this mirrors
PT_PER_MM = 72.27 / 25.4
TICK_LENGTH_PT = 2.75


@dataclass(frozen=True)
class TextBlock:
    layout: MarkupLayout
    color: RGBA
    margin: int
    hjust: float

    @property
    def width(self) -> int:
        return int(np.ceil(self.layout.width))

    @property
    def height(self) -> int:
        return int(np.ceil(self.layout.height))


@dataclass(frozen=True)
class PanelGeometry:
    x: int
    y: int
    width: int
    height: int


def render_plot(built: BuiltPlot, width_px: int, height_px: int, scale: float = 1.0) -> np.ndarray:
    """Render to an (H, W, 4) uint8 array; `scale` is pixels per point."""

    return PlotRenderer(built, width_px, height_px, scale).render()


def text_block(
    theme: Theme,
    element: str,
    text: str | None,
    measurer: RasterTextMeasurer,
    scale: float,
    *,
    literal: bool = False,
) -> TextBlock | None:
    if not text:
        return None
    style = theme.element(element)
    if style.blank:
        return None
    spans = (plain(text),) if literal else parse_markup(text)
    max_width = None if style.width_px is None else style.width_px * scale
    layout = layout_markup(spans, measurer, base=RunStyle(font=style.font()), max_width_px=max_width, line_spacing=style.lineheight or 1.2)
    return TextBlock(
        layout=layout,
        color=to_rgba_u8(style.color or DEFAULT_INK),
        margin=int(round((style.margin or 0.0) * scale)),
        hjust=0.5 if style.hjust is None else float(style.hjust),
    )


class PlotRenderer:
    def __init__(self, built: BuiltPlot, width_px: int, height_px: int, scale: float = 1.0) -> None:
        if width_px <= 0 or height_px <= 0:
            raise ValueError("width_px and height_px must be > 0")
        if scale <= 0:
            raise ValueError("scale must be > 0")
        self.built = built
        self.theme = built.theme
        self.width = int(width_px)
        self.height = int(height_px)
        self.scale = float(scale)
        self.measurer = RasterTextMeasurer(px_per_pt=self.scale)

    def render(self) -> np.ndarray:
        theme = self.theme
        background = theme.element("plot.background")
        frame = new_canvas(self.width, self.height, color=to_rgba_u8(background.fill or "white") if not background.blank else (255, 255, 255, 255))
        margin = int(round(float(theme.setting("plot.margin")) * self.scale))
        x0, y0 = margin, margin
        x1, y1 = self.width - margin, self.height - margin

        labels = self.built.labels
        tag = text_block(theme, "plot.tag", labels.tag, self.measurer, self.scale)
        title = text_block(theme, "plot.title", labels.title, self.measurer, self.scale)
        subtitle = text_block(theme, "plot.subtitle", labels.subtitle, self.measurer, self.scale)
        caption = text_block(theme, "plot.caption", labels.caption, self.measurer, self.scale)
        x_title = text_block(theme, "axis.title.x", self.built.scales.x.title, self.measurer, self.scale)
        y_title = text_block(theme, "axis.title.y", self.built.scales.y.title, self.measurer, self.scale)
        x_ticks = self._tick_blocks("axis.text.x", self.built.scales.x.labels)
        y_ticks = self._tick_blocks("axis.text.y", self.built.scales.y.labels)

        position = theme.setting("legend.position")
        legends = build_legends(self.built) if position != "none" else ()
        direction = "vertical" if position == "side" else "horizontal"
        legend_w, legend_h = legend_extent(legends, theme, self.measurer, self.scale, direction)
        spacing = int(round(11.0 * self.scale))

        top = y0 + sum(_block_height(b) for b in (tag, title, subtitle))
        if position == "top" and legends:
            top += legend_h + spacing
        bottom = y1 - _block_height(caption)
        tick_len = 0 if theme.element("axis.ticks").blank else int(round(TICK_LENGTH_PT * self.scale))
        x_tick_h = max((b.height + b.margin for b in x_ticks if b is not None), default=0)
        y_tick_w = max((b.width + b.margin for b in y_ticks if b is not None), default=0)
        x_title_h = 0 if x_title is None else x_title.height + x_title.margin
        y_title_w = 0 if y_title is None else y_title.height + y_title.margin
        right = x1 - (legend_w + spacing if position == "side" and legends else 0)

        panel_x = x0 + y_title_w + y_tick_w + tick_len
        panel_y = top
        panel_w = right - panel_x
        panel_h = bottom - x_title_h - x_tick_h - tick_len - panel_y
        if panel_w <= 1 or panel_h <= 1:
            raise PlotDataError(f"image of {self.width}x{self.height}px is too small for the plot panel")
        panel = PanelGeometry(panel_x, panel_y, panel_w, panel_h)
        LOGGER.debug("panel at %s", panel)

        self._draw_panel_background(frame, panel)
        self._draw_primitives(frame, panel)
        self._draw_axes(frame, panel, x_ticks, y_ticks, tick_len)

        if x_title is not None:
            draw_markup(
                frame,
                panel.x + int(round((panel.width - x_title.width) * x_title.hjust)),
                panel.y + panel.height + tick_len + x_tick_h + x_title.margin,
                x_title.layout,
                self.measurer,
                x_title.color,
            )
        if y_title is not None:
            draw_markup(
                frame,
                x0,
                panel.y + (panel.height - y_title.width) // 2,
                y_title.layout,
                self.measurer,
                y_title.color,
                rotate_deg=90,
            )

        in_panel = theme.setting("plot.title.position") == "panel"
        span_x = panel.x if in_panel else x0
        span_w = panel.width if in_panel else x1 - x0
        cursor = y0
        for block in (tag, title, subtitle):
            if block is None:
                continue
            bx = x0 if block is tag else span_x + int(round((span_w - block.width) * block.hjust))
            draw_markup(frame, bx, cursor, block.layout, self.measurer, block.color)
            cursor += _block_height(block)

        if caption is not None:
            caption_in_panel = theme.setting("plot.caption.position") == "panel"
            cx = panel.x if caption_in_panel else x0
            cw = panel.width if caption_in_panel else x1 - x0
            draw_markup(frame, cx + int(round((cw - caption.width) * caption.hjust)), bottom + caption.margin, caption.layout, self.measurer, caption.color)

        if legends:
            if position == "side":
                lx = right + spacing
                ly = panel.y + max(0, (panel.height - legend_h) // 2)
            else:
                lx = panel.x + max(0, (panel.width - legend_w) // 2)
                ly = top - legend_h - spacing
            draw_legends(frame, lx, ly, legends, theme, self.measurer, self.scale, direction)
        return frame

    def _tick_blocks(self, element: str, labels: tuple[str, ...]) -> list[TextBlock | None]:
        return [text_block(self.theme, element, label, self.measurer, self.scale, literal=True) for label in labels]

    def _transform(self, panel: PanelGeometry) -> PanelTransform:
        return PanelTransform.from_domains(self.built.scales.x.domain, self.built.scales.y.domain, panel.width, panel.height)

    def _to_px(self, panel: PanelGeometry, xs: Any, ys: Any) -> tuple[np.ndarray, np.ndarray]:
        return self._transform(panel).to_pixels(xs, ys)

    def _line_px(self, width: float) -> int:
        return max(1, int(round(float(width) * self.scale)))

    def _draw_panel_background(self, frame: np.ndarray, panel: PanelGeometry) -> None:
        background = self.theme.element("panel.background")
        if not background.blank and background.fill is not None:
            fill_rect(frame, panel.x, panel.y, panel.x + panel.width - 1, panel.y + panel.height - 1, to_rgba_u8(background.fill))
        grid = self.theme.element("panel.grid.major")
        if grid.blank:
            return
        color = to_rgba_u8(grid.color or "#ebebeb")
        width = self._line_px(grid.linewidth or 0.5)
        scales = self.built.scales
        px, _ = self._to_px(panel, scales.x.breaks, [scales.y.domain[0]] * len(scales.x.breaks))
        for gx in px.tolist():
            for offset in range(width):
                draw_vline(frame, panel.x + gx + offset - width // 2, panel.y, panel.y + panel.height - 1, color)
        _, py = self._to_px(panel, [scales.x.domain[0]] * len(scales.y.breaks), scales.y.breaks)
        for gy in py.tolist():
            for offset in range(width):
                draw_hline(frame, panel.x, panel.x + panel.width - 1, panel.y + gy + offset - width // 2, color)

    def _draw_axes(self, frame: np.ndarray, panel: PanelGeometry, x_ticks: list[TextBlock | None], y_ticks: list[TextBlock | None], tick_len: int) -> None:
        scales = self.built.scales
        axis_line = self.theme.element("axis.line")
        if not axis_line.blank:
            color = to_rgba_u8(axis_line.color or DEFAULT_INK)
            draw_hline(frame, panel.x, panel.x + panel.width - 1, panel.y + panel.height - 1, color)
            draw_vline(frame, panel.x, panel.y, panel.y + panel.height - 1, color)
        ticks = self.theme.element("axis.ticks")
        tick_color = to_rgba_u8(ticks.color or DEFAULT_INK)
        px, _ = self._to_px(panel, scales.x.breaks, [scales.y.domain[0]] * len(scales.x.breaks))
        base_y = panel.y + panel.height
        for gx, block in zip(px.tolist(), x_ticks):
            cx = panel.x + gx
            if tick_len:
                draw_vline(frame, cx, base_y, base_y + tick_len - 1, tick_color)
            if block is not None:
                draw_markup(frame, cx - block.width // 2, base_y + tick_len + block.margin, block.layout, self.measurer, block.color)
        _, py = self._to_px(panel, [scales.x.domain[0]] * len(scales.y.breaks), scales.y.breaks)
        for gy, block in zip(py.tolist(), y_ticks):
            cy = panel.y + gy
            if tick_len:
                draw_hline(frame, panel.x - tick_len, panel.x - 1, cy, tick_color)
            if block is not None:
                draw_markup(frame, panel.x - tick_len - block.margin - block.width, cy - block.height // 2, block.layout, self.measurer, block.color)

    def _draw_primitives(self, frame: np.ndarray, panel: PanelGeometry) -> None:
        if self.built.coord.clip == "on":
            target = frame[panel.y : panel.y + panel.height, panel.x : panel.x + panel.width]
            ox, oy = 0, 0
        else:
            target = frame
            ox, oy = panel.x, panel.y
        for primitive in self.built.primitives:
            layer = self.built.layers[primitive.layer_index]
            if isinstance(primitive, PointPrimitive):
                self._draw_point(target, panel, ox, oy, primitive, layer)
            elif isinstance(primitive, SegmentPrimitive):
                self._draw_segment(target, panel, ox, oy, primitive, layer)
            elif isinstance(primitive, PolygonPrimitive):
                self._draw_polygon(target, panel, ox, oy, primitive, layer)
            elif isinstance(primitive, TextPrimitive):
                self._draw_text(target, panel, ox, oy, primitive, layer)
            elif isinstance(primitive, ImagePrimitive):
                self._draw_image(target, panel, ox, oy, primitive)

    def _paint(self, primitive: Primitive, layer: Layer, channel: str, fallback: str | None) -> str | None:
        if channel in layer.mapping and channel in self.built.scales.colors:
            return self.built.scales.colors[channel].map(getattr(primitive, channel, None))
        value = getattr(layer.style, channel)
        return value if value is not None else fallback

    def _size(self, primitive: Primitive, layer: Layer) -> float:
        value = getattr(primitive, "size")
        if isinstance(layer.mapping.get("size"), ColumnRef):
            scale = self.built.scales.size
            return scale.map(value) if scale is not None else SIZE_RANGE[0]
        return float(value)

    def _draw_point(self, target: np.ndarray, panel: PanelGeometry, ox: int, oy: int, p: PointPrimitive, layer: Layer) -> None:
        px, py = self._to_px(panel, [p.x], [p.y])
        color = self._paint(p, layer, "color", None) or self._paint(p, layer, "fill", DEFAULT_INK)
        diameter = self._size(p, layer) * PT_PER_MM * self.scale
        draw_marker(
            target,
            int(px[0]) + ox,
            int(py[0]) + oy,
            color=to_rgba_u8(color, p.alpha),
            radius=max(1, int(round(diameter / 2.0))),
            shape=layer.style.shape,
        )

    def _draw_segment(self, target: np.ndarray, panel: PanelGeometry, ox: int, oy: int, p: SegmentPrimitive, layer: Layer) -> None:
        px, py = self._to_px(panel, [p.x0, p.x1], [p.y0, p.y1])
        color = self._paint(p, layer, "color", DEFAULT_INK)
        alpha = 1.0 if layer.is_outline else p.alpha
        draw_segment(target, int(px[0]) + ox, int(py[0]) + oy, int(px[1]) + ox, int(py[1]) + oy, to_rgba_u8(color, alpha), self._line_px(self._size(p, layer)))

    def _draw_polygon(self, target: np.ndarray, panel: PanelGeometry, ox: int, oy: int, p: PolygonPrimitive, layer: Layer) -> None:
        px, py = self._to_px(panel, p.xs, p.ys)
        px = px + ox
        py = py + oy
        fill = self._paint(p, layer, "fill", None)
        if fill is not None:
            fill_polygon(target, px, py, to_rgba_u8(fill, p.alpha))
        color = self._paint(p, layer, "color", DEFAULT_INK)
        draw_polyline(target, px, py, to_rgba_u8(color), self._line_px(layer.style.linewidth), closed=True)
        if p.label:
            top = int(np.argmin(py))
            self._draw_mark_label(target, int(px[top]), int(py[top]), p.label, layer, color)

    def _draw_mark_label(self, target: np.ndarray, x: int, y: int, label: str, layer: Layer, line_color: str) -> None:
        style = self.theme.element("mark.label")
        if style.blank:
            return
        font = style.font()
        if layer.style.label_size is not None:
            font = replace(font, size_pt=layer.style.label_size)
        max_width = None if layer.style.width_px is None else layer.style.width_px * self.scale
        layout = layout_markup(parse_markup(label), self.measurer, base=RunStyle(font=font), max_width_px=max_width)
        pad = int(round(2.0 * self.scale))
        gap = int(round(8.0 * self.scale))
        w = int(np.ceil(layout.width)) + 2 * pad
        h = int(np.ceil(layout.height)) + 2 * pad
        left = x - w // 2
        top = y - gap - h
        draw_segment(target, x, y, x, top + h, to_rgba_u8(line_color), self._line_px(0.5))
        fill = layer.style.label_fill or style.fill
        if fill is not None:
            fill_rect(target, left, top, left + w - 1, top + h - 1, to_rgba_u8(fill))
        text_color = to_rgba_u8(layer.style.label_color or style.color or DEFAULT_INK)
        draw_markup(target, left + pad, top + pad, layout, self.measurer, text_color)

    def _draw_text(self, target: np.ndarray, panel: PanelGeometry, ox: int, oy: int, p: TextPrimitive, layer: Layer) -> None:
        px, py = self._to_px(panel, [p.x], [p.y])
        color = self._paint(p, layer, "color", DEFAULT_INK)
        size = self._size(p, layer)
        font = replace(self.theme.element("text").font(), size_pt=size)
        max_width = None if layer.style.width_px is None else layer.style.width_px * self.scale
        layout = layout_markup(parse_markup(p.label), self.measurer, base=RunStyle(font=font), max_width_px=max_width)
        turns = int(round(p.angle / 90.0))
        if abs(p.angle - turns * 90.0) > 1e-9:
            LOGGER.debug("text angle %.1f drawn at %d degrees", p.angle, turns * 90)
        quarter_turns = turns % 4
        pad = int(round(2.0 * self.scale))
        w = int(np.ceil(layout.width))
        h = int(np.ceil(layout.height))
        if quarter_turns % 2:
            w, h = h, w
        left = int(px[0]) + ox - int(round(w * layer.style.hjust))
        top = int(py[0]) + oy - int(round(h * (1.0 - layer.style.vjust)))
        fill = self._paint(p, layer, "fill", None) if "fill" in layer.mapping else layer.style.label_fill or layer.style.fill
        if fill is not None:
            fill_rect(target, left - pad, top - pad, left + w + pad - 1, top + h + pad - 1, to_rgba_u8(fill, p.alpha))
        draw_markup(target, left, top, layout, self.measurer, to_rgba_u8(color, p.alpha), rotate_deg=quarter_turns * 90)

    def _draw_image(self, target: np.ndarray, panel: PanelGeometry, ox: int, oy: int, p: ImagePrimitive) -> None:
        image = load_image(p.src, width_px=float(p.size) * self.scale)
        if image is None:
            return
        if p.alpha < 1.0:
            image = image.copy()
            image[:, :, 3] = (image[:, :, 3].astype(np.float32) * p.alpha).astype(np.uint8)
        px, py = self._to_px(panel, [p.x], [p.y])
        h, w = image.shape[:2]
        blit(target, image, int(px[0]) + ox - w // 2, int(py[0]) + oy - h // 2)


def _block_height(block: TextBlock | None) -> int:
    return 0 if block is None else block.height + block.margin
