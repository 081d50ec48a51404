from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

import numpy as np

from plume_text import RunStyle, layout_markup, parse_markup
from plume_text.markup import plain
from plume_plot.colors import continuous_color, to_rgba_u8
from plume_plot.raster import RasterTextMeasurer, draw_hline, draw_marker, draw_markup, fill_rect, stroke_rect
from plume_plot.theme import Theme

if TYPE_CHECKING:
    from plume_plot.plot import BuiltPlot


LegendDirection = Literal["vertical", "horizontal"]
DEFAULT_INK = "#1f1f1f"


@dataclass(frozen=True)
class LegendKey:
    label: str
    color: str | None = None
    fill: str | None = None


@dataclass(frozen=True)
class Legend:
    """Guide for one colour scale, or for colour and fill when they share levels."""

    title: str | None
    kind: Literal["discrete", "continuous"]
    keys: tuple[LegendKey, ...] = ()
    glyph: Literal["point", "rect"] = "rect"
    alpha: float = 1.0
    palette: str | None = None
    direction: int = 1
    domain: tuple[float, float] | None = None
    breaks: tuple[float, ...] = ()
    labels: tuple[str, ...] = ()


def build_legends(built: "BuiltPlot") -> tuple[Legend, ...]:
    scales = built.scales.colors
    out: list[Legend] = []
    color = scales.get("color")
    fill = scales.get("fill")
    merged = (
        color is not None
        and fill is not None
        and color.kind == fill.kind == "discrete"
        and color.levels == fill.levels
        and color.title == fill.title
    )
    if merged:
        assert color is not None and fill is not None
        keys = tuple(LegendKey(label=label, color=c, fill=f) for label, c, f in zip(color.labels, color.colors, fill.colors))
        out.append(Legend(title=color.title, kind="discrete", keys=keys, glyph=_glyph(built, ("color", "fill")), alpha=_alpha(built, ("color", "fill"))))
    for channel in ("color", "fill"):
        scale = scales.get(channel)
        if scale is None or (merged and scale.kind == "discrete"):
            continue
        if scale.kind == "discrete":
            keys = tuple(
                LegendKey(label=label, color=c if channel == "color" else None, fill=c if channel == "fill" else None)
                for label, c in zip(scale.labels, scale.colors)
            )
            out.append(Legend(title=scale.title, kind="discrete", keys=keys, glyph=_glyph(built, (channel,)), alpha=_alpha(built, (channel,))))
        else:
            out.append(
                Legend(
                    title=scale.title,
                    kind="continuous",
                    palette=scale.palette,
                    direction=scale.direction,
                    domain=scale.domain,
                    breaks=scale.breaks,
                    labels=scale.labels,
                )
            )
    return tuple(out)


def merge_legends(groups: Sequence[Sequence[Legend]]) -> tuple[Legend, ...]:
    """Concatenate legends from several plots, dropping exact duplicates."""

    out: list[Legend] = []
    for legends in groups:
        for legend in legends:
            if legend not in out:
                out.append(legend)
    return tuple(out)


def legend_extent(
    legends: Sequence[Legend],
    theme: Theme,
    measurer: RasterTextMeasurer,
    scale: float,
    direction: LegendDirection,
) -> tuple[int, int]:
    return _legend_pass(None, 0, 0, legends, theme, measurer, scale, direction)


def draw_legends(
    dst: np.ndarray,
    x: int,
    y: int,
    legends: Sequence[Legend],
    theme: Theme,
    measurer: RasterTextMeasurer,
    scale: float,
    direction: LegendDirection,
) -> tuple[int, int]:
    return _legend_pass(dst, x, y, legends, theme, measurer, scale, direction)


def _legend_pass(
    dst: np.ndarray | None,
    x: int,
    y: int,
    legends: Sequence[Legend],
    theme: Theme,
    measurer: RasterTextMeasurer,
    scale: float,
    direction: LegendDirection,
) -> tuple[int, int]:
    if not legends:
        return (0, 0)
    spacing = int(round(11.0 * scale))
    total_w = 0
    total_h = 0
    for index, legend in enumerate(legends):
        lx = x + (total_w + spacing if direction == "horizontal" and index else 0)
        ly = y + (total_h + spacing if direction == "vertical" and index else 0)
        w, h = _one_legend(dst, lx, ly, legend, theme, measurer, scale, direction)
        if direction == "vertical":
            total_w = max(total_w, w)
            total_h = total_h + (spacing if index else 0) + h
        else:
            total_w = total_w + (spacing if index else 0) + w
            total_h = max(total_h, h)
    return (total_w, total_h)


def _one_legend(
    dst: np.ndarray | None,
    x: int,
    y: int,
    legend: Legend,
    theme: Theme,
    measurer: RasterTextMeasurer,
    scale: float,
    direction: LegendDirection,
) -> tuple[int, int]:
    title_style = theme.element("legend.title")
    text_style = theme.element("legend.text")
    gap = int(round(5.5 * scale))
    key_px = max(4, int(round((text_style.size or 11.0) * 1.6 * scale)))
    title = None
    if legend.title and not title_style.blank:
        title = layout_markup(parse_markup(legend.title), measurer, base=RunStyle(font=title_style.font()))
    title_w = 0 if title is None else int(np.ceil(title.width))
    title_h = 0 if title is None else int(np.ceil(title.height))
    label_font = text_style.font()
    label_color = to_rgba_u8(text_style.color or DEFAULT_INK)
    texts = legend.labels if legend.kind == "continuous" else tuple(k.label for k in legend.keys)
    layouts = [layout_markup((plain(t),), measurer, base=RunStyle(font=label_font)) for t in texts]
    label_ws = [int(np.ceil(lay.width)) for lay in layouts]
    label_hs = [int(np.ceil(lay.height)) for lay in layouts]
    max_label_w = max(label_ws, default=0)
    max_label_h = max(label_hs, default=0)

    if dst is not None and title is not None:
        draw_markup(dst, x, y, title, measurer, to_rgba_u8(title_style.color or DEFAULT_INK))

    if direction == "vertical":
        cy = y + (title_h + gap if title is not None else 0)
        if legend.kind == "discrete":
            for key, layout, lw, lh in zip(legend.keys, layouts, label_ws, label_hs):
                row_h = max(key_px, lh)
                if dst is not None:
                    _draw_key(dst, x, cy + (row_h - key_px) // 2, key_px, key, legend, theme)
                    draw_markup(dst, x + key_px + gap, cy + (row_h - lh) // 2, layout, measurer, label_color)
                cy += row_h + gap // 2
            height = cy - y
        else:
            bar_h = key_px * 5
            if dst is not None:
                _draw_colorbar(dst, x, cy, key_px, bar_h, legend, vertical=True)
                for value, layout, lh in zip(legend.breaks, layouts, label_hs):
                    ty = cy + int(round((1.0 - _position(legend, value)) * (bar_h - 1)))
                    draw_markup(dst, x + key_px + gap, ty - lh // 2, layout, measurer, label_color)
            height = cy - y + bar_h + max_label_h // 2
        return (max(title_w, key_px + gap + max_label_w), height)

    cx = x + (title_w + gap if title is not None else 0)
    if legend.kind == "discrete":
        row_h = max([key_px, title_h] + label_hs)
        for key, layout, lw, lh in zip(legend.keys, layouts, label_ws, label_hs):
            if dst is not None:
                _draw_key(dst, cx, y + (row_h - key_px) // 2, key_px, key, legend, theme)
                draw_markup(dst, cx + key_px + gap, y + (row_h - lh) // 2, layout, measurer, label_color)
            cx += key_px + gap + lw + gap * 2
        return (cx - x - gap * 2, row_h)
    bar_w = key_px * 5
    if dst is not None:
        _draw_colorbar(dst, cx, y, bar_w, key_px, legend, vertical=False)
        for value, layout, lw in zip(legend.breaks, layouts, label_ws):
            tx = cx + int(round(_position(legend, value) * (bar_w - 1)))
            draw_markup(dst, tx - lw // 2, y + key_px + gap // 2, layout, measurer, label_color)
    return (cx - x + bar_w + max_label_w // 2, max(title_h, key_px + gap // 2 + max_label_h))


def _draw_key(dst: np.ndarray, x: int, y: int, size: int, key: LegendKey, legend: Legend, theme: Theme) -> None:
    background = theme.element("legend.key")
    if not background.blank and background.fill is not None:
        fill_rect(dst, x, y, x + size - 1, y + size - 1, to_rgba_u8(background.fill))
    if legend.glyph == "rect":
        if key.fill is not None:
            fill_rect(dst, x, y, x + size - 1, y + size - 1, to_rgba_u8(key.fill, legend.alpha))
        if key.color is not None:
            stroke_rect(dst, x, y, x + size - 1, y + size - 1, to_rgba_u8(key.color))
        return
    color = key.color if key.color is not None else key.fill
    if color is not None:
        draw_marker(dst, x + size // 2, y + size // 2, color=to_rgba_u8(color), radius=max(1, size // 4))


def _draw_colorbar(dst: np.ndarray, x: int, y: int, w: int, h: int, legend: Legend, *, vertical: bool) -> None:
    assert legend.palette is not None
    steps = h if vertical else w
    for i in range(steps):
        t = i / max(1, steps - 1)
        color = to_rgba_u8(continuous_color(legend.palette, 1.0 - t if vertical else t, direction=legend.direction))
        if vertical:
            draw_hline(dst, x, x + w - 1, y + i, color)
        else:
            fill_rect(dst, x + i, y, x + i, y + h - 1, color)


def _position(legend: Legend, value: float) -> float:
    assert legend.domain is not None
    lo, hi = legend.domain
    if hi == lo:
        return 0.5
    return min(1.0, max(0.0, (value - lo) / (hi - lo)))


def _glyph(built: "BuiltPlot", channels: Sequence[str]) -> Literal["point", "rect"]:
    kinds = {layer.kind for layer in built.layers if any(ch in layer.mapping for ch in channels)}
    return "point" if kinds == {"point"} else "rect"


def _alpha(built: "BuiltPlot", channels: Sequence[str]) -> float:
    mapped = {i for i, layer in enumerate(built.layers) if layer.kind != "point" and any(ch in layer.mapping for ch in channels)}
    for primitive in built.primitives:
        if primitive.layer_index in mapped:
            return primitive.alpha
    return 1.0
