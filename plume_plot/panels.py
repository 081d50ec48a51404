from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
import logging
import math
from typing import Union

import numpy as np

from plume_plot.colors import to_rgba_u8
from plume_plot.errors import PlotDataError
from plume_plot.labels import Labels
from plume_plot.legend import build_legends, draw_legends, legend_extent, merge_legends
from plume_plot.plot import BuiltPlot, Plot
from plume_plot.raster import RasterTextMeasurer, blit, draw_markup, new_canvas
from plume_plot.render import render_plot, text_block
from plume_plot.theme import Theme, current_base_theme


LOGGER = logging.getLogger(__name__)

TAG_LEVELS = ("A", "a", "1", "I", "i")

PanelItem = Union[Plot, BuiltPlot, "PanelComposition"]


@dataclass(frozen=True)
class PanelComposition:
    """Plots arranged on a grid, filled row by row.

    `heights` / `widths` are relative weights per row / column.
    """

    plots: tuple[PanelItem, ...]
    ncol: int | None = None
    heights: tuple[float, ...] | None = None
    widths: tuple[float, ...] | None = None
    collect_legends: bool = False
    title: str | None = None
    subtitle: str | None = None
    caption: str | None = None
    tag_levels: str | None = None
    theme: Theme | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "plots", tuple(self.plots))
        if not self.plots:
            raise PlotDataError("a composition needs at least one plot")
        for item in self.plots:
            if not isinstance(item, (Plot, BuiltPlot, PanelComposition)):
                raise TypeError(f"cannot compose {type(item).__name__}")
        if self.ncol is not None and self.ncol <= 0:
            raise ValueError("ncol must be > 0")
        nrow, ncol = self.shape
        for name, weights, expected in (("heights", self.heights, nrow), ("widths", self.widths, ncol)):
            if weights is None:
                continue
            object.__setattr__(self, name, tuple(float(w) for w in weights))
            if len(weights) != expected:
                raise ValueError(f"{name} needs {expected} weight(s), got {len(weights)}")
            _check_weights(weights)
        if self.tag_levels is not None and self.tag_levels not in TAG_LEVELS:
            raise ValueError(f"tag_levels must be one of {TAG_LEVELS}")

    @property
    def shape(self) -> tuple[int, int]:
        n = len(self.plots)
        ncol = self.ncol if self.ncol is not None else math.ceil(math.sqrt(n))
        ncol = min(ncol, n)
        return (math.ceil(n / ncol), ncol)

    def shares(self) -> tuple[tuple[float, ...], tuple[float, ...]]:
        """Fraction of the grid height per row and width per column."""

        nrow, ncol = self.shape
        heights = self.heights or (1.0,) * nrow
        widths = self.widths or (1.0,) * ncol
        return (tuple(h / sum(heights) for h in heights), tuple(w / sum(widths) for w in widths))

    def tags(self) -> tuple[str | None, ...]:
        if self.tag_levels is None:
            return (None,) * len(self.plots)
        return tuple(tag_sequence(self.tag_levels, len(self.plots)))


def compose_column(*plots: PanelItem, heights: Sequence[float] | None = None, **options: object) -> PanelComposition:
    return PanelComposition(plots=plots, ncol=1, heights=None if heights is None else tuple(heights), **options)  # type: ignore[arg-type]


def compose_row(*plots: PanelItem, widths: Sequence[float] | None = None, **options: object) -> PanelComposition:
    return PanelComposition(plots=plots, ncol=len(plots), widths=None if widths is None else tuple(widths), **options)  # type: ignore[arg-type]


def allocate_extents(total_px: int, weights: Sequence[float]) -> list[int]:
    """Split `total_px` by weight with largest-remainder rounding; the parts sum to the total."""

    if total_px < 0:
        raise ValueError("total_px must be >= 0")
    _check_weights(weights)
    weight_sum = float(sum(weights))
    exact = [total_px * float(w) / weight_sum for w in weights]
    out = [int(math.floor(v)) for v in exact]
    remainder = total_px - sum(out)
    order = sorted(range(len(weights)), key=lambda i: (-(exact[i] - out[i]), i))
    for i in order[:remainder]:
        out[i] += 1
    return out


def tag_sequence(level: str, n: int) -> list[str]:
    if level == "1":
        return [str(i + 1) for i in range(n)]
    if level in ("I", "i"):
        tags = [_roman(i + 1) for i in range(n)]
        return tags if level == "I" else [t.lower() for t in tags]
    if level in ("A", "a"):
        tags = [_letters(i) for i in range(n)]
        return tags if level == "A" else [t.lower() for t in tags]
    raise ValueError(f"tag_levels must be one of {TAG_LEVELS}")


def render_composition(composition: PanelComposition, width_px: int, height_px: int, scale: float = 1.0) -> np.ndarray:
    if width_px <= 0 or height_px <= 0:
        raise ValueError("width_px and height_px must be > 0")
    items = [item.build() if isinstance(item, Plot) else item for item in composition.plots]
    theme = composition.theme or _first_theme(items) or current_base_theme()
    measurer = RasterTextMeasurer(px_per_pt=scale)
    background = theme.element("plot.background")
    frame = new_canvas(width_px, height_px, color=to_rgba_u8(background.fill or "white") if not background.blank else (255, 255, 255, 255))

    margin = int(round(float(theme.setting("plot.margin")) * scale))
    gap = int(round(float(theme.setting("panel.spacing")) * scale))
    x0, y0 = margin, margin
    x1, y1 = width_px - margin, height_px - margin

    title = text_block(theme, "plot.title", composition.title, measurer, scale)
    subtitle = text_block(theme, "plot.subtitle", composition.subtitle, measurer, scale)
    caption = text_block(theme, "plot.caption", composition.caption, measurer, scale)
    cursor = y0
    for block in (title, subtitle):
        if block is None:
            continue
        draw_markup(frame, x0 + int(round((x1 - x0 - block.width) * block.hjust)), cursor, block.layout, measurer, block.color)
        cursor += block.height + block.margin
    bottom = y1
    if caption is not None:
        bottom -= caption.height + caption.margin
        draw_markup(frame, x0 + int(round((x1 - x0 - caption.width) * caption.hjust)), bottom + caption.margin, caption.layout, measurer, caption.color)

    legends: tuple = ()
    if composition.collect_legends:
        legends = merge_legends([build_legends(item) for item in items if isinstance(item, BuiltPlot)])
        items = [item.without_legend() if isinstance(item, BuiltPlot) else item for item in items]
    legend_w, legend_h = legend_extent(legends, theme, measurer, scale, "vertical")
    right = x1 - (legend_w + gap if legends else 0)

    nrow, ncol = composition.shape
    grid_w = right - x0 - gap * (ncol - 1)
    grid_h = bottom - cursor - gap * (nrow - 1)
    if grid_w < ncol * 2 or grid_h < nrow * 2:
        raise PlotDataError(f"image of {width_px}x{height_px}px is too small for a {nrow}x{ncol} composition")
    widths = allocate_extents(grid_w, composition.widths or (1.0,) * ncol)
    heights = allocate_extents(grid_h, composition.heights or (1.0,) * nrow)
    LOGGER.debug("composition grid %dx%d: widths=%s heights=%s", nrow, ncol, widths, heights)

    for index, (item, tag) in enumerate(zip(items, composition.tags())):
        row, col = divmod(index, ncol)
        cx = x0 + sum(widths[:col]) + gap * col
        cy = cursor + sum(heights[:row]) + gap * row
        if tag is not None and isinstance(item, BuiltPlot):
            item = replace(item, labels=item.labels.merge(Labels(tag=tag)))
        if isinstance(item, PanelComposition):
            cell = render_composition(item, widths[col], heights[row], scale)
        else:
            cell = render_plot(item, widths[col], heights[row], scale)
        blit(frame, cell, cx, cy)

    if legends:
        draw_legends(frame, right + gap, cursor + max(0, (bottom - cursor - legend_h) // 2), legends, theme, measurer, scale, "vertical")
    return frame


def _first_theme(items: Sequence[object]) -> Theme | None:
    for item in items:
        if isinstance(item, BuiltPlot):
            return item.theme
    return None


def _check_weights(weights: Sequence[float]) -> None:
    if not weights:
        raise ValueError("weights must not be empty")
    for w in weights:
        if not math.isfinite(float(w)) or float(w) <= 0:
            raise ValueError("weights must be finite and > 0")


def _letters(index: int) -> str:
    out = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        out = chr(ord("A") + rem) + out
    return out


def _roman(value: int) -> str:
    numerals = ((1000, "M"), (900, "CM"), (500, "D"), (400, "CD"), (100, "C"), (90, "XC"), (50, "L"), (40, "XL"), (10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I"))
    out = ""
    for amount, numeral in numerals:
        count, value = divmod(value, amount)
        out += numeral * count
    return out
