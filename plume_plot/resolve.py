from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import logging
from types import MappingProxyType
from typing import Any, Literal

import numpy as np

from plume_plot.colors import DEFAULT_CONTINUOUS_PALETTE, DEFAULT_PALETTE, continuous_color, discrete_palette
from plume_plot.compose import AXIS_CHANNELS, Primitive, TextPrimitive
from plume_plot.coord import CoordinateSystem
from plume_plot.dataset import is_missing, is_numeric_column, sorted_levels
from plume_plot.labels import Labels
from plume_plot.layers import ColumnRef, Layer
from plume_plot.scales import COLOR_CHANNELS, Scale, expand_range, format_ticks_for_axis, pretty_breaks, ticks_within_range


LOGGER = logging.getLogger(__name__)

DISCRETE_EXPANSION = 0.6
SIZE_RANGE = (1.0, 6.0)
NA_COLOR = "grey50"


@dataclass(frozen=True)
class PositionScale:
    """Resolved x or y axis.

    `limits` is the unexpanded domain (explicit or data); `domain` is what the
    panel spans after expansion.
    """

    channel: str
    limits: tuple[float, float]
    domain: tuple[float, float]
    breaks: tuple[float, ...]
    labels: tuple[str, ...]
    title: str | None = None
    discrete: bool = False
    explicit: bool = False


@dataclass(frozen=True)
class ColorScale:
    channel: str
    kind: Literal["discrete", "continuous"]
    palette: str
    direction: int = 1
    levels: tuple[Any, ...] = ()
    colors: tuple[str, ...] = ()
    domain: tuple[float, float] | None = None
    breaks: tuple[float, ...] = ()
    labels: tuple[str, ...] = ()
    title: str | None = None

    def map(self, value: Any) -> str:
        if is_missing(value):
            return NA_COLOR
        if self.kind == "discrete":
            try:
                return self.colors[self.levels.index(value)]
            except ValueError:
                return NA_COLOR
        assert self.domain is not None
        lo, hi = self.domain
        try:
            v = float(value)
        except (TypeError, ValueError):
            return NA_COLOR
        position = 0.5 if hi == lo else (v - lo) / (hi - lo)
        return continuous_color(self.palette, position, direction=self.direction)


@dataclass(frozen=True)
class SizeScale:
    """Maps a size column onto `range`; categorical columns use level positions 1..k."""

    domain: tuple[float, float]
    range: tuple[float, float] = SIZE_RANGE
    levels: tuple[Any, ...] = ()

    def map(self, value: Any) -> float:
        lo, hi = self.domain
        r0, r1 = self.range
        if is_missing(value):
            return r0
        if self.levels:
            if value not in self.levels:
                return r0
            value = self.levels.index(value) + 1
        if hi == lo:
            return (r0 + r1) / 2.0
        t = min(1.0, max(0.0, (float(value) - lo) / (hi - lo)))
        return r0 + t * (r1 - r0)


@dataclass(frozen=True)
class ResolvedScales:
    x: PositionScale
    y: PositionScale
    colors: Mapping[str, ColorScale] = field(default_factory=dict)
    size: SizeScale | None = None
    out_of_bounds: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "colors", MappingProxyType(dict(self.colors)))

    def position(self, channel: str) -> PositionScale:
        return self.x if channel in AXIS_CHANNELS["x"] else self.y


def resolve_scales(
    primitives: Sequence[Primitive],
    layers: Sequence[Layer],
    scales: Mapping[str, Scale],
    coord: CoordinateSystem,
    *,
    discrete_levels: Mapping[str, tuple[Any, ...]] | None = None,
    labels: Labels = Labels(),
    palette: str = DEFAULT_PALETTE,
    palette_direction: int = 1,
) -> ResolvedScales:
    levels = dict(discrete_levels or {})
    x = _position_scale("x", primitives, layers, scales.get("x"), coord.xlim, coord, levels.get("x"), labels.x)
    y = _position_scale("y", primitives, layers, scales.get("y"), coord.ylim, coord, levels.get("y"), labels.y)
    out_of_bounds = _count_out_of_bounds(primitives, x, y, coord)

    colors: dict[str, ColorScale] = {}
    for channel in sorted(COLOR_CHANNELS):
        resolved = _color_scale(channel, primitives, layers, scales.get(channel), labels.get(channel), palette, palette_direction)
        if resolved is not None:
            colors[channel] = resolved
    return ResolvedScales(x=x, y=y, colors=colors, size=_size_scale(primitives, layers), out_of_bounds=out_of_bounds)


def _position_scale(
    axis: str,
    primitives: Sequence[Primitive],
    layers: Sequence[Layer],
    scale: Scale | None,
    coord_lim: tuple[float, float] | None,
    coord: CoordinateSystem,
    levels: tuple[Any, ...] | None,
    label: str | None,
) -> PositionScale:
    explicit = scale.limits if scale is not None and scale.limits is not None else coord_lim
    if explicit is not None:
        lo, hi = float(explicit[0]), float(explicit[1])
    else:
        values = np.asarray([v for p in primitives for v in p.coords[0 if axis == "x" else 1]], dtype=np.float64)
        values = values[np.isfinite(values)]
        if values.size:
            lo, hi = float(values.min()), float(values.max())
        elif levels:
            lo, hi = 1.0, float(len(levels))
        else:
            LOGGER.debug("%s axis has no finite values; using [0, 1]", axis)
            lo, hi = 0.0, 1.0
        if levels:
            lo, hi = min(lo, 1.0), max(hi, float(len(levels)))

    expand = scale.expand if scale is not None and scale.expand is not None else coord.expand
    if expand and levels:
        domain = (lo - DISCRETE_EXPANSION, hi + DISCRETE_EXPANSION)
    elif expand or hi <= lo:
        domain = expand_range(lo, hi)
    else:
        domain = (lo, hi)

    if levels:
        breaks = ticks_within_range(np.arange(1, len(levels) + 1, dtype=np.float64), vmin=domain[0], vmax=domain[1])
        tick_labels = [str(levels[int(b) - 1]) for b in breaks.tolist()]
        if scale is not None and scale.labels is not None and len(scale.labels) == breaks.size:
            tick_labels = list(scale.labels)
    elif scale is not None and scale.breaks is not None:
        all_breaks = np.asarray(scale.breaks, dtype=np.float64)
        inside = (all_breaks >= domain[0] - 1e-12) & (all_breaks <= domain[1] + 1e-12)
        breaks = all_breaks[inside]
        if scale.labels is not None:
            tick_labels = [label_ for label_, keep in zip(scale.labels, inside.tolist()) if keep]
        else:
            tick_labels = format_ticks_for_axis(breaks)
    else:
        n_breaks = scale.n_breaks if scale is not None else 5
        breaks = pretty_breaks(domain[0], domain[1], n_breaks)
        tick_labels = format_ticks_for_axis(breaks)

    title = label if label is not None else scale.name if scale is not None and scale.name is not None else _default_title(layers, AXIS_CHANNELS[axis])
    return PositionScale(
        channel=axis,
        limits=(lo, hi),
        domain=(float(domain[0]), float(domain[1])),
        breaks=tuple(float(b) for b in breaks.tolist()),
        labels=tuple(tick_labels),
        title=title,
        discrete=bool(levels),
        explicit=explicit is not None,
    )


def _count_out_of_bounds(primitives: Sequence[Primitive], x: PositionScale, y: PositionScale, coord: CoordinateSystem) -> int:
    if not (x.explicit or y.explicit):
        return 0
    count = 0
    labels = 0
    for p in primitives:
        xs, ys = p.coords
        outside = (x.explicit and any(v < x.limits[0] or v > x.limits[1] for v in xs)) or (
            y.explicit and any(v < y.limits[0] or v > y.limits[1] for v in ys)
        )
        if outside:
            count += 1
            if isinstance(p, TextPrimitive):
                labels += 1
    if count:
        action = "clipped at the panel" if coord.clip == "on" else "drawn outside the panel"
        LOGGER.warning("%d primitive(s) (%d label(s)) lie outside the scale limits and are %s", count, labels, action)
    return count


def _color_scale(
    channel: str,
    primitives: Sequence[Primitive],
    layers: Sequence[Layer],
    scale: Scale | None,
    label: str | None,
    palette: str,
    palette_direction: int,
) -> ColorScale | None:
    mapped = {i for i, layer in enumerate(layers) if channel in layer.mapping}
    if not mapped:
        return None
    values = [getattr(p, channel) for p in primitives if p.layer_index in mapped and hasattr(p, channel)]
    title = label if label is not None else scale.name if scale is not None and scale.name is not None else _default_title(layers, (channel,))
    direction = scale.direction if scale is not None and scale.palette is not None else palette_direction
    array = np.empty(len(values), dtype=object)
    for i, value in enumerate(values):
        array[i] = value
    if is_numeric_column(array):
        cmap = scale.palette if scale is not None and scale.palette is not None else DEFAULT_CONTINUOUS_PALETTE
        numeric = np.asarray([float(v) for v in values if not is_missing(v)], dtype=np.float64)
        if scale is not None and scale.limits is not None:
            domain = (float(scale.limits[0]), float(scale.limits[1]))
        else:
            domain = (float(numeric.min()), float(numeric.max()))
        breaks = pretty_breaks(domain[0], domain[1], 5) if domain[1] > domain[0] else np.asarray([domain[0]])
        return ColorScale(
            channel=channel,
            kind="continuous",
            palette=cmap,
            direction=direction,
            domain=domain,
            breaks=tuple(float(b) for b in breaks.tolist()),
            labels=tuple(format_ticks_for_axis(breaks)),
            title=title,
        )
    cmap = scale.palette if scale is not None and scale.palette is not None else palette
    level_values = sorted_levels(values)
    return ColorScale(
        channel=channel,
        kind="discrete",
        palette=cmap,
        direction=direction,
        levels=level_values,
        colors=tuple(discrete_palette(cmap, len(level_values), direction=direction)),
        labels=tuple(str(v) for v in level_values),
        title=title,
    )


def _size_scale(primitives: Sequence[Primitive], layers: Sequence[Layer]) -> SizeScale | None:
    mapped = {i for i, layer in enumerate(layers) if isinstance(layer.mapping.get("size"), ColumnRef)}
    if not mapped:
        return None
    raw = [p.size for p in primitives if p.layer_index in mapped and hasattr(p, "size") and not is_missing(p.size)]
    if not raw:
        return None
    if not is_numeric_column(np.asarray(raw, dtype=object)):
        levels = sorted_levels(raw)
        return SizeScale(domain=(1.0, float(len(levels))), levels=levels)
    values = [float(v) for v in raw]
    return SizeScale(domain=(min(values), max(values)))


def _default_title(layers: Sequence[Layer], channels: Sequence[str]) -> str | None:
    for layer in layers:
        for channel in channels:
            value = layer.mapping.get(channel)
            if isinstance(value, ColumnRef):
                return value.name
    return None
