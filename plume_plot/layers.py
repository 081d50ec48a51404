from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Literal

from plume_plot.dataset import Dataset
from plume_plot.raster.draw_markers import MarkerShape


GeometryKind = Literal["point", "ellipse_mark", "rect_mark", "hull_mark", "rich_text", "image", "line_range"]

GEOMETRY_KINDS: tuple[str, ...] = ("point", "ellipse_mark", "rect_mark", "hull_mark", "rich_text", "image", "line_range")
OUTLINE_KINDS = frozenset({"ellipse_mark", "rect_mark", "hull_mark"})
CHANNELS: tuple[str, ...] = (
    "x",
    "y",
    "xmin",
    "xmax",
    "ymin",
    "ymax",
    "color",
    "fill",
    "label",
    "angle",
    "size",
    "image",
    "group",
)
POSITION_CHANNELS = frozenset({"x", "y", "xmin", "xmax", "ymin", "ymax"})
REQUIRED_CHANNELS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "point": ("x", "y"),
        "ellipse_mark": ("x", "y"),
        "rect_mark": ("x", "y"),
        "hull_mark": ("x", "y"),
        "rich_text": ("x", "y", "label"),
        "image": ("x", "y", "image"),
        "line_range": ("x", "ymin", "ymax"),
    }
)


@dataclass(frozen=True)
class ColumnRef:
    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("column reference requires a non-empty name")


@dataclass(frozen=True)
class Constant:
    value: Any


ChannelValue = ColumnRef | Constant


def col(name: str) -> ColumnRef:
    return ColumnRef(name)


def lit(value: Any) -> Constant:
    return Constant(value)


def aes(**channels: Any) -> dict[str, ChannelValue]:
    """Build a channel mapping; bare strings are column names, other values constants."""

    return {channel: _to_channel_value(channel, value) for channel, value in channels.items()}


def _to_channel_value(channel: str, value: Any) -> ChannelValue:
    if channel not in CHANNELS:
        raise ValueError(f"unknown channel: {channel}")
    if isinstance(value, (ColumnRef, Constant)):
        return value
    if isinstance(value, str):
        return ColumnRef(value)
    return Constant(value)


@dataclass(frozen=True)
class LayerStyle:
    alpha: float | None = None
    size: float | None = None
    shape: MarkerShape = "circle"
    color: str | None = None
    fill: str | None = None
    linewidth: float = 1.0
    expand: float = 0.0
    label_size: float | None = None
    label_color: str | None = None
    label_fill: str | None = None
    hjust: float = 0.5
    vjust: float = 0.5
    width_px: float | None = None

    def __post_init__(self) -> None:
        if self.alpha is not None and not 0.0 <= self.alpha <= 1.0:
            raise ValueError("alpha must be in [0, 1]")
        if self.size is not None and self.size <= 0:
            raise ValueError("size must be > 0")
        if self.linewidth <= 0:
            raise ValueError("linewidth must be > 0")
        if self.expand < 0:
            raise ValueError("expand must be >= 0")
        if self.width_px is not None and self.width_px <= 0:
            raise ValueError("width_px must be > 0")


@dataclass(frozen=True)
class Layer:
    """One geometry with its channel mapping; immutable once created."""

    kind: GeometryKind
    mapping: Mapping[str, ChannelValue] = field(default_factory=dict)
    data: Dataset | None = None
    where: Callable[[dict[str, Any]], bool] | None = None
    style: LayerStyle = field(default_factory=LayerStyle)
    inherit_mapping: bool = True

    def __post_init__(self) -> None:
        if self.kind not in GEOMETRY_KINDS:
            raise ValueError(f"unknown geometry kind: {self.kind}")
        normalized = {channel: _to_channel_value(channel, value) for channel, value in dict(self.mapping).items()}
        object.__setattr__(self, "mapping", MappingProxyType(normalized))

    @property
    def is_outline(self) -> bool:
        return self.kind in OUTLINE_KINDS

    def column_refs(self) -> dict[str, str]:
        return {ch: v.name for ch, v in self.mapping.items() if isinstance(v, ColumnRef)}

    def with_plot_mapping(self, plot_mapping: Mapping[str, ChannelValue]) -> "Layer":
        """Fill channels this layer leaves unset from the plot-level mapping."""

        if not self.inherit_mapping or not plot_mapping:
            return self
        return replace(self, mapping={**plot_mapping, **self.mapping})


def _layer(kind: GeometryKind, mapping: Mapping[str, Any] | None, data: Dataset | None, where: Any, style: dict[str, Any]) -> Layer:
    inherit = bool(style.pop("inherit_mapping", True))
    return Layer(kind=kind, mapping=dict(mapping or {}), data=data, where=where, style=LayerStyle(**style), inherit_mapping=inherit)


def geom_point(mapping: Mapping[str, Any] | None = None, *, data: Dataset | None = None, where: Any = None, **style: Any) -> Layer:
    return _layer("point", mapping, data, where, style)


def mark_ellipse(mapping: Mapping[str, Any] | None = None, *, data: Dataset | None = None, where: Any = None, **style: Any) -> Layer:
    return _layer("ellipse_mark", mapping, data, where, style)


def mark_rect(mapping: Mapping[str, Any] | None = None, *, data: Dataset | None = None, where: Any = None, **style: Any) -> Layer:
    return _layer("rect_mark", mapping, data, where, style)


def mark_hull(mapping: Mapping[str, Any] | None = None, *, data: Dataset | None = None, where: Any = None, **style: Any) -> Layer:
    return _layer("hull_mark", mapping, data, where, style)


def geom_richtext(mapping: Mapping[str, Any] | None = None, *, data: Dataset | None = None, where: Any = None, **style: Any) -> Layer:
    return _layer("rich_text", mapping, data, where, style)


def geom_image(mapping: Mapping[str, Any] | None = None, *, data: Dataset | None = None, where: Any = None, **style: Any) -> Layer:
    return _layer("image", mapping, data, where, style)


def geom_linerange(mapping: Mapping[str, Any] | None = None, *, data: Dataset | None = None, where: Any = None, **style: Any) -> Layer:
    return _layer("line_range", mapping, data, where, style)
