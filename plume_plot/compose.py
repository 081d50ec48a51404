from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import logging
from typing import Any
import warnings

import numpy as np

from plume_plot.config import DEFAULT_CONFIG, PlotConfig
from plume_plot.dataset import Dataset, coerce_numeric, is_missing, level_sort_key, sorted_levels
from plume_plot.errors import InsufficientGroupSizeWarning, PlotDataError
from plume_plot.layers import POSITION_CHANNELS, ColumnRef, Constant, Layer


LOGGER = logging.getLogger(__name__)

ELLIPSE_TOLERANCE = 1e-3
ELLIPSE_VERTICES = 72
MIN_GROUP_POINTS: Mapping[str, int] = {"ellipse_mark": 3, "hull_mark": 3, "rect_mark": 2}
GROUPING_CHANNELS = ("group", "fill", "color", "label")
AXIS_CHANNELS: Mapping[str, tuple[str, ...]] = {"x": ("x", "xmin", "xmax"), "y": ("y", "ymin", "ymax")}


@dataclass(frozen=True)
class PointPrimitive:
    layer_index: int
    x: float
    y: float
    color: Any = None
    fill: Any = None
    size: Any = 2.0
    alpha: float = 1.0

    @property
    def coords(self) -> tuple[tuple[float, ...], tuple[float, ...]]:
        return ((self.x,), (self.y,))


@dataclass(frozen=True)
class SegmentPrimitive:
    layer_index: int
    x0: float
    y0: float
    x1: float
    y1: float
    color: Any = None
    size: Any = 1.0
    alpha: float = 1.0

    @property
    def coords(self) -> tuple[tuple[float, ...], tuple[float, ...]]:
        return ((self.x0, self.x1), (self.y0, self.y1))


@dataclass(frozen=True)
class PolygonPrimitive:
    """Closed outline around one group; `label` is markup drawn beside it."""

    layer_index: int
    xs: tuple[float, ...]
    ys: tuple[float, ...]
    color: Any = None
    fill: Any = None
    alpha: float = 1.0
    label: str | None = None

    @property
    def coords(self) -> tuple[tuple[float, ...], tuple[float, ...]]:
        return (self.xs, self.ys)


@dataclass(frozen=True)
class TextPrimitive:
    layer_index: int
    x: float
    y: float
    label: str
    color: Any = None
    fill: Any = None
    size: Any = 9.0
    angle: float = 0.0
    alpha: float = 1.0

    @property
    def coords(self) -> tuple[tuple[float, ...], tuple[float, ...]]:
        return ((self.x,), (self.y,))


@dataclass(frozen=True)
class ImagePrimitive:
    layer_index: int
    x: float
    y: float
    src: str
    size: Any = 24.0
    alpha: float = 1.0

    @property
    def coords(self) -> tuple[tuple[float, ...], tuple[float, ...]]:
        return ((self.x,), (self.y,))


Primitive = PointPrimitive | SegmentPrimitive | PolygonPrimitive | TextPrimitive | ImagePrimitive


def effective_data(layer: Layer, plot_data: Dataset | None) -> Dataset | None:
    return layer.data if layer.data is not None else plot_data


def channel_values(layer: Layer, data: Dataset, channel: str) -> np.ndarray | None:
    value = layer.mapping.get(channel)
    if value is None:
        return None
    if isinstance(value, ColumnRef):
        return data.values(value.name)
    out = np.empty(len(data), dtype=object)
    for i in range(len(data)):
        out[i] = value.value
    return out


def discrete_position_levels(layers: Sequence[Layer], plot_data: Dataset | None) -> dict[str, tuple[Any, ...]]:
    """Levels for positional axes fed by categorical values; continuous axes are absent."""

    out: dict[str, tuple[Any, ...]] = {}
    for axis, channels in AXIS_CHANNELS.items():
        values: list[Any] = []
        discrete = False
        for layer in layers:
            data = effective_data(layer, plot_data)
            for channel in channels:
                mapped = layer.mapping.get(channel)
                if mapped is None:
                    continue
                if isinstance(mapped, Constant):
                    raw = [mapped.value]
                elif data is None:
                    continue
                else:
                    raw = data.values(mapped.name).tolist()
                categorical = [v for v in raw if _is_categorical(v)]
                if categorical:
                    discrete = True
                    values.extend(categorical)
        if discrete:
            out[axis] = sorted_levels(values)
    return out


def compose_layers(
    layers: Sequence[Layer],
    plot_data: Dataset | None,
    *,
    discrete_levels: Mapping[str, tuple[Any, ...]] | None = None,
    config: PlotConfig = DEFAULT_CONFIG,
) -> tuple[Primitive, ...]:
    """Turn layers into draw primitives; output order is declaration order."""

    levels = dict(discrete_levels or {})
    primitives: list[Primitive] = []
    for index, layer in enumerate(layers):
        data = effective_data(layer, plot_data)
        if data is None:
            raise PlotDataError(f"layer {index} ({layer.kind}) has no data")
        if layer.where is not None:
            data = data.filter(layer.where)
        composed = _compose_layer(index, layer, data, levels, config)
        LOGGER.debug("layer %d (%s): %d rows -> %d primitives", index, layer.kind, len(data), len(composed))
        primitives.extend(composed)
    return tuple(primitives)


def _compose_layer(index: int, layer: Layer, data: Dataset, levels: Mapping[str, tuple[Any, ...]], config: PlotConfig) -> list[Primitive]:
    n = len(data)
    if n == 0:
        return []
    defaults = config.geom(layer.kind)
    alpha = layer.style.alpha if layer.style.alpha is not None else defaults.alpha
    size_default = layer.style.size if layer.style.size is not None else defaults.size

    positions = {ch: _positions(layer, data, ch, levels) for ch in POSITION_CHANNELS if ch in layer.mapping}
    keep = np.ones(n, dtype=bool)
    for values in positions.values():
        keep &= np.isfinite(values)
    content_channel = {"rich_text": "label", "image": "image"}.get(layer.kind)
    if content_channel is not None:
        raw = channel_values(layer, data, content_channel)
        if raw is not None:
            keep &= ~np.asarray([is_missing(v) for v in raw.tolist()], dtype=bool)
    dropped = int(np.count_nonzero(~keep))
    if dropped:
        LOGGER.debug("layer %d (%s): dropped %d rows with missing values", index, layer.kind, dropped)

    color = channel_values(layer, data, "color")
    fill = channel_values(layer, data, "fill")
    size = channel_values(layer, data, "size")
    label = channel_values(layer, data, "label")
    rows = np.flatnonzero(keep).tolist()

    def at(values: np.ndarray | None, i: int, default: Any = None) -> Any:
        return default if values is None else values[i]

    if layer.is_outline:
        return _compose_outline(index, layer, data, positions, rows, alpha)

    out: list[Primitive] = []
    if layer.kind == "point":
        for i in rows:
            out.append(
                PointPrimitive(
                    layer_index=index,
                    x=float(positions["x"][i]),
                    y=float(positions["y"][i]),
                    color=at(color, i),
                    fill=at(fill, i),
                    size=at(size, i, size_default),
                    alpha=alpha,
                )
            )
    elif layer.kind == "rich_text":
        angle = channel_values(layer, data, "angle")
        for i in rows:
            out.append(
                TextPrimitive(
                    layer_index=index,
                    x=float(positions["x"][i]),
                    y=float(positions["y"][i]),
                    label=label_text(label[i]),  # type: ignore[index]
                    color=at(color, i),
                    fill=at(fill, i),
                    size=at(size, i, size_default),
                    angle=_angle(at(angle, i, 0.0)),
                    alpha=alpha,
                )
            )
    elif layer.kind == "image":
        image = channel_values(layer, data, "image")
        for i in rows:
            out.append(
                ImagePrimitive(
                    layer_index=index,
                    x=float(positions["x"][i]),
                    y=float(positions["y"][i]),
                    src=str(image[i]),  # type: ignore[index]
                    size=at(size, i, size_default),
                    alpha=alpha,
                )
            )
    elif layer.kind == "line_range":
        for i in rows:
            x = float(positions["x"][i])
            out.append(
                SegmentPrimitive(
                    layer_index=index,
                    x0=x,
                    y0=float(positions["ymin"][i]),
                    x1=x,
                    y1=float(positions["ymax"][i]),
                    color=at(color, i),
                    size=at(size, i, size_default),
                    alpha=alpha,
                )
            )
    return out


def _compose_outline(
    index: int,
    layer: Layer,
    data: Dataset,
    positions: Mapping[str, np.ndarray],
    rows: list[int],
    alpha: float,
) -> list[Primitive]:
    key_channel = next((ch for ch in GROUPING_CHANNELS if ch in layer.mapping), None)
    keys = channel_values(layer, data, key_channel) if key_channel is not None else None
    groups: dict[Any, list[int]] = {}
    for i in rows:
        groups.setdefault(None if keys is None else keys[i], []).append(i)

    color = channel_values(layer, data, "color")
    fill = channel_values(layer, data, "fill")
    label = channel_values(layer, data, "label")
    xs = positions["x"]
    ys = positions["y"]
    out: list[Primitive] = []
    for key in sorted(groups, key=level_sort_key):
        members = groups[key]
        first = members[0]
        points = np.column_stack([xs[members], ys[members]]).astype(np.float64)
        group_label = None
        if label is not None:
            group_label = next((label_text(label[i]) for i in members if not is_missing(label[i])), None)
        shape = outline_shape(layer.kind, points, expand=layer.style.expand)
        paint = {"color": None if color is None else color[first], "alpha": alpha}
        if shape[0] == "point":
            _warn_degraded(index, layer.kind, key, 1, "point")
            x, y = shape[1]
            out.append(PointPrimitive(layer_index=index, x=x, y=y, fill=None if fill is None else fill[first], **paint))
        elif shape[0] == "segment":
            _warn_degraded(index, layer.kind, key, shape[2], "segment")
            (x0, y0), (x1, y1) = shape[1]
            out.append(SegmentPrimitive(layer_index=index, x0=x0, y0=y0, x1=x1, y1=y1, size=layer.style.linewidth, **paint))
        else:
            vertices = shape[1]
            out.append(
                PolygonPrimitive(
                    layer_index=index,
                    xs=tuple(float(v) for v in vertices[:, 0]),
                    ys=tuple(float(v) for v in vertices[:, 1]),
                    fill=None if fill is None else fill[first],
                    label=group_label,
                    **paint,
                )
            )
    return out


def outline_shape(kind: str, points: np.ndarray, *, expand: float = 0.0) -> tuple[Any, ...]:
    """Outline for one group.

    Returns ("polygon", vertices), ("segment", endpoints, n_distinct) or
    ("point", (x, y)) when there are too few distinct points for `kind`.
    """

    distinct = np.unique(points, axis=0)
    n = distinct.shape[0]
    if n == 0:
        raise PlotDataError("cannot outline an empty group")
    if n == 1:
        return ("point", (float(distinct[0, 0]), float(distinct[0, 1])))
    if kind == "rect_mark":
        return ("polygon", bounding_box(distinct, expand=expand))
    if n < MIN_GROUP_POINTS[kind] or _is_collinear(distinct):
        return ("segment", _extreme_pair(distinct), n)
    if kind == "ellipse_mark":
        center, shape = enclosing_ellipse(distinct)
        return ("polygon", ellipse_vertices(center, shape, expand=expand))
    if kind == "hull_mark":
        return ("polygon", _pad_outward(convex_hull(distinct), expand))
    raise ValueError(f"not an outline kind: {kind}")


def enclosing_ellipse(points: np.ndarray, *, tolerance: float = ELLIPSE_TOLERANCE, max_iter: int = 1000) -> tuple[np.ndarray, np.ndarray]:
    """Khachiyan's minimum-volume enclosing ellipse.

    Returns (center, A) with the ellipse `(p - center)^T A (p - center) = 1`.
    """

    n, d = points.shape
    q = np.vstack([points.T, np.ones(n)])
    u = np.full(n, 1.0 / n)
    err = tolerance + 1.0
    iterations = 0
    while err > tolerance and iterations < max_iter:
        x = q @ (u[:, None] * q.T)
        m = np.einsum("ij,ji->i", q.T, np.linalg.solve(x, q))
        j = int(np.argmax(m))
        step = (m[j] - d - 1.0) / ((d + 1.0) * (m[j] - 1.0))
        new_u = (1.0 - step) * u
        new_u[j] += step
        err = float(np.linalg.norm(new_u - u))
        u = new_u
        iterations += 1
    center = points.T @ u
    cov = points.T @ (u[:, None] * points) - np.outer(center, center)
    return center, np.linalg.inv(cov) / d


def ellipse_vertices(center: np.ndarray, shape: np.ndarray, *, expand: float = 0.0, n: int = ELLIPSE_VERTICES) -> np.ndarray:
    eigvals, eigvecs = np.linalg.eigh(shape)
    radii = 1.0 / np.sqrt(eigvals) + expand
    t = np.linspace(0.0, 2.0 * np.pi, n, endpoint=False)
    unit = np.vstack([radii[0] * np.cos(t), radii[1] * np.sin(t)])
    return (eigvecs @ unit).T + center


def bounding_box(points: np.ndarray, *, expand: float = 0.0) -> np.ndarray:
    x0, y0 = points.min(axis=0) - expand
    x1, y1 = points.max(axis=0) + expand
    return np.asarray([[x0, y0], [x1, y0], [x1, y1], [x0, y1]], dtype=np.float64)


def convex_hull(points: np.ndarray) -> np.ndarray:
    """Andrew's monotone chain; counter-clockwise, no repeated first vertex."""

    pts = sorted({(float(x), float(y)) for x, y in points.tolist()})
    if len(pts) <= 2:
        return np.asarray(pts, dtype=np.float64)

    def cross(o: tuple[float, float], a: tuple[float, float], b: tuple[float, float]) -> float:
        return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])

    lower: list[tuple[float, float]] = []
    for p in pts:
        while len(lower) >= 2 and cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)
    upper: list[tuple[float, float]] = []
    for p in reversed(pts):
        while len(upper) >= 2 and cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)
    return np.asarray(lower[:-1] + upper[:-1], dtype=np.float64)


def label_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _positions(layer: Layer, data: Dataset, channel: str, levels: Mapping[str, tuple[Any, ...]]) -> np.ndarray:
    raw = channel_values(layer, data, channel)
    if raw is None:
        raise PlotDataError(f"{layer.kind} layer has no `{channel}` mapping")
    axis = "x" if channel in AXIS_CHANNELS["x"] else "y"
    axis_levels = levels.get(axis)
    if axis_levels is None:
        return coerce_numeric(raw)
    index = {level: float(i + 1) for i, level in enumerate(axis_levels)}
    out = np.full(raw.shape[0], np.nan, dtype=np.float64)
    for i, value in enumerate(raw.tolist()):
        if is_missing(value):
            continue
        if _is_categorical(value):
            out[i] = index.get(value, np.nan)
        else:
            out[i] = float(value)
    return out


def _angle(value: Any) -> float:
    if is_missing(value):
        return 0.0
    return float(value)


def _is_categorical(value: Any) -> bool:
    if is_missing(value):
        return False
    return isinstance(value, (str, bool)) or not isinstance(value, (int, float, np.integer, np.floating))


def _is_collinear(points: np.ndarray) -> bool:
    centered = points - points.mean(axis=0)
    tol = 1e-9 * max(1.0, float(np.abs(points).max()))
    return int(np.linalg.matrix_rank(centered, tol=tol)) < 2


def _extreme_pair(points: np.ndarray) -> tuple[tuple[float, float], tuple[float, float]]:
    centered = points - points.mean(axis=0)
    _, _, vt = np.linalg.svd(centered, full_matrices=False)
    proj = centered @ vt[0]
    a = points[int(np.argmin(proj))]
    b = points[int(np.argmax(proj))]
    first, second = sorted([(float(a[0]), float(a[1])), (float(b[0]), float(b[1]))])
    return (first, second)


def _pad_outward(vertices: np.ndarray, expand: float) -> np.ndarray:
    if expand <= 0:
        return vertices
    centroid = vertices.mean(axis=0)
    offsets = vertices - centroid
    norms = np.linalg.norm(offsets, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return vertices + offsets / norms * expand


def _warn_degraded(index: int, kind: str, key: Any, n: int, drawn_as: str) -> None:
    group = "all rows" if key is None else f"group {key!r}"
    warnings.warn(
        f"layer {index} ({kind}): {group} has {n} distinct point(s), drawing a {drawn_as}",
        InsufficientGroupSizeWarning,
        stacklevel=4,
    )
