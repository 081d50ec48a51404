from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Sequence

import numpy as np

from plume_plot.layers import CHANNELS


DEFAULT_EXPANSION = 0.05
COLOR_CHANNELS = frozenset({"color", "fill"})


@dataclass(frozen=True)
class Scale:
    """Domain -> range settings for one channel.

    `expand=None` defers to the coordinate system; `limits` force the domain.
    """

    channel: str
    breaks: tuple[float, ...] | None = None
    limits: tuple[float, float] | None = None
    expand: bool | None = None
    labels: tuple[str, ...] | None = None
    palette: str | None = None
    direction: int = 1
    name: str | None = None
    n_breaks: int = 5

    def __post_init__(self) -> None:
        if self.channel not in CHANNELS:
            raise ValueError(f"unknown channel: {self.channel}")
        if self.limits is not None:
            lo, hi = self.limits
            if not (np.isfinite(lo) and np.isfinite(hi)) or hi <= lo:
                raise ValueError("scale limits must be finite with lower < upper")
        if self.labels is not None and self.breaks is not None and len(self.labels) != len(self.breaks):
            raise ValueError("scale labels must match breaks one-to-one")
        if self.direction not in (1, -1):
            raise ValueError("direction must be 1 or -1")
        if self.n_breaks <= 0:
            raise ValueError("n_breaks must be > 0")


def scale_x_continuous(
    *,
    breaks: Sequence[float] | None = None,
    limits: tuple[float, float] | None = None,
    expand: bool | None = None,
    labels: Sequence[str] | None = None,
    name: str | None = None,
) -> Scale:
    return _positional("x", breaks, limits, expand, labels, name)


def scale_y_continuous(
    *,
    breaks: Sequence[float] | None = None,
    limits: tuple[float, float] | None = None,
    expand: bool | None = None,
    labels: Sequence[str] | None = None,
    name: str | None = None,
) -> Scale:
    return _positional("y", breaks, limits, expand, labels, name)


def scale_color_palette(palette: str, *, direction: int = 1, name: str | None = None, channel: str = "color") -> Scale:
    if channel not in COLOR_CHANNELS:
        raise ValueError("palette scales apply to `color` or `fill`")
    return Scale(channel=channel, palette=palette, direction=direction, name=name)


def scale_fill_palette(palette: str, *, direction: int = 1, name: str | None = None) -> Scale:
    return scale_color_palette(palette, direction=direction, name=name, channel="fill")


def _positional(
    channel: str,
    breaks: Sequence[float] | None,
    limits: tuple[float, float] | None,
    expand: bool | None,
    labels: Sequence[str] | None,
    name: str | None,
) -> Scale:
    return Scale(
        channel=channel,
        breaks=None if breaks is None else tuple(float(b) for b in breaks),
        limits=None if limits is None else (float(limits[0]), float(limits[1])),
        expand=expand,
        labels=None if labels is None else tuple(str(label) for label in labels),
        name=name,
    )


@dataclass(frozen=True)
class PanelTransform:
    """Affine map from data coordinates to panel pixels; pixel rows grow downward."""

    sx: float
    tx: float
    sy: float
    ty: float
    height: int

    @classmethod
    def from_domains(cls, x_domain: tuple[float, float], y_domain: tuple[float, float], width: int, height: int) -> "PanelTransform":
        if width <= 1 or height <= 1:
            raise ValueError("panel width/height must be > 1")
        (x0, x1), (y0, y1) = x_domain, y_domain
        sx = (width - 1) / (x1 - x0)
        sy = (height - 1) / (y1 - y0)
        return cls(sx=sx, tx=-x0 * sx, sy=sy, ty=-y0 * sy, height=int(height))

    def to_pixels(self, x: Sequence[float] | np.ndarray, y: Sequence[float] | np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Values outside the domain map outside the panel; nothing is clamped."""

        px = np.rint(np.asarray(x, dtype=np.float64) * self.sx + self.tx).astype(np.int64)
        py = np.rint(np.asarray(y, dtype=np.float64) * self.sy + self.ty).astype(np.int64)
        return px, (self.height - 1) - py


def expand_range(vmin: float, vmax: float, *, mult: float = DEFAULT_EXPANSION) -> tuple[float, float]:
    span = vmax - vmin
    if span <= 0:
        delta = max(0.5, abs(vmin) * mult)
        return (vmin - delta, vmax + delta)
    pad = span * mult
    return (vmin - pad, vmax + pad)


def generate_nice_ticks(vmin: float, vmax: float, target: int) -> np.ndarray:
    if target <= 0:
        raise ValueError("target must be > 0")
    if vmin == vmax:
        return np.asarray([vmin], dtype=np.float64)

    span = _nice_number(vmax - vmin, round_result=False)
    step = _nice_number(span / max(target - 1, 1), round_result=True)
    tick_min = np.floor(vmin / step) * step
    tick_max = np.ceil(vmax / step) * step

    ticks = np.arange(tick_min, tick_max + 0.5 * step, step, dtype=np.float64)
    # Normalize floating-point drift so values like -4.44e-16 become 0.
    ticks = np.rint(ticks / step) * step
    ticks[np.isclose(ticks, 0.0, rtol=0.0, atol=step * 1e-9)] = 0.0
    return ticks


def ticks_within_range(ticks: np.ndarray, *, vmin: float, vmax: float) -> np.ndarray:
    if ticks.size == 0:
        return ticks
    eps = max(1e-12, abs(vmax - vmin) * 1e-9)
    return ticks[(ticks >= vmin - eps) & (ticks <= vmax + eps)]


def pretty_breaks(vmin: float, vmax: float, n: int = 5) -> np.ndarray:
    return ticks_within_range(generate_nice_ticks(vmin, vmax, n), vmin=vmin, vmax=vmax)


def format_tick(value: float, *, step: float | None = None) -> str:
    if not np.isfinite(value):
        return str(value)
    if step is not None and np.isfinite(step) and step > 0 and abs(value) <= step * 1e-9:
        value = 0.0
    abs_v = abs(value)
    decimals = _decimals_from_step(step) if step is not None else 6
    if abs_v != 0 and (abs_v >= 1e6 or (step is not None and abs(step) < 1e-4) or abs_v < 1e-6):
        return f"{value:.4e}"

    d = Decimal(str(value))
    quant = Decimal("1").scaleb(-decimals)
    try:
        q = d.quantize(quant)
    except InvalidOperation:
        q = d
    out = format(q, "f")
    # Only trim trailing zeros for fractional values (preserve integer zeros like 30, 40).
    if "." in out:
        out = out.rstrip("0").rstrip(".")
    if out == "-0":
        out = "0"
    return out


def format_ticks_for_axis(ticks: np.ndarray) -> list[str]:
    if ticks.size == 0:
        return []
    if ticks.size == 1:
        return [format_tick(float(ticks[0]))]
    step = float(np.min(np.abs(np.diff(ticks))))
    return [format_tick(float(v), step=step) for v in ticks]


def _nice_number(value: float, *, round_result: bool) -> float:
    exp = np.floor(np.log10(value))
    frac = value / (10**exp)

    if round_result:
        if frac < 1.5:
            nice_frac = 1.0
        elif frac < 3.0:
            nice_frac = 2.0
        elif frac < 7.0:
            nice_frac = 5.0
        else:
            nice_frac = 10.0
    else:
        if frac <= 1.0:
            nice_frac = 1.0
        elif frac <= 2.0:
            nice_frac = 2.0
        elif frac <= 5.0:
            nice_frac = 5.0
        else:
            nice_frac = 10.0

    return float(nice_frac * (10**exp))


def _decimals_from_step(step: float) -> int:
    if step <= 0 or not np.isfinite(step):
        return 6
    d = Decimal(str(step)).normalize()
    exp = d.as_tuple().exponent
    decimals = max(0, -int(exp))
    return min(12, decimals)
