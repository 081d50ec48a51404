from __future__ import annotations

from typing import Any, Sequence

from matplotlib import colormaps
from matplotlib.colors import ListedColormap, is_color_like, to_rgba


RGBA = tuple[int, int, int, int]

# Palettes not shipped with matplotlib; looked up before matplotlib's registry.
CUSTOM_PALETTES: dict[str, tuple[str, ...]] = {
    "penguins": ("darkorange", "purple", "#008B8B"),
}
DEFAULT_PALETTE = "penguins"
DEFAULT_CONTINUOUS_PALETTE = "viridis"


def to_rgba_u8(color: Any, alpha: float | None = None) -> RGBA:
    """Convert a matplotlib colour spec (name, hex, tuple) to 8-bit RGBA."""

    if isinstance(color, tuple) and len(color) in (3, 4) and all(isinstance(c, int) for c in color):
        rgba = tuple(c / 255.0 for c in color) + ((1.0,) if len(color) == 3 else ())
    else:
        if not is_color_like(color):
            raise ValueError(f"invalid color: {color!r}")
        rgba = to_rgba(color)
    r, g, b, a = rgba
    if alpha is not None:
        a = a * max(0.0, min(1.0, float(alpha)))
    return (int(round(r * 255)), int(round(g * 255)), int(round(b * 255)), int(round(a * 255)))


def has_palette(name: str) -> bool:
    return name in CUSTOM_PALETTES or name in colormaps


def discrete_palette(name: str, n: int, *, direction: int = 1) -> list[str]:
    """`n` colours for categorical levels; qualitative palettes cycle, others are sampled."""

    if n < 0:
        raise ValueError("n must be >= 0")
    if direction not in (1, -1):
        raise ValueError("direction must be 1 or -1")
    if name in CUSTOM_PALETTES:
        base = list(CUSTOM_PALETTES[name])
        colors = [base[i % len(base)] for i in range(n)]
    elif name in colormaps:
        cmap = colormaps[name]
        if isinstance(cmap, ListedColormap) and cmap.N <= 20:
            colors = [_hex(cmap(i % cmap.N)) for i in range(n)]
        else:
            positions = [0.5] if n == 1 else [i / (n - 1) for i in range(n)]
            colors = [_hex(cmap(p)) for p in positions]
    else:
        raise ValueError(f"unknown palette: {name}")
    if direction == -1:
        colors.reverse()
    return colors


def continuous_color(name: str, position: float, *, direction: int = 1) -> str:
    if name in CUSTOM_PALETTES:
        cmap = ListedColormap(list(CUSTOM_PALETTES[name]))
    elif name in colormaps:
        cmap = colormaps[name]
    else:
        raise ValueError(f"unknown palette: {name}")
    p = max(0.0, min(1.0, float(position)))
    if direction == -1:
        p = 1.0 - p
    return _hex(cmap(p))


def _hex(rgba: Sequence[float]) -> str:
    r, g, b = (int(round(max(0.0, min(1.0, c)) * 255)) for c in rgba[:3])
    return f"#{r:02x}{g:02x}{b:02x}"
