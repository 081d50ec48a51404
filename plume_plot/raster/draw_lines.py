from __future__ import annotations

import numpy as np

from plume_plot.raster.canvas import RGBA, fill_mask


def draw_polyline(
    dst: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    color: RGBA,
    width: int = 1,
    *,
    closed: bool = False,
) -> None:
    """Stroke connected segments with a square brush; overlaps are blended once."""

    if xs.size < 2:
        return
    px = [int(v) for v in xs.tolist()]
    py = [int(v) for v in ys.tolist()]
    if closed and len(px) > 2:
        px.append(px[0])
        py.append(py[0])
    cover = np.zeros(dst.shape[:2], dtype=bool)
    for i in range(len(px) - 1):
        _stamp_segment(cover, px[i], py[i], px[i + 1], py[i + 1], width)
    fill_mask(dst, cover, color)


def draw_segment(dst: np.ndarray, x0: int, y0: int, x1: int, y1: int, color: RGBA, width: int = 1) -> None:
    cover = np.zeros(dst.shape[:2], dtype=bool)
    _stamp_segment(cover, int(x0), int(y0), int(x1), int(y1), width)
    fill_mask(dst, cover, color)


def _stamp_segment(cover: np.ndarray, x0: int, y0: int, x1: int, y1: int, width: int) -> None:
    # Bresenham walk, stamping a width x width brush at each step
    radius = max(0, width // 2)
    h, w = cover.shape
    dx, sx = abs(x1 - x0), (1 if x0 < x1 else -1)
    dy, sy = -abs(y1 - y0), (1 if y0 < y1 else -1)
    err = dx + dy
    x, y = x0, y0
    while True:
        top, bottom = max(0, y - radius), min(h, y + radius + 1)
        left, right = max(0, x - radius), min(w, x + radius + 1)
        if top < bottom and left < right:
            cover[top:bottom, left:right] = True
        if x == x1 and y == y1:
            return
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x += sx
        if e2 <= dx:
            err += dx
            y += sy
