from __future__ import annotations

from typing import Literal

import numpy as np

from plume_plot.raster.canvas import RGBA, fill_mask


MarkerShape = Literal["circle", "square", "triangle", "diamond"]
MARKER_SHAPES: tuple[str, ...] = ("circle", "square", "triangle", "diamond")


def marker_mask(radius: int, shape: MarkerShape = "circle") -> np.ndarray:
    """Boolean (2r+1, 2r+1) footprint of a marker centred in the array."""

    if shape not in MARKER_SHAPES:
        raise ValueError(f"unknown marker shape: {shape}")
    r = max(0, int(radius))
    dy, dx = np.mgrid[-r : r + 1, -r : r + 1]
    if shape == "square":
        return np.ones(dx.shape, dtype=bool)
    if shape == "diamond":
        return np.abs(dx) + np.abs(dy) <= r
    if shape == "triangle":
        # apex at the top, base at the bottom
        return np.abs(dx) <= np.rint((dy + r) / 2.0)
    return np.abs(dx) <= np.floor(np.sqrt(np.maximum(0, r * r - dy * dy)) + 0.5)


def draw_marker(dst: np.ndarray, x: int, y: int, *, color: RGBA, radius: int, shape: MarkerShape = "circle") -> None:
    cover = marker_mask(radius, shape)
    r = cover.shape[0] // 2
    top, left = y - r, x - r
    y0, x0 = max(0, top), max(0, left)
    y1, x1 = min(dst.shape[0], y + r + 1), min(dst.shape[1], x + r + 1)
    if y0 >= y1 or x0 >= x1:
        return
    fill_mask(dst[y0:y1, x0:x1], cover[y0 - top : y1 - top, x0 - left : x1 - left], color)
