from __future__ import annotations

import numpy as np

from plume_plot.raster.canvas import RGBA, draw_hline


def fill_polygon(dst: np.ndarray, xs: np.ndarray, ys: np.ndarray, color: RGBA) -> None:
    """Scanline fill with the even-odd rule; every covered pixel is blended once."""

    if xs.size < 3 or color[3] == 0:
        return
    px = xs.astype(np.float64)
    py = ys.astype(np.float64)
    top = max(0, int(np.floor(np.min(py))))
    bottom = min(dst.shape[0] - 1, int(np.ceil(np.max(py))))
    nx = np.roll(px, -1)
    ny = np.roll(py, -1)
    for row in range(top, bottom + 1):
        sample_y = row + 0.5
        crossing = ((py <= sample_y) & (ny > sample_y)) | ((ny <= sample_y) & (py > sample_y))
        if not np.any(crossing):
            continue
        x0 = px[crossing]
        y0 = py[crossing]
        x1 = nx[crossing]
        y1 = ny[crossing]
        hits = np.sort(x0 + (sample_y - y0) * (x1 - x0) / (y1 - y0))
        for left, right in zip(hits[0::2], hits[1::2], strict=False):
            xa = int(np.ceil(left - 0.5))
            xb = int(np.floor(right - 0.5))
            if xb >= xa:
                draw_hline(dst, xa, xb, row, color)
