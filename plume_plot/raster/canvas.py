from __future__ import annotations

import numpy as np


RGBA = tuple[int, int, int, int]


def new_canvas(width: int, height: int, color: RGBA = (255, 255, 255, 255)) -> np.ndarray:
    if width <= 0 or height <= 0:
        raise ValueError("canvas width/height must be > 0")
    canvas = np.empty((height, width, 4), dtype=np.uint8)
    canvas[:, :] = color
    return canvas


def blend_solid(pixels: np.ndarray, color: RGBA) -> None:
    """Source-over `color` onto an (..., 4) pixel array in place; the result is opaque."""

    a = color[3] / 255.0
    src = np.asarray(color[:3], dtype=np.float32) * a
    pixels[..., :3] = (src + pixels[..., :3].astype(np.float32) * (1.0 - a)).astype(np.uint8)
    pixels[..., 3] = 255


def fill_mask(dst: np.ndarray, cover: np.ndarray, color: RGBA) -> None:
    """Blend `color` once into every pixel where the boolean `cover` is set."""

    if color[3] == 0 or not cover.any():
        return
    pixels = dst[cover]
    blend_solid(pixels, color)
    dst[cover] = pixels


def blit(dst: np.ndarray, src: np.ndarray, x0: int = 0, y0: int = 0) -> None:
    """Alpha-composite `src` with its top-left at (x0, y0); parts off `dst` are dropped."""

    h, w = src.shape[:2]
    left, top = max(0, x0), max(0, y0)
    right, bottom = min(dst.shape[1], x0 + w), min(dst.shape[0], y0 + h)
    if left >= right or top >= bottom:
        return
    view = dst[top:bottom, left:right]
    patch = src[top - y0 : bottom - y0, left - x0 : right - x0]
    alpha = patch[:, :, 3:4].astype(np.float32) / 255.0
    view[:, :, :3] = (patch[:, :, :3] * alpha + view[:, :, :3] * (1.0 - alpha)).astype(np.uint8)
    view[:, :, 3] = np.maximum(view[:, :, 3], patch[:, :, 3])


def fill_rect(dst: np.ndarray, x0: int, y0: int, x1: int, y1: int, color: RGBA) -> None:
    """Fill the inclusive pixel box spanned by two corners, clipped to `dst`."""

    left = max(0, min(int(x0), int(x1)))
    right = min(dst.shape[1] - 1, max(int(x0), int(x1)))
    top = max(0, min(int(y0), int(y1)))
    bottom = min(dst.shape[0] - 1, max(int(y0), int(y1)))
    if right < left or bottom < top:
        return
    blend_solid(dst[top : bottom + 1, left : right + 1], color)



def draw_hline(dst: np.ndarray, x0: int, x1: int, y: int, color: RGBA) -> None:
    fill_rect(dst, x0, y, x1, y, color)


def draw_vline(dst: np.ndarray, x: int, y0: int, y1: int, color: RGBA) -> None:
    fill_rect(dst, x, y0, x, y1, color)


def stroke_rect(dst: np.ndarray, x0: int, y0: int, x1: int, y1: int, color: RGBA) -> None:
    """One-pixel outline; each border pixel is blended once."""

    left, right = sorted((int(x0), int(x1)))
    top, bottom = sorted((int(y0), int(y1)))
    draw_hline(dst, left, right, top, color)
    if bottom > top:
        draw_hline(dst, left, right, bottom, color)
    if bottom - top > 1:
        draw_vline(dst, left, top + 1, bottom - 1, color)
        if right > left:
            draw_vline(dst, right, top + 1, bottom - 1, color)
