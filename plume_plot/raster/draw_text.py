from __future__ import annotations

from functools import lru_cache
import logging
import math
from pathlib import Path

from matplotlib import font_manager
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from plume_plot.raster.canvas import RGBA


LOGGER = logging.getLogger(__name__)

DEFAULT_FONT_FAMILY = "DejaVu Sans"
DEFAULT_FONT_SIZE_PX = 11.0
ITALIC_SHEAR = 0.2
_BOLD_MARKERS = ("bold", "heavy", "black")
_ITALIC_MARKERS = ("italic", "oblique")

FontHandle = ImageFont.FreeTypeFont | ImageFont.ImageFont


def line_mask(
    text: str,
    *,
    font_family: str = DEFAULT_FONT_FAMILY,
    font_size_px: float = DEFAULT_FONT_SIZE_PX,
    bold: bool = False,
    italic: bool = False,
) -> np.ndarray:
    """Coverage mask one font line tall, origin at the ascender, so runs share a baseline.

    Faces without a real bold or italic variant are emboldened or sheared.
    """

    font, has_bold, has_italic = _load_font(font_family, font_size_px, bold, italic)
    mask = _render_line_mask(text, font)
    if bold and not has_bold:
        mask = _embolden(mask, max(2, int(round(font_size_px / 12.0)) + 1))
    if italic and not has_italic:
        mask = _shear(mask, ITALIC_SHEAR)
    return mask


def line_height(*, font_family: str = DEFAULT_FONT_FAMILY, font_size_px: float = DEFAULT_FONT_SIZE_PX) -> int:
    font, _, _ = _load_font(font_family, font_size_px, False, False)
    ascent, descent = font.getmetrics()
    return max(1, int(ascent + descent))


def blend_mask(dst: np.ndarray, x: int, y: int, mask: np.ndarray, color: RGBA) -> None:
    """Composite `color` through an 8-bit coverage mask (source over) at (x, y)."""

    h, w = mask.shape
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(dst.shape[1], x + w), min(dst.shape[0], y + h)
    if x1 <= x0 or y1 <= y0:
        return
    coverage = mask[y0 - y : y1 - y, x0 - x : x1 - x].astype(np.float32) / 255.0
    src_alpha = (color[3] / 255.0) * coverage
    if not np.any(src_alpha > 0):
        return

    patch = dst[y0:y1, x0:x1]
    dst_alpha = patch[:, :, 3].astype(np.float32) / 255.0
    out_alpha = src_alpha + dst_alpha * (1.0 - src_alpha)
    weight_src = np.divide(src_alpha, out_alpha, out=np.zeros_like(out_alpha), where=out_alpha > 1e-6)
    src_rgb = np.asarray(color[:3], dtype=np.float32).reshape(1, 1, 3)
    out_rgb = src_rgb * weight_src[:, :, None] + patch[:, :, :3].astype(np.float32) * (1.0 - weight_src[:, :, None])
    patch[:, :, :3] = np.clip(np.rint(out_rgb), 0, 255).astype(np.uint8)
    patch[:, :, 3] = np.clip(np.rint(out_alpha * 255.0), 0, 255).astype(np.uint8)


def _embolden(mask: np.ndarray, embolden_px: int) -> np.ndarray:
    out = np.zeros((mask.shape[0], mask.shape[1] + embolden_px - 1), dtype=np.uint8)
    for shift in range(embolden_px):
        view = out[:, shift : shift + mask.shape[1]]
        np.maximum(view, mask, out=view)
    return out


def _shear(mask: np.ndarray, factor: float) -> np.ndarray:
    h, w = mask.shape
    out = np.zeros((h, w + int(math.ceil(h * factor))), dtype=np.uint8)
    for row in range(h):
        offset = int(round((h - 1 - row) * factor))
        out[row, offset : offset + w] = mask[row]
    return out


@lru_cache(maxsize=32)
def _font_file(family: str, bold: bool, italic: bool) -> tuple[str, bool, bool]:
    """Closest installed face via matplotlib, plus whether its weight/slant really match."""

    props = font_manager.FontProperties(
        family=family.strip() or DEFAULT_FONT_FAMILY,
        weight="bold" if bold else "normal",
        style="italic" if italic else "normal",
    )
    path = font_manager.findfont(props, fallback_to_default=True)
    stem = Path(path).stem.lower()
    return (
        path,
        bold and any(m in stem for m in _BOLD_MARKERS),
        italic and any(m in stem for m in _ITALIC_MARKERS),
    )


@lru_cache(maxsize=64)
def _load_font(font_family: str, font_size_px: float, bold: bool, italic: bool) -> tuple[FontHandle, bool, bool]:
    size = max(1, int(round(font_size_px)))
    path, has_bold, has_italic = _font_file(font_family, bold, italic)
    try:
        return ImageFont.truetype(path, size=size), has_bold, has_italic
    except OSError as exc:
        LOGGER.warning("could not load font %s (%s); using Pillow's default font", path, exc)
        return ImageFont.load_default(size=size), False, False


@lru_cache(maxsize=512)
def _render_line_mask(text: str, font: FontHandle) -> np.ndarray:
    ascent, descent = font.getmetrics()
    height = max(1, int(ascent + descent))
    if not text:
        return np.zeros((height, 1), dtype=np.uint8)
    right = font.getbbox(text)[2]
    width = max(1, int(math.ceil(max(font.getlength(text), right))))
    image = Image.new("L", (width, height), 0)
    ImageDraw.Draw(image).text((0, 0), text, fill=255, font=font)
    return np.asarray(image, dtype=np.uint8)
