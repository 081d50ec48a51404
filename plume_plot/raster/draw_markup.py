from __future__ import annotations

import numpy as np

from plume_text import FontSpec, MarkupLayout
from plume_text.markup import PT_PER_PX
from plume_plot.colors import to_rgba_u8
from plume_plot.raster.canvas import RGBA, blit, new_canvas
from plume_plot.raster.draw_text import blend_mask, line_height, line_mask
from plume_plot.raster.images import load_image


class RasterTextMeasurer:
    """Pillow-backed measurer; font sizes are points scaled by `px_per_pt`."""

    def __init__(self, px_per_pt: float = 1.0) -> None:
        if px_per_pt <= 0:
            raise ValueError("px_per_pt must be > 0")
        self.px_per_pt = float(px_per_pt)

    def font_px(self, font: FontSpec) -> float:
        return font.size_pt * self.px_per_pt

    def measure(self, text: str, font: FontSpec) -> tuple[float, float]:
        mask = line_mask(text, font_family=font.family, font_size_px=self.font_px(font), bold=font.bold, italic=font.italic)
        return (float(mask.shape[1]), float(mask.shape[0]))

    def line_height(self, font: FontSpec) -> float:
        return float(line_height(font_family=font.family, font_size_px=self.font_px(font)))

    def image_size(self, src: str, width_px: float | None, height_px: float | None) -> tuple[float, float] | None:
        # image sizes are CSS pixels
        scale = PT_PER_PX * self.px_per_pt
        w = None if width_px is None else width_px * scale
        h = None if height_px is None else height_px * scale
        image = load_image(src, w, h)
        if image is None:
            return None
        return (float(image.shape[1]), float(image.shape[0]))


def render_markup_patch(layout: MarkupLayout, measurer: RasterTextMeasurer, default_color: RGBA) -> np.ndarray:
    width = max(1, int(np.ceil(layout.width)))
    height = max(1, int(np.ceil(layout.height)))
    patch = new_canvas(width, height, color=(0, 0, 0, 0))
    for run in layout.runs:
        x = int(round(run.x))
        y = int(round(run.y))
        if run.kind == "image":
            image = load_image(run.src or "", run.width, run.height)
            if image is not None:
                blit(patch, image, x, y)
            continue
        color = default_color if run.style.color is None else to_rgba_u8(run.style.color, default_color[3] / 255.0)
        font = run.style.font
        mask = line_mask(run.text, font_family=font.family, font_size_px=measurer.font_px(font), bold=font.bold, italic=font.italic)
        blend_mask(patch, x, y, mask, color)
    return patch


def draw_markup(
    dst: np.ndarray,
    x: int,
    y: int,
    layout: MarkupLayout,
    measurer: RasterTextMeasurer,
    default_color: RGBA,
    *,
    rotate_deg: int = 0,
) -> tuple[int, int]:
    """Draw a laid-out label with its top-left at (x, y); returns the drawn size."""

    patch = render_markup_patch(layout, measurer, default_color)
    if rotate_deg % 360:
        if rotate_deg % 90:
            raise ValueError("markup rotation must be a multiple of 90")
        patch = np.ascontiguousarray(np.rot90(patch, k=(rotate_deg // 90) % 4))
    blit(dst, patch, x, y)
    return (patch.shape[1], patch.shape[0])
