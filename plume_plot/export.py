from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from plume_plot.panels import PanelComposition, render_composition
from plume_plot.plot import BuiltPlot, Plot
from plume_plot.render import render_plot


LOGGER = logging.getLogger(__name__)

POINTS_PER_INCH = 72.0
UNITS_PER_INCH = {"in": 1.0, "cm": 2.54, "mm": 25.4}
FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG", "tif": "TIFF", "tiff": "TIFF", "pdf": "PDF"}

Renderable = Union[Plot, BuiltPlot, PanelComposition]


def pixel_size(width: float, height: float, *, units: str = "in", dpi: float = 300) -> tuple[int, int]:
    if width <= 0:
        raise ValueError("width must be > 0")
    if height <= 0:
        raise ValueError("height must be > 0")
    if dpi <= 0:
        raise ValueError("dpi must be > 0")
    if units == "px":
        return (max(1, int(round(width))), max(1, int(round(height))))
    if units not in UNITS_PER_INCH:
        raise ValueError(f"units must be one of {sorted([*UNITS_PER_INCH, 'px'])}, got {units!r}")
    per_inch = UNITS_PER_INCH[units]
    return (max(1, int(round(width / per_inch * dpi))), max(1, int(round(height / per_inch * dpi))))


def render_image(obj: Renderable, width_px: int, height_px: int, scale: float = 1.0) -> np.ndarray:
    if isinstance(obj, PanelComposition):
        return render_composition(obj, width_px, height_px, scale)
    if isinstance(obj, Plot):
        obj = obj.build()
    if isinstance(obj, BuiltPlot):
        return render_plot(obj, width_px, height_px, scale)
    raise TypeError(f"cannot render {type(obj).__name__}")


def save(
    obj: Renderable,
    path: str | Path,
    width: float,
    height: float,
    units: str = "in",
    dpi: float = 300,
    format: str | None = None,
) -> Path:
    """Render `obj` and write it with Pillow; returns the written path.

    Text and line sizes scale with `dpi / 72`, so a 300 dpi export keeps the
    proportions of a 72 dpi preview.
    """

    out = Path(path)
    image_format = _resolve_format(out, format)
    width_px, height_px = pixel_size(width, height, units=units, dpi=dpi)
    scale = dpi / POINTS_PER_INCH if units != "px" else 1.0
    LOGGER.debug("rendering %s at %dx%d px (scale %.3f)", out.name, width_px, height_px, scale)
    rgba = render_image(obj, width_px, height_px, scale)
    image = Image.fromarray(np.ascontiguousarray(rgba))
    if image_format in ("JPEG", "PDF"):
        image = _flatten(image)
    try:
        image.save(out, format=image_format, dpi=(dpi, dpi))
    except OSError:
        LOGGER.error("could not write %s", out)
        raise
    LOGGER.info("wrote %s (%dx%d px)", out, width_px, height_px)
    return out


def _resolve_format(path: Path, format: str | None) -> str:
    key = (format or path.suffix.lstrip(".")).lower()
    if key not in FORMATS:
        raise ValueError(f"format must be one of {sorted(FORMATS)}, got {key or path.name!r}")
    return FORMATS[key]


def _flatten(image: Image.Image) -> Image.Image:
    background = Image.new("RGB", image.size, (255, 255, 255))
    background.paste(image, mask=image.getchannel("A"))
    return background
