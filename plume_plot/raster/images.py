from __future__ import annotations

from functools import lru_cache
import logging
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError


LOGGER = logging.getLogger(__name__)


def load_image(src: str | Path, width_px: float | None = None, height_px: float | None = None) -> np.ndarray | None:
    """Load an image as (H, W, 4) uint8, resized to the requested box.

    Only one of width/height is needed; the other follows the aspect ratio.
    Returns None when the file cannot be read.
    """

    w = None if width_px is None else max(1, int(round(width_px)))
    h = None if height_px is None else max(1, int(round(height_px)))
    return _load_cached(str(src), w, h)


@lru_cache(maxsize=32)
def _load_cached(src: str, width_px: int | None, height_px: int | None) -> np.ndarray | None:
    try:
        with Image.open(src) as image:
            rgba = image.convert("RGBA")
    except (OSError, UnidentifiedImageError) as exc:
        LOGGER.warning("could not load image %s: %s", src, exc)
        return None
    src_w, src_h = rgba.size
    if width_px is None and height_px is None:
        target = (src_w, src_h)
    elif height_px is None:
        target = (width_px, max(1, int(round(src_h * width_px / src_w))))
    elif width_px is None:
        target = (max(1, int(round(src_w * height_px / src_h))), height_px)
    else:
        target = (width_px, height_px)
    if target != (src_w, src_h):
        rgba = rgba.resize(target, resample=Image.Resampling.LANCZOS)
    out = np.asarray(rgba, dtype=np.uint8).copy()
    out.setflags(write=False)
    return out
