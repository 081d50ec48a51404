from .canvas import blit, draw_hline, draw_vline, fill_mask, fill_rect, new_canvas, stroke_rect
from .draw_lines import draw_polyline, draw_segment
from .draw_markers import draw_marker, marker_mask
from .draw_markup import RasterTextMeasurer, draw_markup, render_markup_patch
from .draw_shapes import fill_polygon
from .images import load_image

__all__ = [
    "RasterTextMeasurer",
    "blit",
    "draw_hline",
    "draw_marker",
    "draw_markup",
    "draw_polyline",
    "draw_segment",
    "draw_vline",
    "fill_mask",
    "fill_polygon",
    "fill_rect",
    "load_image",
    "marker_mask",
    "new_canvas",
    "render_markup_patch",
    "stroke_rect",
]
