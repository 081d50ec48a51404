from plume_plot.config import PlotConfig, load_config, validate_config
from plume_plot.coord import CoordinateSystem, coord_cartesian
from plume_plot.dataset import Dataset
from plume_plot.errors import ChannelResolutionError, InsufficientGroupSizeWarning, MarkupParseWarning, PlotDataError
from plume_plot.export import save
from plume_plot.labels import Labels, labs
from plume_plot.layers import (
    Layer,
    aes,
    col,
    geom_image,
    geom_linerange,
    geom_point,
    geom_richtext,
    lit,
    mark_ellipse,
    mark_hull,
    mark_rect,
)
from plume_plot.panels import PanelComposition, allocate_extents, compose_column, compose_row
from plume_plot.plot import BuiltPlot, Plot, chart
from plume_plot.render import render_plot
from plume_plot.scales import Scale, scale_color_palette, scale_fill_palette, scale_x_continuous, scale_y_continuous
from plume_plot.summary import group_summary
from plume_plot.theme import (
    ElementStyle,
    Theme,
    ThemeOverrides,
    element_blank,
    element_line,
    element_rect,
    element_text,
    theme,
    theme_context,
    theme_minimal,
)

__all__ = [
    "BuiltPlot",
    "ChannelResolutionError",
    "CoordinateSystem",
    "Dataset",
    "ElementStyle",
    "InsufficientGroupSizeWarning",
    "Labels",
    "Layer",
    "MarkupParseWarning",
    "PanelComposition",
    "Plot",
    "PlotConfig",
    "PlotDataError",
    "Scale",
    "Theme",
    "ThemeOverrides",
    "aes",
    "allocate_extents",
    "chart",
    "col",
    "compose_column",
    "compose_row",
    "coord_cartesian",
    "element_blank",
    "element_line",
    "element_rect",
    "element_text",
    "geom_image",
    "geom_linerange",
    "geom_point",
    "geom_richtext",
    "group_summary",
    "labs",
    "lit",
    "load_config",
    "mark_ellipse",
    "mark_hull",
    "mark_rect",
    "render_plot",
    "save",
    "scale_color_palette",
    "scale_fill_palette",
    "scale_x_continuous",
    "scale_y_continuous",
    "theme",
    "theme_context",
    "theme_minimal",
    "validate_config",
]
