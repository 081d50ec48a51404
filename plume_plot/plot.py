from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
import logging
from types import MappingProxyType
from typing import Any

import pandas as pd

from plume_plot.compose import Primitive, compose_layers, discrete_position_levels, effective_data
from plume_plot.config import DEFAULT_CONFIG, PlotConfig
from plume_plot.coord import CoordinateSystem
from plume_plot.dataset import Dataset
from plume_plot.errors import ChannelResolutionError, PlotDataError
from plume_plot.labels import Labels, labs
from plume_plot.layers import REQUIRED_CHANNELS, ChannelValue, ColumnRef, Layer, aes
from plume_plot.resolve import ResolvedScales, resolve_scales
from plume_plot.scales import Scale
from plume_plot.theme import Theme, ThemeOverrides, current_base_theme, theme


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Plot:
    """Immutable plot description; every setter returns a new Plot."""

    data: Dataset | None = None
    mapping: Mapping[str, ChannelValue] = field(default_factory=dict)
    layers: tuple[Layer, ...] = ()
    scales: Mapping[str, Scale] = field(default_factory=dict)
    coord: CoordinateSystem = field(default_factory=CoordinateSystem)
    overrides: ThemeOverrides = field(default_factory=ThemeOverrides)
    base_theme: Theme = field(default_factory=current_base_theme)
    labels: Labels = field(default_factory=Labels)
    config: PlotConfig = DEFAULT_CONFIG

    def __post_init__(self) -> None:
        object.__setattr__(self, "mapping", MappingProxyType(dict(aes(**dict(self.mapping)))))
        object.__setattr__(self, "scales", MappingProxyType(dict(self.scales)))
        object.__setattr__(self, "layers", tuple(self.layers))

    def add_layer(self, layer: Layer) -> "Plot":
        if not isinstance(layer, Layer):
            raise TypeError(f"expected a Layer, got {type(layer).__name__}")
        return replace(self, layers=self.layers + (layer,))

    def set_scale(self, channel: str, scale: Scale) -> "Plot":
        if scale.channel != channel:
            raise ValueError(f"scale for `{scale.channel}` cannot be set on channel `{channel}`")
        scales = dict(self.scales)
        scales[channel] = scale
        return replace(self, scales=scales)

    def set_theme(self, overrides: ThemeOverrides) -> "Plot":
        return replace(self, overrides=self.overrides.merge(overrides))

    def set_labels(self, labels: Labels | Mapping[str, Any]) -> "Plot":
        if not isinstance(labels, Labels):
            labels = labs(labels)
        return replace(self, labels=self.labels.merge(labels))

    def set_coord(self, coord: CoordinateSystem) -> "Plot":
        return replace(self, coord=coord)

    def set_base_theme(self, base: Theme) -> "Plot":
        return replace(self, base_theme=base)

    def __add__(self, item: Any) -> "Plot":
        if isinstance(item, Layer):
            return self.add_layer(item)
        if isinstance(item, Scale):
            return self.set_scale(item.channel, item)
        if isinstance(item, ThemeOverrides):
            return self.set_theme(item)
        if isinstance(item, Labels):
            return self.set_labels(item)
        if isinstance(item, CoordinateSystem):
            return self.set_coord(item)
        if isinstance(item, Theme):
            return self.set_base_theme(item)
        if isinstance(item, (list, tuple)):
            out = self
            for element in item:
                out = out + element
            return out
        return NotImplemented

    def resolved_theme(self) -> Theme:
        return self.base_theme.with_overrides(self.overrides)

    def effective_layers(self) -> tuple[Layer, ...]:
        return tuple(layer.with_plot_mapping(self.mapping) for layer in self.layers)

    def build(self) -> "BuiltPlot":
        """Validate channels, compose primitives and resolve scales."""

        if not self.layers:
            raise PlotDataError("plot has no layers")
        layers = self.effective_layers()
        for index, layer in enumerate(layers):
            validate_layer(index, layer, self.data)
        levels = discrete_position_levels(layers, self.data)
        primitives = compose_layers(layers, self.data, discrete_levels=levels, config=self.config)
        resolved = resolve_scales(
            primitives,
            layers,
            self.scales,
            self.coord,
            discrete_levels=levels,
            labels=self.labels,
            palette=self.config.palette,
            palette_direction=self.config.palette_direction,
        )
        theme_value = self.resolved_theme()
        if self.coord.clip == "off" and float(theme_value.setting("plot.margin")) == 0.0:
            LOGGER.warning("clip is off with a zero plot margin; overflowing marks are cut at the image border")
        LOGGER.debug("built plot: %d layers, %d primitives", len(layers), len(primitives))
        return BuiltPlot(
            plot=self,
            layers=layers,
            primitives=primitives,
            scales=resolved,
            theme=theme_value,
            labels=self.labels,
            coord=self.coord,
        )


@dataclass(frozen=True)
class BuiltPlot:
    plot: Plot
    layers: tuple[Layer, ...]
    primitives: tuple[Primitive, ...]
    scales: ResolvedScales
    theme: Theme
    labels: Labels
    coord: CoordinateSystem

    def with_theme(self, overrides: ThemeOverrides) -> "BuiltPlot":
        return replace(self, theme=self.theme.with_overrides(overrides))

    def without_legend(self) -> "BuiltPlot":
        return self.with_theme(theme(legend_position="none"))


def validate_layer(index: int, layer: Layer, plot_data: Dataset | None) -> None:
    for channel in REQUIRED_CHANNELS[layer.kind]:
        if channel not in layer.mapping:
            raise ChannelResolutionError(layer_index=index, layer_kind=layer.kind, channel=channel, reason="required channel is not mapped")
    data = effective_data(layer, plot_data)
    for channel, value in layer.mapping.items():
        if not isinstance(value, ColumnRef):
            continue
        if data is None:
            raise ChannelResolutionError(layer_index=index, layer_kind=layer.kind, channel=channel, column=value.name, reason="layer has no data")
        if value.name not in data.columns:
            raise ChannelResolutionError(layer_index=index, layer_kind=layer.kind, channel=channel, column=value.name)
        if not data.has_column(value.name):
            missing = data.absent_count(value.name)
            raise ChannelResolutionError(
                layer_index=index,
                layer_kind=layer.kind,
                channel=channel,
                column=value.name,
                reason=f"column `{value.name}` is absent from {missing} record(s)",
            )


def chart(
    data: Dataset | pd.DataFrame | None = None,
    mapping: Mapping[str, Any] | None = None,
    *,
    config: PlotConfig | None = None,
) -> Plot:
    """Start a plot; `config` supplies the base theme, coordinates and defaults."""

    if isinstance(data, pd.DataFrame):
        data = Dataset.from_frame(data)
    if config is None:
        return Plot(data=data, mapping=dict(mapping or {}))
    return Plot(data=data, mapping=dict(mapping or {}), coord=config.coord(), base_theme=config.base_theme(), config=config)
