from __future__ import annotations

from plume_text.markup import MarkupParseWarning

__all__ = [
    "ChannelResolutionError",
    "InsufficientGroupSizeWarning",
    "MarkupParseWarning",
    "PlotDataError",
]


class PlotDataError(ValueError):
    """Invalid plot specification or input data."""


class ChannelResolutionError(PlotDataError):
    def __init__(self, *, layer_index: int, layer_kind: str, channel: str, column: str | None = None, reason: str | None = None) -> None:
        self.layer_index = layer_index
        self.layer_kind = layer_kind
        self.channel = channel
        self.column = column
        if reason is None:
            reason = f"column not found: {column}" if column is not None else "channel is not mapped"
        super().__init__(f"layer {layer_index} ({layer_kind}) channel `{channel}`: {reason}")


class InsufficientGroupSizeWarning(UserWarning):
    """Group-outline geometry degraded to a point or segment."""
