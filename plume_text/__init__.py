"""Inline markup parsing and layout for plot text."""

from .layout import FontSpec, LaidOutRun, MarkupLayout, RunStyle, TextMeasurer, layout_markup
from .markup import MarkupParseWarning, MarkupSpan, parse_markup, plain_text

__all__ = [
    "FontSpec",
    "LaidOutRun",
    "MarkupLayout",
    "MarkupParseWarning",
    "MarkupSpan",
    "RunStyle",
    "TextMeasurer",
    "layout_markup",
    "parse_markup",
    "plain_text",
]
