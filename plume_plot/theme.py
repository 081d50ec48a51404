from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any

from matplotlib.colors import is_color_like

from plume_text import FontSpec


LEGEND_POSITIONS = ("none", "top", "side")
TITLE_POSITIONS = ("panel", "plot")

# element -> parent; unset attributes are inherited along this chain
ELEMENT_PARENTS: Mapping[str, str | None] = MappingProxyType(
    {
        "text": None,
        "line": None,
        "rect": None,
        "title": "text",
        "plot.title": "title",
        "plot.subtitle": "title",
        "plot.caption": "title",
        "plot.tag": "title",
        "axis.title": "title",
        "axis.title.x": "axis.title",
        "axis.title.y": "axis.title",
        "axis.text": "text",
        "axis.text.x": "axis.text",
        "axis.text.y": "axis.text",
        "legend.title": "title",
        "legend.text": "text",
        "mark.label": "text",
        "axis.ticks": "line",
        "axis.line": "line",
        "panel.grid": "line",
        "panel.grid.major": "panel.grid",
        "panel.background": "rect",
        "plot.background": "rect",
        "legend.key": "rect",
    }
)
SETTINGS: Mapping[str, Any] = MappingProxyType(
    {
        "legend.position": "side",
        "plot.title.position": "panel",
        "plot.caption.position": "panel",
        "plot.margin": 5.5,
        "panel.spacing": 5.5,
    }
)


@dataclass(frozen=True)
class ElementStyle:
    """Style record for one theme element; None means inherit."""

    color: str | None = None
    fill: str | None = None
    size: float | None = None
    family: str | None = None
    bold: bool | None = None
    italic: bool | None = None
    hjust: float | None = None
    width_px: float | None = None
    margin: float | None = None
    linewidth: float | None = None
    lineheight: float | None = None
    blank: bool = False

    def __post_init__(self) -> None:
        for name in ("color", "fill"):
            value = getattr(self, name)
            if value is not None and not is_color_like(value):
                raise ValueError(f"element `{name}` must be a color, got {value!r}")
        for name in ("size", "width_px", "linewidth", "lineheight"):
            value = getattr(self, name)
            if value is not None and float(value) <= 0:
                raise ValueError(f"element `{name}` must be a positive number")
        if self.margin is not None and self.margin < 0:
            raise ValueError("element `margin` must be >= 0")
        if self.hjust is not None and not 0.0 <= self.hjust <= 1.0:
            raise ValueError("element `hjust` must be in [0, 1]")

    def font(self) -> FontSpec:
        return FontSpec(
            family=self.family or "DejaVu Sans",
            size_pt=self.size or 11.0,
            bold=bool(self.bold),
            slant="italic" if self.italic else "regular",
        )

    def inherit(self, parent: "ElementStyle") -> "ElementStyle":
        if self.blank:
            return self
        values = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "blank"}
        for key, value in values.items():
            if value is None:
                values[key] = getattr(parent, key)
        return ElementStyle(**values, blank=parent.blank)

    def update(self, other: "ElementStyle") -> "ElementStyle":
        """`other`'s set attributes win; blank is taken from `other`."""

        values = {f.name: getattr(other, f.name) for f in fields(other) if f.name != "blank" and getattr(other, f.name) is not None}
        return replace(self, **values, blank=other.blank)


def element_text(**kwargs: Any) -> ElementStyle:
    return ElementStyle(**kwargs)


def element_line(*, color: str | None = None, linewidth: float | None = None) -> ElementStyle:
    return ElementStyle(color=color, linewidth=linewidth)


def element_rect(*, fill: str | None = None, color: str | None = None, linewidth: float | None = None) -> ElementStyle:
    return ElementStyle(fill=fill, color=color, linewidth=linewidth)


def element_blank() -> ElementStyle:
    return ElementStyle(blank=True)


@dataclass(frozen=True)
class ThemeOverrides:
    """Ordered element overrides; a later entry for the same key replaces earlier ones."""

    entries: tuple[tuple[str, Any], ...] = ()

    def __post_init__(self) -> None:
        for key, value in self.entries:
            _validate_entry(key, value)

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, value in self.entries:
            out.pop(key, None)
            out[key] = value
        return out

    def merge(self, other: "ThemeOverrides") -> "ThemeOverrides":
        combined = dict(self.as_dict())
        for key, value in other.as_dict().items():
            combined.pop(key, None)
            combined[key] = value
        return ThemeOverrides(tuple(combined.items()))

    def __add__(self, other: "ThemeOverrides") -> "ThemeOverrides":
        return self.merge(other)


def theme(mapping: Mapping[str, Any] | None = None, **elements: Any) -> ThemeOverrides:
    """Overrides from dotted names (`"plot.title"`) or keywords (`plot_title=`)."""

    items: list[tuple[str, Any]] = list((mapping or {}).items())
    items.extend((key.replace("_", "."), value) for key, value in elements.items())
    return ThemeOverrides(tuple(items))


def _validate_entry(key: str, value: Any) -> None:
    if key in SETTINGS:
        if key == "legend.position" and value not in LEGEND_POSITIONS:
            raise ValueError(f"legend.position must be one of {LEGEND_POSITIONS}")
        if key in ("plot.title.position", "plot.caption.position") and value not in TITLE_POSITIONS:
            raise ValueError(f"{key} must be one of {TITLE_POSITIONS}")
        if key in ("plot.margin", "panel.spacing") and (not isinstance(value, (int, float)) or value < 0):
            raise ValueError(f"{key} must be a non-negative number")
        return
    if key not in ELEMENT_PARENTS:
        raise ValueError(f"Unknown theme element: {key}")
    if not isinstance(value, ElementStyle):
        raise ValueError(f"theme element `{key}` requires an ElementStyle")


@dataclass(frozen=True)
class Theme:
    """Complete base theme; immutable and passed explicitly to each plot."""

    elements: Mapping[str, ElementStyle] = field(default_factory=dict)
    settings: Mapping[str, Any] = field(default_factory=lambda: dict(SETTINGS))

    def __post_init__(self) -> None:
        merged_settings = dict(SETTINGS)
        merged_settings.update(self.settings)
        object.__setattr__(self, "elements", MappingProxyType(dict(self.elements)))
        object.__setattr__(self, "settings", MappingProxyType(merged_settings))

    def with_overrides(self, overrides: ThemeOverrides) -> "Theme":
        elements = dict(self.elements)
        settings = dict(self.settings)
        for key, value in overrides.as_dict().items():
            if key in SETTINGS:
                settings[key] = value
            else:
                base = elements.get(key, ElementStyle())
                elements[key] = base.update(value)
        return Theme(elements=elements, settings=settings)

    def element(self, name: str) -> ElementStyle:
        if name not in ELEMENT_PARENTS:
            raise ValueError(f"Unknown theme element: {name}")
        style = self.elements.get(name, ElementStyle())
        parent = ELEMENT_PARENTS[name]
        while parent is not None:
            style = style.inherit(self.elements.get(parent, ElementStyle()))
            parent = ELEMENT_PARENTS[parent]
        return style

    def setting(self, name: str) -> Any:
        if name not in SETTINGS:
            raise ValueError(f"Unknown theme setting: {name}")
        return self.settings[name]


def theme_minimal(*, base_family: str = "DejaVu Sans", base_size: float = 11.0) -> Theme:
    return Theme(
        elements={
            "text": ElementStyle(color="#1f1f1f", size=base_size, family=base_family, bold=False, italic=False, hjust=0.5, margin=0.0, lineheight=1.2),
            "line": ElementStyle(color="#1f1f1f", linewidth=0.5),
            "rect": ElementStyle(fill="white", color="white", linewidth=0.5),
            "title": ElementStyle(),
            "plot.title": ElementStyle(size=base_size * 1.2, hjust=0.0, margin=base_size / 2),
            "plot.subtitle": ElementStyle(hjust=0.0, margin=base_size / 2),
            "plot.caption": ElementStyle(size=base_size * 0.8, hjust=1.0, margin=base_size / 2),
            "plot.tag": ElementStyle(size=base_size * 1.2, bold=True),
            "axis.title": ElementStyle(margin=base_size / 4),
            "axis.text": ElementStyle(color="#4d4d4d", size=base_size * 0.8, margin=base_size / 5),
            "legend.title": ElementStyle(hjust=0.0),
            "legend.text": ElementStyle(size=base_size * 0.8),
            "mark.label": ElementStyle(size=base_size * 0.8, fill="white"),
            "axis.ticks": ElementStyle(blank=True),
            "axis.line": ElementStyle(blank=True),
            "panel.grid": ElementStyle(color="#ebebeb"),
            "panel.background": ElementStyle(blank=True),
            "plot.background": ElementStyle(fill="white", color="white"),
            "legend.key": ElementStyle(blank=True),
        },
    )


DEFAULT_THEME = theme_minimal()
_BASE_THEME: ContextVar[Theme] = ContextVar("plume_base_theme", default=DEFAULT_THEME)


def current_base_theme() -> Theme:
    return _BASE_THEME.get()


@contextmanager
def theme_context(base: Theme) -> Iterator[Theme]:
    """Use `base` for plots created inside the block; restored on exit."""

    token = _BASE_THEME.set(base)
    try:
        yield base
    finally:
        _BASE_THEME.reset(token)
