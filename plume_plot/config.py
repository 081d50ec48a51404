from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from plume_plot.colors import DEFAULT_PALETTE, has_palette
from plume_plot.coord import CoordinateSystem
from plume_plot.layers import GEOMETRY_KINDS
from plume_plot.theme import LEGEND_POSITIONS, TITLE_POSITIONS, Theme, theme_minimal


@dataclass(frozen=True)
class GeomDefaults:
    alpha: float = 1.0
    size: float = 2.0


DEFAULT_GEOM_DEFAULTS: Mapping[str, GeomDefaults] = MappingProxyType(
    {
        "point": GeomDefaults(alpha=0.8, size=2.0),
        "ellipse_mark": GeomDefaults(alpha=0.25, size=0.5),
        "rect_mark": GeomDefaults(alpha=0.25, size=0.5),
        "hull_mark": GeomDefaults(alpha=0.25, size=0.5),
        "rich_text": GeomDefaults(alpha=1.0, size=9.0),
        "image": GeomDefaults(alpha=1.0, size=24.0),
        "line_range": GeomDefaults(alpha=1.0, size=1.0),
    }
)


@dataclass(frozen=True)
class PlotConfig:
    """Recognised plot options. Build with `validate_config` or `load_config`."""

    font_family: str = "DejaVu Sans"
    font_size_pt: float = 11.0
    geom_defaults: Mapping[str, GeomDefaults] = field(default_factory=lambda: dict(DEFAULT_GEOM_DEFAULTS))
    palette: str = DEFAULT_PALETTE
    palette_direction: int = 1
    legend_position: str = "side"
    title_position: str = "panel"
    expand: bool = True
    clip: str = "on"

    def base_theme(self) -> Theme:
        base = theme_minimal(base_family=self.font_family, base_size=self.font_size_pt)
        settings = dict(base.settings)
        settings["legend.position"] = self.legend_position
        settings["plot.title.position"] = self.title_position
        settings["plot.caption.position"] = self.title_position
        return Theme(elements=base.elements, settings=settings)

    def coord(self) -> CoordinateSystem:
        return CoordinateSystem(expand=self.expand, clip=self.clip)  # type: ignore[arg-type]

    def geom(self, kind: str) -> GeomDefaults:
        return self.geom_defaults.get(kind, GeomDefaults())


DEFAULT_CONFIG = PlotConfig()


def validate_config(overrides: Mapping[str, Any] | None = None) -> PlotConfig:
    """Validate and merge user overrides against defaults."""

    raw: dict[str, Any] = {
        "font_family": DEFAULT_CONFIG.font_family,
        "font_size_pt": DEFAULT_CONFIG.font_size_pt,
        "geom_defaults": {k: asdict(v) for k, v in DEFAULT_GEOM_DEFAULTS.items()},
        "palette": DEFAULT_CONFIG.palette,
        "palette_direction": DEFAULT_CONFIG.palette_direction,
        "legend_position": DEFAULT_CONFIG.legend_position,
        "title_position": DEFAULT_CONFIG.title_position,
        "expand": DEFAULT_CONFIG.expand,
        "clip": DEFAULT_CONFIG.clip,
    }
    if overrides:
        for key, value in overrides.items():
            if key not in raw:
                raise ValueError(f"Unknown config option: {key}")
            if key == "geom_defaults":
                if not isinstance(value, Mapping):
                    raise ValueError("Option `geom_defaults` must be a mapping of geometry kind to defaults")
                for kind, defaults in value.items():
                    if kind not in GEOMETRY_KINDS:
                        raise ValueError(f"Unknown geometry kind in `geom_defaults`: {kind}")
                    if not isinstance(defaults, Mapping) or set(defaults) - {"alpha", "size"}:
                        raise ValueError(f"`geom_defaults.{kind}` accepts only `alpha` and `size`")
                    raw["geom_defaults"][kind] = {**raw["geom_defaults"][kind], **defaults}
                continue
            raw[key] = value

    if not isinstance(raw["font_family"], str) or not raw["font_family"].strip():
        raise ValueError("Option `font_family` must be a non-empty string")
    if not isinstance(raw["font_size_pt"], (int, float)) or float(raw["font_size_pt"]) <= 0:
        raise ValueError("Option `font_size_pt` must be a positive number")
    if not isinstance(raw["palette"], str) or not has_palette(raw["palette"]):
        raise ValueError(f"Option `palette` names an unknown palette: {raw['palette']!r}")
    if raw["palette_direction"] not in (1, -1):
        raise ValueError("Option `palette_direction` must be 1 or -1")
    if raw["legend_position"] not in LEGEND_POSITIONS:
        raise ValueError(f"Option `legend_position` must be one of {LEGEND_POSITIONS}")
    if raw["title_position"] not in TITLE_POSITIONS:
        raise ValueError(f"Option `title_position` must be one of {TITLE_POSITIONS}")
    if not isinstance(raw["expand"], bool):
        raise ValueError("Option `expand` must be a boolean")
    if raw["clip"] not in ("on", "off"):
        raise ValueError("Option `clip` must be 'on' or 'off'")

    geom_defaults: dict[str, GeomDefaults] = {}
    for kind, values in raw["geom_defaults"].items():
        alpha = float(values["alpha"])
        size = float(values["size"])
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"`geom_defaults.{kind}.alpha` must be in [0, 1]")
        if size <= 0:
            raise ValueError(f"`geom_defaults.{kind}.size` must be > 0")
        geom_defaults[kind] = GeomDefaults(alpha=alpha, size=size)

    return PlotConfig(
        font_family=str(raw["font_family"]),
        font_size_pt=float(raw["font_size_pt"]),
        geom_defaults=MappingProxyType(geom_defaults),
        palette=str(raw["palette"]),
        palette_direction=int(raw["palette_direction"]),
        legend_position=str(raw["legend_position"]),
        title_position=str(raw["title_position"]),
        expand=bool(raw["expand"]),
        clip=str(raw["clip"]),
    )


def load_config(path: str | Path) -> PlotConfig:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("config file must contain a JSON object")
    return validate_config(payload)
