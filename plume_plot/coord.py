from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


ClipMode = Literal["on", "off"]


@dataclass(frozen=True)
class CoordinateSystem:
    """Cartesian coordinates.

    `xlim`/`ylim` zoom the view without dropping data (unlike scale limits).
    With `clip="off"` marks may overflow the panel and are bounded only by the
    whole image, so a non-zero `plot.margin` is needed to keep them visible.
    """

    expand: bool = True
    clip: ClipMode = "on"
    xlim: tuple[float, float] | None = None
    ylim: tuple[float, float] | None = None

    def __post_init__(self) -> None:
        if self.clip not in ("on", "off"):
            raise ValueError("clip must be 'on' or 'off'")
        for name, lim in (("xlim", self.xlim), ("ylim", self.ylim)):
            if lim is not None and lim[1] <= lim[0]:
                raise ValueError(f"{name} must have lower < upper")


def coord_cartesian(
    *,
    expand: bool = True,
    clip: ClipMode = "on",
    xlim: tuple[float, float] | None = None,
    ylim: tuple[float, float] | None = None,
) -> CoordinateSystem:
    return CoordinateSystem(
        expand=bool(expand),
        clip=clip,
        xlim=None if xlim is None else (float(xlim[0]), float(xlim[1])),
        ylim=None if ylim is None else (float(ylim[0]), float(ylim[1])),
    )
