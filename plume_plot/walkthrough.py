"""The penguin bill walkthrough: a scatter plot customised step by step.

Each step is a plain value (Plot or PanelComposition); `render_walkthrough`
saves them in order.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Union

import pandas as pd

from plume_plot.config import DEFAULT_CONFIG, PlotConfig
from plume_plot.coord import coord_cartesian
from plume_plot.dataset import Dataset
from plume_plot.errors import PlotDataError
from plume_plot.export import save
from plume_plot.labels import labs
from plume_plot.layers import geom_linerange, geom_point, geom_richtext, mark_ellipse, mark_hull, mark_rect
from plume_plot.panels import PanelComposition, compose_column
from plume_plot.plot import Plot, chart
from plume_plot.scales import scale_y_continuous
from plume_plot.summary import group_summary
from plume_plot.theme import element_text, theme


LOGGER = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("species", "bill_length_mm", "bill_depth_mm")
SPECIES_COLORS = {"Adelie": "darkorange", "Chinstrap": "purple", "Gentoo": "#008B8B"}
MARKUP_TITLE = (
    "Bill dimensions of "
    + ", ".join(f"<span style='color:{color}'>**{name}**</span>" for name, color in list(SPECIES_COLORS.items())[:2])
    + f" and <span style='color:{SPECIES_COLORS['Gentoo']}'>**Gentoo**</span> penguins"
)
CAPTION = "Data: Palmer Station LTER / palmerpenguins"

Step = Union[Plot, PanelComposition]


@dataclass(frozen=True)
class WalkthroughStep:
    name: str
    obj: Step
    width_in: float = 7.0
    height_in: float = 5.0


def load_penguins(path: str | Path) -> Dataset:
    frame = pd.read_csv(path, na_values=["NA", ""])
    missing = [name for name in REQUIRED_COLUMNS if name not in frame.columns]
    if missing:
        raise PlotDataError(f"{path}: missing column(s) {', '.join(missing)}")
    LOGGER.info("loaded %d penguins from %s", len(frame), path)
    return Dataset.from_frame(frame, name="penguins")


def scatter_base(data: Dataset, *, config: PlotConfig = DEFAULT_CONFIG) -> Plot:
    return (
        chart(data, {"x": "bill_length_mm", "y": "bill_depth_mm", "color": "species"}, config=config)
        + geom_point(size=2.0, alpha=0.8)
        + labs(x="Bill length (mm)", y="Bill depth (mm)", color="Species", caption=CAPTION)
    )


def with_markup_title(plot: Plot) -> Plot:
    """Colour-coded species names in the title replace the legend."""

    return plot + labs(title=MARKUP_TITLE) + theme(legend_position="none", plot_title=element_text(size=14.0))


def with_ellipses(plot: Plot) -> Plot:
    return plot + mark_ellipse({"fill": "species", "label": "species"}, alpha=0.15, expand=0.5)


def with_hulls(plot: Plot) -> Plot:
    return plot + mark_hull({"fill": "species", "label": "species"}, alpha=0.15, expand=0.5)


def with_rects(plot: Plot) -> Plot:
    return plot + mark_rect({"fill": "species", "label": "species"}, alpha=0.1)


def with_annotation(plot: Plot, data: Dataset) -> Plot:
    """Label the single longest bill with a rich-text box."""

    lengths = data.numeric("bill_length_mm")
    if not len(lengths) or pd.isna(lengths).all():
        return plot
    row = data.records()[int(pd.Series(lengths).idxmax())]
    note = Dataset.from_records(
        [
            {
                "x": row["bill_length_mm"],
                "y": row["bill_depth_mm"],
                "label": f"The longest bill:<br>**{row['bill_length_mm']:.1f} mm**, a *{row['species']}*",
            }
        ]
    )
    return plot + geom_richtext(
        {"x": "x", "y": "y", "label": "label"},
        data=note,
        inherit_mapping=False,
        hjust=1.0,
        vjust=0.0,
        color="#1f1f1f",
        label_fill="white",
        size=9.0,
    )


def distribution_plot(data: Dataset, *, config: PlotConfig = DEFAULT_CONFIG) -> Plot:
    """Bill length per species with median-to-max ranges and summary labels.

    The y limits stop at 60 mm so the labels above the longest bills overflow
    the panel; clip is off and the plot margin keeps them visible.
    """

    summary = group_summary(data, "bill_length_mm", "species")
    frame = summary.to_frame()
    frame["label"] = [
        f"median **{median:.1f}**<br>max {top:.1f} (n = {n})"
        for median, top, n in zip(frame["median"], frame["max"], frame["n"])
    ]
    labels = Dataset.from_frame(frame, name="bill_length_summary")
    return (
        chart(data, {"x": "species", "y": "bill_length_mm", "color": "species"}, config=config)
        + geom_point(alpha=0.35, size=1.5)
        + geom_linerange({"x": "species", "ymin": "median", "ymax": "max", "color": "species"}, data=labels, inherit_mapping=False, linewidth=2.0)
        + geom_richtext(
            {"x": "species", "y": "max", "label": "label", "color": "species"},
            data=labels,
            inherit_mapping=False,
            vjust=0.0,
            size=8.0,
        )
        + scale_y_continuous(limits=(30.0, 60.0))
        + coord_cartesian(clip="off")
        + labs(x="", y="Bill length (mm)", title="Bill length by species")
        + theme(legend_position="none", plot_margin=30.0)
    )


def two_panel(scatter: Plot, distribution: Plot) -> PanelComposition:
    return compose_column(
        scatter,
        distribution,
        heights=[1.0, 0.65],
        tag_levels="A",
        title="Palmer penguins",
        caption=CAPTION,
    )


def build_walkthrough(data: Dataset, *, config: PlotConfig = DEFAULT_CONFIG) -> list[WalkthroughStep]:
    base = scatter_base(data, config=config)
    titled = with_markup_title(base)
    distribution = distribution_plot(data, config=config)
    return [
        WalkthroughStep("01_scatter", base),
        WalkthroughStep("02_markup_title", titled),
        WalkthroughStep("03_ellipses", with_ellipses(titled)),
        WalkthroughStep("04_hulls", with_hulls(titled)),
        WalkthroughStep("05_rects", with_rects(titled)),
        WalkthroughStep("06_annotation", with_annotation(with_ellipses(titled), data)),
        WalkthroughStep("07_distribution", distribution),
        WalkthroughStep("08_panels", two_panel(with_ellipses(titled), distribution), width_in=7.0, height_in=8.25),
    ]


def render_walkthrough(
    data: Dataset,
    out_dir: str | Path,
    *,
    dpi: float = 150,
    format: str = "png",
    config: PlotConfig = DEFAULT_CONFIG,
) -> list[Path]:
    root = Path(out_dir)
    root.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for step in build_walkthrough(data, config=config):
        path = save(step.obj, root / f"{step.name}.{format}", step.width_in, step.height_in, dpi=dpi, format=format)
        written.append(path)
    return written
