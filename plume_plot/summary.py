from __future__ import annotations

import pandas as pd

from plume_plot.dataset import Dataset
from plume_plot.errors import PlotDataError


def group_summary(dataset: Dataset, value: str, by: str) -> Dataset:
    """Median, max and count of `value` per level of `by`, missing values excluded."""

    for name in (value, by):
        if name not in dataset.columns:
            raise PlotDataError(f"column not found: {name}")
    frame = pd.DataFrame({by: dataset.values(by).tolist(), value: dataset.numeric(value)})
    frame = frame.dropna(subset=[by, value])
    summary = (
        frame.groupby(by, sort=True)[value]
        .agg(median="median", max="max", n="count")
        .reset_index()
    )
    summary["n"] = summary["n"].astype(int)
    return Dataset.from_frame(summary, name=f"{value}_by_{by}")
