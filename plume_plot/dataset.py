from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import numpy as np
import pandas as pd

from plume_plot.errors import PlotDataError


Record = Mapping[str, Any]


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # array-likes are never a single missing scalar
        return False


@dataclass(frozen=True, eq=False)
class Dataset:
    """Ordered records stored column-wise.

    A column that some records lack is kept but flagged as partial; layers that
    reference it fail to build.
    """

    _columns: Mapping[str, np.ndarray]
    _present: Mapping[str, np.ndarray]
    _length: int
    name: str | None = None
    _order: tuple[str, ...] = field(default=())

    @classmethod
    def from_records(cls, records: Iterable[Record], *, name: str | None = None) -> "Dataset":
        rows = [dict(r) for r in records]
        order: list[str] = []
        for row in rows:
            for key in row:
                if key not in order:
                    order.append(key)
        columns: dict[str, np.ndarray] = {}
        present: dict[str, np.ndarray] = {}
        for key in order:
            values = np.empty(len(rows), dtype=object)
            has = np.zeros(len(rows), dtype=bool)
            for i, row in enumerate(rows):
                if key in row:
                    values[i] = _normalize_scalar(row[key])
                    has[i] = True
                else:
                    values[i] = None
            columns[key] = values
            present[key] = has
        return cls(_columns=columns, _present=present, _length=len(rows), name=name, _order=tuple(order))

    @classmethod
    def from_columns(cls, columns: Mapping[str, Sequence[Any]], *, name: str | None = None) -> "Dataset":
        lengths = {len(v) for v in columns.values()}
        if len(lengths) > 1:
            raise PlotDataError(f"column length mismatch: {sorted(lengths)}")
        length = lengths.pop() if lengths else 0
        out: dict[str, np.ndarray] = {}
        for key, values in columns.items():
            arr = np.empty(length, dtype=object)
            for i, raw in enumerate(values):
                arr[i] = _normalize_scalar(raw)
            out[str(key)] = arr
        present = {key: np.ones(length, dtype=bool) for key in out}
        return cls(_columns=out, _present=present, _length=length, name=name, _order=tuple(out))

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, *, name: str | None = None) -> "Dataset":
        if not isinstance(frame, pd.DataFrame):
            raise PlotDataError("`frame` must be a pandas DataFrame")
        return cls.from_columns({str(c): frame[c].tolist() for c in frame.columns}, name=name)

    @property
    def columns(self) -> tuple[str, ...]:
        return self._order

    def __len__(self) -> int:
        return self._length

    def has_column(self, name: str) -> bool:
        """True when every record carries `name` (possibly as a missing value)."""

        present = self._present.get(name)
        return present is not None and bool(np.all(present))

    def absent_count(self, name: str) -> int:
        present = self._present.get(name)
        if present is None:
            return self._length
        return int(np.count_nonzero(~present))

    def values(self, name: str) -> np.ndarray:
        if name not in self._columns:
            raise PlotDataError(f"column not found: {name}")
        return self._columns[name]

    def numeric(self, name: str) -> np.ndarray:
        return coerce_numeric(self.values(name))

    def missing_mask(self, name: str) -> np.ndarray:
        return np.asarray([is_missing(v) for v in self.values(name).tolist()], dtype=bool)

    def take(self, selector: np.ndarray | Sequence[int]) -> "Dataset":
        idx = np.asarray(selector)
        if idx.dtype == bool:
            if idx.shape != (self._length,):
                raise PlotDataError("boolean selector must match dataset length")
            idx = np.flatnonzero(idx)
        columns = {k: v[idx] for k, v in self._columns.items()}
        present = {k: v[idx] for k, v in self._present.items()}
        return Dataset(_columns=columns, _present=present, _length=int(idx.size), name=self.name, _order=self._order)

    def filter(self, predicate: Callable[[dict[str, Any]], bool]) -> "Dataset":
        keep = np.asarray([bool(predicate(row)) for row in self.records()], dtype=bool)
        if self._length == 0:
            return self
        return self.take(keep)

    def records(self) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for i in range(self._length):
            row = {k: self._columns[k][i] for k in self._order if self._present[k][i]}
            out.append(row)
        return out

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({k: self._columns[k].tolist() for k in self._order})


def coerce_numeric(values: np.ndarray) -> np.ndarray:
    if values.dtype.kind in {"i", "u", "f", "b"}:
        return values.astype(np.float64, copy=False)
    out = np.empty(values.shape[0], dtype=np.float64)
    for i, raw in enumerate(values.tolist()):
        if is_missing(raw) or isinstance(raw, (str, bytes)):
            out[i] = np.nan
            continue
        try:
            out[i] = float(raw)
        except (TypeError, ValueError):
            out[i] = np.nan
    return out


def is_numeric_column(values: np.ndarray) -> bool:
    """True when every non-missing value is a real number (bools count as categorical)."""

    seen = False
    for raw in values.tolist():
        if is_missing(raw):
            continue
        if isinstance(raw, bool) or not isinstance(raw, (int, float, Decimal, np.integer, np.floating)):
            return False
        seen = True
    return seen


def _normalize_scalar(raw: Any) -> Any:
    if isinstance(raw, np.generic):
        raw = raw.item()
    if isinstance(raw, Decimal):
        return float(raw)
    if is_missing(raw):
        return None
    return raw


def level_sort_key(value: Any) -> tuple[int, Any]:
    """Order categorical levels: numbers, then strings, missing last."""

    if is_missing(value):
        return (3, "")
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (1, float(value))
    return (2, str(value))


def sorted_levels(values: Iterable[Any]) -> tuple[Any, ...]:
    unique: dict[Any, None] = {}
    for value in values:
        if not is_missing(value):
            unique.setdefault(value, None)
    return tuple(sorted(unique, key=level_sort_key))
