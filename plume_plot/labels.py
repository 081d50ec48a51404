from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping


@dataclass(frozen=True)
class Labels:
    """Plot text; each value may contain markup. None keeps the default."""

    title: str | None = None
    subtitle: str | None = None
    caption: str | None = None
    tag: str | None = None
    x: str | None = None
    y: str | None = None
    color: str | None = None
    fill: str | None = None

    def merge(self, other: "Labels") -> "Labels":
        updates = {f.name: getattr(other, f.name) for f in fields(other) if getattr(other, f.name) is not None}
        return replace(self, **updates)

    def get(self, name: str) -> str | None:
        return getattr(self, name)


LABEL_NAMES = tuple(f.name for f in fields(Labels))


def labs(mapping: Mapping[str, Any] | None = None, **labels: Any) -> Labels:
    values = dict(mapping or {})
    values.update(labels)
    if "colour" in values:
        values["color"] = values.pop("colour")
    unknown = sorted(set(values) - set(LABEL_NAMES))
    if unknown:
        raise ValueError(f"unknown label(s): {', '.join(unknown)}")
    return Labels(**{k: None if v is None else str(v) for k, v in values.items()})
