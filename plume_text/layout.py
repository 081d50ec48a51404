from __future__ import annotations

from dataclasses import dataclass, replace
import re
from typing import Literal, Protocol, Sequence
import warnings

from .markup import MarkupParseWarning, MarkupSpan


FontSlant = Literal["regular", "italic"]
RunKind = Literal["text", "image"]

_WORDS = re.compile(r"\s+|\S+")


@dataclass(frozen=True)
class FontSpec:
    """Resolved font for one text run."""

    family: str = "DejaVu Sans"
    size_pt: float = 11.0
    bold: bool = False
    slant: FontSlant = "regular"

    def __post_init__(self) -> None:
        if not self.family.strip():
            raise ValueError("FontSpec requires a non-empty `family`")
        if self.size_pt <= 0:
            raise ValueError("FontSpec `size_pt` must be > 0")

    @property
    def italic(self) -> bool:
        return self.slant == "italic"


@dataclass(frozen=True)
class RunStyle:
    font: FontSpec = FontSpec()
    color: str | None = None


class TextMeasurer(Protocol):
    """Backend contract used by layout; sizes are in pixels."""

    def measure(self, text: str, font: FontSpec) -> tuple[float, float]:
        ...

    def line_height(self, font: FontSpec) -> float:
        ...

    def image_size(self, src: str, width_px: float | None, height_px: float | None) -> tuple[float, float] | None:
        ...


@dataclass(frozen=True)
class LaidOutRun:
    kind: RunKind
    x: float
    y: float
    width: float
    height: float
    line: int
    style: RunStyle
    text: str = ""
    src: str | None = None


@dataclass(frozen=True)
class MarkupLayout:
    runs: tuple[LaidOutRun, ...]
    width: float
    height: float
    line_count: int

    @property
    def text(self) -> str:
        parts: list[str] = []
        line = 0
        for run in self.runs:
            if run.line != line:
                parts.append("\n" * (run.line - line))
                line = run.line
            parts.append(run.text)
        return "".join(parts)


@dataclass(frozen=True)
class _Atom:
    kind: Literal["word", "space", "image", "break"]
    style: RunStyle
    text: str = ""
    src: str | None = None
    width: float = 0.0
    height: float = 0.0


def layout_markup(
    spans: Sequence[MarkupSpan],
    measurer: TextMeasurer,
    *,
    base: RunStyle = RunStyle(),
    max_width_px: float | None = None,
    line_spacing: float = 1.2,
) -> MarkupLayout:
    """Lay spans out left to right, wrapping at word boundaries past `max_width_px`.

    An unbounded width never wraps; explicit `<br>` always breaks.
    """

    if max_width_px is not None and max_width_px <= 0:
        raise ValueError("max_width_px must be > 0")
    atoms: list[_Atom] = []
    for span in spans:
        _flatten(span, base, measurer, atoms)

    lines: list[list[_Atom]] = [[]]
    line_w = 0.0
    for atom in atoms:
        if atom.kind == "break":
            lines.append([])
            line_w = 0.0
            continue
        current = lines[-1]
        if atom.kind == "space":
            if not current:
                continue
            current.append(atom)
            line_w += atom.width
            continue
        if max_width_px is not None and current and line_w + atom.width > max_width_px:
            while current and current[-1].kind == "space":
                line_w -= current.pop().width
            lines.append([])
            current = lines[-1]
            line_w = 0.0
        current.append(atom)
        line_w += atom.width

    runs: list[LaidOutRun] = []
    y = 0.0
    max_w = 0.0
    base_line_h = measurer.line_height(base.font)
    for index, line in enumerate(lines):
        while line and line[-1].kind == "space":
            line.pop()
        line_h = max([a.height for a in line] + [base_line_h])
        x = 0.0
        for run in _merge_runs(line):
            runs.append(
                LaidOutRun(
                    kind="image" if run.kind == "image" else "text",
                    x=x,
                    y=y + (line_h - run.height),
                    width=run.width,
                    height=run.height,
                    line=index,
                    style=run.style,
                    text=run.text,
                    src=run.src,
                )
            )
            x += run.width
        max_w = max(max_w, x)
        y += line_h if index == len(lines) - 1 else line_h * line_spacing
    return MarkupLayout(runs=tuple(runs), width=max_w, height=y, line_count=len(lines))


def _flatten(span: MarkupSpan, style: RunStyle, measurer: TextMeasurer, out: list[_Atom]) -> None:
    if span.kind == "plain":
        for token in _WORDS.findall(span.text):
            kind: Literal["word", "space"] = "space" if token.isspace() else "word"
            text = " " if kind == "space" else token
            w, h = measurer.measure(text, style.font)
            out.append(_Atom(kind=kind, style=style, text=text, width=w, height=h))
        return
    if span.kind == "linebreak":
        out.append(_Atom(kind="break", style=style))
        return
    if span.kind == "image":
        size = measurer.image_size(span.src or "", span.width_px, span.height_px)
        if size is None:
            warnings.warn(f"markup: image `{span.src}` could not be loaded; drawing tag text", MarkupParseWarning, stacklevel=3)
            _flatten(MarkupSpan(kind="plain", text=span.raw or f"<img src='{span.src}'>"), style, measurer, out)
            return
        out.append(_Atom(kind="image", style=style, src=span.src, width=size[0], height=size[1]))
        return
    child_style = _apply(span, style)
    for child in span.children:
        _flatten(child, child_style, measurer, out)


def _apply(span: MarkupSpan, style: RunStyle) -> RunStyle:
    if span.kind == "bold":
        return replace(style, font=replace(style.font, bold=True))
    if span.kind == "italic":
        return replace(style, font=replace(style.font, slant="italic"))
    if span.kind == "colored":
        return replace(style, color=span.color)
    if span.kind == "sized" and span.size_pt is not None:
        return replace(style, font=replace(style.font, size_pt=span.size_pt))
    if span.kind == "family" and span.family:
        return replace(style, font=replace(style.font, family=span.family))
    return style


def _merge_runs(line: list[_Atom]) -> list[_Atom]:
    merged: list[_Atom] = []
    for atom in line:
        prev = merged[-1] if merged else None
        if prev is not None and atom.kind != "image" and prev.kind != "image" and prev.style == atom.style:
            merged[-1] = replace(
                prev,
                kind="word",
                text=prev.text + atom.text,
                width=prev.width + atom.width,
                height=max(prev.height, atom.height),
            )
            continue
        merged.append(atom)
    return merged
