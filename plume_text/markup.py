"""Inline markup for plot titles and labels.

Supported subset::

    **bold**  *italic*  <b>..</b>  <strong>..</strong>  <i>..</i>  <em>..</em>
    <span style='color:#1b9e77; font-size:14pt; font-family:Mono'>..</span>
    <img src='logo.png' width='40'/>  <br>

Anything the parser cannot make sense of is kept as literal text and reported
with `MarkupParseWarning`; parsing itself never fails.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Literal
import warnings

from matplotlib.colors import is_color_like


SpanKind = Literal["plain", "bold", "italic", "colored", "sized", "family", "image", "linebreak"]
CONTAINER_KINDS = frozenset({"bold", "italic", "colored", "sized", "family"})

_TAG = re.compile(r"<(/?)([A-Za-z][A-Za-z0-9]*)((?:[^<>\"']|\"[^\"]*\"|'[^']*')*?)\s*(/?)>")
_LOOSE_TAG = re.compile(r"</?[A-Za-z][A-Za-z0-9]*[^<>]*>")
_ATTR = re.compile(r"\s*([A-Za-z_][\w-]*)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")
_SIZE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(pt|px)?\s*$")
_BOLD_TAGS = frozenset({"b", "strong"})
_ITALIC_TAGS = frozenset({"i", "em"})
_VOID_TAGS = frozenset({"img", "br"})
PT_PER_PX = 0.75
_MAX_DEPTH = 64


class MarkupParseWarning(UserWarning):
    """Malformed inline markup rendered as literal text."""


@dataclass(frozen=True)
class MarkupSpan:
    kind: SpanKind
    text: str = ""
    children: tuple["MarkupSpan", ...] = ()
    color: str | None = None
    size_pt: float | None = None
    family: str | None = None
    src: str | None = None
    width_px: float | None = None
    height_px: float | None = None
    raw: str = ""

    @property
    def plain_text(self) -> str:
        if self.kind == "plain":
            return self.text
        if self.kind == "linebreak":
            return "\n"
        if self.kind == "image":
            return ""
        return "".join(child.plain_text for child in self.children)


def plain(text: str) -> MarkupSpan:
    return MarkupSpan(kind="plain", text=text)


def plain_text(spans: tuple[MarkupSpan, ...] | list[MarkupSpan]) -> str:
    return "".join(span.plain_text for span in spans)


def parse_markup(source: str) -> tuple[MarkupSpan, ...]:
    if not source:
        return ()
    parser = _Parser(source)
    return parser.parse()


class _Parser:
    def __init__(self, source: str) -> None:
        self.src = source
        self.pos = 0
        self.depth = 0
        # offsets of openers that never closed
        self._unclosed: set[int] = set()

    def parse(self) -> tuple[MarkupSpan, ...]:
        return tuple(_merge_plain(self._sequence(stop=None)))

    def _sequence(self, stop: str | None) -> list[MarkupSpan]:
        out: list[MarkupSpan] = []
        buf: list[str] = []

        def flush() -> None:
            if buf:
                out.append(plain("".join(buf)))
                buf.clear()

        while self.pos < len(self.src):
            if stop is not None and self._at_stop(stop):
                break
            ch = self.src[self.pos]
            if ch == "\\" and self.pos + 1 < len(self.src) and self.src[self.pos + 1] in "*<\\":
                buf.append(self.src[self.pos + 1])
                self.pos += 2
                continue
            if ch == "*":
                flush()
                out.extend(self._emphasis())
                continue
            if ch == "<":
                flush()
                spans = self._tag()
                if spans is None:
                    buf.append("<")
                    self.pos += 1
                    continue
                out.extend(spans)
                continue
            buf.append(ch)
            self.pos += 1
        flush()
        return out

    def _at_stop(self, stop: str) -> bool:
        if self.src[self.pos : self.pos + len(stop)].lower() != stop:
            return False
        if stop == "*" and self.src.startswith("**", self.pos):
            # `**` inside italics opens bold unless it cannot close
            return self.src.find("**", self.pos + 2) < 0
        return True

    def _emphasis(self) -> list[MarkupSpan]:
        delim = "**" if self.src.startswith("**", self.pos) else "*"
        kind: SpanKind = "bold" if delim == "**" else "italic"
        start = self.pos
        self.pos += len(delim)
        if start in self._unclosed:
            return [plain(delim)]
        if self.depth >= _MAX_DEPTH:
            self._warn(f"`{delim}` nested deeper than {_MAX_DEPTH} at offset {start}")
            return [plain(delim)]
        self.depth += 1
        children = self._sequence(stop=delim)
        self.depth -= 1
        if self.src.startswith(delim, self.pos) and children:
            self.pos += len(delim)
            return [MarkupSpan(kind=kind, children=tuple(_merge_plain(children)))]
        self._unclosed.add(start)
        self._warn(f"unclosed `{delim}` at offset {start}")
        self.pos = start + len(delim)
        return [plain(delim)]

    def _tag(self) -> list[MarkupSpan] | None:
        """Parse a tag at the cursor; None means `<` is ordinary text."""

        start = self.pos
        match = _TAG.match(self.src, self.pos)
        if match is None:
            loose = _LOOSE_TAG.match(self.src, self.pos)
            if loose is None:
                return None
            return self._literal(start, loose.end(), "malformed tag")
        closing, name, attr_text, self_closing = match.group(1), match.group(2).lower(), match.group(3), match.group(4)
        if closing:
            return self._literal(start, match.end(), f"unmatched closing tag `</{name}>`")
        attrs = _parse_attrs(attr_text)
        if attrs is None:
            return self._literal(start, match.end(), f"malformed attributes in `<{name}>`")

        if name in _VOID_TAGS:
            self.pos = match.end()
            if name == "br":
                return [MarkupSpan(kind="linebreak", raw=match.group(0))]
            return self._image(start, match.end(), attrs)

        if self_closing:
            return self._literal(start, match.end(), f"unexpected self-closing `<{name}/>`")

        if name in _BOLD_TAGS or name in _ITALIC_TAGS:
            wrap = [_Wrap(kind="bold" if name in _BOLD_TAGS else "italic")]
        elif name == "span":
            wrap = _span_wraps(attrs.get("style", ""))
            if wrap is None:
                return self._literal(start, match.end(), "malformed style attribute")
        else:
            return self._literal(start, match.end(), f"unknown tag `<{name}>`")

        closer = f"</{name}>"
        self.pos = match.end()
        if start in self._unclosed:
            return [plain(match.group(0))]
        if self.depth >= _MAX_DEPTH:
            return self._literal(start, match.end(), f"`<{name}>` nested deeper than {_MAX_DEPTH}")
        self.depth += 1
        children = self._sequence(stop=closer)
        self.depth -= 1
        if not self.src.lower().startswith(closer, self.pos):
            self._unclosed.add(start)
            return self._literal(start, match.end(), f"unclosed `<{name}>`")
        self.pos += len(closer)
        node = _merge_plain(children)
        for item in reversed(wrap):
            node = [MarkupSpan(kind=item.kind, children=tuple(node), color=item.color, size_pt=item.size_pt, family=item.family)]
        return node

    def _image(self, start: int, end: int, attrs: dict[str, str]) -> list[MarkupSpan]:
        raw = self.src[start:end]
        src = attrs.get("src", "").strip()
        if not src:
            return self._literal(start, end, "`<img>` without src")
        width = _parse_px(attrs.get("width"))
        height = _parse_px(attrs.get("height"))
        if (attrs.get("width") and width is None) or (attrs.get("height") and height is None):
            return self._literal(start, end, "invalid `<img>` size")
        return [MarkupSpan(kind="image", src=src, width_px=width, height_px=height, raw=raw)]

    def _literal(self, start: int, end: int, reason: str) -> list[MarkupSpan]:
        self._warn(f"{reason} at offset {start}")
        self.pos = end
        return [plain(self.src[start:end])]

    def _warn(self, message: str) -> None:
        warnings.warn(f"markup: {message}", MarkupParseWarning, stacklevel=4)


@dataclass(frozen=True)
class _Wrap:
    kind: SpanKind
    color: str | None = None
    size_pt: float | None = None
    family: str | None = None


def _parse_attrs(text: str) -> dict[str, str] | None:
    attrs: dict[str, str] = {}
    pos = 0
    while pos < len(text):
        if text[pos:].strip() == "":
            break
        match = _ATTR.match(text, pos)
        if match is None:
            return None
        value = match.group(2) if match.group(2) is not None else match.group(3)
        attrs[match.group(1).lower()] = value
        pos = match.end()
    return attrs


def _span_wraps(style: str) -> list[_Wrap] | None:
    """Outermost first: colour, then size, then family."""

    color: str | None = None
    size_pt: float | None = None
    family: str | None = None
    for decl in style.split(";"):
        if not decl.strip():
            continue
        if ":" not in decl:
            return None
        prop, value = (part.strip() for part in decl.split(":", 1))
        prop = prop.lower()
        if prop == "color":
            if not is_color_like(value):
                return None
            color = value
        elif prop == "font-size":
            size_pt = _parse_pt(value)
            if size_pt is None:
                return None
        elif prop == "font-family":
            family = value.strip("\"'")
            if not family:
                return None
        else:
            warnings.warn(f"markup: ignoring unsupported style property `{prop}`", MarkupParseWarning, stacklevel=5)
    wraps: list[_Wrap] = []
    if color is not None:
        wraps.append(_Wrap(kind="colored", color=color))
    if size_pt is not None:
        wraps.append(_Wrap(kind="sized", size_pt=size_pt))
    if family is not None:
        wraps.append(_Wrap(kind="family", family=family))
    return wraps


def _parse_pt(value: str) -> float | None:
    match = _SIZE.match(value)
    if match is None:
        return None
    size = float(match.group(1))
    if size <= 0:
        return None
    return size * PT_PER_PX if match.group(2) == "px" else size


def _parse_px(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    match = _SIZE.match(value)
    if match is None or float(match.group(1)) <= 0:
        return None
    size = float(match.group(1))
    return size / PT_PER_PX if match.group(2) == "pt" else size


def _merge_plain(spans: list[MarkupSpan]) -> list[MarkupSpan]:
    out: list[MarkupSpan] = []
    for span in spans:
        if span.kind == "plain" and not span.text:
            continue
        if span.kind == "plain" and out and out[-1].kind == "plain":
            out[-1] = plain(out[-1].text + span.text)
            continue
        out.append(span)
    return out
