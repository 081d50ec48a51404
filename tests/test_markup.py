from __future__ import annotations

from pathlib import Path
import tempfile
import time
import unittest
import warnings

import numpy as np
from PIL import Image

from plume_text import FontSpec, MarkupParseWarning, RunStyle, layout_markup, parse_markup, plain_text
from plume_text.markup import MarkupSpan, plain


class FixedWidthMeasurer:
    """Every character is 10 px wide (bold 12 px); lines are 20 px high."""

    def measure(self, text: str, font: FontSpec) -> tuple[float, float]:
        return (len(text) * (12.0 if font.bold else 10.0), 20.0)

    def line_height(self, font: FontSpec) -> float:
        return 20.0

    def image_size(self, src: str, width_px: float | None, height_px: float | None) -> tuple[float, float] | None:
        if src == "missing.png":
            return None
        return (width_px or 16.0, height_px or 16.0)


def _parse_quiet(source: str) -> tuple[MarkupSpan, ...]:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MarkupParseWarning)
        return parse_markup(source)


class MarkupParseTests(unittest.TestCase):
    def test_bold_then_plain(self) -> None:
        spans = parse_markup("**Bold** and plain")
        self.assertEqual(spans, (MarkupSpan(kind="bold", children=(plain("Bold"),)), plain(" and plain")))

    def test_single_star_is_italic(self) -> None:
        spans = parse_markup("an *italic* word")
        self.assertEqual([s.kind for s in spans], ["plain", "italic", "plain"])
        self.assertEqual(spans[1].plain_text, "italic")

    def test_bold_and_italic_round_trip_to_stripped_text(self) -> None:
        for source, expected in (
            ("**a** *b* <b>c</b> <i>d</i>", "a b c d"),
            ("<strong>x</strong><em>y</em>", "xy"),
            ("*nested **bold** inside*", "nested bold inside"),
        ):
            with self.subTest(source=source):
                self.assertEqual(plain_text(parse_markup(source)), expected)

    def test_span_style_builds_color_size_and_family_wrappers(self) -> None:
        spans = parse_markup("<span style='color:#1b9e77; font-size:14pt; font-family:Mono'>x</span>")
        self.assertEqual(len(spans), 1)
        colored = spans[0]
        self.assertEqual(colored.kind, "colored")
        self.assertEqual(colored.color, "#1b9e77")
        sized = colored.children[0]
        self.assertEqual((sized.kind, sized.size_pt), ("sized", 14.0))
        family = sized.children[0]
        self.assertEqual((family.kind, family.family), ("family", "Mono"))
        self.assertEqual(plain_text(spans), "x")

    def test_px_font_size_converts_to_points(self) -> None:
        spans = parse_markup("<span style='font-size:16px'>x</span>")
        self.assertAlmostEqual(spans[0].size_pt, 12.0)

    def test_img_and_br(self) -> None:
        spans = parse_markup("logo <img src='logo.png' width='40'/><br>next")
        kinds = [s.kind for s in spans]
        self.assertEqual(kinds, ["plain", "image", "linebreak", "plain"])
        self.assertEqual(spans[1].src, "logo.png")
        self.assertEqual(spans[1].width_px, 40.0)
        self.assertEqual(plain_text(spans), "logo \nnext")

    def test_tags_are_case_insensitive(self) -> None:
        spans = parse_markup("<B>x</B>")
        self.assertEqual(spans[0].kind, "bold")

    def test_escaped_star_is_literal(self) -> None:
        self.assertEqual(plain_text(parse_markup(r"2 \* 3")), "2 * 3")

    def test_empty_source(self) -> None:
        self.assertEqual(parse_markup(""), ())


class MarkupFallbackTests(unittest.TestCase):
    def test_unclosed_bold_is_literal_and_warns(self) -> None:
        with self.assertWarns(MarkupParseWarning):
            spans = parse_markup("**open")
        self.assertEqual(plain_text(spans), "**open")

    def test_unknown_tag_is_literal(self) -> None:
        with self.assertWarns(MarkupParseWarning):
            spans = parse_markup("<blink>x</blink>")
        self.assertEqual(plain_text(spans), "<blink>x</blink>")

    def test_missing_closing_quote_renders_literally(self) -> None:
        source = "<span style='color:red>text</span>"
        spans = _parse_quiet(source)
        self.assertEqual(plain_text(spans), source)

    def test_malformed_style_is_literal(self) -> None:
        with self.assertWarns(MarkupParseWarning):
            spans = parse_markup("<span style='color:notacolor'>x</span>")
        self.assertIn("<span", plain_text(spans))

    def test_unclosed_span_keeps_content(self) -> None:
        spans = _parse_quiet("<b>never closed")
        self.assertEqual(plain_text(spans), "<b>never closed")

    def test_many_unclosed_openers_parse_quickly_as_literal(self) -> None:
        for source in ("<b>" * 200, "**" + "<i>" * 200, "<b><i>" * 100):
            started = time.perf_counter()
            spans = _parse_quiet(source)
            self.assertLess(time.perf_counter() - started, 2.0)
            self.assertEqual(plain_text(spans), source)
            self.assertEqual(spans, (plain(source),))

    def test_deep_nesting_is_capped_without_failing(self) -> None:
        source = "<b>" * 500 + "x" + "</b>" * 500
        spans = _parse_quiet(source)
        self.assertEqual(plain_text(spans).count("x"), 1)
        self.assertEqual(spans[0].kind, "bold")

    def test_closed_tag_after_unclosed_one_still_nests(self) -> None:
        spans = _parse_quiet("<b><i>x</i>")
        self.assertEqual(spans, (plain("<b>"), MarkupSpan(kind="italic", children=(plain("x"),))))

    def test_stray_less_than_is_text(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error", MarkupParseWarning)
            spans = parse_markup("a < b")
        self.assertEqual(plain_text(spans), "a < b")


class MarkupLayoutTests(unittest.TestCase):
    def setUp(self) -> None:
        self.measurer = FixedWidthMeasurer()

    def test_unbounded_width_never_wraps(self) -> None:
        layout = layout_markup(parse_markup("one two three four five"), self.measurer)
        self.assertEqual(layout.line_count, 1)
        self.assertEqual(layout.width, 230.0)
        self.assertEqual(layout.height, 20.0)

    def test_wraps_at_word_boundaries(self) -> None:
        layout = layout_markup(parse_markup("one two three four"), self.measurer, max_width_px=80.0)
        self.assertEqual(layout.text, "one two\nthree\nfour")
        self.assertEqual(layout.line_count, 3)
        self.assertLessEqual(layout.width, 80.0)

    def test_overlong_word_gets_its_own_line(self) -> None:
        layout = layout_markup(parse_markup("a extraordinarily b"), self.measurer, max_width_px=50.0)
        self.assertEqual(layout.text, "a\nextraordinarily\nb")

    def test_linebreak_always_breaks(self) -> None:
        layout = layout_markup(parse_markup("a<br>b"), self.measurer)
        self.assertEqual(layout.line_count, 2)
        self.assertEqual(layout.height, 20.0 * 1.2 + 20.0)

    def test_bold_runs_use_bold_font(self) -> None:
        layout = layout_markup(parse_markup("**ab** cd"), self.measurer)
        self.assertEqual([r.text for r in layout.runs], ["ab", " cd"])
        self.assertTrue(layout.runs[0].style.font.bold)
        self.assertEqual(layout.runs[0].width, 24.0)
        self.assertEqual(layout.runs[1].x, 24.0)

    def test_colored_run_carries_color(self) -> None:
        layout = layout_markup(parse_markup("<span style='color:red'>x</span>"), self.measurer)
        self.assertEqual(layout.runs[0].style.color, "red")

    def test_sized_span_overrides_base_size(self) -> None:
        base = RunStyle(font=FontSpec(size_pt=11.0))
        layout = layout_markup(parse_markup("<span style='font-size:20pt'>x</span>"), self.measurer, base=base)
        self.assertEqual(layout.runs[0].style.font.size_pt, 20.0)

    def test_image_run_uses_requested_width(self) -> None:
        layout = layout_markup(parse_markup("<img src='logo.png' width='40'>"), self.measurer)
        self.assertEqual(layout.runs[0].kind, "image")
        self.assertEqual(layout.runs[0].width, 40.0)

    def test_unreadable_image_falls_back_to_tag_text(self) -> None:
        with self.assertWarns(MarkupParseWarning):
            layout = layout_markup(parse_markup("<img src='missing.png'>"), self.measurer)
        self.assertEqual(layout.text, "<img src='missing.png'>")

    def test_rejects_non_positive_width(self) -> None:
        with self.assertRaises(ValueError):
            layout_markup(parse_markup("x"), self.measurer, max_width_px=0.0)


class RasterMarkupTests(unittest.TestCase):
    def test_raster_measurer_sizes_real_images(self) -> None:
        from plume_plot.raster import RasterTextMeasurer

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "logo.png"
            Image.fromarray(np.full((10, 20, 4), 200, dtype=np.uint8)).save(path)
            size = RasterTextMeasurer(px_per_pt=2.0).image_size(str(path), 40.0, None)
            print_size = RasterTextMeasurer(px_per_pt=300 / 72).image_size(str(path), 40.0, None)
        # 40 css px is 30 pt
        self.assertEqual(size, (60.0, 30.0))
        self.assertEqual(print_size, (125.0, 62.0))

    def test_raster_measurer_scales_text_with_px_per_pt(self) -> None:
        from plume_plot.raster import RasterTextMeasurer

        font = FontSpec(size_pt=12.0)
        w1, h1 = RasterTextMeasurer(px_per_pt=1.0).measure("Penguins", font)
        w2, h2 = RasterTextMeasurer(px_per_pt=2.0).measure("Penguins", font)
        self.assertGreater(w2, w1)
        self.assertGreater(h2, h1)


if __name__ == "__main__":
    unittest.main()
