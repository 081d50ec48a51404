from __future__ import annotations

import unittest

import numpy as np

from plume_plot import (
    Dataset,
    chart,
    coord_cartesian,
    geom_point,
    labs,
    render_plot,
    scale_color_palette,
    scale_x_continuous,
)
from plume_plot.scales import expand_range, format_ticks_for_axis, generate_nice_ticks, pretty_breaks


def _xs(values: list[float]) -> Dataset:
    return Dataset.from_records([{"x": v, "y": float(i)} for i, v in enumerate(values)])


class PositionScaleTests(unittest.TestCase):
    def test_default_expansion_adds_five_percent(self) -> None:
        built = (chart(_xs([0.0, 10.0]), {"x": "x", "y": "y"}) + geom_point()).build()
        self.assertEqual(built.scales.x.domain, (-0.5, 10.5))
        self.assertEqual(built.scales.x.limits, (0.0, 10.0))

    def test_expansion_disabled_uses_data_domain_exactly(self) -> None:
        plot = chart(_xs([1.0, 2.5, 5.0]), {"x": "x", "y": "y"}) + geom_point() + coord_cartesian(expand=False)
        built = plot.build()
        self.assertEqual(built.scales.x.domain, (1.0, 5.0))
        self.assertEqual(built.scales.y.domain, (0.0, 2.0))

    def test_explicit_limits_without_expansion(self) -> None:
        plot = chart(_xs([10.0, 20.0, 30.0]), {"x": "x", "y": "y"}) + geom_point() + scale_x_continuous(limits=(0, 40), expand=False)
        built = plot.build()
        self.assertEqual(built.scales.x.domain, (0.0, 40.0))
        self.assertTrue(built.scales.x.explicit)
        self.assertEqual(built.scales.x.breaks, (0.0, 10.0, 20.0, 30.0, 40.0))

    def test_scale_expand_overrides_coord(self) -> None:
        plot = (
            chart(_xs([0.0, 10.0]), {"x": "x", "y": "y"})
            + geom_point()
            + coord_cartesian(expand=False)
            + scale_x_continuous(expand=True)
        )
        built = plot.build()
        self.assertEqual(built.scales.x.domain, (-0.5, 10.5))
        self.assertEqual(built.scales.y.domain, (0.0, 1.0))

    def test_zero_span_widens(self) -> None:
        plot = chart(_xs([3.0, 3.0]), {"x": "x", "y": "y"}) + geom_point() + coord_cartesian(expand=False)
        self.assertEqual(plot.build().scales.x.domain, (2.5, 3.5))
        self.assertEqual(expand_range(100.0, 100.0), (95.0, 105.0))

    def test_coord_limits_zoom(self) -> None:
        plot = chart(_xs([10.0, 20.0]), {"x": "x", "y": "y"}) + geom_point() + coord_cartesian(xlim=(0, 100), expand=False)
        built = plot.build()
        self.assertEqual(built.scales.x.domain, (0.0, 100.0))
        self.assertEqual(len(built.primitives), 2)

    def test_explicit_breaks_are_filtered_to_domain(self) -> None:
        plot = (
            chart(_xs([0.0, 10.0]), {"x": "x", "y": "y"})
            + geom_point()
            + scale_x_continuous(breaks=[0, 5, 50], labels=["zero", "five", "fifty"], expand=False)
        )
        x = plot.build().scales.x
        self.assertEqual(x.breaks, (0.0, 5.0))
        self.assertEqual(x.labels, ("zero", "five"))

    def test_discrete_axis_expands_by_point_six(self) -> None:
        data = Dataset.from_records([{"s": s, "y": 1.0} for s in ("b", "a", "c")])
        built = (chart(data, {"x": "s", "y": "y"}) + geom_point()).build()
        low, high = built.scales.x.domain
        self.assertAlmostEqual(low, 0.4)
        self.assertAlmostEqual(high, 3.6)
        self.assertTrue(built.scales.x.discrete)
        self.assertEqual(built.scales.x.breaks, (1.0, 2.0, 3.0))

    def test_axis_titles_default_to_column_and_yield_to_labels(self) -> None:
        plot = chart(_xs([0.0, 1.0]), {"x": "x", "y": "y"}) + geom_point()
        self.assertEqual(plot.build().scales.x.title, "x")
        self.assertEqual((plot + labs(x="Bill length")).build().scales.x.title, "Bill length")

    def test_out_of_limit_primitives_are_counted_and_logged(self) -> None:
        plot = chart(_xs([10.0, 20.0, 30.0]), {"x": "x", "y": "y"}) + geom_point() + scale_x_continuous(limits=(0, 20))
        with self.assertLogs("plume_plot.resolve", level="WARNING") as logs:
            built = plot.build()
        self.assertEqual(built.scales.out_of_bounds, 1)
        self.assertIn("clipped at the panel", logs.output[0])

    def test_building_twice_is_identical(self) -> None:
        plot = chart(_xs([3.0, 1.0, 7.5]), {"x": "x", "y": "y"}) + geom_point()
        first = plot.build()
        second = plot.build()
        self.assertEqual(first.primitives, second.primitives)
        self.assertEqual(first.scales.x.breaks, second.scales.x.breaks)
        self.assertEqual(first.scales.x.labels, second.scales.x.labels)


class BreakTests(unittest.TestCase):
    def test_pretty_breaks_use_nice_steps(self) -> None:
        self.assertEqual(pretty_breaks(0.0, 10.0).tolist(), [0.0, 2.0, 4.0, 6.0, 8.0, 10.0])

    def test_pretty_breaks_stay_inside_range(self) -> None:
        breaks = pretty_breaks(0.4, 3.6)
        self.assertGreaterEqual(breaks.min(), 0.4)
        self.assertLessEqual(breaks.max(), 3.6)

    def test_nice_ticks_snap_near_zero(self) -> None:
        ticks = generate_nice_ticks(-1.0, 1.0, 5)
        self.assertIn(0.0, ticks.tolist())

    def test_tick_formatting_uses_consistent_decimals_from_step(self) -> None:
        ticks = np.asarray([1.5, 2.0, 2.5, 3.0], dtype=np.float64)
        self.assertEqual(format_ticks_for_axis(ticks), ["1.5", "2", "2.5", "3"])

    def test_tick_formatting_preserves_integer_trailing_zeros(self) -> None:
        ticks = np.asarray([20.0, 30.0, 40.0], dtype=np.float64)
        self.assertEqual(format_ticks_for_axis(ticks), ["20", "30", "40"])


class ColorScaleTests(unittest.TestCase):
    def _species(self) -> Dataset:
        return Dataset.from_records(
            [
                {"x": 1.0, "y": 1.0, "species": "Gentoo", "mass": 5000.0},
                {"x": 2.0, "y": 2.0, "species": "Adelie", "mass": 3500.0},
                {"x": 3.0, "y": 3.0, "species": "Chinstrap", "mass": 3700.0},
                {"x": 4.0, "y": 4.0, "species": None, "mass": None},
            ]
        )

    def test_discrete_levels_are_sorted_and_use_palette(self) -> None:
        built = (chart(self._species(), {"x": "x", "y": "y", "color": "species"}) + geom_point()).build()
        scale = built.scales.colors["color"]
        self.assertEqual(scale.kind, "discrete")
        self.assertEqual(scale.levels, ("Adelie", "Chinstrap", "Gentoo"))
        self.assertEqual(scale.colors, ("darkorange", "purple", "#008B8B"))
        self.assertEqual(scale.map("Adelie"), "darkorange")
        self.assertEqual(scale.map(None), "grey50")
        self.assertEqual(scale.title, "species")

    def test_palette_direction_reverses(self) -> None:
        plot = chart(self._species(), {"x": "x", "y": "y", "color": "species"}) + geom_point() + scale_color_palette("penguins", direction=-1)
        scale = plot.build().scales.colors["color"]
        self.assertEqual(scale.map("Adelie"), "#008B8B")

    def test_numeric_values_use_continuous_colormap(self) -> None:
        built = (chart(self._species(), {"x": "x", "y": "y", "color": "mass"}) + geom_point()).build()
        scale = built.scales.colors["color"]
        self.assertEqual(scale.kind, "continuous")
        self.assertEqual(scale.palette, "viridis")
        self.assertEqual(scale.domain, (3500.0, 5000.0))
        self.assertNotEqual(scale.map(3500.0), scale.map(5000.0))

    def test_unmapped_channel_has_no_scale(self) -> None:
        built = (chart(self._species(), {"x": "x", "y": "y"}) + geom_point()).build()
        self.assertNotIn("color", built.scales.colors)
        self.assertIsNone(built.scales.size)

    def test_mapped_size_spans_size_range(self) -> None:
        built = (chart(self._species(), {"x": "x", "y": "y", "size": "mass"}) + geom_point()).build()
        size = built.scales.size
        self.assertEqual(size.map(3500.0), 1.0)
        self.assertEqual(size.map(5000.0), 6.0)

    def test_categorical_size_spreads_levels_over_size_range(self) -> None:
        built = (chart(self._species(), {"x": "x", "y": "y", "size": "species"}) + geom_point()).build()
        size = built.scales.size
        self.assertEqual(size.levels, ("Adelie", "Chinstrap", "Gentoo"))
        self.assertEqual(size.map("Adelie"), 1.0)
        self.assertEqual(size.map("Chinstrap"), 3.5)
        self.assertEqual(size.map("Gentoo"), 6.0)
        self.assertEqual(size.map(None), 1.0)

    def test_categorical_size_renders(self) -> None:
        data = Dataset.from_records([{"x": 1.0, "y": 1.0, "s": "a"}, {"x": 2.0, "y": 2.0, "s": "b"}])
        built = (chart(data, {"x": "x", "y": "y", "size": "s"}) + geom_point()).build()
        frame = render_plot(built, 320, 240)
        self.assertEqual(frame.shape, (240, 320, 4))


if __name__ == "__main__":
    unittest.main()
