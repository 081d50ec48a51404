from __future__ import annotations

import unittest
import warnings

import numpy as np

from plume_plot import Dataset, InsufficientGroupSizeWarning, PlotDataError, chart, geom_linerange, geom_point, geom_richtext
from plume_plot import mark_ellipse, mark_hull, mark_rect
from plume_plot.compose import (
    PointPrimitive,
    PolygonPrimitive,
    SegmentPrimitive,
    TextPrimitive,
    bounding_box,
    convex_hull,
    ellipse_vertices,
    enclosing_ellipse,
    _positions,
    outline_shape,
)


def _groups() -> Dataset:
    return Dataset.from_records(
        [
            {"x": 1.0, "y": 1.0, "g": "b"},
            {"x": 3.0, "y": 1.0, "g": "b"},
            {"x": 2.0, "y": 4.0, "g": "b"},
            {"x": 10.0, "y": 10.0, "g": "a"},
            {"x": 12.0, "y": 11.0, "g": "a"},
            {"x": 11.0, "y": 14.0, "g": "a"},
            {"x": 13.0, "y": 12.0, "g": "a"},
        ]
    )


def _build(plot):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", InsufficientGroupSizeWarning)
        return plot.build()


class ComposerTests(unittest.TestCase):
    def test_points_one_per_row_in_row_order(self) -> None:
        built = chart(_groups(), {"x": "x", "y": "y"}).add_layer(geom_point()).build()
        self.assertEqual(len(built.primitives), 7)
        self.assertTrue(all(isinstance(p, PointPrimitive) for p in built.primitives))
        self.assertEqual([p.x for p in built.primitives], [1.0, 3.0, 2.0, 10.0, 12.0, 11.0, 13.0])

    def test_missing_positions_are_dropped(self) -> None:
        data = Dataset.from_records([{"x": 1, "y": 2}, {"x": None, "y": 3}, {"x": 4, "y": float("nan")}])
        built = chart(data, {"x": "x", "y": "y"}).add_layer(geom_point()).build()
        self.assertEqual([(p.x, p.y) for p in built.primitives], [(1.0, 2.0)])

    def test_row_filter_applies_before_composition(self) -> None:
        layer = geom_point(where=lambda row: row["g"] == "a")
        built = chart(_groups(), {"x": "x", "y": "y"}).add_layer(layer).build()
        self.assertEqual(len(built.primitives), 4)

    def test_primitives_keep_declaration_order(self) -> None:
        plot = chart(_groups(), {"x": "x", "y": "y"}) + mark_ellipse({"group": "g"}) + geom_point()
        built = plot.build()
        self.assertEqual([p.layer_index for p in built.primitives], [0, 0] + [1] * 7)

    def test_outline_groups_sorted_by_key(self) -> None:
        built = (chart(_groups(), {"x": "x", "y": "y"}) + mark_hull({"fill": "g", "label": "g"})).build()
        labels = [p.label for p in built.primitives]
        self.assertEqual(labels, ["a", "b"])
        self.assertEqual([p.fill for p in built.primitives], ["a", "b"])

    def test_ellipse_encloses_every_group_point(self) -> None:
        built = (chart(_groups(), {"x": "x", "y": "y"}) + mark_ellipse({"group": "g"})).build()
        first = built.primitives[0]
        self.assertIsInstance(first, PolygonPrimitive)
        self.assertEqual(len(first.xs), 72)
        points = np.asarray([[10.0, 10.0], [12.0, 11.0], [11.0, 14.0], [13.0, 12.0]])
        center, shape = enclosing_ellipse(points)
        for p in points:
            d = p - center
            self.assertLessEqual(float(d @ shape @ d), 1.0 + 1e-2)

    def test_ellipse_expand_pads_radii(self) -> None:
        points = np.asarray([[0.0, 0.0], [4.0, 0.0], [2.0, 2.0], [2.0, -2.0]])
        center, shape = enclosing_ellipse(points)
        plain = ellipse_vertices(center, shape)
        padded = ellipse_vertices(center, shape, expand=1.0)
        self.assertTrue(np.all(np.linalg.norm(padded - center, axis=1) > np.linalg.norm(plain - center, axis=1)))

    def test_convex_hull_drops_interior_points(self) -> None:
        points = np.asarray([[0, 0], [2, 0], [2, 2], [0, 2], [1, 1]], dtype=np.float64)
        hull = convex_hull(points)
        self.assertEqual(hull.tolist(), [[0.0, 0.0], [2.0, 0.0], [2.0, 2.0], [0.0, 2.0]])

    def test_bounding_box_with_expand(self) -> None:
        box = bounding_box(np.asarray([[1.0, 2.0], [3.0, 5.0]]), expand=0.5)
        self.assertEqual(box.tolist(), [[0.5, 1.5], [3.5, 1.5], [3.5, 5.5], [0.5, 5.5]])

    def test_rect_needs_only_two_points(self) -> None:
        kind, vertices = outline_shape("rect_mark", np.asarray([[0.0, 0.0], [2.0, 1.0]]))
        self.assertEqual(kind, "polygon")
        self.assertEqual(vertices.shape, (4, 2))

    def test_one_row_group_degrades_to_point_at_that_row(self) -> None:
        data = Dataset.from_records([{"x": 5.0, "y": 7.0, "g": "solo"}])
        plot = chart(data, {"x": "x", "y": "y"}) + mark_ellipse({"group": "g"})
        with self.assertWarns(InsufficientGroupSizeWarning):
            built = plot.build()
        self.assertEqual(len(built.primitives), 1)
        point = built.primitives[0]
        self.assertIsInstance(point, PointPrimitive)
        self.assertEqual((point.x, point.y), (5.0, 7.0))

    def test_duplicate_points_count_as_one(self) -> None:
        data = Dataset.from_records([{"x": 1.0, "y": 1.0}] * 4)
        with self.assertWarns(InsufficientGroupSizeWarning):
            built = (chart(data, {"x": "x", "y": "y"}) + mark_hull()).build()
        self.assertIsInstance(built.primitives[0], PointPrimitive)

    def test_two_points_degrade_to_segment(self) -> None:
        data = Dataset.from_records([{"x": 0.0, "y": 0.0}, {"x": 2.0, "y": 2.0}])
        with self.assertWarns(InsufficientGroupSizeWarning):
            built = (chart(data, {"x": "x", "y": "y"}) + mark_ellipse()).build()
        segment = built.primitives[0]
        self.assertIsInstance(segment, SegmentPrimitive)
        self.assertEqual((segment.x0, segment.y0, segment.x1, segment.y1), (0.0, 0.0, 2.0, 2.0))

    def test_collinear_points_degrade_to_extreme_segment(self) -> None:
        data = Dataset.from_records([{"x": float(i), "y": 2.0 * i} for i in range(5)])
        with self.assertWarns(InsufficientGroupSizeWarning):
            built = (chart(data, {"x": "x", "y": "y"}) + mark_hull()).build()
        segment = built.primitives[0]
        self.assertIsInstance(segment, SegmentPrimitive)
        self.assertEqual((segment.x0, segment.y0, segment.x1, segment.y1), (0.0, 0.0, 4.0, 8.0))

    def test_degradation_never_raises(self) -> None:
        data = Dataset.from_records([{"x": 1.0, "y": 1.0, "g": "a"}, {"x": 2.0, "y": 3.0, "g": "b"}])
        built = _build(chart(data, {"x": "x", "y": "y"}) + mark_rect({"group": "g"}))
        self.assertEqual(len(built.primitives), 2)

    def test_rich_text_rows_become_text_primitives(self) -> None:
        data = Dataset.from_records([{"x": 1, "y": 2, "t": "**hi**"}, {"x": 2, "y": 3, "t": None}])
        built = (chart(data, {"x": "x", "y": "y"}) + geom_richtext({"label": "t"})).build()
        self.assertEqual(len(built.primitives), 1)
        text = built.primitives[0]
        self.assertIsInstance(text, TextPrimitive)
        self.assertEqual(text.label, "**hi**")

    def test_line_range_is_vertical_segment(self) -> None:
        data = Dataset.from_records([{"x": 3, "lo": 1, "hi": 4}])
        built = (chart(data) + geom_linerange({"x": "x", "ymin": "lo", "ymax": "hi"})).build()
        segment = built.primitives[0]
        self.assertEqual((segment.x0, segment.x1, segment.y0, segment.y1), (3.0, 3.0, 1.0, 4.0))

    def test_categorical_x_maps_to_level_positions(self) -> None:
        data = Dataset.from_records([{"s": "Gentoo", "y": 1}, {"s": "Adelie", "y": 2}, {"s": "Chinstrap", "y": 3}])
        built = (chart(data, {"x": "s", "y": "y"}) + geom_point()).build()
        self.assertEqual([p.x for p in built.primitives], [3.0, 1.0, 2.0])
        self.assertEqual(built.scales.x.labels, ("Adelie", "Chinstrap", "Gentoo"))

    def test_layer_without_any_data_is_rejected(self) -> None:
        with self.assertRaises(PlotDataError):
            (chart(None) + geom_point({"x": 1, "y": 2})).build()

    def test_positions_for_unmapped_channel_raise_plot_data_error(self) -> None:
        with self.assertRaisesRegex(PlotDataError, "no `x` mapping"):
            _positions(geom_point(), _groups(), "x", {})


if __name__ == "__main__":
    unittest.main()
