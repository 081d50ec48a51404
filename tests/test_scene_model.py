from __future__ import annotations

import json
from pathlib import Path
import tempfile
import unittest

import pandas as pd

from plume_plot import (
    ChannelResolutionError,
    CoordinateSystem,
    Dataset,
    Labels,
    Plot,
    PlotDataError,
    ThemeOverrides,
    chart,
    coord_cartesian,
    element_blank,
    element_text,
    geom_linerange,
    geom_point,
    labs,
    lit,
    load_config,
    mark_ellipse,
    scale_x_continuous,
    theme,
    theme_context,
    theme_minimal,
    validate_config,
)
from plume_plot.layers import ColumnRef, Constant
from plume_plot.summary import group_summary


def _data() -> Dataset:
    return Dataset.from_records(
        [
            {"x": 1.0, "y": 2.0, "g": "a"},
            {"x": 2.0, "y": 3.0, "g": "a"},
            {"x": 3.0, "y": 1.0, "g": "b"},
        ]
    )


class PlotValueTests(unittest.TestCase):
    def test_setters_return_new_plot_and_leave_receiver_untouched(self) -> None:
        base = chart(_data(), {"x": "x", "y": "y"})
        with_layer = base.add_layer(geom_point())
        with_scale = with_layer.set_scale("x", scale_x_continuous(limits=(0, 5)))
        with_labels = with_scale.set_labels({"title": "T"})
        with_theme = with_labels.set_theme(theme(legend_position="none"))
        with_coord = with_theme.set_coord(coord_cartesian(clip="off"))
        self.assertEqual(base.layers, ())
        self.assertEqual(len(with_layer.layers), 1)
        self.assertNotIn("x", with_layer.scales)
        self.assertIn("x", with_scale.scales)
        self.assertIsNone(with_scale.labels.title)
        self.assertEqual(with_labels.labels.title, "T")
        self.assertEqual(with_labels.overrides, ThemeOverrides())
        self.assertEqual(with_coord.coord.clip, "off")
        self.assertEqual(with_theme.coord.clip, "on")

    def test_plus_dispatches_by_type(self) -> None:
        plot = (
            chart(_data(), {"x": "x", "y": "y"})
            + geom_point()
            + scale_x_continuous(limits=(0, 4))
            + theme(legend_position="top")
            + labs(title="T")
            + coord_cartesian(expand=False)
        )
        self.assertEqual(len(plot.layers), 1)
        self.assertEqual(plot.scales["x"].limits, (0.0, 4.0))
        self.assertEqual(plot.resolved_theme().setting("legend.position"), "top")
        self.assertEqual(plot.labels.title, "T")
        self.assertFalse(plot.coord.expand)

    def test_plus_accepts_lists(self) -> None:
        plot = chart(_data(), {"x": "x", "y": "y"}) + [geom_point(), labs(x="X")]
        self.assertEqual(len(plot.layers), 1)
        self.assertEqual(plot.labels.x, "X")

    def test_plus_rejects_unknown_values(self) -> None:
        with self.assertRaises(TypeError):
            chart(_data()) + 3

    def test_plot_is_frozen(self) -> None:
        plot = chart(_data())
        with self.assertRaises(AttributeError):
            plot.layers = ()  # type: ignore[misc]
        with self.assertRaises(TypeError):
            plot.mapping["x"] = "y"  # type: ignore[index]

    def test_mapping_values_are_normalized(self) -> None:
        plot = chart(_data(), {"x": "x", "y": lit(2.0), "size": 3})
        self.assertEqual(plot.mapping["x"], ColumnRef("x"))
        self.assertEqual(plot.mapping["y"], Constant(2.0))
        self.assertEqual(plot.mapping["size"], Constant(3))

    def test_scale_channel_must_match(self) -> None:
        with self.assertRaises(ValueError):
            chart(_data()).set_scale("y", scale_x_continuous())

    def test_chart_accepts_data_frame(self) -> None:
        frame = pd.DataFrame({"x": [1.0, 2.0], "y": [3.0, 4.0]})
        built = (chart(frame, {"x": "x", "y": "y"}) + geom_point()).build()
        self.assertEqual(len(built.primitives), 2)

    def test_layer_mapping_overrides_plot_mapping(self) -> None:
        plot = chart(_data(), {"x": "x", "y": "y"}) + geom_point({"y": "x"})
        built = plot.build()
        self.assertEqual([p.y for p in built.primitives], [1.0, 2.0, 3.0])


class ChannelResolutionTests(unittest.TestCase):
    def test_unknown_column_names_layer_and_channel(self) -> None:
        plot = chart(_data(), {"x": "x", "y": "y"}) + geom_point() + geom_point({"color": "missing"})
        with self.assertRaises(ChannelResolutionError) as ctx:
            plot.build()
        err = ctx.exception
        self.assertEqual((err.layer_index, err.layer_kind, err.channel, err.column), (1, "point", "color", "missing"))
        self.assertIsInstance(err, PlotDataError)

    def test_required_channel_missing(self) -> None:
        plot = chart(_data()) + geom_linerange({"x": "x", "ymin": "y"})
        with self.assertRaises(ChannelResolutionError) as ctx:
            plot.build()
        self.assertEqual(ctx.exception.channel, "ymax")

    def test_column_absent_from_some_records(self) -> None:
        data = Dataset.from_records([{"x": 1, "y": 1, "g": "a"}, {"x": 2, "y": 2}])
        plot = chart(data, {"x": "x", "y": "y", "color": "g"}) + geom_point()
        with self.assertRaises(ChannelResolutionError) as ctx:
            plot.build()
        self.assertIn("absent from 1 record", str(ctx.exception))

    def test_layer_data_override_is_checked(self) -> None:
        other = Dataset.from_records([{"a": 1, "b": 2}])
        plot = chart(_data(), {"x": "x", "y": "y"}) + geom_point(data=other)
        with self.assertRaises(ChannelResolutionError):
            plot.build()

    def test_plot_without_layers(self) -> None:
        with self.assertRaises(PlotDataError):
            chart(_data()).build()


class ThemeTests(unittest.TestCase):
    def test_later_override_wins_per_key(self) -> None:
        merged = theme(plot_title=element_text(size=10.0)) + theme(plot_title=element_text(size=20.0), legend_position="top")
        resolved = theme_minimal().with_overrides(merged)
        self.assertEqual(resolved.element("plot.title").size, 20.0)
        self.assertEqual(resolved.setting("legend.position"), "top")

    def test_unset_attributes_inherit_from_parent(self) -> None:
        resolved = theme_minimal().with_overrides(theme(text=element_text(color="red")))
        self.assertEqual(resolved.element("axis.title.x").color, "red")

    def test_blank_element(self) -> None:
        resolved = theme_minimal().with_overrides(theme(panel_grid=element_blank()))
        self.assertTrue(resolved.element("panel.grid.major").blank)

    def test_unknown_element_rejected(self) -> None:
        with self.assertRaises(ValueError):
            theme(not_an_element=element_text())

    def test_theme_context_scopes_base_theme(self) -> None:
        base = theme_minimal(base_size=20.0)
        with theme_context(base):
            inside = chart(_data())
        outside = chart(_data())
        self.assertEqual(inside.base_theme.element("text").size, 20.0)
        self.assertEqual(outside.base_theme.element("text").size, 11.0)

    def test_clip_off_without_margin_is_logged(self) -> None:
        plot = chart(_data(), {"x": "x", "y": "y"}) + geom_point() + coord_cartesian(clip="off") + theme(plot_margin=0.0)
        with self.assertLogs("plume_plot.plot", level="WARNING"):
            plot.build()


class ConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = validate_config()
        self.assertEqual(config.palette, "penguins")
        self.assertEqual(config.geom("point").alpha, 0.8)
        self.assertEqual(config.coord(), CoordinateSystem())

    def test_overrides_merge_geom_defaults_per_kind(self) -> None:
        config = validate_config({"geom_defaults": {"point": {"size": 3.0}}, "legend_position": "top"})
        self.assertEqual(config.geom("point").size, 3.0)
        self.assertEqual(config.geom("point").alpha, 0.8)
        self.assertEqual(config.base_theme().setting("legend.position"), "top")

    def test_rejects_unknown_keys_and_bad_values(self) -> None:
        for overrides in (
            {"colour_scheme": "x"},
            {"palette": "no-such-palette"},
            {"palette_direction": 2},
            {"clip": "maybe"},
            {"expand": "yes"},
            {"geom_defaults": {"point": {"alpha": 2.0}}},
            {"geom_defaults": {"bar": {"size": 1.0}}},
        ):
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValueError):
                    validate_config(overrides)

    def test_config_drives_plot_defaults(self) -> None:
        config = validate_config({"expand": False, "geom_defaults": {"point": {"alpha": 0.5}}})
        built = (chart(_data(), {"x": "x", "y": "y"}, config=config) + geom_point()).build()
        self.assertEqual(built.scales.x.domain, (1.0, 3.0))
        self.assertEqual(built.primitives[0].alpha, 0.5)

    def test_load_config_reads_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "plume.json"
            path.write_text(json.dumps({"font_size_pt": 9}), encoding="utf-8")
            config = load_config(path)
            self.assertEqual(config.font_size_pt, 9.0)
            path.write_text("[]", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_config(path)


class DatasetTests(unittest.TestCase):
    def test_missing_values_are_tagged(self) -> None:
        data = Dataset.from_columns({"v": [1.0, None, float("nan"), pd.NA, "x"]})
        self.assertEqual(data.missing_mask("v").tolist(), [False, True, True, True, False])
        numeric = data.numeric("v")
        self.assertEqual(numeric[0], 1.0)
        self.assertTrue(all(v != v for v in numeric[1:].tolist()))

    def test_records_round_trip_through_frame(self) -> None:
        data = _data()
        self.assertEqual(Dataset.from_frame(data.to_frame()).records(), data.records())

    def test_take_and_filter(self) -> None:
        data = _data()
        self.assertEqual(len(data.take([0, 2])), 2)
        self.assertEqual(len(data.filter(lambda row: row["g"] == "a")), 2)

    def test_column_length_mismatch(self) -> None:
        with self.assertRaises(PlotDataError):
            Dataset.from_columns({"a": [1, 2], "b": [1]})

    def test_group_summary(self) -> None:
        data = Dataset.from_records(
            [
                {"species": "Adelie", "len": 38.0},
                {"species": "Adelie", "len": 40.0},
                {"species": "Adelie", "len": None},
                {"species": "Gentoo", "len": 47.0},
                {"species": None, "len": 50.0},
            ]
        )
        summary = group_summary(data, "len", "species")
        self.assertEqual(summary.columns, ("species", "median", "max", "n"))
        self.assertEqual(
            summary.records(),
            [
                {"species": "Adelie", "median": 39.0, "max": 40.0, "n": 2},
                {"species": "Gentoo", "median": 47.0, "max": 47.0, "n": 1},
            ],
        )

    def test_group_summary_unknown_column(self) -> None:
        with self.assertRaises(PlotDataError):
            group_summary(_data(), "nope", "g")


if __name__ == "__main__":
    unittest.main()
