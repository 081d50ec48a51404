from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from PIL import Image

from plume_plot import Dataset, chart, compose_row, geom_point, save
from plume_plot.export import pixel_size, render_image


def _plot():
    data = Dataset.from_records([{"x": float(i), "y": float(i * i)} for i in range(6)])
    return chart(data, {"x": "x", "y": "y"}) + geom_point()


class PixelSizeTests(unittest.TestCase):
    def test_inches_at_dpi(self) -> None:
        self.assertEqual(pixel_size(7, 5, units="in", dpi=300), (2100, 1500))

    def test_metric_units(self) -> None:
        self.assertEqual(pixel_size(2.54, 5.08, units="cm", dpi=100), (100, 200))
        self.assertEqual(pixel_size(25.4, 12.7, units="mm", dpi=100), (100, 50))

    def test_pixels_pass_through(self) -> None:
        self.assertEqual(pixel_size(640, 480, units="px", dpi=300), (640, 480))

    def test_rejects_bad_arguments(self) -> None:
        with self.assertRaises(ValueError):
            pixel_size(0, 5)
        with self.assertRaises(ValueError):
            pixel_size(5, -1)
        with self.assertRaises(ValueError):
            pixel_size(5, 5, dpi=0)
        with self.assertRaises(ValueError):
            pixel_size(5, 5, units="pt")


class SaveTests(unittest.TestCase):
    def test_png_has_requested_size_and_dpi(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            out = save(_plot(), Path(tmp) / "plot.png", 4, 3, dpi=100)
            self.assertTrue(out.exists())
            with Image.open(out) as image:
                self.assertEqual(image.size, (400, 300))
                self.assertEqual(image.mode, "RGBA")
                self.assertEqual(round(image.info["dpi"][0]), 100)

    def test_jpeg_is_flattened_to_rgb(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            out = save(_plot(), Path(tmp) / "plot.jpg", 4, 3, dpi=80)
            with Image.open(out) as image:
                self.assertEqual(image.format, "JPEG")
                self.assertEqual(image.mode, "RGB")

    def test_pdf_and_tiff(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            pdf = save(_plot(), Path(tmp) / "plot.pdf", 4, 3, dpi=72)
            self.assertEqual(pdf.read_bytes()[:4], b"%PDF")
            tiff = save(_plot(), Path(tmp) / "plot.tiff", 4, 3, dpi=72)
            with Image.open(tiff) as image:
                self.assertEqual(image.format, "TIFF")

    def test_explicit_format_overrides_suffix(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            out = save(_plot(), Path(tmp) / "plot.out", 300, 200, units="px", format="png")
            with Image.open(out) as image:
                self.assertEqual(image.format, "PNG")
                self.assertEqual(image.size, (300, 200))

    def test_unknown_format_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                save(_plot(), Path(tmp) / "plot.bmp", 4, 3)

    def test_unwritable_path_raises_and_logs(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "missing" / "plot.png"
            with self.assertLogs("plume_plot.export", level="ERROR"):
                with self.assertRaises(OSError):
                    save(_plot(), target, 200, 150, units="px")

    def test_compositions_can_be_saved(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            out = save(compose_row(_plot(), _plot()), Path(tmp) / "panels.png", 6, 3, dpi=72)
            with Image.open(out) as image:
                self.assertEqual(image.size, (432, 216))


class RenderImageTests(unittest.TestCase):
    def test_accepts_plots_and_built_plots(self) -> None:
        plot = _plot()
        self.assertEqual(render_image(plot, 200, 150).shape, (150, 200, 4))
        self.assertEqual(render_image(plot.build(), 200, 150).shape, (150, 200, 4))

    def test_rejects_other_objects(self) -> None:
        with self.assertRaises(TypeError):
            render_image("plot", 200, 150)  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
