from __future__ import annotations

import logging
import unittest

from cropcore.config import AspectRatioPreset, CropConfig, config_from_raw, default_presets
from cropcore.logger import get_logger, setup_logger
from cropcore.state import OutputSpec


class CropConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        c = CropConfig()
        self.assertEqual(c.aspect_ratio, 1.0)
        self.assertEqual(c.max_file_size, 10 * 1024 * 1024)
        self.assertEqual((c.min_zoom, c.max_zoom, c.initial_zoom), (1.0, 3.0, 1.0))
        self.assertEqual(c.rotation_step, 90.0)
        self.assertEqual(c.output_type, "image/jpeg")
        self.assertEqual([p.label for p in c.aspect_ratio_presets], ["Free", "1:1", "4:3", "16:9"])

    def test_output_spec_file_name(self) -> None:
        self.assertEqual(CropConfig().output_spec().file_name, "cropped-image.jpg")
        self.assertEqual(CropConfig(circular_crop=True).output_spec().file_name, "cropped-image.png")
        self.assertEqual(CropConfig().output_spec("me.png").file_name, "me.png")

    def test_output_spec_clamps_quality(self) -> None:
        self.assertEqual(CropConfig(output_quality=3.0).output_spec().quality, 1.0)

    def test_output_spec_rejects_unknown_values(self) -> None:
        with self.assertRaises(ValueError):
            OutputSpec(format="xml")
        with self.assertRaises(ValueError):
            OutputSpec(type="image/gif")


class ConfigFromRawTests(unittest.TestCase):
    def test_empty_mapping_gives_defaults(self) -> None:
        c = config_from_raw({})
        d = CropConfig()
        self.assertEqual(c.output_format, d.output_format)
        self.assertEqual(c.aspect_ratio_presets, default_presets())

    def test_values_are_normalised(self) -> None:
        c = config_from_raw({
            "aspect_ratio": -1,
            "output_quality": 2,
            "output_format": "BLOB",
            "object_fit": " Cover ",
            "output_max_width": "1920",
        })
        self.assertEqual(c.aspect_ratio, 1.0)
        self.assertEqual(c.output_quality, 1.0)
        self.assertEqual(c.output_format, "blob")
        self.assertEqual(c.object_fit, "cover")
        self.assertEqual(c.output_max_width, 1920.0)
        self.assertIsNone(c.output_max_height)

    def test_presets(self) -> None:
        c = config_from_raw({"aspect_ratio_presets": [
            {"label": "Wide", "value": 2},
            {"label": "Any", "value": "free"},
            "junk",
        ]})
        self.assertEqual(c.aspect_ratio_presets, [AspectRatioPreset("Wide", 2.0), AspectRatioPreset("Any", "free")])

    def test_zoom_range_must_be_ordered(self) -> None:
        with self.assertRaises(ValueError):
            config_from_raw({"min_zoom": 3, "max_zoom": 1})

    def test_unknown_choice(self) -> None:
        with self.assertRaises(ValueError):
            config_from_raw({"output_type": "image/tiff"})


class LoggerTests(unittest.TestCase):
    def test_setup_is_idempotent(self) -> None:
        name = "cropcore-test-logger"
        logger = setup_logger(logging.DEBUG, name=name)
        setup_logger(logging.DEBUG, name=name)
        self.assertEqual(len(logger.handlers), 1)
        self.assertFalse(logger.propagate)
        self.assertEqual(logger.level, logging.DEBUG)

    def test_get_logger_children(self) -> None:
        self.assertEqual(get_logger().name, "cropcore")
        self.assertEqual(get_logger("controller").name, "cropcore.controller")


if __name__ == "__main__":
    unittest.main()
