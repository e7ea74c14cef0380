from __future__ import annotations

import itertools
import math
import unittest

from cropcore.geometry import (
    CropLayout,
    clamp_zoom,
    compute_crop_rect,
    compute_crop_size,
    compute_fit_dimensions,
    compute_layout,
    compute_media_size,
    matches_aspect_ratio,
    normalize_rotation,
    resolve_preset,
    restrict_position,
    rotate_size,
    sanitize_aspect_ratio,
    step_rotation,
)
from cropcore.state import CropRect


class FitDimensionsTests(unittest.TestCase):
    def test_width_bound_scales_height(self) -> None:
        self.assertEqual(compute_fit_dimensions(4000, 2000, 1920), (1920, 960.0))

    def test_height_bound_applied_after_width(self) -> None:
        self.assertEqual(compute_fit_dimensions(1000, 3000, 1920, 1080), (360.0, 1080))

    def test_never_enlarges(self) -> None:
        self.assertEqual(compute_fit_dimensions(640, 480, 1920, 1080), (640, 480))
        self.assertEqual(compute_fit_dimensions(640, 480), (640, 480))

    def test_zero_bound_is_ignored(self) -> None:
        self.assertEqual(compute_fit_dimensions(640, 480, 0, 0), (640, 480))


class MediaAndCropSizeTests(unittest.TestCase):
    def test_contain_wide_media(self) -> None:
        self.assertEqual(compute_media_size(4000, 2000, 800, 600, "contain"), (800.0, 400.0))

    def test_contain_tall_media(self) -> None:
        self.assertEqual(compute_media_size(1000, 2000, 800, 600, "contain"), (300.0, 600.0))

    def test_cover_picks_axis(self) -> None:
        self.assertEqual(compute_media_size(4000, 2000, 800, 600, "cover"), (1200.0, 600.0))
        self.assertEqual(compute_media_size(4000, 2000, 800, 600, "horizontal-cover"), (800.0, 400.0))

    def test_unknown_fit_raises(self) -> None:
        with self.assertRaises(ValueError):
            compute_media_size(100, 100, 100, 100, "stretch")

    def test_degenerate_sizes(self) -> None:
        self.assertEqual(compute_media_size(0, 100, 100, 100), (0.0, 0.0))

    def test_crop_size_fits_shorter_side(self) -> None:
        self.assertEqual(compute_crop_size(800, 400, 800, 600, 1.0), (400.0, 400))
        self.assertEqual(compute_crop_size(300, 600, 800, 600, 1.0), (300, 300.0))

    def test_free_crop_takes_fitting_area(self) -> None:
        self.assertEqual(compute_crop_size(800, 400, 600, 600, None), (600, 400))

    def test_rotate_size(self) -> None:
        w, h = rotate_size(300, 100, 90)
        self.assertAlmostEqual(w, 100)
        self.assertAlmostEqual(h, 300)
        w, h = rotate_size(100, 100, 45)
        self.assertAlmostEqual(w, 100 * math.sqrt(2))
        self.assertEqual(rotate_size(300, 100, 0), (300, 100))

    def test_crop_size_uses_rotated_media(self) -> None:
        w, h = compute_crop_size(300, 100, 300, 300, 1.0, rotation=90)
        self.assertAlmostEqual(w, 100)
        self.assertAlmostEqual(h, 100)

    def test_layout(self) -> None:
        layout = compute_layout((4000, 2000), (800, 600), 1.0)
        self.assertIsInstance(layout, CropLayout)
        self.assertEqual(layout.media_size, (800.0, 400.0))
        self.assertEqual(layout.crop_size, (400.0, 400))


class CropRectTests(unittest.TestCase):
    natural = (4000, 2000)
    media = (800.0, 400.0)
    crop = (400.0, 400.0)

    def test_centred_square(self) -> None:
        rect = compute_crop_rect((0, 0), self.natural, self.media, self.crop, 1.0, 1.0)
        self.assertEqual(rect, CropRect(x=1000, y=0, width=2000, height=2000))

    def test_zoom_shrinks_rect_about_centre(self) -> None:
        rect = compute_crop_rect((0, 0), self.natural, self.media, self.crop, 1.0, 2.0)
        self.assertEqual(rect, CropRect(x=1500, y=500, width=1000, height=1000))

    def test_restricted_offset_stops_at_edge(self) -> None:
        rect = compute_crop_rect((10000, 0), self.natural, self.media, self.crop, 1.0, 1.0)
        self.assertEqual(rect.x, 0)
        rect = compute_crop_rect((-10000, 0), self.natural, self.media, self.crop, 1.0, 1.0)
        self.assertEqual(rect.x + rect.width, 4000)

    def test_unrestricted_offset_still_inside_image(self) -> None:
        rect = compute_crop_rect((-10000, 5000), self.natural, self.media, self.crop, 1.0, 1.0, restrict=False)
        self.assertEqual(rect.x, 2000)
        self.assertEqual(rect.y, 0)

    def test_rect_is_always_within_bounds(self) -> None:
        offsets = (-500.0, -37.5, 0.0, 12.25, 900.0)
        zooms = (1.0, 1.3, 2.0, 3.0)
        for ox, oy, zoom, aspect, restrict in itertools.product(
            offsets, offsets, zooms, (1.0, 16 / 9, 0.5, None), (True, False)
        ):
            with self.subTest(offset=(ox, oy), zoom=zoom, aspect=aspect, restrict=restrict):
                layout = compute_layout(self.natural, (800, 600), aspect)
                r = compute_crop_rect((ox, oy), self.natural, layout.media_size, layout.crop_size, aspect, zoom, restrict)
                self.assertGreaterEqual(r.x, 0)
                self.assertGreaterEqual(r.y, 0)
                self.assertGreaterEqual(r.width, 1)
                self.assertGreaterEqual(r.height, 1)
                self.assertLessEqual(r.x + r.width, 4000)
                self.assertLessEqual(r.y + r.height, 2000)
                if aspect is not None:
                    self.assertLessEqual(abs(r.width / r.height - aspect), 0.01)

    def test_width_bound_rect_keeps_ratio(self) -> None:
        layout = compute_layout((300, 200), (300, 200), 16 / 9)
        rect = compute_crop_rect((0, 0), (300, 200), layout.media_size, layout.crop_size, 16 / 9, 1.97)
        self.assertEqual(rect, CropRect(x=74, y=57, width=153, height=86))

    def test_ratio_holds_across_sizes_and_rotations(self) -> None:
        naturals = ((640, 480), (1920, 1080), (1000, 3000), (4000, 2000))
        for natural, aspect, zoom, rotation in itertools.product(
            naturals, (16 / 9, 2.5, 4 / 3, 0.75), (1.0, 1.37, 1.97, 3.0), (0, 90)
        ):
            with self.subTest(natural=natural, aspect=aspect, zoom=zoom, rotation=rotation):
                layout = compute_layout(natural, (800, 600), aspect, rotation=rotation)
                r = compute_crop_rect((0, 0), natural, layout.media_size, layout.crop_size, aspect, zoom)
                self.assertLessEqual(abs(r.width / r.height - aspect), 0.01)
                self.assertLessEqual(r.x + r.width, natural[0])
                self.assertLessEqual(r.y + r.height, natural[1])

    def test_full_image(self) -> None:
        layout = compute_layout((300, 200), (300, 200), 1.5)
        rect = compute_crop_rect((0, 0), (300, 200), layout.media_size, layout.crop_size, 1.5, 1.0)
        self.assertEqual(rect, CropRect(0, 0, 300, 200))

    def test_non_positive_media_raises(self) -> None:
        with self.assertRaises(ValueError):
            compute_crop_rect((0, 0), (100, 100), (0, 0), (10, 10), 1.0, 1.0)

    def test_restrict_position_clamps_each_axis(self) -> None:
        self.assertEqual(restrict_position((500, -500), (800, 400), (400, 400), 1.0), (200.0, 0.0))
        self.assertEqual(restrict_position((500, -500), (800, 400), (400, 400), 2.0), (500, -200.0))


class AspectAndRotationTests(unittest.TestCase):
    def test_sanitize_aspect_ratio(self) -> None:
        for bad in (0, -2, math.nan, math.inf, "wide", None):
            with self.subTest(value=bad):
                self.assertEqual(sanitize_aspect_ratio(bad), 1.0)
        self.assertEqual(sanitize_aspect_ratio(1.5), 1.5)

    def test_free_preset_keeps_current_ratio(self) -> None:
        self.assertEqual(resolve_preset("free", 1.5), 1.5)
        self.assertAlmostEqual(resolve_preset(16 / 9, 1.0), 16 / 9)

    def test_matches_aspect_ratio_uses_tolerance(self) -> None:
        self.assertTrue(matches_aspect_ratio(1.333, 4 / 3))
        self.assertFalse(matches_aspect_ratio(1.4, 4 / 3))
        self.assertFalse(matches_aspect_ratio(1.0, "free"))

    def test_step_rotation(self) -> None:
        self.assertEqual(step_rotation(0, 90, 1), 90)
        self.assertEqual(step_rotation(90, 90, -1), 0)
        self.assertEqual(step_rotation(270, 90, 0), 0.0)

    def test_normalize_rotation(self) -> None:
        self.assertEqual(normalize_rotation(-90), 270)
        self.assertEqual(normalize_rotation(450), 90)

    def test_clamp_zoom(self) -> None:
        self.assertEqual(clamp_zoom(5, 1, 3), 3)
        self.assertEqual(clamp_zoom(0.2, 1, 3), 1)
        self.assertEqual(clamp_zoom(1.7, 1, 3), 1.7)


if __name__ == "__main__":
    unittest.main()
