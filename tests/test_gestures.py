from __future__ import annotations

import unittest

from cropcore.gestures import (
    GestureInterpreter,
    GestureUpdate,
    TouchPoint,
    touch_angle,
    touch_distance,
    wrap_angle_delta,
)


def pts(*coords):
    return [TouchPoint(x, y) for x, y in coords]


class TouchMathTests(unittest.TestCase):
    def test_distance_and_angle(self) -> None:
        a, b = TouchPoint(0, 0), TouchPoint(3, 4)
        self.assertEqual(touch_distance(a, b), 5.0)
        self.assertAlmostEqual(touch_angle(TouchPoint(0, 0), TouchPoint(0, 10)), 90.0)

    def test_wrap_angle_delta(self) -> None:
        self.assertEqual(wrap_angle_delta(200), -160)
        self.assertEqual(wrap_angle_delta(-340), 20)
        self.assertEqual(wrap_angle_delta(180), 180)
        self.assertEqual(wrap_angle_delta(-180), 180)
        self.assertEqual(wrap_angle_delta(45), 45)


class GestureInterpreterTests(unittest.TestCase):
    def test_pinch_zoom_scales_from_baseline(self) -> None:
        g = GestureInterpreter(min_zoom=1, max_zoom=3, enable_touch_rotation=False)
        self.assertTrue(g.handle_frame(pts((0, 0), (100, 0)), 1.0, 0.0).is_empty)
        self.assertIsNotNone(g.session)

        self.assertEqual(g.handle_frame(pts((0, 0), (200, 0)), 1.0, 0.0), GestureUpdate(zoom=2.0))
        self.assertEqual(g.handle_frame(pts((0, 0), (300, 0)), 2.0, 0.0), GestureUpdate(zoom=3.0))
        # Clamped at max_zoom
        self.assertEqual(g.handle_frame(pts((0, 0), (500, 0)), 3.0, 0.0).zoom, 3.0)

    def test_twist_rotates_from_baseline(self) -> None:
        g = GestureInterpreter(enable_pinch_zoom=False)
        g.handle_frame(pts((0, 0), (100, 0)), 1.0, 90.0)
        update = g.handle_frame(pts((0, 0), (0, 100)), 1.0, 90.0)
        self.assertIsNone(update.zoom)
        self.assertAlmostEqual(update.rotation, 180.0)

    def test_rotation_sensitivity(self) -> None:
        g = GestureInterpreter(enable_pinch_zoom=False, rotation_sensitivity=0.5)
        g.handle_frame(pts((0, 0), (100, 0)), 1.0, 0.0)
        self.assertAlmostEqual(g.handle_frame(pts((0, 0), (0, 100)), 1.0, 0.0).rotation, 45.0)

    def test_crossing_the_seam_takes_short_way(self) -> None:
        g = GestureInterpreter(enable_pinch_zoom=False)
        g.handle_frame(pts((0, 0), (-100, 1)), 1.0, 0.0)
        update = g.handle_frame(pts((0, 0), (-100, -1)), 1.0, 0.0)
        self.assertLess(abs(update.rotation), 2.0)

    def test_lifting_a_finger_ends_session(self) -> None:
        g = GestureInterpreter()
        g.handle_frame(pts((0, 0), (100, 0)), 1.0, 0.0)
        self.assertTrue(g.handle_frame(pts((0, 0)), 1.0, 0.0).is_empty)
        self.assertIsNone(g.session)

        # A new gesture re-baselines on the current zoom
        self.assertTrue(g.handle_frame(pts((0, 0), (50, 0)), 2.0, 0.0).is_empty)
        self.assertEqual(g.session.baseline_zoom, 2.0)
        self.assertEqual(g.handle_frame(pts((0, 0), (75, 0)), 2.0, 0.0).zoom, 3.0)

    def test_three_fingers_do_nothing(self) -> None:
        g = GestureInterpreter()
        g.handle_frame(pts((0, 0), (100, 0)), 1.0, 0.0)
        session = g.session
        self.assertTrue(g.handle_frame(pts((0, 0), (200, 0), (50, 50)), 1.0, 0.0).is_empty)
        self.assertIs(g.session, session)

    def test_dropping_from_three_fingers_to_two_starts_nothing(self) -> None:
        g = GestureInterpreter()
        g.handle_frame(pts((0, 0)), 1.0, 0.0)
        g.handle_frame(pts((0, 0), (100, 0), (50, 50)), 1.0, 0.0)
        self.assertTrue(g.handle_frame(pts((0, 0), (100, 0)), 1.0, 0.0).is_empty)
        self.assertIsNone(g.session)
        self.assertTrue(g.handle_frame(pts((0, 0), (200, 0)), 1.0, 0.0).is_empty)
        self.assertIsNone(g.session)

        # Lifting back below two fingers arms the next gesture
        g.handle_frame(pts((0, 0)), 1.0, 0.0)
        g.handle_frame(pts((0, 0), (100, 0)), 1.0, 0.0)
        self.assertIsNotNone(g.session)

    def test_zero_initial_distance_skips_zoom(self) -> None:
        g = GestureInterpreter()
        g.handle_frame(pts((10, 10), (10, 10)), 1.0, 0.0)
        update = g.handle_frame(pts((10, 10), (10, 110)), 1.0, 0.0)
        self.assertIsNone(update.zoom)
        self.assertAlmostEqual(update.rotation, 90.0)

    def test_disabled_interpreter_ignores_frames(self) -> None:
        g = GestureInterpreter(enable_pinch_zoom=False, enable_touch_rotation=False)
        self.assertFalse(g.enabled)
        g.handle_frame(pts((0, 0), (100, 0)), 1.0, 0.0)
        self.assertTrue(g.handle_frame(pts((0, 0), (200, 0)), 1.0, 0.0).is_empty)
        self.assertIsNone(g.session)

    def test_reset_drops_session(self) -> None:
        g = GestureInterpreter()
        g.handle_frame(pts((0, 0), (100, 0)), 1.0, 0.0)
        g.reset()
        self.assertIsNone(g.session)


if __name__ == "__main__":
    unittest.main()
