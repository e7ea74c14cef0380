from __future__ import annotations

import os
import unittest


class CropCanvasTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
        try:
            from PySide6.QtWidgets import QApplication
        except Exception as exc:  # pragma: no cover - environment dependency
            raise unittest.SkipTest(f"missing runtime dependency: {exc}")
        cls.app = QApplication.instance() or QApplication([])

    def test_paints_image_under_frame(self) -> None:
        from PIL import Image
        from cropcore.geometry import compute_layout
        from cropui.crop_canvas import CropCanvas
        from cropui.main_window import pil_rgba_to_qimage

        pans = []
        canvas = CropCanvas(on_pan=lambda dx, dy: pans.append((dx, dy)), on_zoom=lambda f: None)
        canvas.resize(400, 300)
        qimg = pil_rgba_to_qimage(Image.new("RGBA", (40, 20), (255, 0, 0, 255)))
        self.assertEqual((qimg.width(), qimg.height()), (40, 20))

        layout = compute_layout((40, 20), (400, 300), 1.0)
        canvas.set_image(qimg)
        canvas.set_view((0.0, 0.0), 1.0, 0.0, layout, circular=True, show_grid=True)
        frame = canvas._frame_rect()
        self.assertEqual((frame.width(), frame.height()), (200.0, 200.0))
        self.assertEqual((frame.center().x(), frame.center().y()), (200.0, 150.0))

        pm = canvas.grab()
        self.assertEqual((pm.width(), pm.height()), (400, 300))

    def test_result_bytes_prefers_binary_forms(self) -> None:
        from cropcore.state import Blob, CropResult, NamedFile
        from cropui.main_window import result_bytes

        self.assertEqual(result_bytes(CropResult(1, 1, base64="data:image/png;base64,YWJj")), b"abc")
        self.assertEqual(result_bytes(CropResult(1, 1, blob=Blob(b"xy", "image/png"))), b"xy")
        self.assertEqual(result_bytes(CropResult(1, 1, file=NamedFile(b"z", "image/png", "a.png"))), b"z")
        self.assertEqual(result_bytes(CropResult(1, 1)), b"")


if __name__ == "__main__":
    unittest.main()
