import unittest

import numpy as np

from vision_kit.letterbox import InvalidInput, letterbox, resize_square


class TestLetterbox(unittest.TestCase):
    def test_landscape_is_padded_top_and_bottom(self) -> None:
        img = np.full((240, 320, 3), 200, dtype=np.uint8)
        lb = letterbox(img, 640)
        self.assertEqual(lb.image.shape, (640, 640, 3))
        self.assertEqual(lb.image.dtype, np.uint8)
        self.assertAlmostEqual(lb.scale, 2.0)
        self.assertEqual((lb.pad_x, lb.pad_y), (0, 80))
        # Pad rows carry the neutral color, content rows the source pixels.
        self.assertTrue(np.all(lb.image[:80] == 114))
        self.assertTrue(np.all(lb.image[560:] == 114))
        self.assertTrue(np.all(lb.image[80:560] == 200))

    def test_geometry_for_odd_sizes(self) -> None:
        for w, h in [(1, 1), (333, 517), (1000, 3), (641, 640), (17, 900)]:
            img = np.zeros((h, w, 3), dtype=np.uint8)
            lb = letterbox(img, 640)
            self.assertGreaterEqual(lb.pad_x, 0)
            self.assertGreaterEqual(lb.pad_y, 0)
            self.assertLessEqual(abs(round(w * lb.scale) + 2 * lb.pad_x - 640), 1)
            self.assertLessEqual(abs(round(h * lb.scale) + 2 * lb.pad_y - 640), 1)

    def test_inverse_mapping_recovers_points(self) -> None:
        img = np.zeros((517, 333, 3), dtype=np.uint8)
        lb = letterbox(img, 640)
        for x, y in [(0.0, 0.0), (100.5, 200.25), (332.0, 516.0)]:
            mx, my = lb.to_model(x, y)
            ox, oy = lb.to_original(mx, my)
            self.assertLessEqual(abs(ox - x), 1.0)
            self.assertLessEqual(abs(oy - y), 1.0)

    def test_custom_pad_color(self) -> None:
        img = np.zeros((10, 20, 3), dtype=np.uint8)
        lb = letterbox(img, 40, color=(1, 2, 3))
        self.assertEqual(tuple(lb.image[0, 0]), (1, 2, 3))

    def test_zero_size_rejected(self) -> None:
        with self.assertRaises(InvalidInput):
            letterbox(np.zeros((0, 10, 3), dtype=np.uint8), 640)
        with self.assertRaises(InvalidInput):
            letterbox(np.zeros((10, 10), dtype=np.uint8), 640)
        # InvalidInput is a ValueError for callers that only know the builtin.
        with self.assertRaises(ValueError):
            letterbox(np.zeros((10, 0, 3), dtype=np.uint8), 640)

    def test_resize_square_stretches(self) -> None:
        out = resize_square(np.zeros((100, 50, 3), dtype=np.uint8), 224)
        self.assertEqual(out.shape, (224, 224, 3))


if __name__ == "__main__":
    unittest.main()
