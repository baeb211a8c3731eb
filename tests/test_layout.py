import unittest

import numpy as np

from yolo_postkit.errors import InvalidConfigurationError, ShapeMismatchError
from yolo_postkit.layout import Normalization, to_input_blob, to_interleaved, to_planar_tensor


def _pixels(width: int, height: int) -> np.ndarray:
    return (np.arange(width * height * 3) % 256).astype(np.uint8)


class TestToPlanarTensor(unittest.TestCase):
    def test_shape_and_length(self) -> None:
        for width, height in [(1, 1), (4, 3), (7, 5), (16, 16)]:
            tensor = to_planar_tensor(_pixels(width, height), width, height)
            self.assertEqual(tensor.shape, (3, height, width))
            self.assertEqual(tensor.size, 3 * width * height)
            self.assertEqual(tensor.dtype, np.float32)

    def test_channel_planes_follow_interleaved_index(self) -> None:
        width, height = 5, 3
        pixels = _pixels(width, height)
        tensor = to_planar_tensor(pixels, width, height)
        red = pixels[0::3].astype(np.float32) / 255.0
        np.testing.assert_allclose(tensor[0].reshape(-1), red, rtol=1e-6)
        for c in range(3):
            for y in range(height):
                for x in range(width):
                    self.assertAlmostEqual(
                        float(tensor[c, y, x]), pixels[(y * width + x) * 3 + c] / 255.0, places=6
                    )

    def test_accepts_bytes(self) -> None:
        raw = bytes([255, 0, 0, 0, 255, 0])  # red, green
        tensor = to_planar_tensor(raw, 2, 1)
        np.testing.assert_allclose(tensor[:, 0, 0], [1.0, 0.0, 0.0], rtol=1e-6)
        np.testing.assert_allclose(tensor[:, 0, 1], [0.0, 1.0, 0.0], rtol=1e-6)

    def test_accepts_hwc_array(self) -> None:
        img = np.zeros((2, 3, 3), dtype=np.uint8)
        img[1, 2] = (10, 20, 30)
        tensor = to_planar_tensor(img, 3, 2)
        np.testing.assert_allclose(tensor[:, 1, 2], np.array([10, 20, 30]) / 255.0, rtol=1e-6)

    def test_standardize(self) -> None:
        norm = Normalization(mode="standardize", mean=(0.5, 0.5, 0.5), std=(0.25, 0.5, 1.0))
        raw = bytes([255, 255, 0])
        tensor = to_planar_tensor(raw, 1, 1, norm)
        np.testing.assert_allclose(tensor[:, 0, 0], [2.0, 1.0, -0.5], rtol=1e-5)

    def test_length_mismatch_raises(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            to_planar_tensor(bytes(640 * 640 * 3 - 1), 640, 640)
        with self.assertRaises(ShapeMismatchError):
            to_planar_tensor(_pixels(4, 4), 4, 3)

    def test_non_positive_size_raises(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            to_planar_tensor(b"", 0, 0)

    def test_shape_mismatch_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            to_planar_tensor(b"\x00\x00", 1, 1)


class TestNormalizationConfig(unittest.TestCase):
    def test_unknown_mode(self) -> None:
        with self.assertRaises(InvalidConfigurationError):
            Normalization(mode="zscore")

    def test_non_positive_std(self) -> None:
        with self.assertRaises(InvalidConfigurationError):
            Normalization(mode="standardize", std=(0.2, 0.0, 0.2))

    def test_wrong_channel_count(self) -> None:
        with self.assertRaises(InvalidConfigurationError):
            Normalization(mean=(0.5, 0.5))


class TestInverseLayout(unittest.TestCase):
    def test_to_interleaved_inverts_index_mapping(self) -> None:
        width, height = 6, 4
        pixels = _pixels(width, height)
        tensor = to_planar_tensor(pixels, width, height)
        back = np.rint(to_interleaved(tensor) * 255.0).astype(np.uint8)
        np.testing.assert_array_equal(back, pixels)

    def test_to_interleaved_rejects_bad_shape(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            to_interleaved(np.zeros((4, 2, 2), dtype=np.float32))

    def test_to_input_blob_adds_batch(self) -> None:
        tensor = np.zeros((3, 8, 8), dtype=np.float32)
        self.assertEqual(to_input_blob(tensor).shape, (1, 3, 8, 8))


if __name__ == "__main__":
    unittest.main()
