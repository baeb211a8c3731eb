import unittest

from yolo_postkit.errors import InvalidConfigurationError
from yolo_postkit.rescale import box_area, is_degenerate, rescale_box, rescale_candidates
from yolo_postkit.types import Candidate


class TestRescaleBox(unittest.TestCase):
    def test_independent_axis_scale(self) -> None:
        self.assertEqual(rescale_box((100, 100, 200, 200), (640, 640), (1280, 960)), (200.0, 150.0, 400.0, 300.0))

    def test_identity(self) -> None:
        self.assertEqual(rescale_box((1.5, 2.5, 3.5, 4.5), (640, 640), (640, 640)), (1.5, 2.5, 3.5, 4.5))

    def test_clamps_to_image(self) -> None:
        self.assertEqual(rescale_box((-50, -10, 700, 660), (640, 640), (320, 320)), (0.0, 0.0, 320.0, 320.0))

    def test_reorders_corners(self) -> None:
        self.assertEqual(rescale_box((200, 300, 100, 100), (640, 640), (640, 640)), (100.0, 100.0, 200.0, 300.0))

    def test_box_outside_image_collapses(self) -> None:
        box = rescale_box((700, 10, 800, 50), (640, 640), (640, 480))
        self.assertEqual(box[0], box[2])
        self.assertTrue(is_degenerate(box))

    def test_infinite_extent_is_clamped(self) -> None:
        box = rescale_box((float("-inf"), 10, float("inf"), 20), (640, 640), (100, 100))
        self.assertEqual(box, (0.0, 10 * 100 / 640, 100.0, 20 * 100 / 640))

    def test_invalid_sizes(self) -> None:
        with self.assertRaises(InvalidConfigurationError):
            rescale_box((0, 0, 1, 1), (0, 640), (100, 100))
        with self.assertRaises(InvalidConfigurationError):
            rescale_box((0, 0, 1, 1), (640, 640), (100, -1))

    def test_target_size_is_required(self) -> None:
        with self.assertRaises(TypeError):
            rescale_box((0, 0, 1, 1), (640, 640))  # type: ignore[call-arg]


class TestRescaleCandidates(unittest.TestCase):
    def test_returns_new_records(self) -> None:
        original = Candidate(class_id=2, score=0.7, box=(100, 100, 200, 200))
        out = rescale_candidates([original], (640, 640), (1280, 960))
        self.assertEqual(out[0].box, (200.0, 150.0, 400.0, 300.0))
        self.assertEqual(out[0].class_id, 2)
        self.assertEqual(out[0].score, 0.7)
        self.assertEqual(original.box, (100, 100, 200, 200))
        self.assertIsNot(out[0], original)


class TestBoxArea(unittest.TestCase):
    def test_area(self) -> None:
        self.assertEqual(box_area((0, 0, 10, 5)), 50.0)
        self.assertEqual(box_area((5, 5, 5, 10)), 0.0)
        self.assertFalse(is_degenerate((0, 0, 1, 1)))
        self.assertTrue(is_degenerate((3, 3, 3, 3)))


if __name__ == "__main__":
    unittest.main()
