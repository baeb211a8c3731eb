import json
import tempfile
import unittest
from pathlib import Path

from yolo_postkit.errors import InvalidConfigurationError
from yolo_postkit.labels import (
    detection_to_record,
    format_confidence,
    label_candidates,
    load_class_names,
    make_label_resolver,
    top_detections,
    translate_label,
)
from yolo_postkit.types import Candidate, Detection


class TestLoadClassNames(unittest.TestCase):
    def _write(self, name: str, text: str) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_json_list(self) -> None:
        path = self._write("coco_labels.json", json.dumps(["person", "bicycle", "car"]))
        self.assertEqual(load_class_names(path), {0: "person", 1: "bicycle", 2: "car"})

    def test_json_object(self) -> None:
        path = self._write("labels.json", json.dumps({"names": {"0": "person", "5": "bus"}}))
        self.assertEqual(load_class_names(path), {0: "person", 5: "bus"})

    def test_metadata_names_block(self) -> None:
        path = self._write(
            "metadata.yaml",
            "# exported\nstride: 32\nnames:\n  0: person\n  1: 'traffic light'\n  2: \"fire hydrant\"\n",
        )
        self.assertEqual(load_class_names(path), {0: "person", 1: "traffic light", 2: "fire hydrant"})

    def test_invalid_json(self) -> None:
        path = self._write("labels.json", "[broken")
        with self.assertRaises(InvalidConfigurationError):
            load_class_names(path)

    def test_json_with_non_string_names(self) -> None:
        path = self._write("labels.json", json.dumps(["person", 3]))
        with self.assertRaises(InvalidConfigurationError):
            load_class_names(path)

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_class_names(Path("/nonexistent/labels.json"))


class TestLabelResolution(unittest.TestCase):
    def test_mapping_with_default(self) -> None:
        resolve = make_label_resolver({0: "person"})
        self.assertEqual(resolve(0), "person")
        self.assertEqual(resolve(42), "unknown")

    def test_sequence(self) -> None:
        resolve = make_label_resolver(["cat", "dog"], default="?")
        self.assertEqual(resolve(1), "dog")
        self.assertEqual(resolve(2), "?")

    def test_callable_passthrough(self) -> None:
        fn = lambda i: f"class-{i}"  # noqa: E731
        self.assertIs(make_label_resolver(fn), fn)

    def test_label_candidates(self) -> None:
        cands = [Candidate(class_id=1, score=0.8, box=(1, 2, 3, 4))]
        dets = label_candidates(cands, make_label_resolver(["cat", "dog"]))
        self.assertEqual(dets, [Detection(label="dog", confidence=0.8, box=(1, 2, 3, 4), class_id=1)])


class TestTranslateLabel(unittest.TestCase):
    dictionary = {"person": "Mensch", "traffic_light": "Ampel", "hot dog": "Hotdog"}

    def test_direct_and_case_insensitive(self) -> None:
        self.assertEqual(translate_label("person", self.dictionary), "Mensch")
        self.assertEqual(translate_label("Person", self.dictionary), "Mensch")

    def test_space_underscore_variants(self) -> None:
        self.assertEqual(translate_label("traffic light", self.dictionary), "Ampel")
        self.assertEqual(translate_label("hot_dog", self.dictionary), "Hotdog")

    def test_fallbacks(self) -> None:
        self.assertEqual(translate_label("zebra", self.dictionary), "zebra")
        self.assertEqual(translate_label("zebra", self.dictionary, default="n/a"), "n/a")


class TestRecords(unittest.TestCase):
    def test_format_confidence(self) -> None:
        self.assertEqual(format_confidence(0.91234), "91.23%")
        self.assertEqual(format_confidence(1.0), "100.00%")
        self.assertEqual(format_confidence(0.0), "0.00%")

    def test_detection_to_record(self) -> None:
        det = Detection(label="person", confidence=0.5, box=(1.0, 2.0, 3.0, 4.0), class_id=0)
        self.assertEqual(
            detection_to_record(det),
            {"label": "person", "confidence": "50.00%", "box": [1.0, 2.0, 3.0, 4.0]},
        )
        record = detection_to_record(det, translate=lambda s: s.upper())
        self.assertEqual(record["label_localized"], "PERSON")
        json.dumps(record)

    def test_top_detections(self) -> None:
        dets = [
            Detection(label=str(i), confidence=c, box=(0, 0, 1, 1))
            for i, c in enumerate([0.2, 0.9, 0.5, 0.9, 0.1])
        ]
        top = top_detections(dets, k=3)
        self.assertEqual([d.label for d in top], ["1", "3", "2"])
        self.assertEqual(top_detections(dets, k=0), [])
        self.assertEqual(len(top_detections(dets, k=10)), 5)


if __name__ == "__main__":
    unittest.main()
