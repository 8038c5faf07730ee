import tempfile
import threading
import time
import unittest
from pathlib import Path

import numpy as np

from vision_kit.metadata import load_labels
from vision_kit.runtime import SerializedHandle, ensure_thread_safe, load_model_handle, resolve_path


class _NotThreadSafe:
    thread_safe = False

    def __init__(self) -> None:
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def __call__(self, blob: np.ndarray) -> np.ndarray:
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(0.01)
        with self._guard:
            self.active -= 1
        return blob


class TestHandles(unittest.TestCase):
    def test_plain_callables_pass_through(self) -> None:
        def fn(blob):
            return blob

        self.assertIs(ensure_thread_safe(fn), fn)

    def test_unsafe_handles_are_serialized(self) -> None:
        inner = _NotThreadSafe()
        handle = ensure_thread_safe(inner)
        self.assertIsInstance(handle, SerializedHandle)
        blob = np.arange(3, dtype=np.float32)
        self.assertIs(handle(blob), blob)
        threads = [threading.Thread(target=handle, args=(np.zeros(1),)) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5.0)
        self.assertEqual(inner.max_active, 1)

    def test_unknown_extension(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                load_model_handle("model.bin", root=tmp)
            with self.assertRaises(ValueError):
                load_model_handle("model.onnx", root=tmp, backend="tensorrt")

    def test_resolve_path(self) -> None:
        self.assertEqual(resolve_path("/abs/model.onnx"), Path("/abs/model.onnx"))
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(resolve_path("Models/x.onnx", root=tmp), (Path(tmp) / "Models/x.onnx").resolve())


class TestLoadLabels(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.dir = Path(tmpdir.name)

    def _file(self, text: str) -> Path:
        path = self.dir / "labels.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    def test_names_block(self) -> None:
        path = self._file("task: detect\nnames:\n  0: black-spot\n  1: 'brown-spot'\n  2: scab\n")
        self.assertEqual(load_labels(path), ["black-spot", "brown-spot", "scab"])

    def test_plain_lines(self) -> None:
        path = self._file("# varieties\nAlphonso\n\nNeelam\n")
        self.assertEqual(load_labels(path), ["Alphonso", "Neelam"])

    def test_bad_files(self) -> None:
        with self.assertRaises(ValueError):
            load_labels(self._file("names:\n  0: a\n  2: c\n"))
        with self.assertRaises(ValueError):
            load_labels(self._file("# nothing\n\n"))
        with self.assertRaises(FileNotFoundError):
            load_labels(self.dir / "missing.txt")


if __name__ == "__main__":
    unittest.main()
