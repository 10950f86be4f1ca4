import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from squatcoach.counter.pose_core import NUM_LANDMARKS
from squatcoach.runtime import cli
from tests.frames import squat_points


def frame_obj(knee_angle):
    slots = [None] * NUM_LANDMARKS
    for idx, (x, y) in squat_points(knee_angle).items():
        slots[int(idx)] = {"x": x, "y": y}
    return {"landmarks": slots}


class ReplayCliTests(unittest.TestCase):
    def _write(self, suffix: str, text: str) -> Path:
        tmp = tempfile.NamedTemporaryFile("w", suffix=suffix, delete=False, encoding="utf-8")
        with tmp:
            tmp.write(text)
        return Path(tmp.name)

    def test_replay_json_counts_reps_and_prints_warnings(self) -> None:
        frames = [frame_obj(a) for a in [10, 90, 150, 40, 20, 10, 95, 120, 25]]
        path = self._write(".json", json.dumps({"frames": frames}))

        out = io.StringIO()
        with redirect_stdout(out):
            code = cli.main([str(path)])

        self.assertEqual(code, 0)
        text = out.getvalue()
        self.assertIn("Frame 4: rep 1", text)
        self.assertIn("warning: Too deep! Protect your knees", text)
        self.assertIn("Frame 8: rep 2", text)
        self.assertIn("Total reps: 2", text)

    def test_replay_jsonl(self) -> None:
        lines = [json.dumps({**frame_obj(a), "frameNumber": i}) for i, a in enumerate([90, 110, 20])]
        path = self._write(".jsonl", "\n".join(lines) + "\n")

        out = io.StringIO()
        with redirect_stdout(out):
            code = cli.main([str(path)])
        self.assertEqual(code, 0)
        self.assertIn("Total reps: 1", out.getvalue())

    def test_missing_file_returns_error_code(self) -> None:
        err = io.StringIO()
        with redirect_stderr(err):
            code = cli.main(["/nonexistent/frames.json"])
        self.assertEqual(code, 1)
        self.assertIn("not found", err.getvalue())

    def test_invalid_recording_returns_error_code(self) -> None:
        path = self._write(".json", "{broken")
        err = io.StringIO()
        with redirect_stderr(err):
            code = cli.main([str(path)])
        self.assertEqual(code, 1)

    def test_wrongly_shaped_recordings_return_error_code(self) -> None:
        for text in ("[1, 2]", "42", '{"frames": "none"}', '{"frames": [null]}'):
            path = self._write(".json", text)
            err = io.StringIO()
            with redirect_stderr(err), redirect_stdout(io.StringIO()):
                code = cli.main([str(path)])
            self.assertEqual(code, 1, text)
            self.assertIn("not a valid landmark recording", err.getvalue())

    def test_non_finite_coordinates_return_error_code(self) -> None:
        path = self._write(".jsonl", '{"landmarks": [{"x": NaN, "y": 0.5}]}\n')
        err = io.StringIO()
        with redirect_stderr(err):
            code = cli.main([str(path)])
        self.assertEqual(code, 1)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
