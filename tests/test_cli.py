import contextlib
import io
import json
import os
import sys
import tempfile
import unittest

REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
APP_DIR = os.path.join(REPO_ROOT, "app")
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

from core.cli import EXIT_NO_DATA, EXIT_OK, EXIT_PROVIDER_FAILURE, EXIT_WRITE_FAILURE, main
from core.models import CanonicalPoint, ChartResult

POINTS = (
    CanonicalPoint("2024-01-03", 184.22, 185.88, 183.43, 184.25, 58414500),
    CanonicalPoint("2024-01-04", 182.15, 183.09, 180.88, 181.91, 71983600),
)


def _loader(points=POINTS, ok=True, error=None):
    def load(symbol, range_token):
        return ChartResult(symbol=symbol.upper(), range_token=range_token, points=points, ok=ok, error=error)

    return load


class CliTests(unittest.TestCase):
    def test_writes_csv_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            out = os.path.join(tmp, "aapl.csv")
            stdout = io.StringIO()
            with contextlib.redirect_stdout(stdout):
                code = main(["--symbol", "aapl", "--range", "1mo", "--out", out], loader=_loader())
            self.assertEqual(code, EXIT_OK)
            with open(out, "r", encoding="utf-8") as handle:
                lines = handle.read().splitlines()
            self.assertEqual(lines[0], "Date,Open,High,Low,Close,Volume")
            self.assertEqual(len(lines), 3)
            self.assertIn("wrote 2 points", stdout.getvalue())

    def test_json_to_stdout(self):
        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout):
            code = main(["--symbol", "AAPL", "--format", "json", "--out", "-"], loader=_loader())
        self.assertEqual(code, EXIT_OK)
        records = json.loads(stdout.getvalue())
        self.assertEqual(records[1]["close"], 181.91)

    def test_provider_failure_exit_code(self):
        stderr = io.StringIO()
        with contextlib.redirect_stderr(stderr):
            code = main(["--symbol", "ZZZZ"], loader=_loader(points=(), ok=False, error="Provider error: not found"))
        self.assertEqual(code, EXIT_PROVIDER_FAILURE)
        self.assertIn("not found", stderr.getvalue())

    def test_unwritable_output_exit_code(self):
        with tempfile.TemporaryDirectory() as tmp:
            out = os.path.join(tmp, "missing", "aapl.csv")
            stderr = io.StringIO()
            with contextlib.redirect_stderr(stderr):
                code = main(["--symbol", "AAPL", "--out", out], loader=_loader())
            self.assertEqual(code, EXIT_WRITE_FAILURE)
            self.assertIn("cannot write", stderr.getvalue())
            self.assertFalse(os.path.exists(out))

    def test_no_data_exit_code(self):
        stderr = io.StringIO()
        with contextlib.redirect_stderr(stderr):
            code = main(["--symbol", "AAPL", "--range", "1d"], loader=_loader(points=()))
        self.assertEqual(code, EXIT_NO_DATA)
        self.assertIn("no data", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
