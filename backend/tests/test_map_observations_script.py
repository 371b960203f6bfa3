import io
import json
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from scripts import map_observations


EXAMPLE_BUNDLE = Path(__file__).resolve().parents[1] / "data" / "examples" / "observations.json"


class MapObservationsScriptTests(unittest.TestCase):
    def _run(self, *argv: str):
        buf = io.StringIO()
        with mock.patch.object(sys, "argv", ["map_observations.py", *argv]), redirect_stdout(buf):
            map_observations.main()
        return json.loads(buf.getvalue())

    def test_hla_mode_prints_findings(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "observations.json"
            path.write_text(
                json.dumps([{"code": {"text": "HLA-B"}, "valueString": "HLA-B*57:01 detected"}]),
                encoding="utf-8",
            )
            out = self._run("--input", str(path), "--mode", "hla")

        self.assertEqual(
            out,
            [
                {
                    "gene": "HLA-B",
                    "allele": "HLA-B*57:01",
                    "phenotype": "Positive",
                    "note": "Risk of abacavir hypersensitivity",
                }
            ],
        )

    def test_phenotypes_mode(self):
        out = self._run("--input", str(EXAMPLE_BUNDLE), "--mode", "phenotypes")
        self.assertEqual(out[0], {"gene": "CYP2D6", "phenotype": "Poor metabolizer"})

    def test_profile_is_default_mode(self):
        out = self._run("--input", str(EXAMPLE_BUNDLE))
        self.assertIn("rules_version", out)
        self.assertEqual([h["allele"] for h in out["hla_findings"]], ["HLA-B*57:01"])

    def test_missing_input_file_exits(self):
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / "absent.json"
            with self.assertRaises(SystemExit) as ctx:
                self._run("--input", str(missing), "--mode", "hla")
        self.assertIn("not found", str(ctx.exception))

    def test_invalid_json_exits(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "broken.json"
            path.write_text("[{", encoding="utf-8")
            with self.assertRaises(SystemExit):
                self._run("--input", str(path), "--mode", "hla")


if __name__ == "__main__":
    unittest.main()
