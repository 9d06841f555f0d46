import contextlib
import io
import json
import os
import tempfile
import unittest

import keyless_auth


class TestCommandLine(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.base = [
            "--store",
            os.path.join(self.tmp.name, "registry.json"),
            "--anchor",
            os.path.join(self.tmp.name, "anchor.json"),
            "--log-level",
            "warning",
        ]

    def _run(self, *args: str):
        stdout = io.StringIO()
        stderr = io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            code = keyless_auth.main(self.base + list(args))
        output = stdout.getvalue()
        return code, (json.loads(output) if output.strip() else None), stderr.getvalue()

    def test_register_prove_and_login(self) -> None:
        code, payload, _ = self._run("register", "a@x.com")
        self.assertEqual(code, 0)
        self.assertEqual(payload["sequence"], 1)
        self._run("register", "b@x.com")

        bundle_path = os.path.join(self.tmp.name, "proof.json")
        code, bundle, _ = self._run("proof", "a@x.com", "--output", bundle_path)
        self.assertEqual(code, 0)
        self.assertTrue(os.path.exists(bundle_path))

        code, result, _ = self._run("login", "a@x.com", "--proof", bundle_path)
        self.assertEqual(code, 0)
        self.assertTrue(result["success"])

        code, result, _ = self._run("login", "zzz@x.com", "--proof", bundle_path)
        self.assertEqual(code, 1)
        self.assertFalse(result["success"])

        code, result, _ = self._run("verify", bundle_path)
        self.assertEqual(code, 0)
        self.assertTrue(result["valid"])

    def test_duplicate_reports_error(self) -> None:
        self._run("register", "a@x.com")
        code, payload, stderr = self._run("register", "a@x.com")
        self.assertEqual(code, 1)
        self.assertIsNone(payload)
        self.assertIn("DuplicateCredentialError", stderr)

    def test_batch_root_and_history(self) -> None:
        path = os.path.join(self.tmp.name, "credentials.txt")
        with open(path, "w", encoding="utf-8") as handle:
            handle.write("a@x.com\nb@x.com\n\nc@x.com\n")
        code, payload, _ = self._run("register-batch", path)
        self.assertEqual(code, 0)
        self.assertEqual(len(payload["leaves"]), 3)

        _, root, _ = self._run("root")
        self.assertEqual(root["root"], payload["root"])
        self.assertEqual(root["leaf_count"], 3)

        _, history, _ = self._run("history")
        self.assertEqual([entry["sequence"] for entry in history], [0, 1])


if __name__ == "__main__":
    unittest.main()
