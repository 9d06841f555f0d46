import logging
import unittest

from pydantic import ValidationError

from keylessauth.config import configure_logging, load_settings
from keylessauth.constants import CREDENTIAL_SALT


class TestSettings(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = load_settings(environ={})
        self.assertIsNone(settings.store_path)
        self.assertTrue(settings.normalize_credentials)
        self.assertEqual(settings.salt_bytes, CREDENTIAL_SALT)
        self.assertEqual(settings.publish_attempts, 3)

    def test_environment_values(self) -> None:
        settings = load_settings(
            environ={
                "KEYLESS_STORE_PATH": "leaves.json",
                "KEYLESS_NORMALIZE_CREDENTIALS": "off",
                "KEYLESS_PUBLISH_ATTEMPTS": "5",
                "KEYLESS_PUBLISH_TIMEOUT": "none",
                "KEYLESS_LOG_LEVEL": "debug",
            }
        )
        self.assertEqual(settings.store_path, "leaves.json")
        self.assertFalse(settings.normalize_credentials)
        self.assertEqual(settings.publish_attempts, 5)
        self.assertIsNone(settings.publish_timeout)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_overrides_win_and_none_is_ignored(self) -> None:
        settings = load_settings(
            environ={"KEYLESS_STORE_PATH": "env.json"},
            store_path="cli.json",
            anchor_path=None,
        )
        self.assertEqual(settings.store_path, "cli.json")
        self.assertIsNone(settings.anchor_path)

    def test_invalid_values(self) -> None:
        with self.assertRaises(ValidationError):
            load_settings(environ={"KEYLESS_PUBLISH_ATTEMPTS": "0"})
        with self.assertRaises(ValidationError):
            load_settings(environ={"KEYLESS_SALT": "not-hex"})

    def test_configure_logging_is_idempotent(self) -> None:
        root = logging.getLogger()
        before = len(root.handlers)
        configure_logging("DEBUG")
        configure_logging("INFO")
        self.assertLessEqual(len(root.handlers), before + 1)
        self.assertEqual(logging.getLogger("keylessauth").level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
