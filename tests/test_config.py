from __future__ import annotations

import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from config import Settings
from logging_setup import setup_logging


class SettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)
        self.assertEqual("0 0,12 * * *", settings.UPDATE_SCHEDULE_CRON)
        self.assertEqual(30, settings.MAX_RECORDS)
        self.assertEqual("file", settings.STORAGE_BACKEND)
        self.assertIsNone(settings.SOURCE_COOKIE)
        self.assertEqual(10000, settings.API_PORT)

    def test_environment_overrides(self) -> None:
        env = {"MAX_RECORDS": "7", "STORAGE_BACKEND": "memory", "SOURCE_COOKIE": "session=abc"}
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)
        self.assertEqual(7, settings.MAX_RECORDS)
        self.assertEqual("memory", settings.STORAGE_BACKEND)
        self.assertEqual("session=abc", settings.SOURCE_COOKIE)

    def test_invalid_backend_is_rejected(self) -> None:
        with patch.dict(os.environ, {"STORAGE_BACKEND": "redis"}, clear=True):
            with self.assertRaises(ValueError):
                Settings(_env_file=None)


def _reset_root_handlers() -> None:
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)


class SetupLoggingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._root_level = logging.getLogger().level

    def tearDown(self) -> None:
        _reset_root_handlers()
        logging.getLogger().setLevel(self._root_level)

    def test_writes_daily_log_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_file = setup_logging("DEBUG", tmp)
            logging.getLogger("carbon.test").info("hello log file")
            for handler in logging.getLogger().handlers:
                handler.flush()
            self.assertIsNotNone(log_file)
            self.assertTrue(log_file.name.startswith("carbon_"))
            self.assertIn("hello log file", Path(log_file).read_text(encoding="utf-8"))
            self.assertEqual(logging.DEBUG, logging.getLogger().level)
            _reset_root_handlers()

    def test_stdout_only_without_directory(self) -> None:
        self.assertIsNone(setup_logging("WARNING", None))
        self.assertEqual(logging.WARNING, logging.getLogger().level)


if __name__ == "__main__":
    unittest.main()
