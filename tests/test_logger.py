"""Tests for structured logging: run context binding and noisy library loggers."""

import logging
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

import shortage_fixtures  # noqa: E402,F401

import structlog  # noqa: E402

from shortage_sync.utils.logger import QUIET_LOGGERS, bind_context, get_logger, unbind_context  # noqa: E402


class TestLogger(unittest.TestCase):
    def tearDown(self):
        structlog.contextvars.clear_contextvars()

    def test_run_context_is_bound_and_removed(self):
        bind_context(sync_run_id=42)
        self.assertEqual(structlog.contextvars.get_contextvars()["sync_run_id"], 42)
        unbind_context("sync_run_id")
        self.assertNotIn("sync_run_id", structlog.contextvars.get_contextvars())

    def test_library_loggers_are_quieted(self):
        get_logger("shortage_sync.tests")
        for name in QUIET_LOGGERS:
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)

    def test_bindings_are_applied(self):
        logger = get_logger("shortage_sync.tests", component="reader")
        self.assertEqual(structlog.get_context(logger)["component"], "reader")


if __name__ == "__main__":
    unittest.main()
