"""Tests for logging service configuration."""

import logging
import tempfile
from pathlib import Path
from unittest.mock import patch

from condo_billing.services.logging import get_log_level, setup_logging


class TestSetupLogging:
    """Test billing logging configuration."""

    def setup_method(self):
        """Save original handlers before each test."""
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        """Restore original handlers after each test."""
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)

    def test_creates_log_directory(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "nested" / "billing.log"
            assert not log_file.parent.exists()

            setup_logging(str(log_file))

            assert log_file.parent.exists()

    def test_stdout_and_file_handlers(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            setup_logging(str(Path(temp_dir) / "billing.log"))

            assert len(self.root_logger.handlers) == 2

    def test_stdout_only_without_file(self) -> None:
        setup_logging(None)

        assert len(self.root_logger.handlers) == 1
        assert isinstance(self.root_logger.handlers[0], logging.StreamHandler)

    def test_level_from_environment(self) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "WARNING"}, clear=False):
            setup_logging(None)

            assert self.root_logger.level == logging.WARNING
            for handler in self.root_logger.handlers:
                assert handler.level == logging.WARNING

    def test_explicit_level_wins(self) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "WARNING"}, clear=False):
            setup_logging(None, level=logging.DEBUG)

            assert self.root_logger.level == logging.DEBUG

    def test_writes_timestamped_lines_to_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "billing.log"
            with patch.dict("os.environ", {"LOG_LEVEL": "INFO"}, clear=False):
                setup_logging(str(log_file))

            logging.getLogger("condo_billing.test").info("Generated 3 bills")
            for handler in self.root_logger.handlers:
                handler.flush()

            contents = log_file.read_text()
            assert "Generated 3 bills" in contents
            assert "condo_billing.test" in contents
            assert "[20" in contents


class TestGetLogLevel:
    def test_unknown_level_defaults_to_info(self) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "LOUD"}, clear=False):
            assert get_log_level() == logging.INFO

    def test_case_insensitive(self) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "debug"}, clear=False):
            assert get_log_level() == logging.DEBUG
