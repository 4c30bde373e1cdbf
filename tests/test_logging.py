"""Tests for rgbdgeom.utils.logging_config."""

import logging

import pytest

from rgbdgeom.utils.logging_config import get_logger, setup_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger("rgbdgeom")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


class TestSetupLogging:
    """Tests for package-scoped logging setup."""

    def test_configures_package_logger_only(self, package_logger):
        root_handlers = list(logging.getLogger().handlers)
        logger = setup_logging("debug")

        assert logger is package_logger
        assert logger.level == logging.DEBUG
        assert logging.getLogger().handlers == root_handlers

    def test_repeated_setup_does_not_stack_handlers(self, package_logger):
        setup_logging("INFO")
        count = len(package_logger.handlers)
        setup_logging("WARNING")
        assert len(package_logger.handlers) == count
        assert package_logger.level == logging.WARNING

    def test_log_file(self, package_logger, tmp_path):
        log_file = tmp_path / "rgbdgeom.log"
        setup_logging("INFO", log_file=str(log_file), format_string="%(name)s %(message)s")
        get_logger("cli").info("hello")
        for handler in package_logger.handlers:
            handler.flush()
        assert "rgbdgeom.cli hello" in log_file.read_text()

    def test_records_still_propagate(self, package_logger, caplog):
        setup_logging("INFO")
        with caplog.at_level(logging.INFO):
            get_logger("cli").info("propagated")
        assert "propagated" in caplog.text

    def test_unknown_level(self, package_logger):
        with pytest.raises(ValueError):
            setup_logging("LOUD")
