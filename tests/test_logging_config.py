from __future__ import annotations

import logging

import galaxy_display
import galaxy_parameters
import generate_galaxy
import logging_config


def test_module_loggers_live_under_galaxy_namespace():
    for module in (galaxy_display, galaxy_parameters, generate_galaxy):
        assert module.logger.name.startswith(logging_config.LOGGER_NAME + ".")


def test_setup_logging_does_not_stack_handlers(tmp_path):
    log_file = tmp_path / "galaxy.log"
    logger = logging_config.setup_logging(logging.DEBUG)
    logger = logging_config.setup_logging(logging.DEBUG, log_file=str(log_file))

    assert len(logger.handlers) == 2
    generate_galaxy.logger.info("hello")
    for handler in logger.handlers:
        handler.flush()
    assert "galaxy.generate - INFO - hello" in log_file.read_text(encoding="utf-8")

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
