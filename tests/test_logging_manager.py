"""
Test logging setup for the grant agent orchestrator.
"""

import pytest
import logging

from grant_agent_orchestrator.config import Config
from grant_agent_orchestrator.exceptions import ConfigurationError
from grant_agent_orchestrator.logging_manager import ROOT_LOGGER, LoggingManager


@pytest.fixture
def config(tmp_path):
    config = Config.default()
    config.logging.file = str(tmp_path / "logs" / "orchestrator.log")
    config.logging.format = "%(name)s|%(levelname)s|%(message)s"
    return config


@pytest.fixture
def manager(config):
    manager = LoggingManager(config, console=False)
    yield manager
    manager.shutdown()


def read_log(config) -> str:
    for handler in logging.getLogger(ROOT_LOGGER).handlers:
        handler.flush()
    with open(config.logging.file) as f:
        return f.read()


class TestLoggingManager:

    def test_component_loggers_share_namespace_handlers(self, manager, config):
        root = manager.get_logger()
        worker_logger = manager.get_logger("workers")

        worker_logger.info("Executing task task_1")

        assert root.name == ROOT_LOGGER
        assert worker_logger.name == f"{ROOT_LOGGER}.workers"
        assert manager.get_logger("workers") is worker_logger
        assert worker_logger.handlers == []
        assert "grant_agent_orchestrator.workers|INFO|Executing task task_1" in read_log(config)

    def test_level_filters_file_output(self, manager, config):
        logger = manager.get_logger("orchestrator")

        logger.debug("dispatch detail")
        logger.warning("agent in error state")

        contents = read_log(config)
        assert "dispatch detail" not in contents
        assert "agent in error state" in contents

    def test_update_log_level(self, manager, config):
        logger = manager.get_logger("orchestrator")

        manager.update_log_level("debug")
        logger.debug("dispatch detail")

        assert "dispatch detail" in read_log(config)
        assert manager.get_system_info()["log_level"] == "DEBUG"

        with pytest.raises(ConfigurationError):
            manager.update_log_level("LOUD")

    def test_console_handler_uses_console_level(self, config):
        config.logging.console_level = "ERROR"
        manager = LoggingManager(config, console=True)
        try:
            root = manager.get_logger()
            consoles = [handler for handler in root.handlers if not isinstance(handler, logging.FileHandler)]
            assert len(consoles) == 1
            assert consoles[0].level == logging.ERROR
        finally:
            manager.shutdown()

    def test_new_manager_replaces_handlers(self, manager, config, tmp_path):
        manager.get_logger()
        other_config = config.model_copy(deep=True)
        other_config.logging.file = str(tmp_path / "other.log")

        other = LoggingManager(other_config, console=False)
        try:
            handlers = other.get_logger().handlers
            assert len(handlers) == 1
            assert handlers[0].baseFilename == str(tmp_path / "other.log")
        finally:
            other.shutdown()

    def test_shutdown_detaches_handlers(self, config):
        manager = LoggingManager(config, console=False)
        manager.get_logger("workers")

        manager.shutdown()

        assert logging.getLogger(ROOT_LOGGER).handlers == []

    def test_get_system_info(self, manager, config):
        manager.get_logger("orchestrator")

        info = manager.get_system_info()

        assert info["log_file"] == config.logging.file
        assert info["console_level"] is None
        assert info["active_loggers"] == [ROOT_LOGGER, f"{ROOT_LOGGER}.orchestrator"]
