"""
Logging for the grant agent orchestrator.

All loggers live under the ``grant_agent_orchestrator`` namespace. Handlers are
attached to the namespace root once; component loggers (``orchestrator``,
``workers``, ...) are children that propagate to it.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Any, Optional

from .config import LOG_LEVELS, Config
from .exceptions import ConfigurationError


ROOT_LOGGER = "grant_agent_orchestrator"


def level_value(level: str) -> int:
    name = level.upper()
    if name not in LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level: {level}", "INVALID_LOG_LEVEL")
    return getattr(logging, name)


class LoggingManager:
    """Configures the namespace root logger and hands out component loggers."""

    def __init__(self, config: Config, console: bool = True):
        self.config = config
        self.console = console
        self._root: Optional[logging.Logger] = None
        self._loggers: Dict[str, logging.Logger] = {}

    def get_logger(self, component: Optional[str] = None) -> logging.Logger:
        """Get the root logger, or the child logger for a component."""
        root = self._configure_root()
        if component is None:
            return root
        if component not in self._loggers:
            self._loggers[component] = root.getChild(component)
        return self._loggers[component]

    def _configure_root(self) -> logging.Logger:
        if self._root is not None:
            return self._root

        settings = self.config.logging
        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level_value(settings.level))

        # The latest manager owns the namespace handlers
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        log_file = Path(settings.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level_value(settings.level))
        file_handler.setFormatter(logging.Formatter(settings.format))
        root.addHandler(file_handler)

        if self.console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level_value(settings.console_level))
            console_handler.setFormatter(logging.Formatter('%(name)s - %(levelname)s - %(message)s'))
            root.addHandler(console_handler)

        self._root = root
        return root

    def update_log_level(self, level: str) -> None:
        """Change the level of the namespace and of its log file."""
        log_level = level_value(level)
        root = self._configure_root()
        root.setLevel(log_level)
        for handler in root.handlers:
            if isinstance(handler, logging.FileHandler):
                handler.setLevel(log_level)

    def shutdown(self) -> None:
        """Detach and close the handlers this manager installed."""
        if self._root is None:
            return
        for handler in list(self._root.handlers):
            self._root.removeHandler(handler)
            handler.close()
        self._root = None
        self._loggers.clear()

    def get_system_info(self) -> Dict[str, Any]:
        """Get logging system information."""
        root = self._configure_root()
        return {
            "log_level": logging.getLevelName(root.level),
            "console_level": self.config.logging.console_level if self.console else None,
            "log_file": self.config.logging.file,
            "active_loggers": [root.name] + [logger.name for logger in self._loggers.values()],
        }
