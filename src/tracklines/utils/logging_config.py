"""
Centralized logging configuration for tracklines.
Provides component-specific loggers with separate log files.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime

from ..config import get_config

DETAILED_FORMAT = (
    '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s'
)


class ComponentLogger:
    """Manages component-specific logging with separate files."""

    _loggers: Dict[str, logging.Logger] = {}
    _initialized = False
    _log_dir: Optional[Path] = None
    _debug = False

    # Component definitions with their log levels
    COMPONENTS = {
        'service': {'level': logging.INFO, 'file': 'service.log'},
        'database': {'level': logging.INFO, 'file': 'database.log'},
        'propagation': {'level': logging.INFO, 'file': 'propagation.log'},
        'api': {'level': logging.INFO, 'file': 'api.log'},
        'main': {'level': logging.INFO, 'file': 'main.log'},
        'error': {'level': logging.ERROR, 'file': 'errors.log'},  # Centralized error log
    }

    @classmethod
    def initialize(cls, log_dir: Optional[str] = None, debug: bool = False) -> None:
        """
        Initialize the logging system with component-specific loggers.

        Args:
            log_dir: Directory for log files. Defaults to config.app.log_dir
            debug: Enable debug logging for all components
        """
        if cls._initialized:
            return

        config = get_config()
        debug = debug or config.server.debug
        cls._debug = debug

        base_dir = Path(log_dir) if log_dir else Path(config.app.log_dir)

        # Session-specific subdirectory
        session_dir = datetime.now().strftime("%Y%m%d_%H%M%S")
        cls._log_dir = base_dir / session_dir
        cls._log_dir.mkdir(parents=True, exist_ok=True)

        detailed_formatter = logging.Formatter(DETAILED_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
        simple_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )

        root_level = logging.DEBUG if debug else logging.INFO

        # Unified log shared by every component
        unified_handler = logging.handlers.RotatingFileHandler(
            cls._log_dir / 'unified.log',
            maxBytes=20 * 1024 * 1024,  # 20MB
            backupCount=3,
            encoding='utf-8'
        )
        unified_handler.setLevel(root_level)
        unified_handler.setFormatter(detailed_formatter)

        unified_logger = logging.getLogger('tracklines.unified')
        unified_logger.handlers.clear()
        unified_logger.setLevel(root_level)
        unified_logger.propagate = False
        unified_logger.addHandler(unified_handler)
        cls._loggers['unified'] = unified_logger

        for component_name, component_config in cls.COMPONENTS.items():
            level = logging.DEBUG if debug else component_config['level']
            logger = cls._build_logger(component_name, component_config['file'], level)

            # Console handler for errors
            if component_name in ['error', 'main']:
                console_handler = logging.StreamHandler(sys.stderr)
                console_handler.setLevel(logging.ERROR)
                console_handler.setFormatter(simple_formatter)
                logger.addHandler(console_handler)

        cls._initialized = True

        main_logger = cls._loggers['main']
        main_logger.info("=" * 80)
        main_logger.info("tracklines logging initialized")
        main_logger.info(f"Session: {session_dir}")
        main_logger.info(f"Log directory: {cls._log_dir}")
        main_logger.info(f"Debug mode: {debug}")
        main_logger.info("=" * 80)

    @classmethod
    def _build_logger(cls, component: str, filename: str, level: int) -> logging.Logger:
        """Create a component logger writing to its own file and to unified.log."""
        logger = logging.getLogger(f"tracklines.{component}")
        logger.handlers.clear()
        logger.propagate = False
        logger.setLevel(level)

        file_handler = logging.handlers.RotatingFileHandler(
            cls._log_dir / filename,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(file_handler)

        unified_logger = cls._loggers.get('unified')
        if unified_logger:
            for handler in unified_logger.handlers:
                logger.addHandler(handler)

        cls._loggers[component] = logger
        return logger

    @classmethod
    def get_logger(cls, component: str) -> logging.Logger:
        """
        Get a logger for a specific component.

        Args:
            component: Component name (service, database, propagation, api, main)

        Returns:
            Logger instance for the component
        """
        if not cls._initialized:
            cls.initialize()

        if component not in cls._loggers:
            level = logging.DEBUG if cls._debug else logging.INFO
            cls._build_logger(component, f"{component}.log", level)
        return cls._loggers[component]

    @classmethod
    def log_exception(cls, component: str, exc: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Log an exception with context to both component and error logs.

        Args:
            component: Component where the exception occurred
            exc: The exception to log
            context: Additional context information
        """
        component_logger = cls.get_logger(component)
        error_logger = cls._loggers['error']

        context_str = ""
        if context:
            context_str = " | Context: " + ", ".join(f"{k}={v}" for k, v in context.items())

        exc_info = (type(exc), exc, exc.__traceback__)
        component_logger.error(
            f"Exception in {component}: {type(exc).__name__}: {exc}{context_str}", exc_info=exc_info
        )
        error_logger.error(f"[{component}] {type(exc).__name__}: {exc}{context_str}", exc_info=exc_info)

    @classmethod
    def get_log_directory(cls) -> Optional[Path]:
        """Get the current log directory path."""
        return cls._log_dir

    @classmethod
    def shutdown(cls) -> None:
        """Close every handler and forget the loggers."""
        closed = set()
        for logger in cls._loggers.values():
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                if id(handler) not in closed:
                    handler.close()
                    closed.add(id(handler))
        cls._loggers = {}
        cls._initialized = False
        cls._log_dir = None


# Convenience functions
def get_logger(component: str) -> logging.Logger:
    """Get a logger for a specific component."""
    return ComponentLogger.get_logger(component)


def initialize_logging(log_dir: Optional[str] = None, debug: bool = False) -> None:
    """Initialize the logging system."""
    ComponentLogger.initialize(log_dir=log_dir, debug=debug)


def log_exception(component: str, exc: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
    """Log an exception with context."""
    ComponentLogger.log_exception(component, exc, context)

