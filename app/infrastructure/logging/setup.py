"""Structlog configuration and logger factories.

``configure_logging`` is called once when this module is imported and again
by the application lifespan with the loaded settings. Under pytest every
record is dropped so test output stays readable.

Usage:
    from infrastructure.logging import get_module_logger

    logger = get_module_logger()
    logger.info("notification_created", notification_id="n-1")
"""

import inspect
import logging
import sys
from typing import List, Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.typing import Processor

from infrastructure.configuration import Settings
from infrastructure.logging.formatters import (
    add_app_info,
    add_environment_info,
    mask_sensitive_data,
    truncate_large_values,
)

APP_NAME = "notification-service"

# Contact details are personal data and never belong in logs
CONTACT_PATTERNS = frozenset({"email", "phone", "push_tokens"})

SILENT_LEVEL = logging.CRITICAL + 1


def _is_test_environment() -> bool:
    return "pytest" in sys.modules


def _silence_for_tests() -> BoundLogger:
    logging.root.setLevel(SILENT_LEVEL)
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=SILENT_LEVEL, force=True)
    return structlog.stdlib.get_logger()


def build_processors(settings: Settings, json_output: bool) -> List[Processor]:
    """Processor chain shared by every logger.

    Contact fields and credentials are masked before rendering; the final
    renderer is JSON in production and the console renderer elsewhere.
    """
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
        add_app_info(APP_NAME, settings.GIT_SHA),
        add_environment_info(settings.PREFIX or "production"),
        mask_sensitive_data(additional_patterns=CONTACT_PATTERNS),
        truncate_large_values(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(
    log_level: Optional[str] = None,
    is_production: Optional[bool] = None,
) -> BoundLogger:
    """Configure structlog for the process.

    Args:
        log_level: Overrides ``Settings.LOG_LEVEL`` (DEBUG, INFO, ...).
        is_production: Overrides ``Settings.is_production``; selects JSON
            output when true.

    Returns:
        A logger with no bound context.
    """
    if _is_test_environment():
        return _silence_for_tests()

    settings = Settings()
    json_output = settings.is_production if is_production is None else is_production

    structlog.configure(
        processors=build_processors(settings, json_output),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    level_name = (log_level or settings.LOG_LEVEL).upper()
    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name, logging.INFO))

    return structlog.stdlib.get_logger()


logger: BoundLogger = configure_logging()


def get_logger(name: str) -> BoundLogger:
    """Logger bound to an explicit ``logger_name``."""
    return logger.bind(logger_name=name)


def _caller_module_name() -> Optional[str]:
    frame = inspect.currentframe()
    # Two frames up: past this helper and past get_module_logger
    for _ in range(2):
        if frame is None:
            return None
        frame = frame.f_back
    module = inspect.getmodule(frame) if frame is not None else None
    return module.__name__ if module else None


def get_module_logger() -> BoundLogger:
    """Logger bound to the calling module.

    Example:
        # In infrastructure/notifications/dispatcher.py
        logger = get_module_logger()
        # context: {"component": "dispatcher",
        #           "module_path": "infrastructure.notifications.dispatcher"}
    """
    module_name = _caller_module_name()
    if module_name is None:
        return logger.bind(component="unknown")
    return logger.bind(component=module_name.rsplit(".", 1)[-1], module_path=module_name)
