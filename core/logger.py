"""
Service Logger Setup

Configures stdlib logging for a microservice from LoggingConfig.

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("settlement_service")
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig

_configured = set()


def setup_service_logger(
    service_name: str,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure and return the logger for a service.

    Handlers are attached once per service name; calling this again
    returns the already-configured logger.
    """
    logger = logging.getLogger(service_name)
    if service_name in _configured:
        return logger

    config = config or LoggingConfig.from_env()
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(config.log_format)

    logger.setLevel(level)

    if config.enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Service modules log under "microservices.<service>", route them the same way
    package_logger = logging.getLogger(f"microservices.{service_name}")
    package_logger.setLevel(level)
    for handler in logger.handlers:
        package_logger.addHandler(handler)

    _configured.add(service_name)
    return logger


__all__ = ["setup_service_logger"]
