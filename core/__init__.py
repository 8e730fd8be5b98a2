#!/usr/bin/env python3
"""
Core Module for the Settlement Microservice

Shared infrastructure components used by the service package.

COMPONENTS:
    - config/: Dataclass configuration loaded from the environment
    - logger.py: Service logger setup
    - nats_client.py: NATS JetStream event bus for event-driven architecture

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    settings = get_settings()
    logger = setup_service_logger(settings.service_name)
"""

__version__ = "2.0.0"
