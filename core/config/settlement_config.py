#!/usr/bin/env python3
"""Settlement service configuration

Service identity, settlement policy knobs and the external boundaries
(confidential-computation oracle, wallet transfers).
"""
import os
from dataclasses import dataclass, field
from datetime import timedelta

from .infra_config import InfraConfig
from .logging_config import LoggingConfig

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class SettlementConfig:
    """Settlement service configuration"""

    # ===========================================
    # Service identity
    # ===========================================
    service_name: str = "settlement_service"
    service_host: str = "0.0.0.0"
    service_port: int = 8250
    debug: bool = False
    environment: str = "development"

    # ===========================================
    # Settlement policy
    # ===========================================
    max_order_lifetime_seconds: int = 7 * 24 * 60 * 60
    max_orders_per_campaign: int = 10_000
    administrator: str = "admin"

    # ===========================================
    # Ledger backend: "memory" or "postgres"
    # ===========================================
    ledger_backend: str = "memory"

    # ===========================================
    # External boundaries
    # ===========================================
    oracle_url: str = "http://localhost:8260"
    oracle_timeout: float = 30.0
    transfer_url: str = "http://localhost:8208"
    transfer_enabled: bool = True

    infra: InfraConfig = field(default_factory=InfraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def max_order_lifetime(self) -> timedelta:
        return timedelta(seconds=self.max_order_lifetime_seconds)

    @property
    def log_level(self) -> str:
        return self.logging.log_level

    @classmethod
    def from_env(cls) -> 'SettlementConfig':
        """Load settlement config from environment variables"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            # Service
            service_name=os.getenv("SERVICE_NAME", "settlement_service"),
            service_host=os.getenv("SERVICE_HOST", "0.0.0.0"),
            service_port=_int(os.getenv("SERVICE_PORT", "8250"), 8250),
            debug=_bool(os.getenv("DEBUG", "false")),
            environment=env,

            # Policy
            max_order_lifetime_seconds=_int(
                os.getenv("SETTLEMENT_MAX_ORDER_LIFETIME_SECONDS", ""), 7 * 24 * 60 * 60
            ),
            max_orders_per_campaign=_int(os.getenv("SETTLEMENT_MAX_ORDERS_PER_CAMPAIGN", ""), 10_000),
            administrator=os.getenv("SETTLEMENT_ADMINISTRATOR", "admin"),

            # Ledger
            ledger_backend=os.getenv("SETTLEMENT_LEDGER_BACKEND", "memory").lower(),

            # Boundaries
            oracle_url=os.getenv("ORACLE_URL", "http://localhost:8260"),
            oracle_timeout=float(os.getenv("ORACLE_TIMEOUT", "30") or 30),
            transfer_url=os.getenv("TRANSFER_URL") or os.getenv("WALLET_SERVICE_URL", "http://localhost:8208"),
            transfer_enabled=_bool(os.getenv("TRANSFER_ENABLED", "true")),

            infra=InfraConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )
