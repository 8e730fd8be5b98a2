"""
Settlement Service Factory

Factory for creating settlement service instances with proper dependency injection.
"""

import logging
from typing import Optional

from core.config import SettlementConfig, get_settings
from core.nats_client import NATSEventBus

from .clients.oracle_client import OracleClient
from .clients.transfer_client import TransferClient
from .ledger_repository import PostgresLedgerStore
from .ledger_store import InMemoryLedgerStore
from .protocols import LedgerStoreProtocol
from .settlement_service import SettlementService

logger = logging.getLogger(__name__)


class SettlementServiceFactory:
    """Factory for creating settlement service components"""

    def __init__(self, config: Optional[SettlementConfig] = None):
        self.config = config or get_settings()
        self._ledger_store: Optional[LedgerStoreProtocol] = None
        self._service: Optional[SettlementService] = None
        self._nats_client: Optional[NATSEventBus] = None
        self._oracle_client: Optional[OracleClient] = None
        self._transfer_client: Optional[TransferClient] = None

    def _create_ledger_store(self) -> LedgerStoreProtocol:
        backend = self.config.ledger_backend
        if backend == "postgres":
            return PostgresLedgerStore(self.config.infra)
        if backend == "memory":
            return InMemoryLedgerStore()
        raise ValueError(f"Unknown ledger backend: {backend}")

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Settlement Service components...")

        # Initialize ledger
        self._ledger_store = self._create_ledger_store()
        await self._ledger_store.initialize()

        # Initialize NATS client
        if self.config.infra.nats_enabled:
            try:
                self._nats_client = NATSEventBus(
                    service_name=self.config.service_name,
                    config=self.config.infra,
                )
                await self._nats_client.connect()
                logger.info("NATS client connected")
            except Exception as e:
                logger.warning(f"NATS client initialization failed: {e}")
                self._nats_client = None

        # Initialize boundary clients
        self._oracle_client = OracleClient(
            base_url=self.config.oracle_url,
            timeout=self.config.oracle_timeout,
            callback_url=f"http://{self.config.service_host}:{self.config.service_port}"
                         "/api/v1/settlement/disclosures/callback",
        )
        if self.config.transfer_enabled:
            self._transfer_client = TransferClient(base_url=self.config.transfer_url)

        # Initialize main service
        self._service = SettlementService(
            ledger_store=self._ledger_store,
            confidential_compute=self._oracle_client,
            transfer_client=self._transfer_client,
            event_bus=self._nats_client,
            administrator=self.config.administrator,
            max_order_lifetime=self.config.max_order_lifetime,
            max_orders_per_campaign=self.config.max_orders_per_campaign,
        )

        logger.info(f"Settlement Service components initialized (ledger: {self.config.ledger_backend})")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Settlement Service components...")

        if self._nats_client:
            await self._nats_client.close()

        if self._oracle_client:
            await self._oracle_client.close()

        if self._transfer_client:
            await self._transfer_client.close()

        if self._ledger_store:
            await self._ledger_store.close()

        logger.info("Settlement Service components closed")

    @property
    def ledger_store(self) -> LedgerStoreProtocol:
        """Get ledger store"""
        if not self._ledger_store:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._ledger_store

    @property
    def service(self) -> SettlementService:
        """Get settlement service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def nats_client(self) -> Optional[NATSEventBus]:
        """Get NATS client"""
        return self._nats_client


# Global factory instance
_factory: Optional[SettlementServiceFactory] = None


async def get_factory() -> SettlementServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = SettlementServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "SettlementServiceFactory",
    "get_factory",
    "close_factory",
]
