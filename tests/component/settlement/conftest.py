"""
Component Test Fixtures for Settlement Service

Wires SettlementService with the in-memory ledger store, the fake clock and
the boundary mocks. Helpers drive a campaign through its lifecycle.
"""

import pytest
from datetime import timedelta
from typing import List

from microservices.settlement_service.ledger_store import InMemoryLedgerStore
from microservices.settlement_service.models import CampaignCategory
from microservices.settlement_service.settlement_service import SettlementService

from .mocks import (
    ADMIN,
    MAX_QUANTITY,
    MIN_QUANTITY,
    ORGANIZER,
    UNIT_PRICE,
    MockConfidentialCompute,
    MockEventBus,
    MockTransferClient,
)


@pytest.fixture
def ledger_store():
    return InMemoryLedgerStore()


@pytest.fixture
def oracle():
    return MockConfidentialCompute()


@pytest.fixture
def transfers():
    return MockTransferClient()


@pytest.fixture
def event_bus():
    return MockEventBus()


@pytest.fixture
def service(ledger_store, oracle, transfers, event_bus, clock):
    """Service whose direct refund transfers succeed"""
    return SettlementService(
        ledger_store=ledger_store,
        confidential_compute=oracle,
        transfer_client=transfers,
        event_bus=event_bus,
        administrator=ADMIN,
        max_order_lifetime=timedelta(days=7),
        max_orders_per_campaign=50,
        clock=clock,
    )


@pytest.fixture
def offline_service(ledger_store, oracle, event_bus, clock):
    """Service with no transfer client: every refund lands in the pending balance"""
    return SettlementService(
        ledger_store=ledger_store,
        confidential_compute=oracle,
        transfer_client=None,
        event_bus=event_bus,
        administrator=ADMIN,
        clock=clock,
    )


class CampaignDriver:
    """Drives a service through the common campaign steps"""

    def __init__(self, service: SettlementService, clock):
        self.service = service
        self.clock = clock

    async def create(self, organizer: str = ORGANIZER, days: float = 7, **overrides) -> int:
        params = dict(
            organizer=organizer,
            name="Trail runners",
            description="Group buy",
            unit_price=UNIT_PRICE,
            min_order_quantity=MIN_QUANTITY,
            max_order_quantity=MAX_QUANTITY,
            category=CampaignCategory.FOOTWEAR,
            deadline=self.clock.now + timedelta(days=days),
        )
        params.update(overrides)
        return await self.service.campaigns.create_campaign(**params)

    async def place(self, campaign_id: int, participant: str, quantity: int = 1) -> int:
        return await self.service.place_order(participant, campaign_id, quantity, UNIT_PRICE * quantity)

    async def fill(self, campaign_id: int, count: int = MIN_QUANTITY, prefix: str = "0xbuyer") -> List[int]:
        return [await self.place(campaign_id, f"{prefix}{i}") for i in range(1, count + 1)]

    async def processing(self, campaign_id: int, count: int = MIN_QUANTITY) -> List[int]:
        """Fill the campaign to target and begin processing"""
        order_ids = await self.fill(campaign_id, count)
        await self.service.begin_processing(ORGANIZER, campaign_id)
        return order_ids


@pytest.fixture
def driver(service, clock):
    return CampaignDriver(service, clock)


@pytest.fixture
def offline_driver(offline_service, clock):
    return CampaignDriver(offline_service, clock)
