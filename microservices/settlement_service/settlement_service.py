"""
Settlement Service Business Logic

Facade over the settlement components: campaign lifecycle, confidential
orders, the disclosure protocol and refunds, plus the read-only,
authorization-gated query surface.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .campaign_manager import CampaignManager
from .confidential import ConfidentialBoundary
from .disclosure_coordinator import DisclosureCoordinator, DisclosureTimeoutSweeper
from .events.publishers import SettlementEventPublisher
from .guards import (
    require_campaign_exists,
    require_order_exists,
    require_organizer,
    utc_now,
)
from .ledger_store import Ledger
from .models import (
    AggregateStatsResponse,
    AuditRecord,
    Campaign,
    CampaignCreateRequest,
    DisclosureStatus,
    DisclosureStatusResponse,
    Order,
)
from .order_engine import OrderEngine
from .protocols import (
    ConfidentialComputeProtocol,
    EventBusProtocol,
    LedgerStoreProtocol,
    TransferClientProtocol,
    UnauthorizedError,
)
from .refund_ledger import RefundLedger

logger = logging.getLogger(__name__)


class SettlementService:
    """Settlement service business logic layer"""

    DEFAULT_MAX_ORDER_LIFETIME = timedelta(days=7)
    DEFAULT_MAX_ORDERS_PER_CAMPAIGN = 10_000

    def __init__(
        self,
        ledger_store: LedgerStoreProtocol,
        confidential_compute: ConfidentialComputeProtocol,
        transfer_client: Optional[TransferClientProtocol] = None,
        event_bus: Optional[EventBusProtocol] = None,
        administrator: str = "admin",
        max_order_lifetime: timedelta = DEFAULT_MAX_ORDER_LIFETIME,
        max_orders_per_campaign: int = DEFAULT_MAX_ORDERS_PER_CAMPAIGN,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ledger_store = ledger_store
        self.administrator = administrator
        self.clock = clock

        self.ledger = Ledger(ledger_store)
        self.confidential = ConfidentialBoundary(confidential_compute)
        self.publisher = SettlementEventPublisher(event_bus, clock=clock)
        self.refunds = RefundLedger(self.ledger, self.publisher, transfer_client)
        self.campaigns = CampaignManager(self.ledger, self.confidential, self.publisher, clock)
        self.orders = OrderEngine(
            self.ledger,
            self.confidential,
            self.refunds,
            self.publisher,
            max_order_lifetime=max_order_lifetime,
            max_orders_per_campaign=max_orders_per_campaign,
            clock=clock,
        )
        self.disclosures = DisclosureCoordinator(
            self.ledger,
            self.confidential,
            self.refunds,
            self.publisher,
            administrator=administrator,
            clock=clock,
        )
        self.sweeper = DisclosureTimeoutSweeper(self.disclosures, self.ledger)

    # ====================
    # Campaigns
    # ====================

    async def create_campaign(self, organizer: str, request: CampaignCreateRequest) -> int:
        return await self.campaigns.create_campaign(
            organizer=organizer,
            name=request.name,
            description=request.description,
            unit_price=request.unit_price,
            min_order_quantity=request.min_order_quantity,
            max_order_quantity=request.max_order_quantity,
            category=request.category,
            deadline=request.deadline,
        )

    async def deactivate_campaign(self, organizer: str, campaign_id: int) -> None:
        await self.campaigns.deactivate_campaign(organizer, campaign_id)

    async def check_target_reached(self, campaign_id: int) -> bool:
        return await self.campaigns.check_target_reached(campaign_id)

    async def begin_processing(self, organizer: str, campaign_id: int) -> int:
        return await self.campaigns.begin_processing(organizer, campaign_id)

    # ====================
    # Orders
    # ====================

    async def place_order(self, participant: str, campaign_id: int, quantity: int, paid_amount: int) -> int:
        return await self.orders.place_order(participant, campaign_id, quantity, paid_amount)

    async def cancel_order(self, participant: str, order_id: int) -> int:
        return await self.orders.cancel_order(participant, order_id)

    async def has_ordered(self, campaign_id: int, participant: str) -> bool:
        return await self.orders.has_ordered(campaign_id, participant)

    # ====================
    # Disclosure protocol
    # ====================

    async def request_disclosure(self, participant: str, order_id: int) -> str:
        return await self.disclosures.request_disclosure(participant, order_id)

    async def on_disclosure_callback(
        self, request_id: str, revealed_quantity: int, revealed_amount: int, proof: str
    ) -> int:
        return await self.disclosures.on_disclosure_callback(
            request_id, revealed_quantity, revealed_amount, proof
        )

    async def on_disclosure_timeout(self, administrator: str, order_id: int) -> int:
        return await self.disclosures.on_disclosure_timeout(administrator, order_id)

    async def sweep_expired_disclosures(self, administrator: str) -> List[int]:
        return await self.sweeper.sweep(administrator)

    # ====================
    # Refunds
    # ====================

    async def claim_pending_refund(self, participant: str) -> int:
        return await self.refunds.claim_pending_refund(participant)

    async def get_pending_refund(self, participant: str) -> int:
        return await self.refunds.get_pending_refund(participant)

    # ====================
    # Queries
    # ====================

    async def get_campaign_info(self, campaign_id: int) -> Campaign:
        return require_campaign_exists(await self.ledger.peek_campaign(campaign_id), campaign_id)

    async def get_order_info(self, actor: str, order_id: int) -> Order:
        """Participant or administrator only"""
        order = require_order_exists(await self.ledger.peek_order(order_id), order_id)
        self._require_order_reader(order, actor)
        return order

    async def get_aggregate_stats(self, campaign_id: int) -> AggregateStatsResponse:
        """Participant count and target flag; never per-participant figures"""
        require_campaign_exists(await self.ledger.peek_campaign(campaign_id), campaign_id)
        stats = await self.ledger.peek_stats(campaign_id)
        return AggregateStatsResponse(
            campaign_id=campaign_id,
            total_participants=stats.total_participants,
            target_reached=stats.target_reached,
        )

    async def get_disclosure_status(self, actor: str, order_id: int) -> DisclosureStatusResponse:
        order = require_order_exists(await self.ledger.peek_order(order_id), order_id)
        self._require_order_reader(order, actor)
        return DisclosureStatusResponse(
            order_id=order_id,
            disclosure_status=order.disclosure_status,
            disclosure_request_id=order.disclosure_request_id,
            disclosure_deadline=order.disclosure_deadline,
            timed_out=order.disclosure_status == DisclosureStatus.FAILED,
        )

    async def list_campaign_orders(self, actor: str, campaign_id: int) -> List[int]:
        """Organizer only"""
        campaign = require_campaign_exists(await self.ledger.peek_campaign(campaign_id), campaign_id)
        require_organizer(campaign, actor)
        return await self.ledger.peek_campaign_order_ids(campaign_id)

    def get_audit_trail(
        self,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditRecord]:
        return self.publisher.get_audit_trail(entity_id=entity_id, action=action, limit=limit)

    async def health_check(self) -> bool:
        return await self.ledger_store.health_check()

    def _require_order_reader(self, order: Order, actor: str) -> None:
        if actor not in (order.participant, self.administrator):
            raise UnauthorizedError("Not order participant or administrator")


__all__ = ["SettlementService"]
