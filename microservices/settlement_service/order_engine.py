"""
Order Engine

Places and cancels orders, keeps campaign counters and aggregates in step,
and owns the order state machine.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from .confidential import ConfidentialBoundary
from .events.publishers import SettlementEventPublisher
from .guards import (
    require_campaign_open,
    require_identity,
    require_order_exists,
    require_participant,
    require_positive_amount,
    utc_now,
)
from .ledger_store import Ledger, LedgerKeys
from .models import Campaign, Order, OrderStatus
from .protocols import (
    CampaignNotEligibleError,
    CapacityExceededError,
    DuplicateOrderError,
    ExpiredError,
    InvalidStateError,
    PaymentMismatchError,
)
from .refund_ledger import RefundLedger

logger = logging.getLogger(__name__)


# Valid order state transitions
VALID_TRANSITIONS: Dict[OrderStatus, List[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.PROCESSING, OrderStatus.CANCELLED],
    OrderStatus.PROCESSING: [OrderStatus.COMPLETED, OrderStatus.REFUNDED],
    OrderStatus.COMPLETED: [],  # Terminal state
    OrderStatus.CANCELLED: [],  # Terminal state
    OrderStatus.REFUNDED: [],  # Terminal state
}


def transition(order: Order, target: OrderStatus, now: datetime) -> None:
    """Move order to target, rejecting anything the state machine forbids"""
    if target not in VALID_TRANSITIONS[order.status]:
        raise InvalidStateError(
            f"Cannot move order {order.order_id} from {order.status.value} to {target.value}",
            current_status=order.status.value,
        )
    order.status = target
    order.updated_at = now


class OrderEngine:
    """Order placement and cancellation"""

    def __init__(
        self,
        ledger: Ledger,
        confidential: ConfidentialBoundary,
        refunds: RefundLedger,
        publisher: SettlementEventPublisher,
        max_order_lifetime: timedelta,
        max_orders_per_campaign: int,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ledger = ledger
        self.confidential = confidential
        self.refunds = refunds
        self.publisher = publisher
        self.max_order_lifetime = max_order_lifetime
        self.max_orders_per_campaign = max_orders_per_campaign
        self.clock = clock

    async def place_order(
        self,
        participant: str,
        campaign_id: int,
        quantity: int,
        paid_amount: int,
    ) -> int:
        """
        Place a confidential order.

        The order is sealed with the oracle before any ledger lock is taken;
        the checks are repeated under the campaign lock, and the global order
        sequence is only locked for the final id allocation.

        Returns:
            The new order id

        Raises:
            CampaignNotEligibleError: campaign missing, inactive or expired
            InvalidParameterError: quantity outside [1, max_order_quantity]
            DuplicateOrderError: participant already holds a live order
            PaymentMismatchError: paid_amount != unit_price * quantity
            CapacityExceededError: campaign at its order-count ceiling
        """
        require_identity(participant, "participant")

        self._require_placeable(
            await self.ledger.peek_campaign(campaign_id),
            campaign_id,
            await self.ledger.peek_live_order_id(campaign_id, participant),
            participant,
            quantity,
            paid_amount,
            self.clock(),
        )
        quantity_handle, amount_handle = await self.confidential.seal_order(
            participant, quantity, paid_amount
        )

        async with self.ledger.session(LedgerKeys.campaign(campaign_id)) as session:
            now = self.clock()
            campaign = await session.get_campaign(campaign_id)
            self._require_placeable(
                campaign,
                campaign_id,
                await session.get_live_order_id(campaign_id, participant),
                participant,
                quantity,
                paid_amount,
                now,
            )

            stats = await session.get_stats(campaign_id)
            stats.total_participants += 1
            stats = await self.confidential.accumulate(stats, quantity_handle, amount_handle)
            await session.save_stats(stats)

            order_id = await session.next_id(LedgerKeys.ORDER_SEQUENCE)
            order = Order(
                order_id=order_id,
                campaign_id=campaign_id,
                participant=participant,
                quantity_handle=quantity_handle,
                amount_handle=amount_handle,
                paid_amount=paid_amount,
                placed_at=now,
                disclosure_deadline=now + self.max_order_lifetime,
            )
            await session.save_order(order)
            await session.set_live_order(campaign_id, participant, order_id)
            await session.append_campaign_order(campaign_id, order_id)

            campaign.current_orders += 1
            campaign.total_collected += paid_amount
            await session.save_campaign(campaign)

            await self.refunds.credit(session, campaign_id, paid_amount)

        logger.info(f"Order {order_id} placed on campaign {campaign_id} by {participant}")
        await self.publisher.publish_order_placed(
            order_id=order_id,
            campaign_id=campaign_id,
            participant=participant,
            paid_amount=paid_amount,
            current_orders=campaign.current_orders,
        )
        return order_id

    def _require_placeable(
        self,
        campaign: Optional[Campaign],
        campaign_id: int,
        live_order_id: Optional[int],
        participant: str,
        quantity: int,
        paid_amount: int,
        now: datetime,
    ) -> None:
        if campaign is None:
            raise CampaignNotEligibleError(f"Campaign not found: {campaign_id}")
        require_campaign_open(campaign, now)
        require_positive_amount(quantity, "quantity", campaign.max_order_quantity)

        if live_order_id is not None:
            raise DuplicateOrderError(f"{participant} already ordered on campaign {campaign_id}")

        expected = campaign.unit_price * quantity
        if isinstance(paid_amount, bool) or paid_amount != expected:
            raise PaymentMismatchError(f"Incorrect payment: expected {expected}, got {paid_amount}")

        if campaign.current_orders >= self.max_orders_per_campaign:
            raise CapacityExceededError(
                f"Campaign {campaign_id} reached {self.max_orders_per_campaign} orders"
            )

    async def cancel_order(self, participant: str, order_id: int) -> int:
        """
        Cancel a pending order and refund it.

        Returns:
            The refunded amount
        """
        located = require_order_exists(await self.ledger.peek_order(order_id), order_id)
        campaign_id = located.campaign_id

        async with self.ledger.session(LedgerKeys.campaign(campaign_id)) as session:
            now = self.clock()
            order = require_order_exists(await session.get_order(order_id), order_id)
            require_participant(order, participant)
            if order.status != OrderStatus.PENDING:
                raise InvalidStateError(
                    f"Order {order_id} is {order.status.value}, only pending orders can be cancelled",
                    current_status=order.status.value,
                )

            campaign = await session.get_campaign(campaign_id)
            if now >= campaign.deadline:
                raise ExpiredError(f"Campaign {campaign_id} deadline passed")
            if now >= order.disclosure_deadline:
                raise ExpiredError(f"Order {order_id} deadline passed")

            refund_amount = order.refundable_amount
            transition(order, OrderStatus.CANCELLED, now)
            await session.save_order(order)
            await session.clear_live_order(campaign_id, participant)

            campaign.current_orders -= 1
            campaign.total_collected -= order.paid_amount
            await session.save_campaign(campaign)

            await self.refunds.stage_refund(session, campaign_id, participant, refund_amount)

        logger.info(f"Order {order_id} cancelled by {participant}")
        await self.publisher.publish_order_cancelled(order_id, campaign_id, participant, refund_amount)
        await self.refunds.settle_refund(participant, refund_amount, f"order:{order_id}")
        return refund_amount

    async def has_ordered(self, campaign_id: int, participant: str) -> bool:
        return await self.ledger.peek_live_order_id(campaign_id, participant) is not None


__all__ = ["VALID_TRANSITIONS", "transition", "OrderEngine"]
