"""
Disclosure Coordinator

Two-phase exchange with the confidential-computation oracle:

1. request_disclosure records a pending request and forwards the order's
   handles to the oracle.
2. Exactly one of on_disclosure_callback (before the order's disclosure
   deadline) or on_disclosure_timeout (at or after it) resolves the order.

A request resolved by timeout keeps its index entry as a tombstone
(timed_out=True) so that a late callback is rejected as expired rather than
as an unknown request. A request resolved by callback is removed from the
index, so a replay is unknown.
"""

import logging
from datetime import datetime
from typing import Callable, List

from .confidential import ConfidentialBoundary
from .events.publishers import SettlementEventPublisher
from .guards import (
    require_administrator,
    require_order_exists,
    require_participant,
    require_positive_amount,
    utc_now,
)
from .ledger_store import Ledger, LedgerKeys
from .models import (
    DisclosureRequestEntry,
    DisclosureStatus,
    MAX_QUANTITY_CEILING,
    OrderStatus,
)
from .order_engine import transition
from .protocols import (
    AlreadyRequestedError,
    ExpiredError,
    InvalidStateError,
    SettlementServiceError,
    UnknownRequestError,
    WrongStateError,
)
from .refund_ledger import RefundLedger

logger = logging.getLogger(__name__)


class DisclosureCoordinator:
    """Disclosure request, callback and timeout handling"""

    def __init__(
        self,
        ledger: Ledger,
        confidential: ConfidentialBoundary,
        refunds: RefundLedger,
        publisher: SettlementEventPublisher,
        administrator: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ledger = ledger
        self.confidential = confidential
        self.refunds = refunds
        self.publisher = publisher
        self.administrator = administrator
        self.clock = clock

    async def request_disclosure(self, participant: str, order_id: int) -> str:
        """
        Ask the oracle to reveal an order's quantity and amount.

        Returns:
            The oracle's request id

        Raises:
            WrongStateError: order is not processing
            AlreadyRequestedError: a disclosure was already requested
            ExpiredError: the order's disclosure deadline passed
        """
        located = require_order_exists(await self.ledger.peek_order(order_id), order_id)

        async with self.ledger.session(LedgerKeys.campaign(located.campaign_id)) as session:
            now = self.clock()
            order = require_order_exists(await session.get_order(order_id), order_id)
            require_participant(order, participant)
            if order.status != OrderStatus.PROCESSING:
                raise WrongStateError(
                    f"Order {order_id} is {order.status.value}, disclosure requires processing",
                    current_status=order.status.value,
                )
            if order.disclosure_status != DisclosureStatus.NONE:
                raise AlreadyRequestedError(
                    f"Disclosure already {order.disclosure_status.value} for order {order_id}",
                    current_status=order.disclosure_status.value,
                )
            if now >= order.disclosure_deadline:
                raise ExpiredError(f"Order {order_id} disclosure deadline passed")

            request_id = await self.confidential.request_disclosure(order)
            if await session.get_disclosure_request(request_id) is not None:
                raise AlreadyRequestedError(f"Request id {request_id} already in use")

            await session.save_disclosure_request(
                DisclosureRequestEntry(
                    request_id=request_id,
                    order_id=order_id,
                    campaign_id=order.campaign_id,
                    requested_at=now,
                )
            )
            order.disclosure_status = DisclosureStatus.REQUESTED
            order.disclosure_request_id = request_id
            order.updated_at = now
            await session.save_order(order)

        logger.info(f"Disclosure {request_id} requested for order {order_id}")
        await self.publisher.publish_disclosure_requested(
            order_id, request_id, participant, order.disclosure_deadline
        )
        return request_id

    async def on_disclosure_callback(
        self,
        request_id: str,
        revealed_quantity: int,
        revealed_amount: int,
        proof: str,
    ) -> int:
        """
        Apply the oracle's answer.

        Returns:
            The completed order id

        Raises:
            UnknownRequestError: request id not outstanding
            InvalidParameterError: revealed values out of bounds
            ExpiredError: deadline passed or request already timed out
            InvalidProofError: proof rejected by the oracle boundary
        """
        entry = await self.ledger.peek_disclosure_request(request_id)
        if entry is None:
            raise UnknownRequestError(f"Unknown disclosure request: {request_id}")
        require_positive_amount(revealed_quantity, "revealed_quantity", MAX_QUANTITY_CEILING)
        require_positive_amount(revealed_amount, "revealed_amount")

        async with self.ledger.session(LedgerKeys.campaign(entry.campaign_id)) as session:
            now = self.clock()
            entry = await session.get_disclosure_request(request_id)
            if entry is None:
                raise UnknownRequestError(f"Unknown disclosure request: {request_id}")
            if entry.timed_out:
                raise ExpiredError(f"Disclosure request {request_id} already timed out")

            order = require_order_exists(await session.get_order(entry.order_id), entry.order_id)
            if (
                order.disclosure_status != DisclosureStatus.REQUESTED
                or order.disclosure_request_id != request_id
            ):
                raise WrongStateError(
                    f"Order {order.order_id} is not awaiting request {request_id}",
                    current_status=order.disclosure_status.value,
                )
            if now >= order.disclosure_deadline:
                raise ExpiredError(f"Callback for {request_id} arrived after the deadline")

            await self.confidential.verify(request_id, revealed_quantity, revealed_amount, proof)

            order.revealed = True
            order.revealed_quantity = revealed_quantity
            order.revealed_amount = revealed_amount
            order.disclosure_status = DisclosureStatus.COMPLETED
            transition(order, OrderStatus.COMPLETED, now)
            await session.save_order(order)
            await session.delete_disclosure_request(request_id)

        logger.info(f"Disclosure {request_id} completed order {order.order_id}")
        await self.publisher.publish_disclosure_completed(
            order.order_id, request_id, revealed_quantity, revealed_amount
        )
        return order.order_id

    async def on_disclosure_timeout(self, administrator: str, order_id: int) -> int:
        """
        Fail an unanswered disclosure and refund the order.

        Returns:
            The refunded amount
        """
        require_administrator(administrator, self.administrator)
        located = require_order_exists(await self.ledger.peek_order(order_id), order_id)

        async with self.ledger.session(LedgerKeys.campaign(located.campaign_id)) as session:
            now = self.clock()
            order = require_order_exists(await session.get_order(order_id), order_id)
            if order.disclosure_status != DisclosureStatus.REQUESTED:
                raise InvalidStateError(
                    f"Order {order_id} has no outstanding disclosure",
                    current_status=order.disclosure_status.value,
                )
            if now < order.disclosure_deadline:
                raise InvalidStateError(
                    f"Order {order_id} disclosure not yet expired",
                    current_status=order.disclosure_status.value,
                )

            refund_amount = order.refundable_amount
            order.disclosure_status = DisclosureStatus.FAILED
            transition(order, OrderStatus.REFUNDED, now)
            await session.save_order(order)

            request_id = order.disclosure_request_id
            if request_id:
                entry = await session.get_disclosure_request(request_id)
                if entry is not None:
                    entry.timed_out = True
                    await session.save_disclosure_request(entry)

            await self.refunds.stage_refund(session, order.campaign_id, order.participant, refund_amount)

        logger.warning(f"Disclosure for order {order_id} timed out, refunding {refund_amount}")
        await self.publisher.publish_disclosure_failed(order_id, request_id, administrator, refund_amount)
        await self.refunds.settle_refund(order.participant, refund_amount, f"order:{order_id}")
        return refund_amount


class DisclosureTimeoutSweeper:
    """Resolves every expired outstanding disclosure on behalf of the administrator"""

    def __init__(self, coordinator: DisclosureCoordinator, ledger: Ledger):
        self.coordinator = coordinator
        self.ledger = ledger

    async def find_expired(self) -> List[int]:
        now = self.coordinator.clock()
        expired = []
        last_campaign_id = await self.ledger.peek_sequence(LedgerKeys.CAMPAIGN_SEQUENCE)
        for campaign_id in range(1, last_campaign_id + 1):
            for order_id in await self.ledger.peek_campaign_order_ids(campaign_id):
                order = await self.ledger.peek_order(order_id)
                if (
                    order is not None
                    and order.disclosure_status == DisclosureStatus.REQUESTED
                    and now >= order.disclosure_deadline
                ):
                    expired.append(order_id)
        return expired

    async def sweep(self, administrator: str) -> List[int]:
        """
        Time out every expired request.

        Returns:
            Ids of the orders refunded by this sweep
        """
        require_administrator(administrator, self.coordinator.administrator)
        refunded = []
        for order_id in await self.find_expired():
            try:
                await self.coordinator.on_disclosure_timeout(administrator, order_id)
                refunded.append(order_id)
            except InvalidStateError as e:
                # Resolved concurrently by a callback or another sweep
                logger.info(f"Skipping order {order_id}: {e}")
            except SettlementServiceError as e:
                logger.error(f"Timeout of order {order_id} failed: {e}")
                raise
        if refunded:
            logger.info(f"Sweep refunded {len(refunded)} orders")
        return refunded


__all__ = ["DisclosureCoordinator", "DisclosureTimeoutSweeper"]
