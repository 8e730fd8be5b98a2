"""
Confidential Boundary

Thin layer over ConfidentialComputeProtocol that produces and combines the
handles the settlement core stores. Plaintext quantities and amounts only
cross this boundary inbound (wrap) and through verified disclosures.
"""

import logging
from typing import List, Tuple

from .models import AggregateStats, ConfidentialHandle, HandleKind, Order
from .protocols import (
    ConfidentialComputeProtocol,
    InvalidParameterError,
    InvalidProofError,
)

logger = logging.getLogger(__name__)


class ConfidentialBoundary:
    """Handle bookkeeping on behalf of the settlement components"""

    CALLBACK_SELECTOR = "on_disclosure_callback"

    def __init__(self, compute: ConfidentialComputeProtocol):
        self.compute = compute

    async def seal_order(
        self, participant: str, quantity: int, amount: int
    ) -> Tuple[ConfidentialHandle, ConfidentialHandle]:
        """Wrap an order's quantity and amount, readable by the participant"""
        quantity_handle = await self.compute.wrap(quantity, HandleKind.QUANTITY)
        amount_handle = await self.compute.wrap(amount, HandleKind.AMOUNT)
        await self.compute.authorize(quantity_handle, participant)
        await self.compute.authorize(amount_handle, participant)
        return quantity_handle, amount_handle

    async def zero_aggregates(self) -> Tuple[ConfidentialHandle, ConfidentialHandle]:
        quantity_handle = await self.compute.zero(HandleKind.QUANTITY)
        amount_handle = await self.compute.zero(HandleKind.AMOUNT)
        return quantity_handle, amount_handle

    async def combine(self, left: ConfidentialHandle, right: ConfidentialHandle) -> ConfidentialHandle:
        if left.kind != right.kind:
            raise InvalidParameterError(
                f"Cannot combine {left.kind.value} handle with {right.kind.value} handle"
            )
        return await self.compute.combine(left, right)

    async def accumulate(
        self,
        stats: AggregateStats,
        quantity_handle: ConfidentialHandle,
        amount_handle: ConfidentialHandle,
    ) -> AggregateStats:
        """Fold an order's handles into the campaign aggregates"""
        stats.aggregate_quantity_handle = await self.combine(
            stats.aggregate_quantity_handle, quantity_handle
        )
        stats.aggregate_amount_handle = await self.combine(
            stats.aggregate_amount_handle, amount_handle
        )
        return stats

    async def request_disclosure(self, order: Order) -> str:
        handles: List[ConfidentialHandle] = [order.quantity_handle, order.amount_handle]
        request_id = await self.compute.request_disclosure(handles, self.CALLBACK_SELECTOR)
        if not request_id:
            raise InvalidParameterError("Oracle returned an empty request id", field="request_id")
        logger.debug(f"Disclosure {request_id} requested for order {order.order_id}")
        return request_id

    async def verify(self, request_id: str, quantity: int, amount: int, proof: str) -> None:
        valid = await self.compute.verify_proof(request_id, [quantity, amount], proof)
        if not valid:
            raise InvalidProofError(f"Invalid proof for request {request_id}", field="proof")


__all__ = ["ConfidentialBoundary"]
