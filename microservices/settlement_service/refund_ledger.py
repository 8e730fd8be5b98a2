"""
Refund Ledger

Escrow reservation, refund settlement and the claimable pending balance.

A refund is moved from the campaign escrow into the recipient's pending
balance inside the same ledger transaction that cancels or refunds the
order, so once that transaction commits the money is always on record.
After commit a direct transfer is attempted out of the pending balance;
whatever does not go through stays there for claim_pending_refund.
"""

import logging
from typing import Optional

from .events.publishers import SettlementEventPublisher
from .ledger_store import Ledger, LedgerKeys, LedgerSession
from .models import RefundMethod
from .protocols import (
    InsufficientFundsError,
    NothingToClaimError,
    RefundTransferFailedError,
    TransferClientProtocol,
)

logger = logging.getLogger(__name__)


class RefundLedger:
    """Refund reservation and payout"""

    def __init__(
        self,
        ledger: Ledger,
        publisher: SettlementEventPublisher,
        transfer_client: Optional[TransferClientProtocol] = None,
    ):
        self.ledger = ledger
        self.publisher = publisher
        self.transfer_client = transfer_client

    # ====================
    # Escrow (inside the caller's transaction)
    # ====================

    async def credit(self, session: LedgerSession, campaign_id: int, amount: int) -> None:
        """Add a received payment to the campaign escrow"""
        escrow = await session.get_escrow(campaign_id)
        await session.set_escrow(campaign_id, escrow + amount)

    async def reserve(self, session: LedgerSession, campaign_id: int, amount: int) -> None:
        """
        Debit the campaign escrow for a refund about to be settled.

        Raises:
            InsufficientFundsError: escrow cannot cover the refund; the
                caller's whole transaction is discarded
        """
        escrow = await session.get_escrow(campaign_id)
        if amount > escrow:
            logger.error(
                f"Escrow of campaign {campaign_id} holds {escrow}, cannot reserve {amount}"
            )
            raise InsufficientFundsError(
                f"Insufficient escrow for campaign {campaign_id}: {escrow} < {amount}"
            )
        await session.set_escrow(campaign_id, escrow - amount)

    async def stage_refund(
        self, session: LedgerSession, campaign_id: int, recipient: str, amount: int
    ) -> None:
        """
        Move a refund from the campaign escrow to the recipient's pending balance.

        The recipient's balance key joins the caller's transaction, so the
        refund commits or rolls back together with the order change.

        Raises:
            InsufficientFundsError: escrow cannot cover the refund
        """
        await self.reserve(session, campaign_id, amount)
        await session.lock(LedgerKeys.pending_refund(recipient))
        balance = await session.get_pending_refund(recipient)
        await session.set_pending_refund(recipient, balance + amount)

    # ====================
    # Settlement (after commit)
    # ====================

    async def settle_refund(self, recipient: str, amount: int, reference: str) -> RefundMethod:
        """
        Try to pay a staged refund out directly.

        Must only be called once the staging transaction committed. The
        amount is taken out of the pending balance for the transfer and
        credited back if the transfer fails. If the balance cannot be
        touched the refund simply stays pending.
        """
        method = RefundMethod.PENDING
        if self.transfer_client is not None:
            try:
                taken = await self._debit_pending(recipient, amount)
            except Exception as e:
                logger.error(f"Could not settle refund {reference} for {recipient}, left pending: {e}")
                taken = 0

            if taken and await self._try_transfer(recipient, taken, reference):
                method = RefundMethod.DIRECT
            elif taken:
                await self._credit_pending(recipient, taken)

        if method == RefundMethod.PENDING:
            logger.info(f"Refund of {amount} for {recipient} left in pending balance")

        await self.publisher.publish_refund_processed(recipient, amount, method, reference)
        return method

    async def claim_pending_refund(self, participant: str) -> int:
        """
        Withdraw the whole pending balance.

        The balance is zeroed and committed before the transfer starts, so
        concurrent claims pay out at most once. A failed transfer is
        compensated by crediting the amount back.
        """
        if self.transfer_client is None:
            raise RefundTransferFailedError("Transfers are not available")

        key = LedgerKeys.pending_refund(participant)
        async with self.ledger.session(key) as session:
            amount = await session.get_pending_refund(participant)
            if amount == 0:
                raise NothingToClaimError(f"No pending refund for {participant}")
            await session.set_pending_refund(participant, 0)

        if not await self._try_transfer(participant, amount, f"claim:{participant}"):
            await self._credit_pending(participant, amount)
            raise RefundTransferFailedError(
                f"Transfer of {amount} to {participant} failed; balance restored"
            )

        logger.info(f"Pending refund of {amount} claimed by {participant}")
        await self.publisher.publish_refund_claimed(participant, amount)
        return amount

    async def get_pending_refund(self, participant: str) -> int:
        return await self.ledger.peek_pending_refund(participant)

    async def _debit_pending(self, participant: str, amount: int) -> int:
        """Take up to amount out of the pending balance; a concurrent claim may have taken it already"""
        async with self.ledger.session(LedgerKeys.pending_refund(participant)) as session:
            balance = await session.get_pending_refund(participant)
            taken = min(balance, amount)
            await session.set_pending_refund(participant, balance - taken)
        return taken

    async def _credit_pending(self, participant: str, amount: int) -> None:
        async with self.ledger.session(LedgerKeys.pending_refund(participant)) as session:
            balance = await session.get_pending_refund(participant)
            await session.set_pending_refund(participant, balance + amount)

    async def _try_transfer(self, recipient: str, amount: int, reference: str) -> bool:
        if self.transfer_client is None:
            return False
        try:
            return bool(await self.transfer_client.transfer(recipient, amount, reference))
        except Exception as e:
            logger.warning(f"Transfer of {amount} to {recipient} failed: {e}")
            return False


__all__ = ["RefundLedger"]
