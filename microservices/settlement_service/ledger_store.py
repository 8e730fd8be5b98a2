"""
Ledger Store

Transactional key-value ledger holding every settlement entity, and the
typed session the components use to read and write entities through it.

Values are stored in their JSON form (model_dump(mode="json")) so every
backend persists the same shape.
"""

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from .models import (
    AggregateStats,
    Campaign,
    DisclosureRequestEntry,
    Order,
)
from .protocols import LedgerStoreProtocol, LedgerTransactionProtocol

logger = logging.getLogger(__name__)


# ============================================================================
# Keys
# ============================================================================

class LedgerKeys:
    """Key layout of the ledger"""

    CAMPAIGN_SEQUENCE = "seq:campaign"
    ORDER_SEQUENCE = "seq:order"

    @staticmethod
    def campaign(campaign_id: int) -> str:
        return f"campaign:{campaign_id}"

    @staticmethod
    def stats(campaign_id: int) -> str:
        return f"stats:{campaign_id}"

    @staticmethod
    def campaign_orders(campaign_id: int) -> str:
        return f"campaign_orders:{campaign_id}"

    @staticmethod
    def escrow(campaign_id: int) -> str:
        return f"escrow:{campaign_id}"

    @staticmethod
    def order(order_id: int) -> str:
        return f"order:{order_id}"

    @staticmethod
    def live_order(campaign_id: int, participant: str) -> str:
        return f"live_order:{campaign_id}:{participant}"

    @staticmethod
    def disclosure_request(request_id: str) -> str:
        return f"disclosure:{request_id}"

    @staticmethod
    def pending_refund(participant: str) -> str:
        return f"refund:{participant}"


# ============================================================================
# In-memory backend
# ============================================================================

_DELETED = object()


class _MemoryTransaction:
    """Staged writes over the committed dict; applied only on commit"""

    def __init__(self, store: "InMemoryLedgerStore"):
        self._store = store
        self._data = store._data
        self._writes: Dict[str, Any] = {}
        self._held: List[str] = []

    async def lock(self, key: str) -> None:
        if key in self._held:
            return
        await self._store._acquire(key)
        self._held.append(key)

    async def get(self, key: str) -> Optional[Any]:
        if key in self._writes:
            value = self._writes[key]
            return None if value is _DELETED else copy.deepcopy(value)
        return copy.deepcopy(self._data.get(key))

    async def put(self, key: str, value: Any) -> None:
        self._writes[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._writes[key] = _DELETED

    def commit(self) -> None:
        for key, value in self._writes.items():
            if value is _DELETED:
                self._data.pop(key, None)
            else:
                self._data[key] = value
        self._writes.clear()

    def release(self) -> None:
        for key in reversed(self._held):
            self._store._release(key)
        self._held.clear()


class InMemoryLedgerStore:
    """
    In-process ledger backend.

    Each transaction takes one asyncio.Lock per declared key, always in
    sorted key order, so two transactions can never wait on each other in a
    cycle. Transactions on disjoint keys run concurrently. A key locked
    later through lock() is held until the transaction ends; only keys
    whose holders never wait on anything else may be locked that way.

    A lock lives only while some transaction holds or waits for it.
    """

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def initialize(self) -> None:
        logger.info("InMemoryLedgerStore initialized")

    async def close(self) -> None:
        pass

    async def health_check(self) -> bool:
        return True

    @asynccontextmanager
    async def transaction(self, *lock_keys: str) -> AsyncIterator[_MemoryTransaction]:
        tx = _MemoryTransaction(self)
        try:
            for key in sorted(set(lock_keys)):
                await tx.lock(key)
            yield tx
            tx.commit()
        finally:
            tx.release()

    async def peek(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def _acquire(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            await lock.acquire()
        except asyncio.CancelledError:
            self._forget(key)
            raise

    def _release(self, key: str) -> None:
        self._locks[key].release()
        self._forget(key)

    def _forget(self, key: str) -> None:
        self._lock_users[key] -= 1
        if self._lock_users[key] == 0:
            del self._lock_users[key]
            del self._locks[key]


# ============================================================================
# Typed session
# ============================================================================

class LedgerSession:
    """Typed entity access within one ledger transaction"""

    def __init__(self, tx: LedgerTransactionProtocol):
        self.tx = tx

    async def lock(self, key: str) -> None:
        """Add key to the locks held until the transaction ends"""
        await self.tx.lock(key)

    async def next_id(self, sequence_key: str) -> int:
        """
        Next value of a sequence; sequences start at 1.

        The sequence key is locked on first use and stays locked until the
        transaction ends, so allocate ids as the last step of a transaction.
        """
        await self.tx.lock(sequence_key)
        current = await self.tx.get(sequence_key) or 0
        next_value = int(current) + 1
        await self.tx.put(sequence_key, next_value)
        return next_value

    # Campaigns

    async def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        data = await self.tx.get(LedgerKeys.campaign(campaign_id))
        return Campaign.model_validate(data) if data else None

    async def save_campaign(self, campaign: Campaign) -> None:
        await self.tx.put(LedgerKeys.campaign(campaign.campaign_id), campaign.model_dump(mode="json"))

    async def get_stats(self, campaign_id: int) -> Optional[AggregateStats]:
        data = await self.tx.get(LedgerKeys.stats(campaign_id))
        return AggregateStats.model_validate(data) if data else None

    async def save_stats(self, stats: AggregateStats) -> None:
        await self.tx.put(LedgerKeys.stats(stats.campaign_id), stats.model_dump(mode="json"))

    async def get_campaign_order_ids(self, campaign_id: int) -> List[int]:
        return list(await self.tx.get(LedgerKeys.campaign_orders(campaign_id)) or [])

    async def append_campaign_order(self, campaign_id: int, order_id: int) -> None:
        order_ids = await self.get_campaign_order_ids(campaign_id)
        order_ids.append(order_id)
        await self.tx.put(LedgerKeys.campaign_orders(campaign_id), order_ids)

    async def get_escrow(self, campaign_id: int) -> int:
        return int(await self.tx.get(LedgerKeys.escrow(campaign_id)) or 0)

    async def set_escrow(self, campaign_id: int, amount: int) -> None:
        await self.tx.put(LedgerKeys.escrow(campaign_id), amount)

    # Orders

    async def get_order(self, order_id: int) -> Optional[Order]:
        data = await self.tx.get(LedgerKeys.order(order_id))
        return Order.model_validate(data) if data else None

    async def save_order(self, order: Order) -> None:
        await self.tx.put(LedgerKeys.order(order.order_id), order.model_dump(mode="json"))

    async def get_live_order_id(self, campaign_id: int, participant: str) -> Optional[int]:
        value = await self.tx.get(LedgerKeys.live_order(campaign_id, participant))
        return int(value) if value is not None else None

    async def set_live_order(self, campaign_id: int, participant: str, order_id: int) -> None:
        await self.tx.put(LedgerKeys.live_order(campaign_id, participant), order_id)

    async def clear_live_order(self, campaign_id: int, participant: str) -> None:
        await self.tx.delete(LedgerKeys.live_order(campaign_id, participant))

    # Disclosure requests

    async def get_disclosure_request(self, request_id: str) -> Optional[DisclosureRequestEntry]:
        data = await self.tx.get(LedgerKeys.disclosure_request(request_id))
        return DisclosureRequestEntry.model_validate(data) if data else None

    async def save_disclosure_request(self, entry: DisclosureRequestEntry) -> None:
        await self.tx.put(LedgerKeys.disclosure_request(entry.request_id), entry.model_dump(mode="json"))

    async def delete_disclosure_request(self, request_id: str) -> None:
        await self.tx.delete(LedgerKeys.disclosure_request(request_id))

    # Refunds

    async def get_pending_refund(self, participant: str) -> int:
        return int(await self.tx.get(LedgerKeys.pending_refund(participant)) or 0)

    async def set_pending_refund(self, participant: str, amount: int) -> None:
        await self.tx.put(LedgerKeys.pending_refund(participant), amount)


class Ledger:
    """Entry point the components use to open typed sessions"""

    def __init__(self, store: LedgerStoreProtocol):
        self.store = store

    @asynccontextmanager
    async def session(self, *lock_keys: str) -> AsyncIterator[LedgerSession]:
        async with self.store.transaction(*lock_keys) as tx:
            yield LedgerSession(tx)

    async def peek_sequence(self, sequence_key: str) -> int:
        """Last id handed out by a sequence (0 if none)"""
        return int(await self.store.peek(sequence_key) or 0)

    async def peek_campaign(self, campaign_id: int) -> Optional[Campaign]:
        data = await self.store.peek(LedgerKeys.campaign(campaign_id))
        return Campaign.model_validate(data) if data else None

    async def peek_stats(self, campaign_id: int) -> Optional[AggregateStats]:
        data = await self.store.peek(LedgerKeys.stats(campaign_id))
        return AggregateStats.model_validate(data) if data else None

    async def peek_campaign_order_ids(self, campaign_id: int) -> List[int]:
        return list(await self.store.peek(LedgerKeys.campaign_orders(campaign_id)) or [])

    async def peek_order(self, order_id: int) -> Optional[Order]:
        data = await self.store.peek(LedgerKeys.order(order_id))
        return Order.model_validate(data) if data else None

    async def peek_live_order_id(self, campaign_id: int, participant: str) -> Optional[int]:
        value = await self.store.peek(LedgerKeys.live_order(campaign_id, participant))
        return int(value) if value is not None else None

    async def peek_disclosure_request(self, request_id: str) -> Optional[DisclosureRequestEntry]:
        data = await self.store.peek(LedgerKeys.disclosure_request(request_id))
        return DisclosureRequestEntry.model_validate(data) if data else None

    async def peek_pending_refund(self, participant: str) -> int:
        return int(await self.store.peek(LedgerKeys.pending_refund(participant)) or 0)

    async def peek_escrow(self, campaign_id: int) -> int:
        return int(await self.store.peek(LedgerKeys.escrow(campaign_id)) or 0)


__all__ = [
    "LedgerKeys",
    "InMemoryLedgerStore",
    "LedgerSession",
    "Ledger",
]
