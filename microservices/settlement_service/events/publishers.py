"""
Settlement Event Publishers

Records every settlement action in the append-only audit trail and
publishes it to NATS JetStream. Callers emit only after the owning ledger
transaction committed; a failed publish is logged and never undoes state.
"""

import itertools
import logging
from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Optional

from pydantic import BaseModel

from core.nats_client import Event, EventType, ServiceSource

from ..guards import utc_now
from ..models import AuditRecord, RefundMethod
from .models import (
    SettlementEventType,
    SettlementStreamConfig,
    CampaignCreatedEventData,
    CampaignDeactivatedEventData,
    ProcessingStartedEventData,
    OrderPlacedEventData,
    OrderCancelledEventData,
    DisclosureRequestedEventData,
    DisclosureCompletedEventData,
    DisclosureFailedEventData,
    RefundProcessedEventData,
    RefundClaimedEventData,
)

logger = logging.getLogger(__name__)


class SettlementEventPublisher:
    """Audit emitter and NATS publisher for settlement service events"""

    def __init__(
        self,
        event_bus=None,
        clock: Callable[[], datetime] = utc_now,
        max_records: int = SettlementStreamConfig.MAX_AUDIT_RECORDS,
    ):
        self.event_bus = event_bus
        self.clock = clock
        self._trail: Deque[AuditRecord] = deque(maxlen=max_records)
        self._sequence = itertools.count(1)

    async def publish(
        self,
        event_type: SettlementEventType,
        actor: str,
        entity_id: str,
        data: BaseModel,
        details: str = "",
    ) -> AuditRecord:
        """
        Append an audit record and publish it.

        Args:
            event_type: The event type enum
            actor: Identity that triggered the action
            entity_id: Campaign, order or participant the action concerns
            data: Event payload
            details: Human-readable summary

        Returns:
            The appended audit record
        """
        record = AuditRecord(
            sequence=next(self._sequence),
            action=event_type.value,
            actor=actor,
            entity_id=entity_id,
            details=details,
            timestamp=self.clock(),
            data=data.model_dump(mode="json"),
        )
        self._trail.append(record)

        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return record

        try:
            event = Event(
                event_type=EventType(event_type.subject),
                source=ServiceSource.SETTLEMENT_SERVICE,
                data=record.model_dump(mode="json"),
                subject=entity_id,
            )
            await self.event_bus.publish_event(event)
            logger.debug(f"Published event: {event_type.subject}")
        except Exception as e:
            logger.error(f"Failed to publish event {event_type.subject}: {e}")

        return record

    def get_audit_trail(
        self,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditRecord]:
        """Most recent records first"""
        records = [
            r for r in reversed(self._trail)
            if (entity_id is None or r.entity_id == entity_id)
            and (action is None or r.action == action)
        ]
        return records[:limit]

    # ====================
    # Campaign Events
    # ====================

    async def publish_campaign_created(
        self,
        campaign_id: int,
        organizer: str,
        name: str,
        category: str,
        unit_price: int,
        min_order_quantity: int,
        deadline: datetime,
    ) -> AuditRecord:
        data = CampaignCreatedEventData(
            campaign_id=campaign_id,
            organizer=organizer,
            name=name,
            category=category,
            unit_price=unit_price,
            min_order_quantity=min_order_quantity,
            deadline=deadline,
        )
        return await self.publish(
            SettlementEventType.CAMPAIGN_CREATED,
            organizer,
            f"campaign:{campaign_id}",
            data,
            details=f"Campaign '{name}' created",
        )

    async def publish_campaign_deactivated(self, campaign_id: int, organizer: str) -> AuditRecord:
        data = CampaignDeactivatedEventData(campaign_id=campaign_id, organizer=organizer)
        return await self.publish(
            SettlementEventType.CAMPAIGN_DEACTIVATED, organizer, f"campaign:{campaign_id}", data
        )

    async def publish_processing_started(
        self, campaign_id: int, organizer: str, orders_transitioned: int
    ) -> AuditRecord:
        data = ProcessingStartedEventData(
            campaign_id=campaign_id,
            organizer=organizer,
            orders_transitioned=orders_transitioned,
        )
        return await self.publish(
            SettlementEventType.PROCESSING_STARTED,
            organizer,
            f"campaign:{campaign_id}",
            data,
            details=f"{orders_transitioned} orders moved to processing",
        )

    # ====================
    # Order Events
    # ====================

    async def publish_order_placed(
        self,
        order_id: int,
        campaign_id: int,
        participant: str,
        paid_amount: int,
        current_orders: int,
    ) -> AuditRecord:
        data = OrderPlacedEventData(
            order_id=order_id,
            campaign_id=campaign_id,
            participant=participant,
            paid_amount=paid_amount,
            current_orders=current_orders,
        )
        return await self.publish(
            SettlementEventType.ORDER_PLACED, participant, f"order:{order_id}", data
        )

    async def publish_order_cancelled(
        self, order_id: int, campaign_id: int, participant: str, refund_amount: int
    ) -> AuditRecord:
        data = OrderCancelledEventData(
            order_id=order_id,
            campaign_id=campaign_id,
            participant=participant,
            refund_amount=refund_amount,
        )
        return await self.publish(
            SettlementEventType.ORDER_CANCELLED, participant, f"order:{order_id}", data
        )

    # ====================
    # Disclosure Events
    # ====================

    async def publish_disclosure_requested(
        self,
        order_id: int,
        request_id: str,
        participant: str,
        disclosure_deadline: datetime,
    ) -> AuditRecord:
        data = DisclosureRequestedEventData(
            order_id=order_id,
            request_id=request_id,
            participant=participant,
            disclosure_deadline=disclosure_deadline,
        )
        return await self.publish(
            SettlementEventType.DISCLOSURE_REQUESTED,
            participant,
            f"order:{order_id}",
            data,
            details=f"Deadline {disclosure_deadline.isoformat()}",
        )

    async def publish_disclosure_completed(
        self,
        order_id: int,
        request_id: str,
        revealed_quantity: int,
        revealed_amount: int,
    ) -> AuditRecord:
        data = DisclosureCompletedEventData(
            order_id=order_id,
            request_id=request_id,
            revealed_quantity=revealed_quantity,
            revealed_amount=revealed_amount,
        )
        return await self.publish(
            SettlementEventType.DISCLOSURE_COMPLETED, "oracle", f"order:{order_id}", data
        )

    async def publish_disclosure_failed(
        self,
        order_id: int,
        request_id: Optional[str],
        administrator: str,
        refund_amount: int,
    ) -> AuditRecord:
        data = DisclosureFailedEventData(
            order_id=order_id,
            request_id=request_id,
            administrator=administrator,
            refund_amount=refund_amount,
        )
        return await self.publish(
            SettlementEventType.DISCLOSURE_FAILED,
            administrator,
            f"order:{order_id}",
            data,
            details="Disclosure timed out",
        )

    # ====================
    # Refund Events
    # ====================

    async def publish_refund_processed(
        self, recipient: str, amount: int, method: RefundMethod, reference: str
    ) -> AuditRecord:
        data = RefundProcessedEventData(
            recipient=recipient,
            amount=amount,
            method=method.value,
            reference=reference,
        )
        return await self.publish(
            SettlementEventType.REFUND_PROCESSED,
            "settlement",
            f"refund:{recipient}",
            data,
            details=f"{amount} refunded ({method.value})",
        )

    async def publish_refund_claimed(self, participant: str, amount: int) -> AuditRecord:
        data = RefundClaimedEventData(participant=participant, amount=amount)
        return await self.publish(
            SettlementEventType.REFUND_CLAIMED, participant, f"refund:{participant}", data
        )
