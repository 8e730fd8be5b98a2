"""
Settlement Event Data Models

Event type definitions and payloads for settlement service events.
Payloads never carry per-participant quantities, only what the emitting
operation already exposes publicly.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class SettlementEventType(str, Enum):
    """
    Events published by settlement_service.

    The value doubles as the audit action and, prefixed with
    "settlement.", as the NATS subject.
    """
    # Campaign lifecycle
    CAMPAIGN_CREATED = "campaign.created"
    CAMPAIGN_DEACTIVATED = "campaign.deactivated"
    PROCESSING_STARTED = "campaign.processing_started"

    # Orders
    ORDER_PLACED = "order.placed"
    ORDER_CANCELLED = "order.cancelled"

    # Disclosure protocol
    DISCLOSURE_REQUESTED = "disclosure.requested"
    DISCLOSURE_COMPLETED = "disclosure.completed"
    DISCLOSURE_FAILED = "disclosure.failed"

    # Refunds
    REFUND_PROCESSED = "refund.processed"
    REFUND_CLAIMED = "refund.claimed"

    @property
    def subject(self) -> str:
        return f"settlement.{self.value}"


class SettlementStreamConfig:
    """Stream configuration for settlement_service"""
    STREAM_NAME = "settlement-stream"
    SUBJECTS = ["settlement.>"]
    MAX_AUDIT_RECORDS = 10000


# =============================================================================
# Event Data Models
# =============================================================================


class CampaignCreatedEventData(BaseModel):
    """campaign.created event data"""
    campaign_id: int = Field(..., description="Campaign ID")
    organizer: str = Field(..., description="Organizer identity")
    name: str = Field(..., description="Campaign name")
    category: str = Field(..., description="Campaign category")
    unit_price: int = Field(..., description="Unit price")
    min_order_quantity: int = Field(..., description="Orders needed to reach the target")
    deadline: datetime = Field(..., description="Campaign deadline")


class CampaignDeactivatedEventData(BaseModel):
    """campaign.deactivated event data"""
    campaign_id: int
    organizer: str


class ProcessingStartedEventData(BaseModel):
    """campaign.processing_started event data"""
    campaign_id: int
    organizer: str
    orders_transitioned: int = Field(..., description="Orders moved from pending to processing")


class OrderPlacedEventData(BaseModel):
    """order.placed event data"""
    order_id: int
    campaign_id: int
    participant: str
    paid_amount: int = Field(..., description="Public payment received")
    current_orders: int = Field(..., description="Campaign order count after placement")


class OrderCancelledEventData(BaseModel):
    """order.cancelled event data"""
    order_id: int
    campaign_id: int
    participant: str
    refund_amount: int


class DisclosureRequestedEventData(BaseModel):
    """disclosure.requested event data"""
    order_id: int
    request_id: str
    participant: str
    disclosure_deadline: datetime


class DisclosureCompletedEventData(BaseModel):
    """disclosure.completed event data"""
    order_id: int
    request_id: str
    revealed_quantity: int
    revealed_amount: int


class DisclosureFailedEventData(BaseModel):
    """disclosure.failed event data"""
    order_id: int
    request_id: Optional[str] = None
    administrator: str
    refund_amount: int


class RefundProcessedEventData(BaseModel):
    """refund.processed event data"""
    recipient: str
    amount: int
    method: str = Field(..., description="direct or pending")
    reference: str = Field(..., description="Order the refund settles")


class RefundClaimedEventData(BaseModel):
    """refund.claimed event data"""
    participant: str
    amount: int
