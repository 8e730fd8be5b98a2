"""
Settlement Service Events

Event models and the audit/NATS publisher for settlement service.
"""

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
from .publishers import SettlementEventPublisher

__all__ = [
    # Event Types
    "SettlementEventType",
    "SettlementStreamConfig",
    # Event Data Models
    "CampaignCreatedEventData",
    "CampaignDeactivatedEventData",
    "ProcessingStartedEventData",
    "OrderPlacedEventData",
    "OrderCancelledEventData",
    "DisclosureRequestedEventData",
    "DisclosureCompletedEventData",
    "DisclosureFailedEventData",
    "RefundProcessedEventData",
    "RefundClaimedEventData",
    # Publisher
    "SettlementEventPublisher",
]
