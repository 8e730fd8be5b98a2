"""
Settlement Service Data Models

Pydantic models for confidential group-purchase campaigns, orders,
aggregate statistics, disclosure requests and refund balances.
"""

from enum import Enum
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


# ====================
# Limits
# ====================

MAX_AMOUNT = 2**64 - 1
MAX_QUANTITY_CEILING = 1_000_000
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
NULL_IDENTITY = "0x0000000000000000000000000000000000000000"


# ====================
# Enumerations
# ====================

class CampaignCategory(str, Enum):
    """Campaign category"""
    FOOTWEAR = "footwear"
    CLOTHING = "clothing"
    EQUIPMENT = "equipment"
    ACCESSORIES = "accessories"
    FITNESS = "fitness"

    @classmethod
    def from_ordinal(cls, ordinal: int) -> "CampaignCategory":
        """Resolve a category by its position (0 = footwear)"""
        members = list(cls)
        if ordinal < 0 or ordinal >= len(members):
            raise ValueError(f"Unknown category ordinal: {ordinal}")
        return members[ordinal]


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class DisclosureStatus(str, Enum):
    """Disclosure sub-status of an order"""
    NONE = "none"
    REQUESTED = "requested"
    COMPLETED = "completed"
    FAILED = "failed"


class HandleKind(str, Enum):
    """What a confidential handle stands for"""
    QUANTITY = "quantity"
    AMOUNT = "amount"


class RefundMethod(str, Enum):
    """How a refund reached its recipient"""
    DIRECT = "direct"
    PENDING = "pending"


# ====================
# Core Data Models
# ====================

class ConfidentialHandle(BaseModel):
    """Opaque reference to a value held by the confidential-computation boundary"""
    handle_id: str = Field(..., min_length=1)
    kind: HandleKind


class Campaign(BaseModel):
    """Group-purchase campaign"""
    campaign_id: int
    organizer: str
    name: str
    description: str = ""
    unit_price: int = Field(..., gt=0)
    min_order_quantity: int = Field(..., ge=1)
    max_order_quantity: int = Field(..., ge=1)
    category: CampaignCategory
    deadline: datetime
    created_at: datetime
    active: bool = True
    current_orders: int = Field(default=0, ge=0)
    total_collected: int = Field(default=0, ge=0)
    target_reached: bool = False


class Order(BaseModel):
    """One participant's confidential commitment to a campaign"""
    order_id: int
    campaign_id: int
    participant: str
    quantity_handle: ConfidentialHandle
    amount_handle: ConfidentialHandle
    paid_amount: int = Field(..., gt=0)
    placed_at: datetime
    status: OrderStatus = OrderStatus.PENDING
    revealed: bool = False
    revealed_quantity: Optional[int] = None
    revealed_amount: Optional[int] = None
    disclosure_status: DisclosureStatus = DisclosureStatus.NONE
    disclosure_request_id: Optional[str] = None
    disclosure_deadline: datetime
    updated_at: Optional[datetime] = None

    @property
    def refundable_amount(self) -> int:
        """Disclosed amount once known, otherwise what was paid"""
        if self.revealed and self.revealed_amount is not None:
            return self.revealed_amount
        return self.paid_amount


class AggregateStats(BaseModel):
    """Privacy-preserving campaign aggregates"""
    campaign_id: int
    total_participants: int = Field(default=0, ge=0)
    aggregate_quantity_handle: ConfidentialHandle
    aggregate_amount_handle: ConfidentialHandle
    target_reached: bool = False


class DisclosureRequestEntry(BaseModel):
    """Index entry mapping an outstanding disclosure request to its order"""
    request_id: str
    order_id: int
    campaign_id: int
    requested_at: datetime
    timed_out: bool = False


class AuditRecord(BaseModel):
    """Append-only audit record"""
    sequence: int
    action: str
    actor: str
    entity_id: str
    details: str = ""
    timestamp: datetime
    data: Dict[str, Any] = Field(default_factory=dict)


# ====================
# Request Models
# ====================

class CampaignCreateRequest(BaseModel):
    """Create campaign request"""
    name: str = Field(..., description="Campaign name")
    description: str = Field(default="", description="Campaign description")
    unit_price: int = Field(..., description="Unit price in the smallest monetary unit")
    min_order_quantity: int = Field(..., description="Orders needed to reach the target")
    max_order_quantity: int = Field(..., description="Largest quantity a single order may carry")
    category: CampaignCategory = Field(..., description="Campaign category")
    deadline: datetime = Field(..., description="Absolute campaign deadline")

    @field_validator('category', mode='before')
    @classmethod
    def parse_category(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return CampaignCategory.from_ordinal(v)
        return v


class OrderPlaceRequest(BaseModel):
    """Place order request"""
    campaign_id: int
    quantity: int
    paid_amount: int


class DisclosureCallbackRequest(BaseModel):
    """Oracle callback payload"""
    request_id: str
    revealed_quantity: int
    revealed_amount: int
    proof: str = Field(default="", description="Oracle correctness proof")


# ====================
# Response Models
# ====================

class CampaignCreatedResponse(BaseModel):
    """Create campaign response"""
    campaign_id: int


class OrderPlacedResponse(BaseModel):
    """Place order response"""
    order_id: int


class DisclosureRequestedResponse(BaseModel):
    """Request disclosure response"""
    request_id: str
    disclosure_deadline: datetime


class OrderCancelledResponse(BaseModel):
    """Cancel order response"""
    order_id: int
    refund_amount: int


class DisclosureCompletedResponse(BaseModel):
    """Oracle callback response"""
    request_id: str
    order_id: int


class DisclosureTimeoutResponse(BaseModel):
    """Disclosure timeout response"""
    order_id: int
    refund_amount: int


class DisclosureSweepResponse(BaseModel):
    """Orders refunded by a timeout sweep"""
    refunded_order_ids: List[int]


class TargetStatusResponse(BaseModel):
    """Campaign target check"""
    campaign_id: int
    target_reached: bool


class ProcessingStartedResponse(BaseModel):
    """Begin processing response"""
    campaign_id: int
    orders_transitioned: int


class AggregateStatsResponse(BaseModel):
    """Public aggregate statistics - never per-participant figures"""
    campaign_id: int
    total_participants: int
    target_reached: bool


class DisclosureStatusResponse(BaseModel):
    """Disclosure sub-status of an order"""
    order_id: int
    disclosure_status: DisclosureStatus
    disclosure_request_id: Optional[str] = None
    disclosure_deadline: datetime
    timed_out: bool


class PendingRefundResponse(BaseModel):
    """Pending refund balance"""
    participant: str
    amount: int


class RefundClaimResponse(BaseModel):
    """Refund claim result"""
    participant: str
    amount: int


class CampaignOrdersResponse(BaseModel):
    """Order ids of a campaign"""
    campaign_id: int
    order_ids: List[int]


class HasOrderedResponse(BaseModel):
    """Live order lookup"""
    campaign_id: int
    participant: str
    has_ordered: bool


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    ledger_backend: str
