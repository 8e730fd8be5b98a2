"""
Settlement Guards

Precondition checks run at the top of every mutating operation, before
anything is written. Each guard raises a typed error from protocols.py and
returns nothing (or the narrowed entity) on success.
"""

from datetime import datetime, timezone
from typing import Optional

from .models import (
    Campaign,
    MAX_AMOUNT,
    MAX_QUANTITY_CEILING,
    NULL_IDENTITY,
    Order,
)
from .protocols import (
    CampaignNotEligibleError,
    InvalidParameterError,
    NotFoundError,
    UnauthorizedError,
)


def utc_now() -> datetime:
    """Default service clock"""
    return datetime.now(timezone.utc)


def require_text(value: str, field: str, max_length: int, allow_empty: bool = False) -> None:
    if value is None or (not allow_empty and not value.strip()):
        raise InvalidParameterError(f"Invalid {field}", field=field)
    if len(value) > max_length:
        raise InvalidParameterError(f"Invalid {field}: longer than {max_length} characters", field=field)


def require_positive_amount(value: int, field: str, ceiling: int = MAX_AMOUNT) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0 or value > ceiling:
        raise InvalidParameterError(f"Invalid {field}", field=field)


def require_quantity_bounds(min_quantity: int, max_quantity: int) -> None:
    """1 <= min <= max <= MAX_QUANTITY_CEILING"""
    require_positive_amount(min_quantity, "min_order_quantity", MAX_QUANTITY_CEILING)
    require_positive_amount(max_quantity, "max_order_quantity", MAX_QUANTITY_CEILING)
    if min_quantity > max_quantity:
        raise InvalidParameterError(
            "Invalid max quantity: below min quantity", field="max_order_quantity"
        )


def require_no_overflow(unit_price: int, max_quantity: int) -> None:
    """The largest possible single payment must stay representable"""
    if unit_price * max_quantity > MAX_AMOUNT:
        raise InvalidParameterError("Invalid price: total would overflow", field="unit_price")


def require_identity(identity: Optional[str], field: str = "identity") -> None:
    if not identity or not identity.strip() or identity.lower() == NULL_IDENTITY:
        raise InvalidParameterError(f"Invalid {field}", field=field)


def require_future(moment: datetime, now: datetime, field: str = "deadline") -> None:
    if moment.tzinfo is None:
        raise InvalidParameterError(f"Invalid {field}: timezone required", field=field)
    if moment <= now:
        raise InvalidParameterError(f"Invalid {field}", field=field)


def require_campaign_exists(campaign: Optional[Campaign], campaign_id: int) -> Campaign:
    if campaign is None:
        raise NotFoundError(f"Campaign not found: {campaign_id}")
    return campaign


def require_campaign_open(campaign: Campaign, now: datetime) -> None:
    """Campaign accepts new orders: active and before its deadline"""
    if not campaign.active:
        raise CampaignNotEligibleError(f"Campaign inactive: {campaign.campaign_id}")
    if now >= campaign.deadline:
        raise CampaignNotEligibleError(f"Campaign expired: {campaign.campaign_id}")


def require_order_exists(order: Optional[Order], order_id: int) -> Order:
    if order is None:
        raise NotFoundError(f"Order not found: {order_id}")
    return order


def require_organizer(campaign: Campaign, actor: str) -> None:
    if actor != campaign.organizer:
        raise UnauthorizedError("Not organizer")


def require_participant(order: Order, actor: str) -> None:
    if actor != order.participant:
        raise UnauthorizedError("Not order participant")


def require_administrator(actor: str, administrator: str) -> None:
    if actor != administrator:
        raise UnauthorizedError("Not administrator")


__all__ = [
    "utc_now",
    "require_text",
    "require_positive_amount",
    "require_quantity_bounds",
    "require_no_overflow",
    "require_identity",
    "require_future",
    "require_campaign_exists",
    "require_campaign_open",
    "require_order_exists",
    "require_organizer",
    "require_participant",
    "require_administrator",
]
