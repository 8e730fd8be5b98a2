"""
Unit Tests for Settlement Models and the Order State Machine
"""

import pytest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from microservices.settlement_service.models import (
    CampaignCategory,
    CampaignCreateRequest,
    ConfidentialHandle,
    HandleKind,
    Order,
    OrderStatus,
)
from microservices.settlement_service.order_engine import VALID_TRANSITIONS, transition
from microservices.settlement_service.protocols import (
    AlreadyRequestedError,
    InvalidParameterError,
    InvalidProofError,
    InvalidStateError,
    SettlementServiceError,
    WrongStateError,
)
import microservices.settlement_service.protocols as protocols

pytestmark = pytest.mark.unit

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_order(**overrides) -> Order:
    data = dict(
        order_id=1,
        campaign_id=1,
        participant="0xbuyer",
        quantity_handle=ConfidentialHandle(handle_id="q1", kind=HandleKind.QUANTITY),
        amount_handle=ConfidentialHandle(handle_id="a1", kind=HandleKind.AMOUNT),
        paid_amount=30,
        placed_at=NOW,
        disclosure_deadline=NOW + timedelta(days=7),
    )
    data.update(overrides)
    return Order(**data)


class TestCampaignCategory:

    def test_ordinals(self):
        assert CampaignCategory.from_ordinal(0) == CampaignCategory.FOOTWEAR
        assert CampaignCategory.from_ordinal(1) == CampaignCategory.CLOTHING
        assert CampaignCategory.from_ordinal(2) == CampaignCategory.EQUIPMENT
        assert CampaignCategory.from_ordinal(4) == CampaignCategory.FITNESS

    @pytest.mark.parametrize("ordinal", [-1, 5])
    def test_unknown_ordinal(self, ordinal):
        with pytest.raises(ValueError):
            CampaignCategory.from_ordinal(ordinal)

    def test_request_accepts_ordinal_or_name(self):
        base = dict(
            name="Yoga mats",
            unit_price=10,
            min_order_quantity=5,
            max_order_quantity=100,
            deadline=NOW + timedelta(days=7),
        )
        assert CampaignCreateRequest(category=4, **base).category == CampaignCategory.FITNESS
        assert CampaignCreateRequest(category="clothing", **base).category == CampaignCategory.CLOTHING
        with pytest.raises(ValidationError):
            CampaignCreateRequest(category=9, **base)


class TestOrderModel:

    def test_defaults(self):
        order = make_order()
        assert order.status == OrderStatus.PENDING
        assert order.revealed is False
        assert order.revealed_quantity is None
        assert order.disclosure_request_id is None

    def test_refundable_amount_before_disclosure(self):
        assert make_order().refundable_amount == 30

    def test_refundable_amount_after_disclosure(self):
        order = make_order(revealed=True, revealed_quantity=2, revealed_amount=20)
        assert order.refundable_amount == 20

    def test_json_round_trip_keeps_large_amounts(self):
        order = make_order(paid_amount=2**64 - 1)
        restored = Order.model_validate(order.model_dump(mode="json"))
        assert restored.paid_amount == 2**64 - 1
        assert restored.quantity_handle.kind == HandleKind.QUANTITY


class TestOrderStateMachine:

    def test_terminal_states(self):
        for terminal in (OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            assert VALID_TRANSITIONS[terminal] == []

    def test_nothing_reenters_pending(self):
        for targets in VALID_TRANSITIONS.values():
            assert OrderStatus.PENDING not in targets

    @pytest.mark.parametrize("start,target", [
        (OrderStatus.PENDING, OrderStatus.PROCESSING),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.PROCESSING, OrderStatus.COMPLETED),
        (OrderStatus.PROCESSING, OrderStatus.REFUNDED),
    ])
    def test_valid_transitions(self, start, target):
        order = make_order(status=start)
        later = NOW + timedelta(hours=1)
        transition(order, target, later)
        assert order.status == target
        assert order.updated_at == later

    @pytest.mark.parametrize("start,target", [
        (OrderStatus.PENDING, OrderStatus.COMPLETED),
        (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
        (OrderStatus.CANCELLED, OrderStatus.PROCESSING),
        (OrderStatus.COMPLETED, OrderStatus.REFUNDED),
    ])
    def test_invalid_transitions(self, start, target):
        order = make_order(status=start)
        with pytest.raises(InvalidStateError) as exc:
            transition(order, target, NOW)
        assert exc.value.current_status == start.value
        assert order.status == start


class TestErrorKinds:

    def test_hierarchy(self):
        assert issubclass(InvalidProofError, InvalidParameterError)
        assert issubclass(WrongStateError, InvalidStateError)
        assert issubclass(AlreadyRequestedError, InvalidStateError)

    def test_error_codes_are_unique(self):
        classes = [
            obj for obj in vars(protocols).values()
            if isinstance(obj, type) and issubclass(obj, SettlementServiceError)
        ]
        codes = [cls.error_code for cls in classes]
        assert len(codes) == len(set(codes))
