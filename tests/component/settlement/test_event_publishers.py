"""
Settlement Event Publisher Component Tests

Audit trail ordering and filtering, NATS envelope shape, and publish
failures that must never surface to callers.
"""
import pytest
from pydantic import BaseModel

from microservices.settlement_service.events import (
    SettlementEventPublisher,
    SettlementEventType,
)

from .mocks import MockEventBus

pytestmark = [pytest.mark.component, pytest.mark.golden, pytest.mark.asyncio]


class TestEventPublisherGolden:

    async def test_envelope(self, clock):
        bus = MockEventBus()
        publisher = SettlementEventPublisher(bus, clock=clock)

        record = await publisher.publish_order_cancelled(3, 1, "0xbuyer1", 20)

        event = bus.published_events[0]
        assert event.type == "settlement.order.cancelled"
        assert event.source == "settlement_service"
        assert event.subject == "order:3"
        assert event.data["sequence"] == record.sequence == 1
        assert event.data["data"] == {
            "order_id": 3,
            "campaign_id": 1,
            "participant": "0xbuyer1",
            "refund_amount": 20,
        }

    async def test_every_event_type_has_subject(self):
        bus = MockEventBus()
        publisher = SettlementEventPublisher(bus)
        for event_type in SettlementEventType:
            await publisher.publish(event_type, "0xactor", "entity", _Empty())
        assert [e.type for e in bus.published_events] == [t.subject for t in SettlementEventType]

    async def test_bus_failure_is_swallowed(self, clock):
        bus = MockEventBus()
        bus.set_error(ConnectionError("nats down"))
        publisher = SettlementEventPublisher(bus, clock=clock)

        await publisher.publish_campaign_deactivated(1, "0xmerchant")

        assert bus.published_events == []
        assert publisher.get_audit_trail()[0].action == "campaign.deactivated"

    async def test_no_bus_still_audits(self, clock):
        publisher = SettlementEventPublisher(None, clock=clock)
        record = await publisher.publish_refund_claimed("0xbuyer1", 5)
        assert record.timestamp == clock.now
        assert publisher.get_audit_trail(entity_id="refund:0xbuyer1") == [record]

    async def test_trail_newest_first_and_filtered(self):
        publisher = SettlementEventPublisher()
        await publisher.publish_campaign_deactivated(1, "0xmerchant")
        await publisher.publish_campaign_deactivated(2, "0xmerchant")
        await publisher.publish_refund_claimed("0xbuyer1", 5)

        trail = publisher.get_audit_trail()
        assert [r.sequence for r in trail] == [3, 2, 1]
        assert len(publisher.get_audit_trail(action="campaign.deactivated")) == 2
        assert publisher.get_audit_trail(entity_id="campaign:2")[0].sequence == 2
        assert len(publisher.get_audit_trail(limit=1)) == 1

    async def test_trail_is_bounded(self):
        publisher = SettlementEventPublisher(max_records=2)
        for campaign_id in range(1, 4):
            await publisher.publish_campaign_deactivated(campaign_id, "0xmerchant")
        assert [r.entity_id for r in publisher.get_audit_trail()] == ["campaign:3", "campaign:2"]


class _Empty(BaseModel):
    pass
