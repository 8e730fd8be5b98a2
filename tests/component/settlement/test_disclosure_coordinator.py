"""
Disclosure Coordinator Component Golden Tests

Request, callback and timeout handling of the two-phase disclosure
exchange, plus the sweeper that times out expired requests.
"""
import asyncio
import pytest
import pytest_asyncio
from datetime import timedelta

from microservices.settlement_service.models import DisclosureStatus, OrderStatus
from microservices.settlement_service.protocols import (
    AlreadyRequestedError,
    ExpiredError,
    InvalidParameterError,
    InvalidProofError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    UnknownRequestError,
    WrongStateError,
)

from .mocks import ADMIN, UNIT_PRICE

pytestmark = [pytest.mark.component, pytest.mark.golden, pytest.mark.asyncio]

PAST_DEADLINE = timedelta(days=7, seconds=1)


@pytest_asyncio.fixture
async def processing_orders(driver):
    """Campaign at target with five processing orders"""
    campaign_id = await driver.create(days=30)
    return await driver.processing(campaign_id)


# =============================================================================
# request_disclosure()
# =============================================================================

class TestRequestDisclosureGolden:

    async def test_request_records_pending_entry(self, service, oracle, processing_orders):
        order_id = processing_orders[0]

        request_id = await service.request_disclosure("0xbuyer1", order_id)

        order = await service.ledger.peek_order(order_id)
        assert order.disclosure_status == DisclosureStatus.REQUESTED
        assert order.disclosure_request_id == request_id
        assert order.status == OrderStatus.PROCESSING
        entry = await service.ledger.peek_disclosure_request(request_id)
        assert entry.order_id == order_id
        assert entry.timed_out is False
        assert oracle.callbacks[request_id] == "on_disclosure_callback"
        assert oracle.disclosures[request_id] == [order.quantity_handle, order.amount_handle]

    async def test_request_published(self, service, event_bus, processing_orders):
        await service.request_disclosure("0xbuyer1", processing_orders[0])
        event_bus.assert_published("settlement.disclosure.requested")

    async def test_only_participant(self, service, processing_orders):
        with pytest.raises(UnauthorizedError):
            await service.request_disclosure("0xbuyer2", processing_orders[0])

    async def test_pending_order_wrong_state(self, service, driver):
        campaign_id = await driver.create()
        order_id = await driver.place(campaign_id, "0xbuyer1")
        with pytest.raises(WrongStateError):
            await service.request_disclosure("0xbuyer1", order_id)

    async def test_second_request_rejected(self, service, processing_orders):
        await service.request_disclosure("0xbuyer1", processing_orders[0])
        with pytest.raises(AlreadyRequestedError):
            await service.request_disclosure("0xbuyer1", processing_orders[0])

    async def test_concurrent_requests_single_outstanding(self, service, oracle, processing_orders):
        results = await asyncio.gather(
            *(service.request_disclosure("0xbuyer1", processing_orders[0]) for _ in range(3)),
            return_exceptions=True,
        )
        assert sum(isinstance(r, str) for r in results) == 1
        assert sum(isinstance(r, AlreadyRequestedError) for r in results) == 2
        assert len(oracle.disclosures) == 1

    async def test_reused_request_id_rejected(self, service, oracle, processing_orders):
        oracle.fixed_request_id = "req-fixed"
        await service.request_disclosure("0xbuyer1", processing_orders[0])
        with pytest.raises(AlreadyRequestedError):
            await service.request_disclosure("0xbuyer2", processing_orders[1])

        order = await service.ledger.peek_order(processing_orders[1])
        assert order.disclosure_status == DisclosureStatus.NONE

    async def test_request_after_deadline(self, service, clock, processing_orders):
        clock.advance(timedelta(days=7))
        with pytest.raises(ExpiredError):
            await service.request_disclosure("0xbuyer1", processing_orders[0])

    async def test_oracle_failure_leaves_order_untouched(self, service, oracle, processing_orders):
        oracle.set_error(ConnectionError("oracle unreachable"))
        with pytest.raises(ConnectionError):
            await service.request_disclosure("0xbuyer1", processing_orders[0])

        order = await service.ledger.peek_order(processing_orders[0])
        assert order.disclosure_status == DisclosureStatus.NONE

    async def test_missing_order(self, service):
        with pytest.raises(NotFoundError):
            await service.request_disclosure("0xbuyer1", 77)


# =============================================================================
# on_disclosure_callback()
# =============================================================================

class TestDisclosureCallbackGolden:

    async def test_callback_completes_order(self, service, oracle, processing_orders):
        order_id = processing_orders[0]
        request_id = await service.request_disclosure("0xbuyer1", order_id)
        quantity, amount = oracle.reveal(request_id)

        assert await service.on_disclosure_callback(request_id, quantity, amount, oracle.valid_proof) == order_id

        order = await service.get_order_info("0xbuyer1", order_id)
        assert order.status == OrderStatus.COMPLETED
        assert order.disclosure_status == DisclosureStatus.COMPLETED
        assert order.revealed is True
        assert order.revealed_quantity == 1
        assert order.revealed_amount == UNIT_PRICE
        assert await service.ledger.peek_disclosure_request(request_id) is None

    async def test_replayed_callback_unknown(self, service, oracle, processing_orders):
        request_id = await service.request_disclosure("0xbuyer1", processing_orders[0])
        await service.on_disclosure_callback(request_id, 1, UNIT_PRICE, oracle.valid_proof)

        with pytest.raises(UnknownRequestError):
            await service.on_disclosure_callback(request_id, 1, UNIT_PRICE, oracle.valid_proof)

    async def test_unknown_request(self, service, oracle):
        with pytest.raises(UnknownRequestError):
            await service.on_disclosure_callback("req-404", 1, UNIT_PRICE, oracle.valid_proof)

    async def test_invalid_proof_rejected(self, service, processing_orders):
        request_id = await service.request_disclosure("0xbuyer1", processing_orders[0])

        with pytest.raises(InvalidProofError):
            await service.on_disclosure_callback(request_id, 1, UNIT_PRICE, "forged")

        order = await service.ledger.peek_order(processing_orders[0])
        assert order.status == OrderStatus.PROCESSING
        assert order.disclosure_status == DisclosureStatus.REQUESTED
        assert await service.ledger.peek_disclosure_request(request_id) is not None

    @pytest.mark.parametrize("quantity,amount", [(0, UNIT_PRICE), (1, 0), (-1, UNIT_PRICE), (1_000_001, UNIT_PRICE)])
    async def test_out_of_bounds_values(self, service, oracle, processing_orders, quantity, amount):
        request_id = await service.request_disclosure("0xbuyer1", processing_orders[0])
        with pytest.raises(InvalidParameterError):
            await service.on_disclosure_callback(request_id, quantity, amount, oracle.valid_proof)

    async def test_callback_after_deadline_expired(self, service, oracle, clock, processing_orders):
        request_id = await service.request_disclosure("0xbuyer1", processing_orders[0])
        clock.advance(timedelta(days=7))
        with pytest.raises(ExpiredError):
            await service.on_disclosure_callback(request_id, 1, UNIT_PRICE, oracle.valid_proof)

    async def test_callback_published(self, service, oracle, event_bus, processing_orders):
        request_id = await service.request_disclosure("0xbuyer1", processing_orders[0])
        await service.on_disclosure_callback(request_id, 1, UNIT_PRICE, oracle.valid_proof)

        events = event_bus.get_events_by_type("settlement.disclosure.completed")
        assert events[0].data["data"]["revealed_amount"] == UNIT_PRICE


# =============================================================================
# on_disclosure_timeout()
# =============================================================================

class TestDisclosureTimeoutGolden:

    async def test_timeout_refunds_order(self, service, transfers, clock, processing_orders):
        order_id = processing_orders[0]
        await service.request_disclosure("0xbuyer1", order_id)
        clock.advance(PAST_DEADLINE)

        assert await service.on_disclosure_timeout(ADMIN, order_id) == UNIT_PRICE

        order = await service.get_order_info(ADMIN, order_id)
        assert order.status == OrderStatus.REFUNDED
        assert order.disclosure_status == DisclosureStatus.FAILED
        assert transfers.total_to("0xbuyer1") == UNIT_PRICE
        status = await service.get_disclosure_status("0xbuyer1", order_id)
        assert status.timed_out is True

    async def test_timeout_at_exact_deadline(self, service, clock, processing_orders):
        await service.request_disclosure("0xbuyer1", processing_orders[0])
        clock.advance(timedelta(days=7))
        assert await service.on_disclosure_timeout(ADMIN, processing_orders[0]) == UNIT_PRICE

    async def test_late_callback_expired(self, service, oracle, clock, processing_orders):
        request_id = await service.request_disclosure("0xbuyer1", processing_orders[0])
        clock.advance(PAST_DEADLINE)
        await service.on_disclosure_timeout(ADMIN, processing_orders[0])

        with pytest.raises(ExpiredError):
            await service.on_disclosure_callback(request_id, 1, UNIT_PRICE, oracle.valid_proof)
        entry = await service.ledger.peek_disclosure_request(request_id)
        assert entry.timed_out is True

    async def test_timeout_before_deadline_rejected(self, service, clock, processing_orders):
        await service.request_disclosure("0xbuyer1", processing_orders[0])
        clock.advance(timedelta(days=6))
        with pytest.raises(InvalidStateError):
            await service.on_disclosure_timeout(ADMIN, processing_orders[0])

    async def test_timeout_without_request_rejected(self, service, clock, processing_orders):
        clock.advance(PAST_DEADLINE)
        with pytest.raises(InvalidStateError):
            await service.on_disclosure_timeout(ADMIN, processing_orders[0])

    async def test_timeout_after_callback_rejected(self, service, oracle, clock, processing_orders):
        request_id = await service.request_disclosure("0xbuyer1", processing_orders[0])
        await service.on_disclosure_callback(request_id, 1, UNIT_PRICE, oracle.valid_proof)
        clock.advance(PAST_DEADLINE)
        with pytest.raises(InvalidStateError):
            await service.on_disclosure_timeout(ADMIN, processing_orders[0])

    async def test_double_timeout_refunds_once(self, service, transfers, clock, processing_orders):
        await service.request_disclosure("0xbuyer1", processing_orders[0])
        clock.advance(PAST_DEADLINE)
        await service.on_disclosure_timeout(ADMIN, processing_orders[0])
        with pytest.raises(InvalidStateError):
            await service.on_disclosure_timeout(ADMIN, processing_orders[0])
        assert transfers.total_to("0xbuyer1") == UNIT_PRICE

    async def test_administrator_only(self, service, clock, processing_orders):
        await service.request_disclosure("0xbuyer1", processing_orders[0])
        clock.advance(PAST_DEADLINE)
        with pytest.raises(UnauthorizedError):
            await service.on_disclosure_timeout("0xbuyer1", processing_orders[0])

    async def test_timeout_published_before_refund(self, service, event_bus, clock, processing_orders):
        await service.request_disclosure("0xbuyer1", processing_orders[0])
        clock.advance(PAST_DEADLINE)
        await service.on_disclosure_timeout(ADMIN, processing_orders[0])

        types = [e.type for e in event_bus.published_events]
        assert types.index("settlement.disclosure.failed") < types.index("settlement.refund.processed")


# =============================================================================
# DisclosureTimeoutSweeper
# =============================================================================

class TestDisclosureSweepGolden:

    async def test_sweep_refunds_expired_requests(self, service, transfers, clock, processing_orders):
        for i, order_id in enumerate(processing_orders[:3], start=1):
            await service.request_disclosure(f"0xbuyer{i}", order_id)
        clock.advance(PAST_DEADLINE)

        refunded = await service.sweep_expired_disclosures(ADMIN)

        assert refunded == processing_orders[:3]
        for i in range(1, 4):
            assert transfers.total_to(f"0xbuyer{i}") == UNIT_PRICE
        assert await service.sweep_expired_disclosures(ADMIN) == []

    async def test_sweep_skips_unexpired_and_answered(self, service, oracle, clock, processing_orders):
        answered = await service.request_disclosure("0xbuyer1", processing_orders[0])
        await service.on_disclosure_callback(answered, 1, UNIT_PRICE, oracle.valid_proof)
        await service.request_disclosure("0xbuyer2", processing_orders[1])
        clock.advance(timedelta(days=1))

        assert await service.sweeper.find_expired() == []
        assert await service.sweep_expired_disclosures(ADMIN) == []

    async def test_sweep_administrator_only(self, service):
        with pytest.raises(UnauthorizedError):
            await service.sweep_expired_disclosures("0xbuyer1")
