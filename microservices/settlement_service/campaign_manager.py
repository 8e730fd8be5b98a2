"""
Campaign Manager

Creates and deactivates campaigns and moves them into processing once the
target is reached.
"""

import logging
from datetime import datetime
from typing import Callable

from .confidential import ConfidentialBoundary
from .events.publishers import SettlementEventPublisher
from .guards import (
    require_campaign_exists,
    require_future,
    require_identity,
    require_no_overflow,
    require_organizer,
    require_positive_amount,
    require_quantity_bounds,
    require_text,
    utc_now,
)
from .ledger_store import Ledger, LedgerKeys
from .models import (
    AggregateStats,
    Campaign,
    CampaignCategory,
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    OrderStatus,
)
from .protocols import (
    CampaignNotEligibleError,
    InvalidParameterError,
    InvalidStateError,
)

logger = logging.getLogger(__name__)


class CampaignManager:
    """Campaign lifecycle"""

    def __init__(
        self,
        ledger: Ledger,
        confidential: ConfidentialBoundary,
        publisher: SettlementEventPublisher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ledger = ledger
        self.confidential = confidential
        self.publisher = publisher
        self.clock = clock

    async def create_campaign(
        self,
        organizer: str,
        name: str,
        description: str,
        unit_price: int,
        min_order_quantity: int,
        max_order_quantity: int,
        category: CampaignCategory,
        deadline: datetime,
    ) -> int:
        """
        Create a campaign and its zeroed aggregate statistics.

        Returns:
            The new campaign id

        Raises:
            InvalidParameterError: any field out of bounds
        """
        now = self.clock()
        require_identity(organizer, "organizer")
        require_text(name, "name", MAX_NAME_LENGTH)
        require_text(description, "description", MAX_DESCRIPTION_LENGTH, allow_empty=True)
        require_positive_amount(unit_price, "unit_price")
        require_quantity_bounds(min_order_quantity, max_order_quantity)
        require_no_overflow(unit_price, max_order_quantity)
        require_future(deadline, now)
        if not isinstance(category, CampaignCategory):
            raise InvalidParameterError("Invalid category", field="category")

        quantity_handle, amount_handle = await self.confidential.zero_aggregates()

        async with self.ledger.session(LedgerKeys.CAMPAIGN_SEQUENCE) as session:
            campaign_id = await session.next_id(LedgerKeys.CAMPAIGN_SEQUENCE)
            campaign = Campaign(
                campaign_id=campaign_id,
                organizer=organizer,
                name=name,
                description=description,
                unit_price=unit_price,
                min_order_quantity=min_order_quantity,
                max_order_quantity=max_order_quantity,
                category=category,
                deadline=deadline,
                created_at=now,
            )
            await session.save_campaign(campaign)
            await session.save_stats(
                AggregateStats(
                    campaign_id=campaign_id,
                    aggregate_quantity_handle=quantity_handle,
                    aggregate_amount_handle=amount_handle,
                )
            )

        logger.info(f"Campaign {campaign_id} created by {organizer}")
        await self.publisher.publish_campaign_created(
            campaign_id=campaign_id,
            organizer=organizer,
            name=name,
            category=category.value,
            unit_price=unit_price,
            min_order_quantity=min_order_quantity,
            deadline=deadline,
        )
        return campaign_id

    async def deactivate_campaign(self, organizer: str, campaign_id: int) -> None:
        """Stop accepting orders; orders already placed are unaffected"""
        async with self.ledger.session(LedgerKeys.campaign(campaign_id)) as session:
            campaign = require_campaign_exists(await session.get_campaign(campaign_id), campaign_id)
            require_organizer(campaign, organizer)
            if not campaign.active:
                logger.debug(f"Campaign {campaign_id} already inactive")
                return
            campaign.active = False
            await session.save_campaign(campaign)

        logger.info(f"Campaign {campaign_id} deactivated")
        await self.publisher.publish_campaign_deactivated(campaign_id, organizer)

    async def check_target_reached(self, campaign_id: int) -> bool:
        campaign = require_campaign_exists(await self.ledger.peek_campaign(campaign_id), campaign_id)
        return campaign.current_orders >= campaign.min_order_quantity

    async def begin_processing(self, organizer: str, campaign_id: int) -> int:
        """
        Move every pending order of a campaign to processing.

        Re-invoking only touches orders still pending.

        Returns:
            Number of orders transitioned
        """
        transitioned = 0
        async with self.ledger.session(LedgerKeys.campaign(campaign_id)) as session:
            campaign = require_campaign_exists(await session.get_campaign(campaign_id), campaign_id)
            require_organizer(campaign, organizer)
            if not campaign.active:
                raise CampaignNotEligibleError(f"Campaign inactive: {campaign_id}")
            if campaign.current_orders < campaign.min_order_quantity:
                raise InvalidStateError(
                    f"Target not reached: {campaign.current_orders}/{campaign.min_order_quantity}"
                )

            now = self.clock()
            for order_id in await session.get_campaign_order_ids(campaign_id):
                order = await session.get_order(order_id)
                if order is None or order.status != OrderStatus.PENDING:
                    continue
                order.status = OrderStatus.PROCESSING
                order.updated_at = now
                await session.save_order(order)
                transitioned += 1

            campaign.target_reached = True
            await session.save_campaign(campaign)
            stats = await session.get_stats(campaign_id)
            if stats is not None:
                stats.target_reached = True
                await session.save_stats(stats)

        logger.info(f"Campaign {campaign_id}: {transitioned} orders moved to processing")
        await self.publisher.publish_processing_started(campaign_id, organizer, transitioned)
        return transitioned


__all__ = ["CampaignManager"]
