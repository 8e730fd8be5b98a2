"""
NATS JetStream Client for Python Microservices
Provides event-driven communication for the settlement service

Thin wrapper around nats-py: an Event envelope, the settlement event types
and a NATSEventBus that publishes envelopes to JetStream.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import nats
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext

from core.config import InfraConfig


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        return super().default(obj)


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Settlement event types"""

    # Campaign Events
    CAMPAIGN_CREATED = "settlement.campaign.created"
    CAMPAIGN_DEACTIVATED = "settlement.campaign.deactivated"
    CAMPAIGN_PROCESSING_STARTED = "settlement.campaign.processing_started"

    # Order Events
    ORDER_PLACED = "settlement.order.placed"
    ORDER_CANCELLED = "settlement.order.cancelled"

    # Disclosure Events
    DISCLOSURE_REQUESTED = "settlement.disclosure.requested"
    DISCLOSURE_COMPLETED = "settlement.disclosure.completed"
    DISCLOSURE_FAILED = "settlement.disclosure.failed"

    # Refund Events
    REFUND_PROCESSED = "settlement.refund.processed"
    REFUND_CLAIMED = "settlement.refund.claimed"


class ServiceSource(Enum):
    """Service sources"""

    SETTLEMENT_SERVICE = "settlement_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event = cls.__new__(cls)
        event.id = data.get("id")
        event.type = data.get("type")
        event.source = data.get("source")
        event.subject = data.get("subject")
        event.timestamp = data.get("timestamp")
        event.data = data.get("data", {})
        event.metadata = data.get("metadata", {})
        event.version = data.get("version", "1.0.0")
        return event


class NATSEventBus:
    """
    NATS JetStream event bus.

    Every event type maps to a subject under "settlement.>", persisted in a
    single "settlement-stream".
    """

    STREAM_NAME = "settlement-stream"
    STREAM_SUBJECTS = ["settlement.>"]

    def __init__(
        self,
        service_name: str,
        config: Optional[InfraConfig] = None,
    ):
        self.service_name = service_name
        self.config = config or InfraConfig.from_env()
        self.servers = self.config.nats_servers

        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._is_connected = False

        logger.info(f"NATS EventBus initialized: {self.servers}")

    async def connect(self):
        """Connect to NATS and make sure the settlement stream exists"""
        try:
            self._nc = await nats.connect(servers=self.servers, name=self.service_name)
            self._js = self._nc.jetstream()

            try:
                await self._js.add_stream(name=self.STREAM_NAME, subjects=self.STREAM_SUBJECTS)
            except Exception as e:
                logger.debug(f"Stream creation note: {e}")

            self._is_connected = True
            logger.info(f"Connected to NATS as {self.service_name}")

        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    async def publish_event(self, event: Event) -> bool:
        """Publish an event to NATS JetStream"""
        if not self._is_connected or not self._js:
            logger.error("Not connected to NATS")
            return False

        try:
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            ack = await self._js.publish(event.type, data)
            logger.info(f"Published event {event.type} [{event.id}] to stream {ack.stream}, seq={ack.seq}")
            return True

        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    async def close(self):
        """Close NATS connection"""
        if self._nc:
            await self._nc.drain()
            self._nc = None
            self._js = None

        self._is_connected = False
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._is_connected


__all__ = [
    "Event",
    "EventType",
    "ServiceSource",
    "NATSEventBus",
]
