"""
Domain models for the order fan-out pipeline.

These models describe what travels through the broker: the order-placement
request a client submits, the canonical OrderEvent that gets fanned out to
every queue, and the broker's delivery envelope around it.

Design decisions:
- Using Pydantic for validation and serialization of the event payload
- The wire format uses camelCase keys (orderId, customerEmail, ...) so other
  consumers of the topic can read it; Python code uses snake_case attributes
- OrderEvent is frozen - each consumer works on its own decoded copy
- Broker envelopes are plain dataclasses, they are never validated
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


ORDER_ID_PREFIX = "ORD-"

# 6 random bytes -> 8 url-safe characters -> 48 bits of entropy
ORDER_ID_RANDOM_BYTES = 6


def new_order_id() -> str:
    """Generate a fresh order identifier, e.g. ``ORD-3fK9_aQz``."""
    return f"{ORDER_ID_PREFIX}{secrets.token_urlsafe(ORDER_ID_RANDOM_BYTES)}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class OrderStatus(str, Enum):
    """
    Order lifecycle states.
    This pipeline only ever creates PLACED orders; SHIPPED is what the
    shipping confirmation reports to the customer.
    """
    PLACED = "placed"
    SHIPPED = "shipped"


class ProcessingOutcome(str, Enum):
    """What a single processing attempt resolved to."""
    SUCCESS = "success"   # Side effect done, message should be deleted
    FAILURE = "failure"   # Left un-deleted, redelivered after visibility timeout


class DeliveryState(str, Enum):
    """
    States of one in-flight delivery attempt inside a consumer.

    RECEIVED -> PROCESSING -> ACKNOWLEDGED | ABANDONED
    """
    RECEIVED = "received"
    PROCESSING = "processing"
    ACKNOWLEDGED = "acknowledged"   # Terminal: deleted from the queue
    ABANDONED = "abandoned"         # Non-terminal: broker redelivers later


# =============================================================================
# Order request / event
# =============================================================================

class OrderRequest(BaseModel):
    """
    Body of an order-placement request.

    The only input is an optional contact address; an empty string is
    treated the same as a missing one.
    """
    customer_email: Optional[str] = Field(
        default=None,
        alias="customerEmail",
        description="Where the confirmation should go",
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("customer_email")
    @classmethod
    def _blank_is_missing(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class OrderEvent(BaseModel):
    """
    The canonical order event fanned out to every queue.

    Created exactly once per order-placement request by the publisher and
    never mutated afterwards.
    """
    order_id: str = Field(..., alias="orderId", min_length=1)
    customer_email: Optional[str] = Field(default=None, alias="customerEmail")
    status: OrderStatus = Field(default=OrderStatus.PLACED)
    placed_at: Optional[datetime] = Field(default=None, alias="placedAt")

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        use_enum_values=True,
    )

    @classmethod
    def placed(cls, order_id: str, customer_email: str) -> "OrderEvent":
        """Build a freshly placed order stamped with the current time."""
        return cls(
            order_id=order_id,
            customer_email=customer_email,
            status=OrderStatus.PLACED,
            placed_at=utc_now(),
        )

    def to_json(self) -> str:
        """Serialize using the camelCase wire format."""
        return self.model_dump_json(by_alias=True)

    @property
    def reference(self) -> str:
        """
        Tracking reference derived from the order id.
        Stable for a given order, so duplicate deliveries agree on it.
        """
        return f"TRK-{self.order_id[-6:].upper()}"


# =============================================================================
# Broker envelopes
# =============================================================================

@dataclass(frozen=True)
class QueuedMessage:
    """
    One delivery of a message from a queue.

    The receipt handle belongs to this delivery attempt only; once the
    visibility window expires or the message is deleted it is stale.
    """
    message_id: str
    body: str
    receipt_handle: str
    queue: str
    receive_count: int = 1

    @property
    def is_redelivery(self) -> bool:
        return self.receive_count > 1

    def __str__(self) -> str:
        return f"Message({self.message_id[:8]}, queue={self.queue}, receive={self.receive_count})"


@dataclass(frozen=True)
class PublishReceipt:
    """What the publisher hands back for a successfully published order."""
    order_id: str
    topic: str
    message_id: str
    event: OrderEvent
