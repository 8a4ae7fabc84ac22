"""
Shipping lane processor.

The side effect the shipping worker performs for each order event: do the
(simulated) shipping work, then email the customer a shipment confirmation.

The confirmation only depends on the event, so a redelivered event sends the
same email to the same recipient again. That duplicate is acceptable; a
confirmation for the wrong order or the wrong recipient is not, which is why
nothing here is shared between messages.
"""

import logging
import time
from typing import Callable, Protocol

from shared.config import PipelineConfig
from shared.channels import NotificationResult
from shared.errors import SideEffectError
from shared.models import OrderEvent, QueuedMessage
from shared.templates import render_shipment_confirmation

logger = logging.getLogger("shipping")


class EmailSender(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> NotificationResult:
        ...


class ShippingProcessor:
    """Sends the shipment confirmation for an order event."""

    def __init__(
        self,
        channel: EmailSender,
        config: PipelineConfig,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.channel = channel
        self.fallback_email = config.fallback_email
        self.processing_delay = config.processing_delay
        self._sleep = sleep

    def recipient_for(self, event: OrderEvent) -> str:
        recipient = event.customer_email or self.fallback_email
        if not recipient:
            raise SideEffectError(f"No recipient for order {event.order_id}")
        return recipient

    def __call__(self, event: OrderEvent, message: QueuedMessage) -> NotificationResult:
        """
        Process one order event.

        Raises:
            SideEffectError: If there is nobody to notify or the send failed
        """
        logger.info(f"Processing shipment for {event.order_id} ({message})")
        to = self.recipient_for(event)

        if self.processing_delay:
            self._sleep(self.processing_delay)

        subject, html_body = render_shipment_confirmation(event)
        result = self.channel.send(to, subject, html_body)
        if not result.success:
            raise SideEffectError(f"Email to {to} for order {event.order_id} failed: {result.error}")

        logger.info(f"Email sent to {to} for order {event.order_id}")
        return result
