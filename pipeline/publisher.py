"""
Order event publisher.

Turns an order-placement request into exactly one OrderEvent published to
the order topic. The broker does the fan-out to payment, shipping,
analytics, ... queues; the publisher does not know which queues exist.

Design decisions:
- One broker publish per call, no internal retry: a publish failure goes
  straight back to the caller, who decides whether to place the order again
- Validation happens before the publish, so a bad request never reaches
  the broker
- Stateless apart from the broker, so concurrent requests can share one
  publisher
"""

import logging
from typing import Optional

from broker.base import Broker
from shared.config import PipelineConfig
from shared.errors import OrderValidationError, PublishError
from shared.models import OrderEvent, OrderRequest, PublishReceipt, new_order_id

logger = logging.getLogger("publisher")

ORDER_PLACED_SUBJECT = "OrderPlaced"


class EventPublisher:
    """
    Publishes OrderPlaced events.

    Example:
        publisher = EventPublisher(broker, config)
        receipt = publisher.publish(OrderRequest(customer_email="a@example.com"))
        print(receipt.order_id, receipt.topic)
    """

    def __init__(self, broker: Broker, config: PipelineConfig):
        self.broker = broker
        self.topic = config.topic
        self.fallback_email = config.fallback_email

    def build_event(self, request: OrderRequest) -> OrderEvent:
        """
        Build the event for a request, applying the fallback address.

        Raises:
            OrderValidationError: If there is no address to notify at all
        """
        email = request.customer_email or self.fallback_email
        if not email:
            raise OrderValidationError(
                "customerEmail is required when no fallback address is configured"
            )
        return OrderEvent.placed(order_id=new_order_id(), customer_email=email)

    def publish(self, request: Optional[OrderRequest] = None) -> PublishReceipt:
        """
        Place an order: build the event and publish it once.

        Returns:
            PublishReceipt with the new order id and the topic used

        Raises:
            OrderValidationError: Request unusable, nothing published
            PublishError: The broker did not accept the event
        """
        event = self.build_event(request or OrderRequest())
        body = event.to_json()

        try:
            message_id = self.broker.publish(self.topic, ORDER_PLACED_SUBJECT, body)
        except PublishError:
            logger.error(f"Publish failed for order {event.order_id} on {self.topic}")
            raise

        logger.info(f"Published order {event.order_id} for {event.customer_email} to {self.topic}")
        return PublishReceipt(
            order_id=event.order_id,
            topic=self.topic,
            message_id=message_id,
            event=event,
        )
