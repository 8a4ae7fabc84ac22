"""
The order fan-out pipeline.

- EventPublisher: builds one OrderEvent per order and publishes it
- QueueConsumer: drains a queue, acknowledging only what was processed
- ShippingProcessor: the shipping lane's side effect (confirmation email)
- ProgressObserver: per-order lane status for clients
"""

from pipeline.publisher import EventPublisher
from pipeline.consumer import QueueConsumer, DeliveryAttempt, ConsumerStats
from pipeline.shipping import ShippingProcessor
from pipeline.progress import ProgressObserver, SimulatedProgressFeed, LaneStatus
from pipeline.backoff import Backoff
from pipeline.decoding import decode_order_event

__all__ = [
    "EventPublisher",
    "QueueConsumer",
    "DeliveryAttempt",
    "ConsumerStats",
    "ShippingProcessor",
    "ProgressObserver",
    "SimulatedProgressFeed",
    "LaneStatus",
    "Backoff",
    "decode_order_event",
]
