"""
Demonstration scripts for the order fan-out pipeline.

These functions run the whole flow in one process on the in-memory broker:
an order is published once, fanned out to the payment, shipping and
analytics queues, and a shipping worker drains its queue.
"""

import logging
from typing import Optional

from broker.memory import InMemoryBroker
from pipeline.consumer import QueueConsumer
from pipeline.progress import ProgressObserver
from pipeline.publisher import EventPublisher
from pipeline.shipping import ShippingProcessor
from shared.channels import EmailChannel
from shared.config import PipelineConfig
from shared.models import OrderRequest

# Configure logging to see what's happening
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

LANES = ("payment", "shipping", "analytics")


def create_fanout(
    broker: InMemoryBroker,
    topic: str,
    lanes=LANES,
    max_receive_count: Optional[int] = None,
) -> None:
    """
    Create ``topic`` and one queue per lane subscribed to it.

    With ``max_receive_count`` every lane queue gets a ``<lane>-dlq``
    dead-letter queue.
    """
    broker.create_topic(topic)
    for lane in lanes:
        if max_receive_count is None:
            broker.create_queue(lane)
        else:
            broker.create_queue(lane, dead_letter_queue=f"{lane}-dlq", max_receive_count=max_receive_count)
        broker.subscribe(topic, lane)


def _demo_setup(config: PipelineConfig, max_receive_count: Optional[int] = None):
    broker = InMemoryBroker()
    create_fanout(broker, config.topic, max_receive_count=max_receive_count)
    channel = EmailChannel(sender=config.sender_email or "orders@example.com")
    progress = ProgressObserver(LANES)
    consumer = QueueConsumer(
        broker,
        ShippingProcessor(channel, config),
        config,
        queue="shipping",
        progress=progress,
    )
    return broker, channel, progress, consumer


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70 + "\n")


def run_order_shipped_demo(customer_email: Optional[str] = "a@example.com"):
    """
    Demonstrate the happy path.

    This shows:
    1. The publisher publishes one OrderPlaced event
    2. The broker copies it into payment, shipping and analytics queues
    3. The shipping worker unwraps it, emails the customer, deletes it
    """
    _banner("DEMO: Order placed -> shipping confirmation")

    config = PipelineConfig(fallback_email="fallback@example.com", wait_seconds=0)
    broker, channel, progress, consumer = _demo_setup(config)
    publisher = EventPublisher(broker, config)

    receipt = publisher.publish(OrderRequest(customer_email=customer_email))
    progress.start(receipt.order_id)
    print(f"Placed {receipt.order_id}, published to '{receipt.topic}'\n")

    consumer.run(max_polls=1)

    print("\nQueue depths after the shipping worker ran:")
    for lane in LANES:
        print(f"  {lane:<10} {broker.queue_depth(lane)}")
    print(f"\nProgress: {progress.snapshot(receipt.order_id)}")
    print("\nNotifications sent:")
    for msg in channel.sent_messages:
        print(f"  {msg}")

    return channel.sent_messages


def run_redelivery_demo(visibility_timeout: int = 1):
    """
    Demonstrate a failed side effect healing through redelivery.

    The first email attempt fails, the message is left in the queue, becomes
    visible again after the visibility timeout and succeeds on the second
    delivery.
    """
    _banner("DEMO: Failed email -> redelivery -> success")

    config = PipelineConfig(
        fallback_email="fallback@example.com",
        wait_seconds=visibility_timeout + 1,
        visibility_timeout=visibility_timeout,
    )
    broker, channel, progress, consumer = _demo_setup(config)
    publisher = EventPublisher(broker, config)

    channel.fail_next(1)
    receipt = publisher.publish(OrderRequest(customer_email="b@example.com"))
    progress.start(receipt.order_id)

    stats = consumer.run(max_polls=2)

    print(f"\nWorker stats: {stats}")
    print(f"Shipping queue depth: {broker.queue_depth('shipping')}")
    print(f"Shipping lane: {progress.snapshot(receipt.order_id)['shipping']}")
    print("\nEmail attempts:")
    for msg in channel.sent_messages:
        print(f"  {msg}")

    return stats


def run_poison_message_demo(max_receive_count: int = 2, visibility_timeout: int = 1):
    """
    Demonstrate a malformed message ending up in the dead-letter queue.
    """
    _banner("DEMO: Malformed message -> dead-letter queue")

    config = PipelineConfig(
        wait_seconds=visibility_timeout + 1,
        visibility_timeout=visibility_timeout,
    )
    broker, channel, progress, consumer = _demo_setup(config, max_receive_count=max_receive_count)

    broker.publish(config.topic, "OrderPlaced", "this is not an order")
    stats = consumer.run(max_polls=max_receive_count + 1)

    print(f"\nWorker stats: {stats}")
    print(f"Shipping queue depth: {broker.queue_depth('shipping')}")
    print(f"Dead letters: {len(broker.peek_bodies('shipping-dlq'))}")

    return stats


def run_all_demos() -> None:
    run_order_shipped_demo()
    run_redelivery_demo()
    run_poison_message_demo()
