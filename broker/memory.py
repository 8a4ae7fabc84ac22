"""
In-memory fan-out broker.

This module provides a topic/queue broker that behaves like SNS in front of
SQS, enough to exercise the worker's at-least-once handling without a cloud
account:

- Publishing to a topic copies the message to every subscribed queue
- Receiving hides messages for a visibility timeout and hands out a fresh
  receipt handle per delivery
- Messages that are not deleted in time become receivable again
- An optional redrive policy moves messages that were received too often to
  a dead-letter queue

Design decisions:
- One lock guards all topics and queues; a condition on that lock wakes
  long-polling receivers when something is published
- Visibility is computed from an injectable monotonic clock so tests can
  expire windows without sleeping
- Long-poll waits use real time, re-checking visibility every poll interval
- Subscriptions wrap the body in a notification envelope (like SNS does
  unless raw delivery is turned on)
"""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import uuid4

from broker.base import Broker
from shared.errors import AcknowledgeError, PublishError, ReceiveError
from shared.models import QueuedMessage

logger = logging.getLogger("broker")

# SQS limits a single receive to 10 messages
MAX_BATCH_SIZE = 10


@dataclass
class _StoredMessage:
    """A message sitting in a queue, visible or in flight."""
    message_id: str
    body: str
    receive_count: int = 0
    receipt_handle: Optional[str] = None
    visible_at: float = 0.0


@dataclass
class _Queue:
    name: str
    messages: dict[str, _StoredMessage] = field(default_factory=dict)
    dead_letter_queue: Optional[str] = None
    max_receive_count: Optional[int] = None


@dataclass
class _Subscription:
    queue: str
    raw: bool = False


class InMemoryBroker(Broker):
    """
    Thread-safe in-memory implementation of the Broker interface.

    Example usage:
        broker = InMemoryBroker()
        broker.create_topic("orders")
        broker.create_queue("shipping")
        broker.subscribe("orders", "shipping")

        broker.publish("orders", "OrderPlaced", '{"orderId": "ORD-1"}')
        [message] = broker.receive("shipping", 5, 0, 30)
        broker.delete("shipping", message.receipt_handle)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, poll_interval: float = 0.05):
        """
        Args:
            clock: Monotonic time source for visibility windows
            poll_interval: How often a long-poll re-checks for expired windows
        """
        self._clock = clock
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)

        self._topics: dict[str, list[_Subscription]] = {}
        self._queues: dict[str, _Queue] = {}

        # (topic, subject, message_id) for every accepted publish
        self._publish_log: list[tuple[str, str, str]] = []

        self._pending_failures = {"publish": 0, "receive": 0}

    # =========================================================================
    # Topology
    # =========================================================================

    def create_topic(self, name: str) -> str:
        """Create a topic (no-op if it exists). Returns the topic name."""
        with self._lock:
            self._topics.setdefault(name, [])
        return name

    def create_queue(
        self,
        name: str,
        dead_letter_queue: Optional[str] = None,
        max_receive_count: Optional[int] = None,
    ) -> str:
        """
        Create a queue (no-op if it exists).

        Args:
            name: Queue name
            dead_letter_queue: Where to move messages received too often
            max_receive_count: Receives allowed before moving to the DLQ
        """
        if (dead_letter_queue is None) != (max_receive_count is None):
            raise ValueError("dead_letter_queue and max_receive_count must be set together")
        if max_receive_count is not None and max_receive_count < 1:
            raise ValueError("max_receive_count must be at least 1")

        with self._lock:
            if dead_letter_queue is not None:
                self._queues.setdefault(dead_letter_queue, _Queue(name=dead_letter_queue))
            if name not in self._queues:
                self._queues[name] = _Queue(
                    name=name,
                    dead_letter_queue=dead_letter_queue,
                    max_receive_count=max_receive_count,
                )
        return name

    def subscribe(self, topic: str, queue: str, raw: bool = False) -> None:
        """
        Deliver every message published to ``topic`` into ``queue``.

        Args:
            raw: Deliver the bare body instead of the notification envelope
        """
        with self._lock:
            if topic not in self._topics:
                raise ValueError(f"Topic not found: {topic}")
            if queue not in self._queues:
                raise ValueError(f"Queue not found: {queue}")
            self._topics[topic].append(_Subscription(queue=queue, raw=raw))
        logger.debug(f"Subscribed queue '{queue}' to topic '{topic}'")

    def has_subscription(self, topic: str, queue: str) -> bool:
        with self._lock:
            return any(s.queue == queue for s in self._topics.get(topic, []))

    # =========================================================================
    # Fault injection
    # =========================================================================

    def fail_next_publish(self, count: int = 1) -> None:
        """Make the next ``count`` publish calls raise PublishError."""
        with self._lock:
            self._pending_failures["publish"] += count

    def fail_next_receive(self, count: int = 1) -> None:
        """Make the next ``count`` receive calls raise ReceiveError."""
        with self._lock:
            self._pending_failures["receive"] += count

    def _take_failure(self, operation: str) -> bool:
        if self._pending_failures[operation] > 0:
            self._pending_failures[operation] -= 1
            return True
        return False

    # =========================================================================
    # Broker interface
    # =========================================================================

    def publish(self, topic: str, subject: str, body: str) -> str:
        with self._cond:
            if self._take_failure("publish"):
                raise PublishError(f"Simulated publish failure on topic '{topic}'")

            subscriptions = self._topics.get(topic)
            if subscriptions is None:
                raise PublishError(f"Topic not found: {topic}")

            message_id = str(uuid4())
            envelope = None
            for subscription in subscriptions:
                if subscription.raw:
                    payload = body
                else:
                    if envelope is None:
                        envelope = self._notification_envelope(topic, subject, body, message_id)
                    payload = envelope
                queue = self._queues[subscription.queue]
                copy_id = str(uuid4())
                queue.messages[copy_id] = _StoredMessage(message_id=copy_id, body=payload)

            self._publish_log.append((topic, subject, message_id))
            self._cond.notify_all()

        if not subscriptions:
            logger.warning(f"No queues subscribed to topic '{topic}'")
        logger.info(f"Published {message_id[:8]} to '{topic}' -> {len(subscriptions)} queue(s)")
        return message_id

    def receive(
        self,
        queue: str,
        max_messages: int,
        wait_seconds: int,
        visibility_timeout: int,
    ) -> list[QueuedMessage]:
        if not 1 <= max_messages <= MAX_BATCH_SIZE:
            raise ReceiveError(f"max_messages must be between 1 and {MAX_BATCH_SIZE}, got {max_messages}")

        deadline = time.monotonic() + max(wait_seconds, 0)
        with self._cond:
            if self._take_failure("receive"):
                raise ReceiveError(f"Simulated receive failure on queue '{queue}'")

            stored = self._queues.get(queue)
            if stored is None:
                raise ReceiveError(f"Queue not found: {queue}")

            while True:
                batch = self._take_visible(stored, max_messages, visibility_timeout)
                if batch:
                    return batch
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return []
                self._cond.wait(min(remaining, self._poll_interval))

    def delete(self, queue: str, receipt_handle: str) -> None:
        with self._lock:
            stored = self._queues.get(queue)
            if stored is None:
                raise AcknowledgeError(f"Queue not found: {queue}")

            message = next(
                (m for m in stored.messages.values() if m.receipt_handle == receipt_handle),
                None,
            )
            if message is None:
                raise AcknowledgeError(f"Receipt handle is not valid: {receipt_handle[:8]}")
            if self._clock() >= message.visible_at:
                raise AcknowledgeError(
                    f"Receipt handle expired for message {message.message_id[:8]}"
                )

            del stored.messages[message.message_id]
        logger.debug(f"Deleted message {message.message_id[:8]} from '{queue}'")

    # =========================================================================
    # Internals
    # =========================================================================

    def _notification_envelope(self, topic: str, subject: str, body: str, message_id: str) -> str:
        return json.dumps({
            "Type": "Notification",
            "MessageId": message_id,
            "TopicArn": topic,
            "Subject": subject,
            "Message": body,
            "Timestamp": datetime.now(timezone.utc).isoformat(),
        })

    def _take_visible(self, queue: _Queue, max_messages: int, visibility_timeout: int) -> list[QueuedMessage]:
        """Claim up to ``max_messages`` visible messages. Caller holds the lock."""
        now = self._clock()
        batch: list[QueuedMessage] = []

        for message in list(queue.messages.values()):
            if len(batch) >= max_messages:
                break
            if message.visible_at > now:
                continue

            if queue.max_receive_count is not None and message.receive_count >= queue.max_receive_count:
                self._dead_letter(queue, message)
                continue

            message.receive_count += 1
            message.receipt_handle = uuid4().hex
            message.visible_at = now + visibility_timeout
            batch.append(QueuedMessage(
                message_id=message.message_id,
                body=message.body,
                receipt_handle=message.receipt_handle,
                queue=queue.name,
                receive_count=message.receive_count,
            ))

        return batch

    def _dead_letter(self, queue: _Queue, message: _StoredMessage) -> None:
        del queue.messages[message.message_id]
        target = self._queues[queue.dead_letter_queue]
        target.messages[message.message_id] = _StoredMessage(
            message_id=message.message_id,
            body=message.body,
        )
        logger.warning(
            f"Message {message.message_id[:8]} received {message.receive_count} times, "
            f"moved from '{queue.name}' to '{target.name}'"
        )

    # =========================================================================
    # Inspection (demo and tests)
    # =========================================================================

    def queue_depth(self, queue: str) -> int:
        """Messages in the queue, visible or in flight."""
        with self._lock:
            return len(self._queues[queue].messages)

    def in_flight_count(self, queue: str) -> int:
        """Messages currently hidden by a visibility window."""
        now = self._clock()
        with self._lock:
            return sum(1 for m in self._queues[queue].messages.values() if m.visible_at > now)

    def peek_bodies(self, queue: str) -> list[str]:
        """Bodies of every message in the queue, without receiving them."""
        with self._lock:
            return [m.body for m in self._queues[queue].messages.values()]

    def get_publish_log(self) -> list[tuple[str, str, str]]:
        """(topic, subject, message_id) for every accepted publish."""
        with self._lock:
            return list(self._publish_log)


# Module-level broker shared by the API and the worker when both run in one
# process (demo mode)
_default_broker: Optional[InMemoryBroker] = None


def get_default_broker() -> InMemoryBroker:
    """Get the process-wide in-memory broker."""
    global _default_broker
    if _default_broker is None:
        _default_broker = InMemoryBroker()
    return _default_broker


def reset_default_broker() -> InMemoryBroker:
    """Replace the process-wide broker with a fresh one (useful for testing)."""
    global _default_broker
    _default_broker = InMemoryBroker()
    return _default_broker
