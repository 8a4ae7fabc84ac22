"""
Queue consumer (worker).

Drains one queue with at-least-once semantics and makes every delivery
exactly-once in effect:

    RECEIVED -> PROCESSING -> ACKNOWLEDGED   (side effect done, message deleted)
                           -> ABANDONED      (left alone, redelivered after
                                              the visibility timeout)

Design decisions:
- Messages of a batch are handled one after another on the calling thread;
  scaling out means running more consumers against the same queue
- The broker's visibility timeout is the only mutual exclusion between
  consumers, there is no in-process locking around message state
- A failed attempt is simply not deleted. No explicit "release": a crash
  anywhere before the delete behaves exactly like a handled failure
- A failed delete after a successful side effect is only logged, the
  processor has to tolerate the redelivery that may follow
- Poll failures never end the loop; the loop backs off and polls again
- Stopping only prevents further polls and further messages of the current
  batch; whatever was received but not deleted comes back on its own
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from broker.base import Broker
from pipeline.backoff import Backoff
from pipeline.decoding import decode_order_event
from pipeline.progress import LaneStatus, ProgressObserver
from shared.config import PipelineConfig
from shared.errors import AcknowledgeError, DecodeError, ReceiveError, SideEffectError
from shared.models import DeliveryState, OrderEvent, ProcessingOutcome, QueuedMessage

logger = logging.getLogger("consumer")

# Side effect for one decoded event; raising means the attempt failed
Processor = Callable[[OrderEvent, QueuedMessage], Any]


@dataclass
class DeliveryAttempt:
    """What happened to one received message."""
    message: QueuedMessage
    state: DeliveryState = DeliveryState.RECEIVED
    outcome: Optional[ProcessingOutcome] = None
    error: Optional[Exception] = None
    order_id: Optional[str] = None

    @property
    def acknowledged(self) -> bool:
        return self.state == DeliveryState.ACKNOWLEDGED


@dataclass
class ConsumerStats:
    """Counters for one consumer instance."""
    polls: int = 0
    poll_errors: int = 0
    received: int = 0
    acknowledged: int = 0
    abandoned: int = 0
    ack_failures: int = 0


class QueueConsumer:
    """
    Long-polls a queue and processes each message.

    Example:
        consumer = QueueConsumer(broker, ShippingProcessor(channel, config), config)
        thread = threading.Thread(target=consumer.run)
        thread.start()
        ...
        consumer.stop()
        thread.join()
    """

    def __init__(
        self,
        broker: Broker,
        processor: Processor,
        config: PipelineConfig,
        queue: Optional[str] = None,
        backoff: Optional[Backoff] = None,
        progress: Optional[ProgressObserver] = None,
        lane: Optional[str] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            broker: Broker to receive from and delete on
            processor: Side effect run for every decoded event
            config: Batch size, wait and visibility settings
            queue: Queue to drain (defaults to ``config.queue``)
            backoff: Delay schedule after poll failures
            progress: Observer to report this consumer's lane to
            lane: Lane name reported to ``progress`` (defaults to the queue)
        """
        self.broker = broker
        self.processor = processor
        self.queue = queue or config.queue
        self.max_messages = config.max_messages
        self.wait_seconds = config.wait_seconds
        self.visibility_timeout = config.visibility_timeout
        self.backoff = backoff or Backoff.from_config(config)
        self.progress = progress
        self.lane = lane or self.queue
        if progress is not None and self.lane not in progress.lanes:
            raise ValueError(f"Lane '{self.lane}' is not tracked by the progress observer")
        self.stats = ConsumerStats()
        self._stop = stop_event or threading.Event()

    # =========================================================================
    # Loop
    # =========================================================================

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Ask the loop to stop after the message it is working on."""
        self._stop.set()

    def run(self, max_polls: Optional[int] = None) -> ConsumerStats:
        """
        Poll until stopped (or until ``max_polls`` polls were made).

        Never raises because of a failed poll or a failed message.
        """
        logger.info(f"Consumer started on '{self.queue}' (batch={self.max_messages}, wait={self.wait_seconds}s)")
        polls = 0
        while not self._stop.is_set():
            if max_polls is not None and polls >= max_polls:
                break
            polls += 1
            try:
                self.poll_once()
            except ReceiveError as e:
                self._back_off(f"Poll error: {e}")
            except Exception as e:
                logger.exception(f"Unexpected error while polling '{self.queue}'")
                self._back_off(f"Unexpected poll error: {e}")
            else:
                self.backoff.reset()

        logger.info(f"Consumer on '{self.queue}' stopped: {self.stats}")
        return self.stats

    def _back_off(self, reason: str) -> None:
        self.stats.poll_errors += 1
        delay = self.backoff.next_delay()
        logger.error(f"{reason} - retrying in {delay:.1f}s")
        self._stop.wait(delay)

    def poll_once(self) -> list[DeliveryAttempt]:
        """
        Receive one batch and handle its messages in order.

        Raises:
            ReceiveError: If the receive call failed
        """
        self.stats.polls += 1
        messages = self.broker.receive(
            self.queue,
            self.max_messages,
            self.wait_seconds,
            self.visibility_timeout,
        )
        if not messages:
            return []

        logger.info(f"Received {len(messages)} message(s) from '{self.queue}'")
        self.stats.received += len(messages)

        attempts = []
        for index, message in enumerate(messages):
            if self._stop.is_set():
                logger.info(
                    f"Stopping with {len(messages) - index} unprocessed message(s); "
                    "they will be redelivered after the visibility timeout"
                )
                break
            attempts.append(self.handle(message))
        return attempts

    # =========================================================================
    # Per-message state machine
    # =========================================================================

    def handle(self, message: QueuedMessage) -> DeliveryAttempt:
        """Process one message and acknowledge it if processing succeeded."""
        attempt = DeliveryAttempt(message=message)
        if message.is_redelivery:
            logger.warning(f"Redelivery: {message}")

        attempt.state = DeliveryState.PROCESSING
        try:
            event = decode_order_event(message.body)
            attempt.order_id = event.order_id
            self._report(event.order_id, LaneStatus.PROCESSING)
            self.processor(event, message)
        except (DecodeError, SideEffectError) as e:
            logger.error(f"Process failed for {message}, will become visible again: {e}")
            return self._abandon(attempt, e)
        except Exception as e:
            logger.exception(f"Unexpected error processing {message}, will become visible again")
            return self._abandon(attempt, e)

        attempt.outcome = ProcessingOutcome.SUCCESS
        return self._acknowledge(attempt)

    def _abandon(self, attempt: DeliveryAttempt, error: Exception) -> DeliveryAttempt:
        attempt.outcome = ProcessingOutcome.FAILURE
        attempt.state = DeliveryState.ABANDONED
        attempt.error = error
        self.stats.abandoned += 1
        return attempt

    def _acknowledge(self, attempt: DeliveryAttempt) -> DeliveryAttempt:
        message = attempt.message
        try:
            self.broker.delete(self.queue, message.receipt_handle)
        except AcknowledgeError as e:
            # The side effect already happened; a duplicate delivery may follow.
            logger.warning(f"Processed {message} but could not delete it: {e}")
            attempt.state = DeliveryState.ABANDONED
            attempt.error = e
            self.stats.ack_failures += 1
            return attempt

        attempt.state = DeliveryState.ACKNOWLEDGED
        self.stats.acknowledged += 1
        self._report(attempt.order_id, LaneStatus.DONE)
        logger.info(f"Acknowledged {message} (order {attempt.order_id})")
        return attempt

    def _report(self, order_id: Optional[str], status: LaneStatus) -> None:
        if self.progress is not None and order_id:
            self.progress.mark(order_id, self.lane, status)
