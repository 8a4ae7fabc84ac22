"""
Per-order progress across the fan-out lanes.

Every order is fanned out to several queues ("lanes": payment, shipping,
analytics). The observer keeps an Idle/Processing/Done status per lane for
each order so a client can show progress.

Two feeds can drive the same observer:
- SimulatedProgressFeed: timers flip lanes to Done after fixed delays,
  which is what the demo UI always did
- A QueueConsumer given the observer reports its lane for real: Processing
  when it starts on an order, Done once the message is acknowledged

Design decisions:
- Status only moves forward; a redelivery after Done leaves the lane Done
- Unknown lanes are rejected rather than silently added
- In-memory and thread-safe, state is lost on restart
- At most max_orders orders are kept; the oldest is forgotten first
"""

import logging
import threading
from collections import OrderedDict
from enum import Enum
from typing import Callable, Iterable, Optional

logger = logging.getLogger("progress")


class LaneStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    DONE = "done"


_RANK = {LaneStatus.IDLE: 0, LaneStatus.PROCESSING: 1, LaneStatus.DONE: 2}

# Lane -> simulated completion delay in seconds
DEFAULT_LANE_DELAYS: dict[str, float] = {
    "payment": 1.4,
    "shipping": 2.2,
    "analytics": 1.6,
}

ProgressCallback = Callable[[str, str, LaneStatus], None]

# Orders kept before the oldest is evicted
DEFAULT_MAX_ORDERS = 10_000


class ProgressObserver:
    """
    Tracks lane status per order.

    Example:
        observer = ProgressObserver(["payment", "shipping"])
        observer.start("ORD-1")
        observer.mark("ORD-1", "shipping", LaneStatus.DONE)
        observer.snapshot("ORD-1")  # {"payment": "idle", "shipping": "done"}
    """

    def __init__(self, lanes: Iterable[str] = DEFAULT_LANE_DELAYS, max_orders: int = DEFAULT_MAX_ORDERS):
        if max_orders < 1:
            raise ValueError("max_orders must be at least 1")
        self.lanes = tuple(lanes)
        self.max_orders = max_orders
        self._orders: OrderedDict[str, dict[str, LaneStatus]] = OrderedDict()
        self._callbacks: list[ProgressCallback] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)

    def on_change(self, callback: ProgressCallback) -> None:
        """Register a callback fired as ``callback(order_id, lane, status)``."""
        self._callbacks.append(callback)

    def start(self, order_id: str) -> None:
        """Track a new order with every lane Idle (no-op if already tracked)."""
        with self._lock:
            self._track(order_id)

    def _track(self, order_id: str) -> dict[str, LaneStatus]:
        # caller holds self._lock
        lanes = self._orders.get(order_id)
        if lanes is None:
            lanes = self._orders[order_id] = {lane: LaneStatus.IDLE for lane in self.lanes}
            while len(self._orders) > self.max_orders:
                evicted, _ = self._orders.popitem(last=False)
                logger.debug(f"Forgetting progress of order {evicted}")
        return lanes

    def mark(self, order_id: str, lane: str, status: LaneStatus) -> bool:
        """
        Move a lane forward.

        Returns:
            True if the status changed, False if it was already there or further
        """
        if lane not in self.lanes:
            raise ValueError(f"Unknown lane: {lane}")

        with self._lock:
            lanes = self._track(order_id)
            current = lanes[lane]
            if _RANK[status] <= _RANK[current]:
                return False
            lanes[lane] = status

        logger.debug(f"Order {order_id}: {lane} -> {status.value}")
        for callback in self._callbacks:
            callback(order_id, lane, status)
        return True

    def snapshot(self, order_id: str) -> Optional[dict[str, str]]:
        """Current lane statuses for an order, or None if it is not tracked."""
        with self._lock:
            lanes = self._orders.get(order_id)
            if lanes is None:
                return None
            return {lane: status.value for lane, status in lanes.items()}

    def is_complete(self, order_id: str) -> bool:
        with self._lock:
            lanes = self._orders.get(order_id)
            return bool(lanes) and all(s == LaneStatus.DONE for s in lanes.values())


class SimulatedProgressFeed:
    """Drives an observer with fixed timers, independent of any real queue."""

    def __init__(
        self,
        observer: ProgressObserver,
        delays: Optional[dict[str, float]] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.observer = observer
        self.delays = delays or {lane: DEFAULT_LANE_DELAYS.get(lane, 1.0) for lane in observer.lanes}
        self._timer_factory = timer_factory
        self._timers: dict[tuple[str, str], threading.Timer] = {}
        self._lock = threading.Lock()

    @property
    def pending(self) -> int:
        """Timers scheduled but not yet fired or cancelled."""
        with self._lock:
            return len(self._timers)

    def start(self, order_id: str) -> None:
        """Put every lane in Processing and schedule its completion."""
        self.observer.start(order_id)
        for lane, delay in self.delays.items():
            self.observer.mark(order_id, lane, LaneStatus.PROCESSING)
            key = (order_id, lane)
            with self._lock:
                if key in self._timers:
                    continue
                timer = self._timer_factory(delay, self._complete, args=key)
                timer.daemon = True
                self._timers[key] = timer
            timer.start()

    def _complete(self, order_id: str, lane: str) -> None:
        try:
            self.observer.mark(order_id, lane, LaneStatus.DONE)
        finally:
            with self._lock:
                self._timers.pop((order_id, lane), None)

    def cancel(self) -> None:
        """Cancel pending timers."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
