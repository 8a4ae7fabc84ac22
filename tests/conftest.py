"""
Shared pytest fixtures for the order fan-out tests.

These fixtures build a fresh in-memory broker (with a controllable clock),
mock email channel, publisher and shipping consumer for every test.
"""

import pytest

from broker.memory import InMemoryBroker
from pipeline.backoff import Backoff
from pipeline.consumer import QueueConsumer
from pipeline.demo import LANES, create_fanout
from pipeline.progress import ProgressObserver
from pipeline.publisher import EventPublisher
from pipeline.shipping import ShippingProcessor
from shared.channels import EmailChannel
from shared.config import PipelineConfig


class FakeClock:
    """Monotonic clock the tests move forward by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> PipelineConfig:
    """
    Config for fast tests: no long-poll wait, no backoff sleep.
    Visibility timeout stays at the production default of 30s.
    """
    return PipelineConfig(
        topic="orders",
        queue="shipping",
        fallback_email="fallback@example.com",
        sender_email="orders@example.com",
        wait_seconds=0,
        visibility_timeout=30,
        backoff_seconds=0,
        max_backoff_seconds=0,
    )


@pytest.fixture
def broker(clock: FakeClock, config: PipelineConfig) -> InMemoryBroker:
    """Broker with the orders topic fanned out to payment/shipping/analytics."""
    broker = InMemoryBroker(clock=clock)
    create_fanout(broker, config.topic, LANES)
    return broker


@pytest.fixture
def email_channel() -> EmailChannel:
    """Fresh EmailChannel for each test."""
    return EmailChannel(fail_rate=0.0)


@pytest.fixture
def publisher(broker: InMemoryBroker, config: PipelineConfig) -> EventPublisher:
    return EventPublisher(broker, config)


@pytest.fixture
def progress() -> ProgressObserver:
    return ProgressObserver(LANES)


@pytest.fixture
def consumer(broker, email_channel, config, progress) -> QueueConsumer:
    """Shipping worker wired to the mock email channel."""
    return QueueConsumer(
        broker,
        ShippingProcessor(email_channel, config),
        config,
        backoff=Backoff(base_delay_seconds=0, max_delay_seconds=0, jitter=False),
        progress=progress,
        lane="shipping",
    )
