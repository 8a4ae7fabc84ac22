"""
Message broker implementations.

- Broker: the interface the publisher and the consumer depend on
- InMemoryBroker: SNS/SQS-like fan-out with visibility timeouts, in process
- SnsSqsBroker: AWS SNS topic + SQS queues through boto3
"""

from broker.base import Broker
from broker.memory import InMemoryBroker, get_default_broker, reset_default_broker
from broker.aws import SnsSqsBroker
from shared.config import PipelineConfig


def build_broker(config: PipelineConfig) -> Broker:
    """
    Build the broker selected by ``config.broker_backend``.

    The in-memory backend is the process-wide broker with the configured
    topic and queue created and subscribed.
    """
    if config.broker_backend == "aws":
        return SnsSqsBroker.from_config(config)

    broker = get_default_broker()
    broker.create_topic(config.topic)
    if broker.has_subscription(config.topic, config.queue):
        return broker
    broker.create_queue(config.queue)
    broker.subscribe(config.topic, config.queue)
    return broker


__all__ = [
    "Broker",
    "InMemoryBroker",
    "SnsSqsBroker",
    "build_broker",
    "get_default_broker",
    "reset_default_broker",
]
