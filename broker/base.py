"""
Broker interface.

The pipeline only needs three calls from a managed message broker:
publish to a topic, receive from a queue, delete a received message.
Both the in-memory broker and the SNS/SQS adapter implement this.
"""

from abc import ABC, abstractmethod

from shared.models import QueuedMessage


class Broker(ABC):
    """
    Fan-out publish/subscribe with pull-based queues.

    A message published to a topic is copied to every queue subscribed to
    it. Received messages stay hidden for the visibility timeout and come
    back unless they are deleted with their receipt handle in time.
    """

    @abstractmethod
    def publish(self, topic: str, subject: str, body: str) -> str:
        """
        Publish one message to a topic.

        Returns:
            Broker-assigned message id

        Raises:
            PublishError: If the broker rejected the message or is unreachable
        """

    @abstractmethod
    def receive(
        self,
        queue: str,
        max_messages: int,
        wait_seconds: int,
        visibility_timeout: int,
    ) -> list[QueuedMessage]:
        """
        Long-poll a queue for up to ``max_messages`` messages.

        Blocks up to ``wait_seconds`` when nothing is available and may
        return an empty list.

        Raises:
            ReceiveError: If the poll itself failed
        """

    @abstractmethod
    def delete(self, queue: str, receipt_handle: str) -> None:
        """
        Acknowledge a delivery by deleting it.

        Raises:
            AcknowledgeError: If the handle is stale or the call failed
        """
