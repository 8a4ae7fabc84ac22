"""
SNS/SQS broker adapter.

Publishes to an SNS topic and consumes from an SQS queue subscribed to it.
Fan-out, visibility timeouts, receipt handles and dead-lettering
(RedrivePolicy) are all provided by AWS; this class only maps the Broker
calls onto boto3 and translates botocore errors into pipeline errors.
"""

import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from broker.base import Broker
from shared.config import PipelineConfig
from shared.errors import AcknowledgeError, PublishError, ReceiveError
from shared.models import QueuedMessage

logger = logging.getLogger("broker.aws")


def _describe(error: Exception) -> str:
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        return f"{details.get('Code', 'Unknown')} - {details.get('Message', '')}"
    return str(error)


class SnsSqsBroker(Broker):
    """Broker backed by AWS SNS (topics) and SQS (queues)."""

    def __init__(self, sns_client, sqs_client):
        """
        Args:
            sns_client: boto3 SNS client
            sqs_client: boto3 SQS client
        """
        self.sns = sns_client
        self.sqs = sqs_client

    @classmethod
    def from_config(cls, config: PipelineConfig, session: Optional[boto3.session.Session] = None) -> "SnsSqsBroker":
        """Build SNS and SQS clients for the configured region/endpoint."""
        session = session or boto3.session.Session()
        kwargs = {"region_name": config.region}
        if config.endpoint_url:
            kwargs["endpoint_url"] = config.endpoint_url
        return cls(
            sns_client=session.client("sns", **kwargs),
            sqs_client=session.client("sqs", **kwargs),
        )

    def publish(self, topic: str, subject: str, body: str) -> str:
        try:
            response = self.sns.publish(TopicArn=topic, Subject=subject, Message=body)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"SNS publish to {topic} failed: {_describe(e)}")
            raise PublishError(_describe(e)) from e
        return response["MessageId"]

    def receive(
        self,
        queue: str,
        max_messages: int,
        wait_seconds: int,
        visibility_timeout: int,
    ) -> list[QueuedMessage]:
        try:
            response = self.sqs.receive_message(
                QueueUrl=queue,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_seconds,
                VisibilityTimeout=visibility_timeout,
                AttributeNames=["ApproximateReceiveCount"],
            )
        except (ClientError, BotoCoreError) as e:
            raise ReceiveError(_describe(e)) from e

        return [
            QueuedMessage(
                message_id=raw["MessageId"],
                body=raw.get("Body", ""),
                receipt_handle=raw["ReceiptHandle"],
                queue=queue,
                receive_count=int(raw.get("Attributes", {}).get("ApproximateReceiveCount", 1)),
            )
            for raw in response.get("Messages", [])
        ]

    def delete(self, queue: str, receipt_handle: str) -> None:
        try:
            self.sqs.delete_message(QueueUrl=queue, ReceiptHandle=receipt_handle)
        except (ClientError, BotoCoreError) as e:
            raise AcknowledgeError(_describe(e)) from e
