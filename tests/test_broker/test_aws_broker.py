"""
Tests for the SNS/SQS adapter with mocked boto3 clients.
"""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from broker.aws import SnsSqsBroker
from shared.config import PipelineConfig
from shared.errors import AcknowledgeError, PublishError, ReceiveError

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/shipping"
TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:orders"


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} happened"}}, operation)


@pytest.fixture
def sns():
    client = MagicMock()
    client.publish.return_value = {"MessageId": "sns-1"}
    return client


@pytest.fixture
def sqs():
    return MagicMock()


@pytest.fixture
def aws_broker(sns, sqs) -> SnsSqsBroker:
    return SnsSqsBroker(sns_client=sns, sqs_client=sqs)


class TestPublish:

    def test_publish(self, aws_broker, sns):
        message_id = aws_broker.publish(TOPIC_ARN, "OrderPlaced", '{"orderId": "ORD-1"}')

        assert message_id == "sns-1"
        sns.publish.assert_called_once_with(
            TopicArn=TOPIC_ARN,
            Subject="OrderPlaced",
            Message='{"orderId": "ORD-1"}',
        )

    def test_client_error(self, aws_broker, sns):
        sns.publish.side_effect = _client_error("NotFound", "Publish")

        with pytest.raises(PublishError, match="NotFound"):
            aws_broker.publish(TOPIC_ARN, "OrderPlaced", "{}")

    def test_transport_error(self, aws_broker, sns):
        sns.publish.side_effect = EndpointConnectionError(endpoint_url="https://sns.example")

        with pytest.raises(PublishError):
            aws_broker.publish(TOPIC_ARN, "OrderPlaced", "{}")


class TestReceive:

    def test_receive_maps_messages(self, aws_broker, sqs):
        sqs.receive_message.return_value = {
            "Messages": [
                {
                    "MessageId": "m-1",
                    "ReceiptHandle": "rh-1",
                    "Body": '{"orderId": "ORD-1"}',
                    "Attributes": {"ApproximateReceiveCount": "3"},
                },
            ],
        }

        [message] = aws_broker.receive(QUEUE_URL, 5, 20, 30)

        assert message.message_id == "m-1"
        assert message.receipt_handle == "rh-1"
        assert message.body == '{"orderId": "ORD-1"}'
        assert message.queue == QUEUE_URL
        assert message.receive_count == 3
        sqs.receive_message.assert_called_once_with(
            QueueUrl=QUEUE_URL,
            MaxNumberOfMessages=5,
            WaitTimeSeconds=20,
            VisibilityTimeout=30,
            AttributeNames=["ApproximateReceiveCount"],
        )

    def test_no_messages(self, aws_broker, sqs):
        sqs.receive_message.return_value = {}
        assert aws_broker.receive(QUEUE_URL, 5, 20, 30) == []

    def test_missing_receive_count_defaults_to_first(self, aws_broker, sqs):
        sqs.receive_message.return_value = {
            "Messages": [{"MessageId": "m-1", "ReceiptHandle": "rh-1", "Body": "{}"}],
        }
        [message] = aws_broker.receive(QUEUE_URL, 5, 20, 30)
        assert message.receive_count == 1

    def test_throttled(self, aws_broker, sqs):
        sqs.receive_message.side_effect = _client_error("ThrottlingException", "ReceiveMessage")

        with pytest.raises(ReceiveError, match="ThrottlingException"):
            aws_broker.receive(QUEUE_URL, 5, 20, 30)


class TestDelete:

    def test_delete(self, aws_broker, sqs):
        aws_broker.delete(QUEUE_URL, "rh-1")
        sqs.delete_message.assert_called_once_with(QueueUrl=QUEUE_URL, ReceiptHandle="rh-1")

    def test_stale_handle(self, aws_broker, sqs):
        sqs.delete_message.side_effect = _client_error("ReceiptHandleIsInvalid", "DeleteMessage")

        with pytest.raises(AcknowledgeError, match="ReceiptHandleIsInvalid"):
            aws_broker.delete(QUEUE_URL, "rh-1")


class TestFromConfig:

    def test_builds_clients_for_region_and_endpoint(self):
        session = MagicMock()
        config = PipelineConfig(region="eu-west-1", endpoint_url="http://localhost:4566")

        broker = SnsSqsBroker.from_config(config, session=session)

        session.client.assert_any_call("sns", region_name="eu-west-1", endpoint_url="http://localhost:4566")
        session.client.assert_any_call("sqs", region_name="eu-west-1", endpoint_url="http://localhost:4566")
        assert broker.sns is not None and broker.sqs is not None

    def test_without_endpoint(self):
        session = MagicMock()
        SnsSqsBroker.from_config(PipelineConfig(region="us-east-2"), session=session)
        session.client.assert_any_call("sqs", region_name="us-east-2")
