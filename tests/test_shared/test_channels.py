"""
Tests for email channels.

These tests verify that the mock channel logs and tracks sends, that its
fault injection works, and that the SES channel maps boto3 calls and errors.
"""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from shared.channels import EmailChannel, NotificationResult, SESEmailChannel


class TestEmailChannel:
    """Tests for the mock email channel."""

    def test_send_email_success(self, email_channel: EmailChannel):
        result = email_channel.send(
            to="test@example.com",
            subject="Test Subject",
            html_body="<p>Test body</p>",
        )

        assert result.success is True
        assert result.recipient == "test@example.com"
        assert result.subject == "Test Subject"
        assert result.body == "<p>Test body</p>"
        assert result.error is None
        assert result.message_id is not None

    def test_tracks_sent_messages(self, email_channel: EmailChannel):
        email_channel.send("a@example.com", "Subject A", "Body A")
        email_channel.send("b@example.com", "Subject B", "Body B")

        assert email_channel.get_sent_count() == 2
        assert [m.recipient for m in email_channel.sent_messages] == ["a@example.com", "b@example.com"]

    def test_find_messages_to(self, email_channel: EmailChannel):
        email_channel.send("target@example.com", "Hello", "World")
        email_channel.send("other@example.com", "Hi", "There")
        email_channel.send("target@example.com", "Hello again", "World")

        found = email_channel.find_messages_to("target@example.com")

        assert [m.subject for m in found] == ["Hello", "Hello again"]

    def test_clear_history(self, email_channel: EmailChannel):
        email_channel.send("test@example.com", "Test", "Body")
        email_channel.clear_history()
        assert email_channel.get_sent_count() == 0

    def test_fail_next(self, email_channel: EmailChannel):
        email_channel.fail_next(2)

        first = email_channel.send("test@example.com", "Test", "Body")
        second = email_channel.send("test@example.com", "Test", "Body")
        third = email_channel.send("test@example.com", "Test", "Body")

        assert (first.success, second.success, third.success) == (False, False, True)
        assert "failure" in first.error.lower()
        assert len(email_channel.get_successful_sends()) == 1

    def test_fail_rate(self):
        result = EmailChannel(fail_rate=1.0).send("test@example.com", "Test", "Body")
        assert result.success is False

    def test_failed_sends_are_not_found(self, email_channel: EmailChannel):
        email_channel.fail_next()
        email_channel.send("test@example.com", "Test", "Body")
        assert email_channel.find_messages_to("test@example.com") == []


class TestNotificationResult:

    def test_str(self):
        ok = NotificationResult(success=True, recipient="a@example.com", subject="Hi", body="")
        failed = NotificationResult(success=False, recipient="a@example.com", subject="Hi", body="")

        assert str(ok) == "✓ EMAIL to a@example.com: Hi"
        assert str(failed).startswith("✗")


class TestSESEmailChannel:
    """Tests for the SES-backed channel with a mocked client."""

    @pytest.fixture
    def ses_client(self):
        client = MagicMock()
        client.send_email.return_value = {"MessageId": "ses-123"}
        return client

    def test_requires_sender(self, ses_client):
        with pytest.raises(ValueError):
            SESEmailChannel(sender="", client=ses_client)

    def test_send(self, ses_client):
        channel = SESEmailChannel(sender="orders@example.com", client=ses_client)

        result = channel.send("a@example.com", "Subject", "<p>Body</p>")

        assert result.success is True
        assert result.message_id == "ses-123"
        ses_client.send_email.assert_called_once_with(
            Destination={"ToAddresses": ["a@example.com"]},
            Message={
                "Body": {"Html": {"Charset": "UTF-8", "Data": "<p>Body</p>"}},
                "Subject": {"Charset": "UTF-8", "Data": "Subject"},
            },
            Source="orders@example.com",
        )

    def test_client_error_is_failed_result(self, ses_client):
        ses_client.send_email.side_effect = ClientError(
            {"Error": {"Code": "MessageRejected", "Message": "Email address is not verified"}},
            "SendEmail",
        )
        channel = SESEmailChannel(sender="orders@example.com", client=ses_client)

        result = channel.send("a@example.com", "Subject", "Body")

        assert result.success is False
        assert "MessageRejected" in result.error

    def test_transport_error_is_failed_result(self, ses_client):
        ses_client.send_email.side_effect = EndpointConnectionError(endpoint_url="https://email.example")
        channel = SESEmailChannel(sender="orders@example.com", client=ses_client)

        result = channel.send("a@example.com", "Subject", "Body")

        assert result.success is False
        assert result.error
