"""
Email notification channels.

The worker's side effect is sending one email per processed order. Two
channels share the same ``send(to, subject, html_body)`` contract:

- EmailChannel: in-memory mock that logs and records every send, with
  fault injection for tests and the demo
- SESEmailChannel: the real thing, backed by AWS SES through boto3

Design decisions:
- Channels never raise on delivery problems; they return a failed
  NotificationResult and the caller decides what a failure means
- The mock's history is what tests assert on
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger("channels")


@dataclass
class NotificationResult:
    """
    Result of a notification send attempt.

    Captures success/failure and metadata for debugging and testing.
    """
    success: bool
    recipient: str
    subject: str
    body: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None
    message_id: Optional[str] = None

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"{status} EMAIL to {self.recipient}: {self.subject}"


class EmailChannel:
    """
    Mock email channel.

    Logs email sends and tracks them for test assertions.
    Failures can be forced deterministically with ``fail_next`` or
    randomly with ``fail_rate``.
    """

    def __init__(self, fail_rate: float = 0.0, sender: str = "orders@example.com"):
        """
        Initialize the email channel.

        Args:
            fail_rate: Probability of send failure (0.0 to 1.0), for testing.
            sender: From address (for logging)
        """
        self.fail_rate = fail_rate
        self.sender = sender
        self.sent_messages: list[NotificationResult] = []
        self._forced_failures = 0

    def fail_next(self, count: int = 1) -> None:
        """Make the next ``count`` sends fail."""
        self._forced_failures += count

    def _should_fail(self) -> bool:
        if self._forced_failures > 0:
            self._forced_failures -= 1
            return True
        return random.random() < self.fail_rate

    def send(self, to: str, subject: str, html_body: str) -> NotificationResult:
        """
        Send an email (mock implementation).

        Returns:
            NotificationResult indicating success/failure
        """
        if self._should_fail():
            result = NotificationResult(
                success=False,
                recipient=to,
                subject=subject,
                body=html_body,
                error="Simulated email delivery failure",
            )
            logger.error(f"[EMAIL FAILED] To: {to} | Subject: {subject} | Error: {result.error}")
        else:
            result = NotificationResult(
                success=True,
                recipient=to,
                subject=subject,
                body=html_body,
                message_id=str(uuid4()),
            )
            logger.info(f"[EMAIL] From: {self.sender} | To: {to} | Subject: {subject}")
            logger.debug(f"[EMAIL BODY] {html_body}")

        self.sent_messages.append(result)
        return result

    def get_sent_count(self) -> int:
        """Get the number of send attempts (for testing)."""
        return len(self.sent_messages)

    def get_successful_sends(self) -> list[NotificationResult]:
        """Get all successful sends."""
        return [m for m in self.sent_messages if m.success]

    def find_messages_to(self, recipient: str) -> list[NotificationResult]:
        """All successful sends to a specific recipient."""
        return [m for m in self.get_successful_sends() if m.recipient == recipient]

    def clear_history(self):
        """Clear sent message history (useful between tests)."""
        self.sent_messages.clear()


class SESEmailChannel:
    """Email channel backed by AWS SES."""

    def __init__(self, sender: str, client=None, region: str = "us-east-1", endpoint_url: Optional[str] = None):
        """
        Args:
            sender: Verified SES Source address
            client: Preconfigured boto3 SES client (built from region if omitted)
        """
        if not sender:
            raise ValueError("SES sender address is required")
        self.sender = sender
        self.client = client or boto3.client("ses", region_name=region, endpoint_url=endpoint_url)

    @classmethod
    def from_config(cls, config) -> "SESEmailChannel":
        return cls(
            sender=config.sender_email,
            region=config.region,
            endpoint_url=config.endpoint_url,
        )

    def send(self, to: str, subject: str, html_body: str) -> NotificationResult:
        try:
            response = self.client.send_email(
                Destination={"ToAddresses": [to]},
                Message={
                    "Body": {"Html": {"Charset": "UTF-8", "Data": html_body}},
                    "Subject": {"Charset": "UTF-8", "Data": subject},
                },
                Source=self.sender,
            )
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"]["Message"]
            logger.error(f"AWS SES error: {error_code} - {error_message}")
            return NotificationResult(
                success=False,
                recipient=to,
                subject=subject,
                body=html_body,
                error=f"{error_code}: {error_message}",
            )
        except BotoCoreError as e:
            logger.error(f"AWS SES transport error: {e}")
            return NotificationResult(
                success=False,
                recipient=to,
                subject=subject,
                body=html_body,
                error=str(e),
            )

        logger.info(f"[SES] To: {to} | Subject: {subject} | MessageId: {response['MessageId']}")
        return NotificationResult(
            success=True,
            recipient=to,
            subject=subject,
            body=html_body,
            message_id=response["MessageId"],
        )
