"""
Notification message templates.

Templates are plain strings with ``{variable}`` placeholders rendered with
``str.format``. Every value is HTML-escaped before substitution since the
email body is sent as HTML.

Design decisions:
- Rendering only depends on the order event, so the same event always
  renders the same notification (redeliveries send identical emails)
- Templates are keyed by notification type so more lanes can add their own
"""

import html
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from shared.models import OrderEvent, OrderStatus


class NotificationType(str, Enum):
    """Supported notification types."""
    ORDER_SHIPPED = "order_shipped"


@dataclass
class NotificationTemplate:
    """An email template: a subject line and an HTML body."""
    notification_type: NotificationType
    email_subject: str
    email_body: str

    def render_email(self, **kwargs) -> tuple[str, str]:
        """
        Render the email template with provided variables.

        Subject values are used as-is, body values are HTML-escaped.

        Returns:
            Tuple of (subject, html_body)
        """
        escaped = {key: html.escape(str(value)) for key, value in kwargs.items()}
        return (
            self.email_subject.format(**kwargs),
            self.email_body.format(**escaped),
        )


# =============================================================================
# Template Definitions
# =============================================================================

_ROW = (
    '<tr{shade}><td style="padding:10px 12px; width:36%;"><strong>{label}</strong></td>'
    '<td style="padding:10px 12px;">{value}</td></tr>'
)

TEMPLATES: dict[NotificationType, NotificationTemplate] = {

    NotificationType.ORDER_SHIPPED: NotificationTemplate(
        notification_type=NotificationType.ORDER_SHIPPED,
        email_subject="Your Order {order_id} Has Shipped!",
        email_body="""<div style="font-family: system-ui, sans-serif; color:#111; max-width:600px; margin:auto;">
<h2 style="margin:0 0 8px; color:#16a34a;">Your Order Has Been Shipped!</h2>
<p style="margin:0 0 16px;">Hi there,</p>
<p style="margin:0 0 12px;">Your order <strong>#{order_id}</strong> has been processed and is now on its way to you.</p>
<table style="width:100%; border-collapse:collapse; margin:16px 0; font-size:14px;">
"""
        + _ROW.format(shade=' style="background:#f3f4f6;"', label="Order ID", value="{order_id}")
        + _ROW.format(shade="", label="Status", value="{status}")
        + _ROW.format(shade=' style="background:#f3f4f6;"', label="Placed At", value="{placed_at}")
        + _ROW.format(shade="", label="Tracking", value="{reference}")
        + """
</table>
<p style="margin:0 0 16px;">You can expect your order to arrive soon.</p>
<hr style="border:none; border-top:1px solid #e5e7eb; margin:24px 0;" />
<p style="margin:0; font-size:12px; color:#9ca3af;">Do not reply to this message. This inbox is not monitored.</p>
</div>
""",
    ),
}


# =============================================================================
# Template Access Functions
# =============================================================================

def get_template(notification_type: NotificationType) -> Optional[NotificationTemplate]:
    """Get a template by notification type."""
    return TEMPLATES.get(notification_type)


def format_placed_at(placed_at: Optional[datetime]) -> str:
    """Human readable placement time; ``-`` when the event carried none."""
    if placed_at is None:
        return "-"
    return placed_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def render_shipment_confirmation(event: OrderEvent) -> tuple[str, str]:
    """
    Render the shipping confirmation for an order event.

    Returns:
        Tuple of (subject, html_body)

    Raises:
        ValueError: If the template is missing
    """
    template = get_template(NotificationType.ORDER_SHIPPED)
    if not template:
        raise ValueError(f"No template found for notification type: {NotificationType.ORDER_SHIPPED}")

    return template.render_email(
        order_id=event.order_id,
        status=OrderStatus.SHIPPED.value.title(),
        placed_at=format_placed_at(event.placed_at),
        reference=event.reference,
    )
