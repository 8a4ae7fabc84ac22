"""
Shared building blocks for the order fan-out pipeline.

This package contains code used by both the producer (API) and the worker:
- Domain models (OrderRequest, OrderEvent, QueuedMessage, ...)
- Explicit pipeline configuration
- Email channels (mock and SES)
- Notification templates
"""

from shared.models import (
    OrderRequest,
    OrderEvent,
    OrderStatus,
    QueuedMessage,
    PublishReceipt,
    ProcessingOutcome,
    DeliveryState,
)
from shared.config import PipelineConfig
from shared.channels import EmailChannel, SESEmailChannel, NotificationResult

__all__ = [
    "OrderRequest",
    "OrderEvent",
    "OrderStatus",
    "QueuedMessage",
    "PublishReceipt",
    "ProcessingOutcome",
    "DeliveryState",
    "PipelineConfig",
    "EmailChannel",
    "SESEmailChannel",
    "NotificationResult",
]
