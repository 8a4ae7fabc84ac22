"""
Pipeline configuration.

All the values the publisher, the consumer and the broker adapters need are
gathered into one explicit PipelineConfig that gets passed into their
constructors. Nothing reads process environment on its own; only
``PipelineConfig.from_env()`` does, once, at the process entry point.
"""

import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class PipelineConfig(BaseModel):
    """
    Settings shared by the producer and the worker.

    Defaults are set up for the in-memory broker so the demo and the tests
    run without any cloud account.
    """
    # Broker
    broker_backend: Literal["memory", "aws"] = Field(default="memory")
    region: str = Field(default="us-east-1", description="AWS region for SNS/SQS/SES")
    endpoint_url: Optional[str] = Field(
        default=None,
        description="Override endpoint (e.g. localstack)",
    )
    topic: str = Field(default="orders", description="Topic ARN or in-memory topic name")
    queue: str = Field(default="shipping", description="Queue URL or in-memory queue name")

    # Notifications
    fallback_email: Optional[str] = Field(
        default=None,
        description="Used when an order carries no customer email",
    )
    sender_email: Optional[str] = Field(default=None, description="SES Source address")

    # HTTP
    port: int = Field(default=5001, ge=1, le=65535)

    # Worker
    max_messages: int = Field(default=5, ge=1, le=10)
    wait_seconds: int = Field(default=20, ge=0, le=20)
    visibility_timeout: int = Field(default=30, ge=0)
    backoff_seconds: float = Field(default=3.0, ge=0)
    max_backoff_seconds: float = Field(default=30.0, ge=0)
    processing_delay: float = Field(default=0.0, ge=0, description="Simulated shipping work")
    max_receive_count: Optional[int] = Field(default=None, ge=1)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "PipelineConfig":
        """
        Build a config from environment variables (after loading ``.env``).

        Unset variables keep the model defaults.
        """
        load_dotenv(dotenv_path)

        env_map = {
            "BROKER_BACKEND": "broker_backend",
            "AWS_REGION": "region",
            "AWS_ENDPOINT_URL": "endpoint_url",
            "SNS_TOPIC_ARN": "topic",
            "SHIPPING_QUEUE_URL": "queue",
            "SES_TO_EMAIL": "fallback_email",
            "SES_FROM_EMAIL": "sender_email",
            "PORT": "port",
            "WORKER_MAX_MESSAGES": "max_messages",
            "WORKER_WAIT_SECONDS": "wait_seconds",
            "WORKER_VISIBILITY_TIMEOUT": "visibility_timeout",
            "WORKER_BACKOFF_SECONDS": "backoff_seconds",
            "WORKER_MAX_BACKOFF_SECONDS": "max_backoff_seconds",
            "WORKER_PROCESSING_DELAY": "processing_delay",
            "WORKER_MAX_RECEIVE_COUNT": "max_receive_count",
        }
        values = {
            field: os.environ[var]
            for var, field in env_map.items()
            if os.environ.get(var)
        }
        return cls(**values)
