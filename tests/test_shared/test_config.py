"""
Tests for pipeline configuration loading.
"""

import os

import pytest
from pydantic import ValidationError

from shared.config import PipelineConfig

ENV_VARS = [
    "BROKER_BACKEND", "AWS_REGION", "AWS_ENDPOINT_URL", "SNS_TOPIC_ARN",
    "SHIPPING_QUEUE_URL", "SES_TO_EMAIL", "SES_FROM_EMAIL", "PORT",
    "WORKER_MAX_MESSAGES", "WORKER_WAIT_SECONDS", "WORKER_VISIBILITY_TIMEOUT",
    "WORKER_BACKOFF_SECONDS", "WORKER_MAX_BACKOFF_SECONDS",
    "WORKER_PROCESSING_DELAY", "WORKER_MAX_RECEIVE_COUNT",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    # An empty .env so a developer's local file never leaks into the tests
    dotenv = tmp_path / ".env"
    dotenv.write_text("")
    return dotenv


class TestDefaults:

    def test_defaults(self):
        config = PipelineConfig()

        assert config.broker_backend == "memory"
        assert config.max_messages == 5
        assert config.wait_seconds == 20
        assert config.visibility_timeout == 30
        assert config.backoff_seconds == 3.0
        assert config.fallback_email is None
        assert config.max_receive_count is None

    def test_batch_size_bounds(self):
        with pytest.raises(ValidationError):
            PipelineConfig(max_messages=11)
        with pytest.raises(ValidationError):
            PipelineConfig(max_messages=0)

    def test_wait_seconds_bounds(self):
        with pytest.raises(ValidationError):
            PipelineConfig(wait_seconds=21)


class TestFromEnv:

    def test_reads_environment(self, monkeypatch, clean_env):
        monkeypatch.setenv("BROKER_BACKEND", "aws")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        monkeypatch.setenv("SNS_TOPIC_ARN", "arn:aws:sns:eu-west-1:123:orders")
        monkeypatch.setenv("SHIPPING_QUEUE_URL", "https://sqs.eu-west-1.amazonaws.com/123/shipping")
        monkeypatch.setenv("SES_TO_EMAIL", "fallback@example.com")
        monkeypatch.setenv("SES_FROM_EMAIL", "orders@example.com")
        monkeypatch.setenv("WORKER_MAX_MESSAGES", "10")

        config = PipelineConfig.from_env(str(clean_env))

        assert config.broker_backend == "aws"
        assert config.region == "eu-west-1"
        assert config.topic == "arn:aws:sns:eu-west-1:123:orders"
        assert config.queue.endswith("/shipping")
        assert config.fallback_email == "fallback@example.com"
        assert config.sender_email == "orders@example.com"
        assert config.max_messages == 10

    def test_unset_variables_keep_defaults(self, clean_env):
        config = PipelineConfig.from_env(str(clean_env))
        assert config == PipelineConfig()

    def test_dotenv_file(self, clean_env):
        clean_env.write_text("SES_TO_EMAIL=dotenv@example.com\nWORKER_WAIT_SECONDS=5\n")

        try:
            config = PipelineConfig.from_env(str(clean_env))
        finally:
            os.environ.pop("SES_TO_EMAIL", None)
            os.environ.pop("WORKER_WAIT_SECONDS", None)

        assert config.fallback_email == "dotenv@example.com"
        assert config.wait_seconds == 5

    def test_invalid_number(self, monkeypatch, clean_env):
        monkeypatch.setenv("WORKER_MAX_MESSAGES", "lots")
        with pytest.raises(ValidationError):
            PipelineConfig.from_env(str(clean_env))
