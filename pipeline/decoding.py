"""
Message body decoding.

A queue subscribed to the topic receives either the bare OrderEvent JSON
(raw delivery) or a notification envelope whose ``Message`` field holds the
OrderEvent JSON as a string. Both are accepted; anything else is a
DecodeError.
"""

import json

from pydantic import ValidationError

from shared.errors import DecodeError
from shared.models import OrderEvent


def _loads(text: str, what: str):
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"{what} is not valid JSON: {e}") from e


def unwrap_payload(body: str) -> dict:
    """
    Return the order payload dict, unwrapping one notification envelope.

    Raises:
        DecodeError: If the body (or the wrapped message) is not a JSON object
    """
    payload = _loads(body, "Message body")
    if isinstance(payload, dict) and isinstance(payload.get("Message"), str):
        payload = _loads(payload["Message"], "Wrapped message")

    if not isinstance(payload, dict):
        raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def decode_order_event(body: str) -> OrderEvent:
    """
    Decode a queue message body into an OrderEvent.

    Raises:
        DecodeError: If the body is malformed or misses required fields
    """
    payload = unwrap_payload(body)
    try:
        return OrderEvent.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(f"Invalid order event: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e
