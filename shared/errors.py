"""
Error taxonomy for the pipeline.

Only PublishError and OrderValidationError ever reach a user (at order
placement time). Everything on the consumer side is operational: it gets
logged and heals through redelivery.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class OrderValidationError(PipelineError):
    """The order request cannot produce a publishable event."""


class PublishError(PipelineError):
    """The broker rejected the publish or could not be reached."""


class ReceiveError(PipelineError):
    """Polling a queue failed. The worker backs off and polls again."""


class DecodeError(PipelineError):
    """A message body is malformed or misses required fields."""


class SideEffectError(PipelineError):
    """The processing side effect (e.g. sending the email) failed."""


class AcknowledgeError(PipelineError):
    """Deleting a message failed, typically because its receipt handle is stale."""
