"""
Exceptions raised by segment_sdk.

SegmentError covers the recoverable failures a caller is expected to
handle. BatcherInvariantError is deliberately outside that hierarchy: it
signals a bug, not a condition to recover from.
"""

from typing import Any, List, Optional


class SegmentError(Exception):
    """Base class for errors reported by the library."""


class MessageTooLarge(SegmentError):
    """Raised when a single event can never fit in a batch.

    Attributes:
        message: The rejected event.
        size: Encoded size of the event in bytes.
        limit: The limit it exceeded, in bytes.
    """

    def __init__(self, message: Any, size: int, limit: int):
        self.message = message
        self.size = size
        self.limit = limit
        super().__init__(
            f"{type(message).__name__} message is too large to send "
            f"({size} bytes, limit {limit} bytes)"
        )


class InvalidMessage(SegmentError):
    """Raised when an event cannot be encoded as standard JSON.

    Attributes:
        message: The rejected event.
        reason: Why encoding failed.
    """

    def __init__(self, message: Any, reason: str):
        self.message = message
        self.reason = reason
        super().__init__(
            f"{type(message).__name__} message cannot be encoded: {reason}"
        )


class DeliveryFailed(SegmentError):
    """Raised when the delivery collaborator could not send a message.

    Attributes:
        messages: Events that were in flight and are now lost from the buffer.
        status_code: HTTP status of the response, if one was received.
        overflow: Event held back by an auto-flush and never buffered, if any.
    """

    def __init__(
        self,
        reason: str,
        messages: Optional[List[Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.reason = reason
        self.messages = list(messages or [])
        self.status_code = status_code
        self.overflow: Any = None
        super().__init__(reason)


class BatcherInvariantError(RuntimeError):
    """Raised when an event is rejected by a buffer that was just emptied."""

    def __init__(self, message: Any, status: Any):
        self.message = message
        self.status = status
        super().__init__(
            f"Empty batcher refused {type(message).__name__} message "
            f"(status: {status})"
        )
