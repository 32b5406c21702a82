"""
Size-bounded in-memory buffer of events waiting to be sent as one Batch.

The buffer tracks the exact encoded size of the Batch it would produce:
the envelope (``{"batch":[],...}`` with the shared context) plus every
buffered event plus the commas separating them. push() never lets that
size exceed max_size; instead it reports the buffer as full and hands the
event back so the caller can flush and retry.

Batcher is not thread-safe. AutoBatcher provides the exclusive access
around it.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .canonical import json_size
from .errors import InvalidMessage, MessageTooLarge
from .message import Batch, BatchMessage

logger = logging.getLogger(__name__)

# Limits documented by the Segment tracking API
MAX_BATCH_SIZE = 500 * 1024
MAX_MESSAGE_SIZE = 32 * 1024


class PushStatus(Enum):
    """Outcome of offering an event to a Batcher."""
    ACCEPTED = "accepted"
    FULL = "full"
    TOO_LARGE = "too_large"


@dataclass(frozen=True)
class PushResult:
    """
    Result of Batcher.push().

    Attributes:
        status: Which of the three outcomes occurred
        message: The event as offered (timestamped if auto_timestamp applied)
        size: Encoded size of the event in bytes
        error: MessageTooLarge when status is TOO_LARGE
    """
    status: PushStatus
    message: BatchMessage
    size: int
    error: Optional[MessageTooLarge] = None

    @property
    def accepted(self) -> bool:
        return self.status is PushStatus.ACCEPTED

    @property
    def overflow(self) -> Optional[BatchMessage]:
        """The event to retry after a flush, or None if no flush is needed."""
        if self.status is PushStatus.FULL:
            return self.message
        return None

    def raise_for_status(self) -> None:
        """Raise MessageTooLarge if the event was rejected as oversize."""
        if self.error is not None:
            raise self.error


class Batcher:
    """
    Accumulates events into a maximally-sized batch.

    Usage:
        batcher = Batcher(context={"library": {"name": "my-app"}})
        result = batcher.push(Track(user=User(user_id="u1"), event="Signup"))
        if result.status is PushStatus.FULL:
            send(Batch(batcher.take(), batcher.context))
            batcher.push(result.message)
    """

    def __init__(
        self,
        context: Optional[Dict[str, Any]] = None,
        max_size: int = MAX_BATCH_SIZE,
        max_message_size: int = MAX_MESSAGE_SIZE,
        integrations: Optional[Dict[str, Any]] = None,
        auto_timestamp: bool = True,
    ):
        """
        Args:
            context: Metadata attached once to every batch
            max_size: Maximum encoded size of a batch, in bytes
            max_message_size: Maximum encoded size of a single event, in bytes
            integrations: Integration options attached to every batch
            auto_timestamp: Stamp events that have no timestamp with the
                current UTC time when they are pushed
        """
        self.context = context
        self.integrations = integrations
        self.max_size = max_size
        self.max_message_size = max_message_size
        self.auto_timestamp = auto_timestamp
        self.envelope_size = json_size(
            Batch(context=context, integrations=integrations).to_dict()
        )
        if self.envelope_size > max_size:
            raise ValueError(
                f"Batch envelope ({self.envelope_size} bytes) does not fit "
                f"in max_size ({max_size} bytes)"
            )
        self._messages: List[BatchMessage] = []
        self._byte_count = self.envelope_size

    def __len__(self) -> int:
        return len(self._messages)

    def is_empty(self) -> bool:
        return not self._messages

    @property
    def size(self) -> int:
        """Encoded size, in bytes, of the Batch holding the buffered events."""
        return self._byte_count

    def push(self, msg: BatchMessage) -> PushResult:
        """
        Try to append an event to the buffer.

        The buffer keeps a deep copy of the event, so later changes to the
        caller's properties or traits dicts cannot alter a buffered event.

        Returns:
            PushResult with status ACCEPTED (event buffered), FULL (buffer
            unchanged; flush, then push result.message again) or TOO_LARGE
            (the event can never be sent; buffer unchanged)

        Raises:
            InvalidMessage: If the event cannot be encoded as standard JSON
                (NaN or infinite floats, mixed key types, unserializable
                values). The buffer is unchanged.
        """
        if self.auto_timestamp and msg.timestamp is None:
            msg = msg.with_timestamp(datetime.now(timezone.utc))
        msg = copy.deepcopy(msg)

        try:
            size = json_size(msg.to_dict())
        except (TypeError, ValueError) as e:
            raise InvalidMessage(msg, str(e)) from e

        limit = min(self.max_message_size, self.max_size - self.envelope_size)
        if size > limit:
            logger.debug(f"Rejected {msg.type} message of {size} bytes (limit {limit})")
            return PushResult(
                PushStatus.TOO_LARGE, msg, size, MessageTooLarge(msg, size, limit)
            )

        # Every event after the first is preceded by a comma
        added = size + 1 if self._messages else size
        if self._byte_count + added > self.max_size:
            return PushResult(PushStatus.FULL, msg, size)

        self._messages.append(msg)
        self._byte_count += added
        return PushResult(PushStatus.ACCEPTED, msg, size)

    def take(self) -> List[BatchMessage]:
        """Remove and return every buffered event, in insertion order."""
        messages = self._messages
        self._messages = []
        self._byte_count = self.envelope_size
        return messages

    def to_batch(self, messages: List[BatchMessage]) -> Batch:
        """Wrap drained events in a Batch carrying this buffer's context."""
        return Batch(
            batch=messages,
            context=self.context,
            integrations=self.integrations,
        )
