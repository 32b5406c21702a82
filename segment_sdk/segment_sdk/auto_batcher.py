"""
AutoBatcher - couples a Batcher to a delivery Client.

Every push() either fits in the current batch or triggers a flush of the
batch followed by a retry of the same event into the emptied buffer.

Flow:
    push(event) → Batcher.push → [FULL → flush → Client.send(Batch)] → retry

There is no background flushing. Callers that produce events rarely should
call flush() on their own schedule, or the last events wait in memory
until the next full batch or close().
"""

import atexit
import logging
import os
import threading
from typing import TYPE_CHECKING, Optional

from .batcher import Batcher, PushStatus
from .client import Client, HttpClient
from .errors import BatcherInvariantError, DeliveryFailed
from .message import BatchMessage

if TYPE_CHECKING:
    from .config import SegmentConfig

logger = logging.getLogger(__name__)


class AutoBatcher:
    """
    Batches events and sends every full batch automatically.

    Usage:
        with AutoBatcher(HttpClient(), Batcher(), "your_write_key") as batcher:
            for i in range(100):
                batcher.push(Track(user=User(user_id=f"user-{i}"), event="Example"))

    push() and flush() are serialized by an internal lock, so one instance
    can be shared between threads. Independent instances never coordinate.
    """

    def __init__(self, client: Client, batcher: Batcher, write_key: str):
        self.client = client
        self.write_key = write_key
        self._batcher = batcher
        self._lock = threading.RLock()
        self._batches_sent = 0
        self._messages_sent = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._batcher)

    def is_empty(self) -> bool:
        with self._lock:
            return self._batcher.is_empty()

    @property
    def batcher(self) -> Batcher:
        return self._batcher

    @property
    def batches_sent(self) -> int:
        """Number of batches delivered successfully."""
        return self._batches_sent

    @property
    def messages_sent(self) -> int:
        """Number of events delivered successfully."""
        return self._messages_sent

    def push(self, msg: BatchMessage) -> None:
        """
        Add an event, sending the current batch first if it is full.

        Raises:
            MessageTooLarge: If the event can never fit in a batch. Nothing
                is flushed and the buffer is unchanged.
            InvalidMessage: If the event cannot be encoded as standard JSON.
                Nothing is flushed and the buffer is unchanged.
            DeliveryFailed: If the automatic flush failed. The held-back
                event is attached as ``overflow`` and was not buffered.
        """
        with self._lock:
            result = self._batcher.push(msg)
            result.raise_for_status()
            if result.accepted:
                return

            try:
                self.flush()
            except DeliveryFailed as e:
                e.overflow = result.message
                raise

            # The event passed the size check alone and the buffer is empty
            retry = self._batcher.push(result.message)
            if retry.status is not PushStatus.ACCEPTED:
                raise BatcherInvariantError(result.message, retry.status)

    def flush(self) -> None:
        """
        Send every buffered event as one Batch.

        Flushing an empty buffer does nothing. The events are removed from
        the buffer before sending; if the send fails they are reported on
        the DeliveryFailed error and are not buffered again.

        Raises:
            DeliveryFailed: If the client could not deliver the batch
        """
        with self._lock:
            if self._batcher.is_empty():
                return

            size = self._batcher.size
            batch = self._batcher.to_batch(self._batcher.take())
            logger.debug(f"Flushing batch of {len(batch.batch)} events ({size} bytes)")

            self.client.send(self.write_key, batch)

            self._batches_sent += 1
            self._messages_sent += len(batch.batch)
            logger.info(f"Delivered batch of {len(batch.batch)} events")

    def close(self) -> None:
        """Flush remaining events and release the client."""
        try:
            self.flush()
        finally:
            self.client.close()

    def __enter__(self) -> "AutoBatcher":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def create_auto_batcher(config: "SegmentConfig") -> AutoBatcher:
    """Build an AutoBatcher with an HttpClient from a SegmentConfig."""
    client = HttpClient(
        host=config.host,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
    )
    batcher = Batcher(
        context=config.context,
        max_size=config.max_batch_bytes,
        max_message_size=config.max_message_bytes,
        auto_timestamp=config.auto_timestamp,
    )
    return AutoBatcher(client, batcher, config.write_key)


# Global default batcher instance
_default_batcher: Optional[AutoBatcher] = None
_batcher_lock = threading.Lock()


def get_default_batcher() -> Optional[AutoBatcher]:
    """
    Get the default AutoBatcher instance.

    Creates one from environment variables if SEGMENT_WRITE_KEY is set.
    The default batcher is flushed when the interpreter exits.
    """
    global _default_batcher

    with _batcher_lock:
        if _default_batcher is None and os.environ.get("SEGMENT_WRITE_KEY"):
            from .config import SegmentConfig

            _default_batcher = create_auto_batcher(SegmentConfig.from_env())

        return _default_batcher


def set_default_batcher(batcher: Optional[AutoBatcher]) -> None:
    """
    Set the default AutoBatcher instance.

    A previous default is closed, which flushes its pending events.

    Args:
        batcher: The batcher to use, or None to clear
    """
    global _default_batcher

    with _batcher_lock:
        previous = _default_batcher
        _default_batcher = batcher

    if previous is not None and previous is not batcher:
        previous.close()


def init_batcher(config: Optional["SegmentConfig"] = None) -> AutoBatcher:
    """
    Initialize and set the default AutoBatcher.

    The default batcher is flushed when the interpreter exits.

    Args:
        config: Settings to build from; loaded with load_config() if None

    Returns:
        The configured AutoBatcher
    """
    if config is None:
        from .config import load_config

        config = load_config()

    batcher = create_auto_batcher(config)
    set_default_batcher(batcher)
    return batcher


def _flush_at_exit() -> None:
    """Flush whichever batcher is the default when the interpreter exits."""
    batcher = _default_batcher
    if batcher is None:
        return
    try:
        batcher.flush()
    except DeliveryFailed as e:
        logger.error(f"Dropped {len(e.messages)} events at exit: {e}")


atexit.register(_flush_at_exit)
