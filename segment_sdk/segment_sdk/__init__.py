"""
segment_sdk - Segment analytics client with size-bounded batching

This package provides:
- Event records (identify, track, page, screen, group, alias)
- A Batcher that packs events into batches under the API payload limit
- An AutoBatcher that sends each batch as soon as it is full
- An HTTP client for the Segment tracking API
"""

from segment_sdk.message import (
    Alias,
    Batch,
    BatchMessage,
    Group,
    Identify,
    Message,
    Page,
    Screen,
    Track,
    User,
    message_from_dict,
)
from segment_sdk.canonical import encode_json, json_size
from segment_sdk.errors import (
    BatcherInvariantError,
    DeliveryFailed,
    InvalidMessage,
    MessageTooLarge,
    SegmentError,
)
from segment_sdk.batcher import (
    MAX_BATCH_SIZE,
    MAX_MESSAGE_SIZE,
    Batcher,
    PushResult,
    PushStatus,
)
from segment_sdk.client import Client, HttpClient, DEFAULT_HOST
from segment_sdk.auto_batcher import (
    AutoBatcher,
    create_auto_batcher,
    get_default_batcher,
    init_batcher,
    set_default_batcher,
)
from segment_sdk.config import SegmentConfig, load_config

__version__ = "0.1.0"

__all__ = [
    # Messages
    "User",
    "Identify",
    "Track",
    "Page",
    "Screen",
    "Group",
    "Alias",
    "Batch",
    "BatchMessage",
    "Message",
    "message_from_dict",
    # Encoding
    "encode_json",
    "json_size",
    # Errors
    "SegmentError",
    "MessageTooLarge",
    "InvalidMessage",
    "DeliveryFailed",
    "BatcherInvariantError",
    # Batching
    "Batcher",
    "PushResult",
    "PushStatus",
    "MAX_BATCH_SIZE",
    "MAX_MESSAGE_SIZE",
    "AutoBatcher",
    "create_auto_batcher",
    "init_batcher",
    "get_default_batcher",
    "set_default_batcher",
    # Clients
    "Client",
    "HttpClient",
    "DEFAULT_HOST",
    # Config
    "SegmentConfig",
    "load_config",
]
