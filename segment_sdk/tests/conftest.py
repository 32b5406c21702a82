"""Pytest fixtures for segment_sdk tests."""

import os
from datetime import datetime, timezone
from typing import List, Tuple

import pytest

from segment_sdk.auto_batcher import set_default_batcher
from segment_sdk.client import Client
from segment_sdk.errors import DeliveryFailed
from segment_sdk.message import Batch, Message, Track, User


FIXED_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingClient(Client):
    """Client that records every send instead of making requests."""

    def __init__(self):
        self.sent: List[Tuple[str, Message]] = []
        self.fail_next = 0
        self.closed = False

    def send(self, write_key: str, message: Message) -> None:
        if self.fail_next:
            self.fail_next -= 1
            messages = list(message.batch) if isinstance(message, Batch) else [message]
            raise DeliveryFailed("simulated outage", messages=messages, status_code=503)
        self.sent.append((write_key, message))

    def close(self) -> None:
        self.closed = True

    @property
    def batches(self) -> List[Batch]:
        return [msg for _, msg in self.sent if isinstance(msg, Batch)]


@pytest.fixture
def client():
    """Create a RecordingClient."""
    return RecordingClient()


@pytest.fixture
def make_track():
    """Factory for Track events with a fixed timestamp."""
    def _make(i: int = 0, **properties) -> Track:
        return Track(
            user=User(user_id=f"user-{i}"),
            event="Example",
            properties=properties or {"index": i},
            timestamp=FIXED_TIME,
        )
    return _make


@pytest.fixture(autouse=True)
def reset_env():
    """Reset environment variables and the default batcher after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)
    set_default_batcher(None)
