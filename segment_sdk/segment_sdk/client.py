"""
Delivery clients for the Segment tracking API.

A Client sends one message (a single event or a Batch) under a write key.
HttpClient is the production implementation, built on requests.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests

from .canonical import encode_json_bytes
from .errors import DeliveryFailed, InvalidMessage
from .message import Batch, Message

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://api.segment.io"

PATHS: Dict[str, str] = {
    "identify": "/v1/identify",
    "track": "/v1/track",
    "page": "/v1/page",
    "screen": "/v1/screen",
    "group": "/v1/group",
    "alias": "/v1/alias",
    "batch": "/v1/batch",
}


class Client(ABC):
    """
    Abstract base class for delivery clients.

    Implementations must raise DeliveryFailed for every failure, including
    non-success responses.
    """

    @abstractmethod
    def send(self, write_key: str, message: Message) -> None:
        """
        Send a message to the tracking API.

        Args:
            write_key: Credential identifying the destination source
            message: Event or Batch to deliver

        Raises:
            InvalidMessage: If the message cannot be encoded as standard JSON
            DeliveryFailed: If the message could not be delivered
        """
        pass

    def close(self) -> None:
        """Release any resources held by the client."""
        pass


class HttpClient(Client):
    """
    Sends messages over HTTPS with basic auth.

    The request body is the compact encoding from segment_sdk.canonical, so
    a Batch occupies exactly the number of bytes the Batcher accounted for.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        session: Optional[requests.Session] = None,
        connect_timeout: float = 10.0,
        read_timeout: Optional[float] = None,
    ):
        """
        Args:
            host: Scheme and host of the tracking API
            session: requests Session to reuse; one is created if omitted
            connect_timeout: Seconds to wait for a connection
            read_timeout: Seconds to wait for a response, None for no limit
        """
        self.host = host.rstrip("/")
        self.timeout = (connect_timeout, read_timeout)
        self._owns_session = session is None
        self.session = session or requests.Session()

    def url_for(self, message: Message) -> str:
        """Destination URL for a message, by message type."""
        return f"{self.host}{PATHS[message.type]}"

    def send(self, write_key: str, message: Message) -> None:
        url = self.url_for(message)
        in_flight = list(message.batch) if isinstance(message, Batch) else [message]
        try:
            body = encode_json_bytes(message.to_dict())
        except (TypeError, ValueError) as e:
            raise InvalidMessage(message, str(e)) from e

        try:
            response = self.session.post(
                url,
                data=body,
                headers={"Content-Type": "application/json"},
                auth=(write_key, ""),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Segment request to {url} failed: {e}")
            raise DeliveryFailed(
                f"Request to {url} failed: {e}", messages=in_flight
            ) from e

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            logger.error(
                f"Segment request to {url} failed with status {response.status_code}"
            )
            raise DeliveryFailed(
                f"{url} responded with status {response.status_code}",
                messages=in_flight,
                status_code=response.status_code,
            ) from e

        logger.debug(f"Sent {len(body)} bytes to {url} ({response.status_code})")

    def close(self) -> None:
        if self._owns_session:
            self.session.close()
