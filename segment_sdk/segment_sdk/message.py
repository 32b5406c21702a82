"""
Analytics event records and the Batch envelope.

Events are immutable dataclasses; to_dict() renders the Segment wire shape
(camelCase keys plus a "type" tag). Datetimes are left as datetime objects
and rendered by the encoder in segment_sdk.canonical.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Type, Union


@dataclass(frozen=True)
class User:
    """
    Identity reference attached to every event.

    At least one of user_id / anonymous_id must be set.
    """
    user_id: Optional[str] = None
    anonymous_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.user_id is None and self.anonymous_id is None:
            raise ValueError("User requires a user_id or an anonymous_id")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.user_id is not None:
            data["userId"] = self.user_id
        if self.anonymous_id is not None:
            data["anonymousId"] = self.anonymous_id
        return data


class BaseMessage:
    """
    Behaviour shared by the six event records.

    Subclasses declare their wire type and a mapping of event-specific
    attributes to wire keys; serialization and parsing are driven from it.
    """
    type: ClassVar[str] = ""
    wire_fields: ClassVar[Dict[str, str]] = {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-serializable wire dictionary."""
        data: Dict[str, Any] = dict(self.extra)
        data.update(self.user.to_dict())
        for attr, key in self.wire_fields.items():
            data[key] = getattr(self, attr)
        data["type"] = self.type
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        if self.context is not None:
            data["context"] = self.context
        if self.integrations is not None:
            data["integrations"] = self.integrations
        return data

    def with_timestamp(self, timestamp: datetime) -> "BaseMessage":
        """Return a copy of this event stamped with the given time."""
        return replace(self, timestamp=timestamp)


@dataclass(frozen=True)
class Identify(BaseMessage):
    """Ties a user to their traits."""
    type: ClassVar[str] = "identify"
    wire_fields: ClassVar[Dict[str, str]] = {"traits": "traits"}

    user: User
    traits: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None
    context: Optional[Dict[str, Any]] = None
    integrations: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Track(BaseMessage):
    """Records an action the user performed."""
    type: ClassVar[str] = "track"
    wire_fields: ClassVar[Dict[str, str]] = {
        "event": "event",
        "properties": "properties",
    }

    user: User
    event: str
    properties: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None
    context: Optional[Dict[str, Any]] = None
    integrations: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Page(BaseMessage):
    """Records a page view on a website."""
    type: ClassVar[str] = "page"
    wire_fields: ClassVar[Dict[str, str]] = {
        "name": "name",
        "properties": "properties",
    }

    user: User
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None
    context: Optional[Dict[str, Any]] = None
    integrations: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Screen(BaseMessage):
    """Records a screen view in a mobile app."""
    type: ClassVar[str] = "screen"
    wire_fields: ClassVar[Dict[str, str]] = {
        "name": "name",
        "properties": "properties",
    }

    user: User
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None
    context: Optional[Dict[str, Any]] = None
    integrations: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Group(BaseMessage):
    """Associates a user with a group (company, organization, ...)."""
    type: ClassVar[str] = "group"
    wire_fields: ClassVar[Dict[str, str]] = {
        "group_id": "groupId",
        "traits": "traits",
    }

    user: User
    group_id: str
    traits: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None
    context: Optional[Dict[str, Any]] = None
    integrations: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Alias(BaseMessage):
    """Merges a previous identity into the current user."""
    type: ClassVar[str] = "alias"
    wire_fields: ClassVar[Dict[str, str]] = {
        "previous_id": "previousId",
        "traits": "traits",
    }

    user: User
    previous_id: str
    traits: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None
    context: Optional[Dict[str, Any]] = None
    integrations: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)


BatchMessage = Union[Identify, Track, Page, Screen, Group, Alias]


@dataclass(frozen=True)
class Batch:
    """
    Ordered events sent as one request, with a context shared by all of them.

    Attributes:
        batch: Events in insertion order
        context: Metadata describing the sending environment
        integrations: Destination routing options for the whole batch
        extra: Additional top-level fields, flattened into the payload
    """
    type: ClassVar[str] = "batch"

    batch: List[BatchMessage] = field(default_factory=list)
    context: Optional[Dict[str, Any]] = None
    integrations: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-serializable wire dictionary."""
        data: Dict[str, Any] = dict(self.extra)
        data["batch"] = [msg.to_dict() for msg in self.batch]
        if self.context is not None:
            data["context"] = self.context
        if self.integrations is not None:
            data["integrations"] = self.integrations
        return data


Message = Union[Identify, Track, Page, Screen, Group, Alias, Batch]

MESSAGE_TYPES: Dict[str, Type[BaseMessage]] = {
    cls.type: cls for cls in (Identify, Track, Page, Screen, Group, Alias)
}

_COMMON_KEYS = {
    "type", "userId", "anonymousId", "timestamp", "context", "integrations",
}


def message_from_dict(data: Dict[str, Any]) -> BatchMessage:
    """
    Build an event from its wire dictionary.

    Keys that are not part of the event's schema are kept in ``extra``.

    Args:
        data: Dictionary with a "type" key and camelCase fields

    Returns:
        The matching event record

    Raises:
        ValueError: If the type is unknown or a required field is missing
    """
    msg_type = data.get("type")
    cls = MESSAGE_TYPES.get(msg_type)
    if cls is None:
        raise ValueError(f"Unknown message type: {msg_type!r}")

    user = User(user_id=data.get("userId"), anonymous_id=data.get("anonymousId"))

    kwargs: Dict[str, Any] = {}
    for attr, key in cls.wire_fields.items():
        if key in data:
            kwargs[attr] = data[key]
        elif attr in ("traits", "properties"):
            continue
        else:
            raise ValueError(f"{msg_type} message is missing '{key}'")

    timestamp = data.get("timestamp")
    if isinstance(timestamp, str):
        timestamp = _parse_timestamp(timestamp)

    known = _COMMON_KEYS | set(cls.wire_fields.values())
    extra = {k: v for k, v in data.items() if k not in known}

    return cls(
        user=user,
        timestamp=timestamp,
        context=data.get("context"),
        integrations=data.get("integrations"),
        extra=extra,
        **kwargs,
    )


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing 'Z'."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
