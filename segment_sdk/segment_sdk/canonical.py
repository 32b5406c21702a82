"""
Compact JSON encoding and payload size measurement.

Every payload that leaves the process goes through encode_json(), and
every size the batcher accounts for comes from json_size(). Keeping both
on the same encoder is what makes the batch size accounting exact.

Encoding rules:
- Sorted dictionary keys
- No insignificant whitespace
- UTF-8 text (non-ASCII characters are not escaped)
- Datetimes and dates rendered as ISO-8601
- NaN and infinities rejected (they are not valid JSON)
"""

import base64
import json
from decimal import Decimal
from typing import Any
from uuid import UUID


def encode_json(obj: Any) -> str:
    """
    Serialize an object to compact, deterministic JSON.

    Args:
        obj: Python object to encode

    Returns:
        JSON text

    Raises:
        TypeError: If a value cannot be serialized, or a dict mixes key types
        ValueError: If a float is NaN or infinite
    """
    return json.dumps(
        obj,
        sort_keys=True,
        ensure_ascii=False,
        separators=(',', ':'),
        allow_nan=False,
        default=_default_serializer,
    )


def encode_json_bytes(obj: Any) -> bytes:
    """Encode an object to the UTF-8 request body sent on the wire."""
    return encode_json(obj).encode('utf-8')


def json_size(obj: Any) -> int:
    """
    Number of bytes the encoded object occupies on the wire.

    Args:
        obj: Python object to measure

    Returns:
        Length in bytes of the UTF-8 encoded JSON
    """
    return len(encode_json_bytes(obj))


def _default_serializer(obj: Any) -> Any:
    """
    Fallback for values the json module cannot encode natively.

    Raises:
        TypeError: If the object cannot be serialized
    """
    if hasattr(obj, 'isoformat'):
        return obj.isoformat()

    if isinstance(obj, Decimal):
        return float(obj)

    if isinstance(obj, UUID):
        return str(obj)

    if isinstance(obj, bytes):
        return base64.b64encode(obj).decode('ascii')

    # Sets are sorted so the encoding stays deterministic
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)

    if hasattr(obj, '__iter__') and not isinstance(obj, (str, bytes)):
        return list(obj)

    raise TypeError(
        f"Object of type {type(obj).__name__} is not JSON serializable"
    )
