"""
segment-send - ship newline-delimited JSON events to the Segment API.

Each input line is one event in wire format, e.g.:

    {"type": "track", "userId": "user-1", "event": "Signup", "properties": {"plan": "pro"}}

Events are packed into maximally-sized batches and sent as each batch
fills; the remainder is flushed when the input ends.

Usage:
    segment-send events.jsonl --write-key KEY
    cat events.jsonl | segment-send --config segment.yaml

Exit codes:
    0  all valid events delivered
    1  a batch could not be delivered
    2  no write key configured
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import IO, List, Optional

from .auto_batcher import create_auto_batcher
from .config import load_config
from .errors import DeliveryFailed, InvalidMessage, MessageTooLarge
from .message import message_from_dict

logger = logging.getLogger(__name__)


def send_events(stream: IO[str], batcher) -> dict:
    """
    Push every event read from a stream, then flush.

    Invalid and oversize lines are logged and skipped.

    Returns:
        Counts of pushed, rejected and invalid lines

    Raises:
        DeliveryFailed: If a batch could not be delivered
    """
    counts = {"pushed": 0, "rejected": 0, "invalid": 0}

    for lineno, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue

        try:
            msg = message_from_dict(json.loads(line))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Line {lineno}: invalid event: {e}")
            counts["invalid"] += 1
            continue

        try:
            batcher.push(msg)
        except MessageTooLarge as e:
            logger.warning(f"Line {lineno}: {e}")
            counts["rejected"] += 1
            continue
        except InvalidMessage as e:
            logger.warning(f"Line {lineno}: {e}")
            counts["invalid"] += 1
            continue

        counts["pushed"] += 1

    batcher.flush()
    return counts


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="segment-send",
        description="Send newline-delimited JSON events to the Segment tracking API",
    )
    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        help="File of newline-delimited JSON events ('-' for stdin)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to segment.yaml",
    )
    parser.add_argument(
        "--write-key",
        help="Write key of the destination source",
    )
    parser.add_argument(
        "--host",
        help="Tracking API host",
    )
    parser.add_argument(
        "--max-batch-bytes",
        type=int,
        help="Maximum encoded size of a batch",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        sys.exit(2)

    if args.write_key:
        config.write_key = args.write_key
    if args.host:
        config.host = args.host
    if args.max_batch_bytes:
        config.max_batch_bytes = args.max_batch_bytes

    if not config.write_key:
        print("Error: no write key (use --write-key or SEGMENT_WRITE_KEY)")
        sys.exit(2)

    batcher = create_auto_batcher(config)

    try:
        if args.input == "-":
            counts = send_events(sys.stdin, batcher)
        else:
            with open(args.input, encoding="utf-8") as f:
                counts = send_events(f, batcher)
    except DeliveryFailed as e:
        print(f"Error: delivery failed: {e}")
        sys.exit(1)
    finally:
        batcher.client.close()

    print(
        f"Sent {batcher.messages_sent} events in {batcher.batches_sent} batches "
        f"({counts['rejected']} too large, {counts['invalid']} invalid)"
    )
    sys.exit(0)


if __name__ == "__main__":
    main()
