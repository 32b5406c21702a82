"""
Plain Python demo of segment_sdk batching.

Sends 1,000 track events through an AutoBatcher. Batches go out as they
fill; the remainder is flushed when the with-block exits.

Usage:
    SEGMENT_WRITE_KEY=your_write_key python demo.py
"""

import logging
import os

from segment_sdk import AutoBatcher, Batcher, HttpClient, MessageTooLarge, Track, User


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    write_key = os.environ.get("SEGMENT_WRITE_KEY", "your_write_key")
    batcher = Batcher(context={"library": {"name": "segment_sdk-demo", "version": "0.1.0"}})

    with AutoBatcher(HttpClient(), batcher, write_key) as auto_batcher:
        for i in range(1000):
            msg = Track(
                user=User(user_id=f"user-{i % 50}"),
                event="Example",
                properties={"iteration": i, "foo": "bar"},
            )
            try:
                auto_batcher.push(msg)
            except MessageTooLarge as e:
                print(f"Skipped event {i}: {e}")

        print(f"Pending before final flush: {len(auto_batcher)} events")

    print(
        f"Delivered {auto_batcher.messages_sent} events "
        f"in {auto_batcher.batches_sent} batches"
    )


if __name__ == "__main__":
    main()
