"""Tests for segment_sdk.batcher module."""

import json

import pytest

from segment_sdk.batcher import MAX_BATCH_SIZE, MAX_MESSAGE_SIZE, Batcher, PushStatus
from segment_sdk.canonical import encode_json, json_size
from segment_sdk.errors import InvalidMessage, MessageTooLarge
from segment_sdk.message import Batch, Identify, Track, User


def batch_size(batcher, messages):
    """Encoded size of the Batch the batcher would send for these messages."""
    return json_size(batcher.to_batch(messages).to_dict())


class TestDefaults:
    """Tests for default limits and the empty buffer."""

    def test_default_limits(self):
        batcher = Batcher()
        assert batcher.max_size == MAX_BATCH_SIZE == 512000
        assert batcher.max_message_size == MAX_MESSAGE_SIZE == 32768

    def test_new_batcher_is_empty(self):
        batcher = Batcher()
        assert len(batcher) == 0
        assert batcher.is_empty()

    def test_empty_size_is_envelope(self):
        batcher = Batcher()
        assert batcher.envelope_size == len('{"batch":[]}')
        assert batcher.size == batcher.envelope_size

    def test_envelope_includes_context(self):
        context = {"library": {"name": "segment_sdk", "version": "0.1.0"}}
        batcher = Batcher(context=context)
        assert batcher.envelope_size == json_size({"batch": [], "context": context})

    def test_envelope_larger_than_max_rejected(self):
        with pytest.raises(ValueError):
            Batcher(context={"blob": "x" * 100}, max_size=50)


class TestPush:
    """Tests for the three push outcomes."""

    def test_accepted(self, make_track):
        batcher = Batcher()
        result = batcher.push(make_track(1))

        assert result.status is PushStatus.ACCEPTED
        assert result.accepted
        assert result.overflow is None
        assert len(batcher) == 1

    def test_len_grows_by_one_per_accepted_push(self, make_track):
        batcher = Batcher()
        for i in range(10):
            batcher.push(make_track(i))
            assert len(batcher) == i + 1

    def test_full_returns_event_and_leaves_state(self, make_track):
        first = make_track(1)
        batcher = Batcher()
        batcher.push(first)
        batcher.max_size = batcher.size  # no room for anything else

        second = make_track(2)
        size_before = batcher.size
        result = batcher.push(second)

        assert result.status is PushStatus.FULL
        assert not result.accepted
        assert result.message == second
        assert result.overflow == second
        assert len(batcher) == 1
        assert batcher.size == size_before

    def test_too_large_for_batch(self):
        batcher = Batcher(max_size=100)
        msg = Track(user=User(user_id="u"), event="Big", properties={"x": "y" * 150})

        result = batcher.push(msg)

        assert result.status is PushStatus.TOO_LARGE
        assert isinstance(result.error, MessageTooLarge)
        assert result.overflow is None
        assert batcher.is_empty()
        assert batcher.size == batcher.envelope_size
        with pytest.raises(MessageTooLarge) as exc_info:
            result.raise_for_status()
        assert exc_info.value.size == result.size
        assert exc_info.value.limit == 100 - batcher.envelope_size

    def test_too_large_for_message_limit(self):
        batcher = Batcher(max_message_size=64)
        msg = Track(user=User(user_id="u"), event="Big", properties={"x": "y" * 100})

        result = batcher.push(msg)

        assert result.status is PushStatus.TOO_LARGE
        assert result.error.limit == 64

    def test_too_large_leaves_existing_events(self, make_track):
        batcher = Batcher(max_message_size=200)
        batcher.push(make_track(1))
        size_before = batcher.size

        result = batcher.push(make_track(2, blob="z" * 500))

        assert result.status is PushStatus.TOO_LARGE
        assert len(batcher) == 1
        assert batcher.size == size_before

    def test_event_that_exactly_fits_alone_is_accepted(self, make_track):
        msg = make_track(1)
        batcher = Batcher()
        batcher.max_size = batcher.envelope_size + json_size(msg.to_dict())

        assert batcher.push(msg).accepted

    def test_raise_for_status_noop_when_accepted(self, make_track):
        Batcher().push(make_track()).raise_for_status()


class TestSizeAccounting:
    """The accumulator always equals the encoded size of the pending Batch."""

    def test_size_matches_encoded_batch(self, make_track):
        batcher = Batcher(context={"app": {"name": "demo"}})
        pushed = []
        for i in range(25):
            msg = make_track(i, label="é" * i)
            batcher.push(msg)
            pushed.append(msg)
            assert batcher.size == batch_size(batcher, pushed)

    def test_mixed_event_types(self):
        user = User(user_id="u1", anonymous_id="a1")
        events = [
            Identify(user=user, traits={"email": "u1@example.com"}),
            Track(user=user, event="Order Completed", properties={"total": 9.99}),
        ]
        batcher = Batcher()
        accepted = []
        for msg in events:
            accepted.append(batcher.push(msg).message)
        assert batcher.size == batch_size(batcher, accepted)

    def test_never_exceeds_max(self, make_track):
        batcher = Batcher(max_size=600)
        for i in range(50):
            result = batcher.push(make_track(i))
            assert batcher.size <= batcher.max_size
            if result.status is PushStatus.FULL:
                break
        else:
            pytest.fail("buffer never reported full")

    def test_scenario_two_fit_third_overflows(self, make_track):
        events = [make_track(i) for i in range(1, 4)]
        sizes = [json_size(e.to_dict()) for e in events]
        assert len(set(sizes)) == 1

        batcher = Batcher()
        # Room for exactly two events and the comma between them
        batcher.max_size = batcher.envelope_size + 2 * sizes[0] + 1

        assert batcher.push(events[0]).accepted
        assert batcher.size == batcher.envelope_size + sizes[0]
        assert batcher.push(events[1]).accepted
        assert batcher.size == batcher.max_size

        result = batcher.push(events[2])
        assert result.status is PushStatus.FULL
        assert len(batcher) == 2


class TestInvalidMessages:
    """Events that are not valid JSON never enter the buffer."""

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_float_rejected(self, make_track, value):
        batcher = Batcher()
        batcher.push(make_track(1))
        size_before = batcher.size

        with pytest.raises(InvalidMessage) as exc_info:
            batcher.push(make_track(2, score=value))

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert len(batcher) == 1
        assert batcher.size == size_before

    def test_mixed_key_types_rejected(self):
        batcher = Batcher()
        msg = Track(user=User(user_id="u"), event="E", properties={1: "a", "b": 2})

        with pytest.raises(InvalidMessage):
            batcher.push(msg)

        assert batcher.is_empty()
        assert batcher.size == batcher.envelope_size

    def test_buffered_batch_stays_valid_json(self, make_track):
        batcher = Batcher()
        batcher.push(make_track(1))
        with pytest.raises(InvalidMessage):
            batcher.push(make_track(2, score=float("nan")))
        batcher.push(make_track(3))

        body = encode_json(batcher.to_batch(batcher.take()).to_dict())
        payload = json.loads(body, parse_constant=pytest.fail)
        assert [e["properties"]["index"] for e in payload["batch"]] == [1, 3]


class TestCopyOnPush:
    """Buffered events are isolated from later changes by the caller."""

    def test_mutating_properties_after_push(self):
        properties = {"plan": "free"}
        batcher = Batcher()
        batcher.push(Track(user=User(user_id="u"), event="E", properties=properties))
        size = batcher.size

        properties["plan"] = "enterprise-with-a-much-longer-name"

        buffered = batcher.take()
        assert buffered[0].properties == {"plan": "free"}
        assert size == batch_size(batcher, buffered)


class TestTake:
    """Tests for draining the buffer."""

    def test_take_returns_events_in_order(self, make_track):
        batcher = Batcher()
        events = [make_track(i) for i in range(5)]
        for e in events:
            batcher.push(e)

        assert batcher.take() == events
        assert batcher.is_empty()
        assert batcher.size == batcher.envelope_size

    def test_take_on_empty(self):
        assert Batcher().take() == []

    def test_context_survives_take(self, make_track):
        context = {"library": {"name": "segment_sdk"}}
        batcher = Batcher(context=context)
        batcher.push(make_track())
        batcher.take()

        assert batcher.context == context
        assert batcher.envelope_size == json_size({"batch": [], "context": context})

    def test_buffer_reusable_after_take(self, make_track):
        batcher = Batcher()
        batcher.push(make_track(1))
        batcher.take()
        batcher.push(make_track(2))

        assert len(batcher) == 1
        assert batcher.size == batch_size(batcher, [make_track(2)])

    def test_to_batch_carries_context(self, make_track):
        batcher = Batcher(context={"k": "v"}, integrations={"All": True})
        batch = batcher.to_batch([make_track()])

        assert isinstance(batch, Batch)
        assert batch.context == {"k": "v"}
        assert batch.integrations == {"All": True}


class TestQueries:
    """len() and is_empty() have no side effects."""

    def test_repeated_queries(self, make_track):
        batcher = Batcher()
        batcher.push(make_track())
        size = batcher.size
        for _ in range(3):
            assert len(batcher) == 1
            assert not batcher.is_empty()
        assert batcher.size == size


class TestAutoTimestamp:
    """Tests for automatic timestamping."""

    def test_missing_timestamp_is_stamped(self):
        batcher = Batcher()
        msg = Track(user=User(user_id="u"), event="E")

        result = batcher.push(msg)

        assert msg.timestamp is None
        assert result.message.timestamp is not None
        assert result.message.timestamp.tzinfo is not None
        assert batcher.take()[0].timestamp == result.message.timestamp

    def test_existing_timestamp_kept(self, make_track):
        msg = make_track()
        result = Batcher().push(msg)
        assert result.message.timestamp == msg.timestamp
        assert result.message == msg

    def test_disabled(self):
        batcher = Batcher(auto_timestamp=False)
        result = batcher.push(Track(user=User(user_id="u"), event="E"))
        assert result.message.timestamp is None
