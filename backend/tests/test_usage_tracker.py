"""
test_usage_tracker.py — Unit tests for the most-used BOQ counter.

Tests cover:
  - Ranking by count with stable ties
  - Durable persistence through the key-value store
  - Recovery from corrupt or ill-typed stored payloads
"""

import json

from app.services.kv_store import InMemoryStore, KeyValueStore
from app.services.usage_tracker import USAGE_KEY, UsageTracker


def _seeded(counts):
    return UsageTracker(InMemoryStore({USAGE_KEY: json.dumps(counts)}))


class TestTopN:

    def test_highest_counts_first(self):
        tracker = _seeded({"A": 3, "B": 5, "C": 1})
        assert [ref for ref, _ in tracker.top_n(2)] == ["B", "A"]

    def test_n_larger_than_map(self):
        tracker = _seeded({"A": 1})
        assert tracker.top_n(5) == [("A", 1)]

    def test_non_positive_n(self):
        tracker = _seeded({"A": 1})
        assert tracker.top_n(0) == []
        assert tracker.top_n(-3) == []

    def test_ties_keep_insertion_order(self):
        tracker = _seeded({"X": 2, "Y": 2, "Z": 2})
        assert [ref for ref, _ in tracker.top_n(3)] == ["X", "Y", "Z"]

    def test_empty(self, tracker):
        assert tracker.top_n(5) == []


class TestRecordUsage:

    def test_increment_and_persist(self, memory_store):
        tracker = UsageTracker(memory_store)
        assert tracker.record_usage("A001") == 1
        assert tracker.record_usage("A001") == 2
        assert json.loads(memory_store.get(USAGE_KEY)) == {"A001": 2}

    def test_survives_restart(self, memory_store):
        UsageTracker(memory_store).record_usage("A002")
        reloaded = UsageTracker(memory_store)
        assert reloaded.count("A002") == 1

    def test_write_failure_keeps_memory_count(self):
        class ReadOnlyStore(KeyValueStore):
            name = "readonly"

            def _get(self, key):
                return None

            def _set(self, key, value):
                raise IOError("quota exceeded")

        tracker = UsageTracker(ReadOnlyStore())
        assert tracker.record_usage("A003") == 1
        assert tracker.count("A003") == 1


class TestCorruptPayload:

    def test_invalid_json(self):
        tracker = UsageTracker(InMemoryStore({USAGE_KEY: "{not json"}))
        assert tracker.as_dict() == {}

    def test_not_a_mapping(self):
        tracker = UsageTracker(InMemoryStore({USAGE_KEY: "[1, 2, 3]"}))
        assert tracker.as_dict() == {}

    def test_negative_or_non_integer_counts(self):
        assert _seeded({"A": -1}).as_dict() == {}
        assert _seeded({"A": "3"}).as_dict() == {}
        assert _seeded({"A": True}).as_dict() == {}

    def test_corrupt_payload_top_n_empty(self):
        tracker = UsageTracker(InMemoryStore({USAGE_KEY: "\x00\x01"}))
        assert tracker.top_n(5) == []

    def test_recovers_and_overwrites(self, memory_store):
        memory_store.set(USAGE_KEY, "garbage")
        tracker = UsageTracker(memory_store)
        tracker.record_usage("A001")
        assert json.loads(memory_store.get(USAGE_KEY)) == {"A001": 1}
