"""Tests for the log buffer store and error classifier."""

import pytest

from watchtower.pipeline import DEFAULT_ERROR_PATTERNS, ErrorClassifier, LogBufferStore


class TestErrorClassifier:
    """Tests for ErrorClassifier."""

    @pytest.mark.parametrize("line", [
        "TypeError: x is undefined",
        "Unhandled Exception: boom",
        "FATAL database unreachable",
        "[ERROR] job 17 failed",
        "GET /api/users [404 Not Found]",
    ])
    def test_matches_default_patterns(self, line):
        assert ErrorClassifier().matches(line)

    def test_ignores_ordinary_lines(self):
        classifier = ErrorClassifier()
        assert not classifier.matches("Job 17 completed in 120ms")
        assert not classifier.matches("error: lowercase is not a pattern")

    def test_custom_patterns(self):
        classifier = ErrorClassifier(["PANIC"])
        assert classifier.matches("PANIC: out of memory")
        assert not classifier.matches("Error: ignored here")
        assert classifier.patterns == ("PANIC",)

    def test_default_patterns_exposed(self):
        assert ErrorClassifier().patterns == DEFAULT_ERROR_PATTERNS


class TestLogBufferStore:
    """Tests for LogBufferStore."""

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            LogBufferStore(capacity=0)

    def test_append_reports_match(self):
        store = LogBufferStore(capacity=5)

        assert store.append(1, "Error: disk full") is True
        assert store.append(1, "retrying") is False

    def test_buffer_created_lazily(self):
        store = LogBufferStore(capacity=5)
        assert 7 not in store
        assert store.snapshot(7) == ()

        store.append(7, "hello")

        assert 7 in store
        assert len(store) == 1

    def test_capacity_keeps_most_recent_lines(self):
        capacity = 50
        store = LogBufferStore(capacity=capacity)

        for i in range(capacity + 10):
            store.append(1, f"line {i}")

        snapshot = store.snapshot(1)
        assert len(snapshot) == capacity
        assert snapshot[0] == "line 10"
        assert snapshot[-1] == f"line {capacity + 9}"

    def test_processes_are_isolated(self):
        store = LogBufferStore(capacity=3)
        store.append(1, "a1")
        store.append(2, "b1")
        store.append(1, "a2")

        assert store.snapshot(1) == ("a1", "a2")
        assert store.snapshot(2) == ("b1",)
        assert sorted(store.process_ids) == [1, 2]

    def test_snapshot_is_a_copy(self):
        store = LogBufferStore(capacity=3)
        store.append(1, "first")
        snapshot = store.snapshot(1)

        store.append(1, "second")

        assert snapshot == ("first",)

    def test_evict(self):
        store = LogBufferStore(capacity=3)
        store.append(1, "line")

        assert store.evict(1) is True
        assert store.evict(1) is False
        assert 1 not in store

    def test_clear(self):
        store = LogBufferStore(capacity=3)
        store.append(1, "a")
        store.append(2, "b")
        store.clear()
        assert len(store) == 0
