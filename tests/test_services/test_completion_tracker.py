"""
Unit tests for CompletionTracker.
"""
from unittest.mock import patch

import pytest

from dailyops.exceptions import InstanceNotFoundError, TransientStoreError
from dailyops.services.completion_tracker import describe_comment, describe_completion
from tests.conftest import DAY, SITE


@pytest.fixture
def instance_id(generated_day):
    return generated_day["instance_ids"][0]


class TestToggleCompletion:
    """Tests for toggle_completion method."""

    def test_complete_stamps_actor_and_time(self, tracker, instance_id):
        instance = tracker.toggle_completion(instance_id, True, "u-1")

        assert instance["completed"] is True
        assert instance["completed_by"] == "u-1"
        # The generator took the first tick of the clock
        assert instance["completed_at"] == "2024-05-01T08:00:01.000000+00:00"
        entry = instance["history"][0]
        assert entry["action"] == "completed"
        assert entry["actor_id"] == "u-1"
        assert entry["actor_name"] == "Alice Martin"
        assert entry["description"] == "Task marked as completed"
        assert entry["changes"] == [{"field": "completed", "old_value": False, "new_value": True}]

    def test_uncomplete_clears_stamp(self, tracker, instance_id):
        tracker.toggle_completion(instance_id, True, "u-1")
        instance = tracker.toggle_completion(instance_id, False, "u-1")

        assert instance["completed"] is False
        assert instance["completed_by"] is None
        assert instance["completed_at"] is None
        assert [h["action"] for h in instance["history"]] == ["completed", "uncompleted"]

    def test_n_toggles_append_n_entries(self, tracker, instance_id):
        requested = [True, False, True, True, False, True]
        for value in requested:
            instance = tracker.toggle_completion(instance_id, value, "u-1")

        assert len(instance["history"]) == len(requested)
        assert instance["completed"] is requested[-1]
        assert [h["changes"][0]["new_value"] for h in instance["history"]] == requested

    def test_repeated_state_still_appends(self, tracker, instance_id):
        tracker.toggle_completion(instance_id, True, "u-1")
        instance = tracker.toggle_completion(instance_id, True, "admin-1")

        assert len(instance["history"]) == 2
        assert instance["history"][1]["changes"] == [{"field": "completed", "old_value": True, "new_value": True}]
        assert instance["completed_by"] == "admin-1"

    def test_unknown_actor_name(self, tracker, instance_id):
        instance = tracker.toggle_completion(instance_id, True, "ghost")
        assert instance["history"][0]["actor_name"] == "Unknown user"
        assert instance["completed_by"] == "ghost"

    def test_missing_instance(self, tracker):
        with pytest.raises(InstanceNotFoundError):
            tracker.toggle_completion(999, True, "u-1")

    def test_actor_required(self, tracker, instance_id):
        with pytest.raises(ValueError, match="actor_id"):
            tracker.toggle_completion(instance_id, True, " ")

    def test_idempotency_key_replay(self, tracker, instance_id):
        tracker.toggle_completion(instance_id, True, "u-1", idempotency_key="req-1")
        instance = tracker.toggle_completion(instance_id, True, "u-1", idempotency_key="req-1")
        assert len(instance["history"]) == 1

        instance = tracker.toggle_completion(instance_id, False, "u-1", idempotency_key="req-2")
        assert len(instance["history"]) == 2

    def test_other_instances_untouched(self, tracker, generated_day, db):
        first, second = generated_day["instance_ids"][:2]
        tracker.toggle_completion(first, True, "u-1")
        assert db.get_instance(second)["completed"] is False
        assert db.get_instance(second)["history"] == []

    def test_invalidates_cached_projections(self, tracker, query, gate, instance_id):
        assert gate.progress(DAY, SITE)["completed"] == 0
        query.get_instance(instance_id)

        tracker.toggle_completion(instance_id, True, "u-1")

        assert gate.progress(DAY, SITE)["completed"] == 1
        assert query.get_instance(instance_id)["completed"] is True

    def test_store_failure_propagates(self, tracker, db, instance_id):
        with patch.object(db, "set_completion", side_effect=TransientStoreError("locked", operation="set_completion")):
            with pytest.raises(TransientStoreError):
                tracker.toggle_completion(instance_id, True, "u-1")


class TestAddComment:
    """Tests for add_comment method."""

    def test_comment_and_audit_entry(self, tracker, instance_id):
        instance = tracker.add_comment(instance_id, "  Towels missing in 204  ", "u-1")

        assert instance["completed"] is False
        comment = instance["comments"][0]
        assert comment["content"] == "Towels missing in 204"
        assert comment["author_id"] == "u-1"
        assert comment["author_name"] == "Alice Martin"
        entry = instance["history"][0]
        assert entry["action"] == "commented"
        assert entry["description"] == 'Comment added: "Towels missing in 204"'

    def test_comment_keeps_completion_state(self, tracker, instance_id):
        tracker.toggle_completion(instance_id, True, "u-1")
        instance = tracker.add_comment(instance_id, "Done early", "admin-1")
        assert instance["completed"] is True
        assert instance["completed_by"] == "u-1"

    def test_empty_comment(self, tracker, instance_id):
        with pytest.raises(ValueError, match="empty"):
            tracker.add_comment(instance_id, "   ", "u-1")

    def test_missing_instance(self, tracker):
        with pytest.raises(InstanceNotFoundError):
            tracker.add_comment(999, "hello", "u-1")

    def test_idempotency_key_replay(self, tracker, instance_id):
        tracker.add_comment(instance_id, "hello", "u-1", idempotency_key="c-1")
        instance = tracker.add_comment(instance_id, "hello", "u-1", idempotency_key="c-1")
        assert len(instance["comments"]) == 1
        assert len(instance["history"]) == 1


def test_describe_completion():
    assert describe_completion(True) == "Task marked as completed"
    assert describe_completion(False) == "Task marked as not completed"


def test_describe_comment_truncates_long_content():
    content = "x" * 60
    assert describe_comment(content) == f'Comment added: "{"x" * 50}..."'
    assert describe_comment("short") == 'Comment added: "short"'
