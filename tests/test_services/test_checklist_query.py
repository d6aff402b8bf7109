"""
Unit tests for ChecklistQueryService.
"""
import threading
from unittest.mock import MagicMock

import pytest

from dailyops.exceptions import InstanceNotFoundError
from dailyops.services.checklist_query import ChecklistQueryService
from dailyops.services.day_gate import DayGate
from tests.conftest import DAY, SITE


class TestListInstances:
    """Tests for list_instances and service_groups."""

    def test_display_order(self, query, generated_day):
        instances = query.list_instances(DAY, SITE)
        assert [i["template_id"] for i in instances] == ["tpl-rooms", "tpl-desk", "tpl-linen"]

    def test_filters(self, query, tracker, generated_day):
        tracker.toggle_completion(generated_day["instance_ids"][0], True, "u-1")

        assert [i["template_id"] for i in query.list_instances(DAY, SITE, service="Housekeeping")] == [
            "tpl-rooms", "tpl-linen",
        ]
        assert [i["template_id"] for i in query.list_instances(DAY, SITE, status="completed")] == ["tpl-rooms"]
        assert [i["template_id"] for i in query.list_instances(DAY, SITE, status="pending")] == [
            "tpl-desk", "tpl-linen",
        ]
        assert [i["template_id"] for i in query.list_instances(DAY, SITE, search="DESK")] == ["tpl-desk"]

    def test_invalid_status(self, query, generated_day):
        with pytest.raises(ValueError):
            query.list_instances(DAY, SITE, status="finished")

    def test_unknown_day_is_empty(self, query):
        assert query.list_instances("2030-01-01", SITE) == []
        assert query.service_groups("2030-01-01", SITE) == []

    def test_service_groups(self, query, tracker, generated_day):
        tracker.toggle_completion(generated_day["instance_ids"][0], True, "u-1")
        groups = query.service_groups(DAY, SITE)

        assert [g["service"] for g in groups] == ["Housekeeping", "Reception"]
        housekeeping = groups[0]
        assert (housekeeping["total"], housekeeping["completed"], housekeeping["percentage"]) == (2, 1, 50)
        assert [t["template_id"] for t in housekeeping["tasks"]] == ["tpl-rooms", "tpl-linen"]

    def test_day_listing_is_cached(self, db, gate, cache, generated_day):
        spy = MagicMock(wraps=db)
        service = ChecklistQueryService(spy, gate, cache=cache)
        service.list_instances(DAY, SITE)
        service.list_instances(DAY, SITE, status="pending")
        service.service_groups(DAY, SITE)
        spy.list_instances.assert_called_once_with(DAY, SITE)


class TestInstanceViews:
    """Tests for get_instance, history and comments."""

    def test_get_instance(self, query, generated_day):
        instance = query.get_instance(generated_day["instance_ids"][1])
        assert instance["template_id"] == "tpl-desk"

    def test_missing_instance_is_not_cached(self, query, cache):
        with pytest.raises(InstanceNotFoundError):
            query.get_instance(999)
        assert cache.get("instance:999", "absent") == "absent"

    def test_history_newest_first(self, query, tracker, generated_day):
        instance_id = generated_day["instance_ids"][0]
        tracker.toggle_completion(instance_id, True, "u-1")
        tracker.add_comment(instance_id, "checked twice", "u-1")
        tracker.toggle_completion(instance_id, False, "admin-1")

        history = query.instance_history(instance_id)
        assert [h["action"] for h in history] == ["uncompleted", "commented", "completed"]
        oldest_first = query.instance_history(instance_id, newest_first=False)
        assert [h["action"] for h in oldest_first] == ["completed", "commented", "uncompleted"]

    def test_comments_oldest_first(self, query, tracker, generated_day):
        instance_id = generated_day["instance_ids"][0]
        tracker.add_comment(instance_id, "first", "u-1")
        tracker.add_comment(instance_id, "second", "u-1")
        assert [c["content"] for c in query.instance_comments(instance_id)] == ["first", "second"]
        assert [c["content"] for c in query.instance_comments(instance_id, newest_first=True)] == ["second", "first"]

    def test_history_of_missing_instance(self, query):
        with pytest.raises(InstanceNotFoundError):
            query.instance_history(999)


class TestDayOverview:
    """Tests for day_overview."""

    def test_overview_of_fresh_day(self, query, generated_day):
        overview = query.day_overview(DAY, SITE)
        assert overview["total"] == 3
        assert overview["completed"] == 0
        assert overview["percentage"] == 0
        assert overview["can_proceed_to_next_day"] is False
        assert overview["day_completed"] is False
        assert overview["completion"] is None
        assert len(overview["groups"]) == 2

    def test_filters_only_narrow_groups(self, query, generated_day):
        overview = query.day_overview(DAY, SITE, service="Reception")
        assert overview["total"] == 3
        assert [g["service"] for g in overview["groups"]] == ["Reception"]

    def test_overview_of_completed_day(self, query, tracker, gate, generated_day):
        for instance_id in generated_day["instance_ids"]:
            tracker.toggle_completion(instance_id, True, "u-1")
        assert query.day_overview(DAY, SITE)["can_proceed_to_next_day"] is True

        gate.complete_day(DAY, SITE, "u-1")
        overview = query.day_overview(DAY, SITE)
        assert overview["percentage"] == 100
        assert overview["day_completed"] is True
        assert overview["can_proceed_to_next_day"] is False
        assert overview["completion"]["completed_by"] == "u-1"


class TestReadAfterWrite:
    """A listing loaded before a write must not outlive the write in the cache."""

    def test_toggle_during_listing_load(self, db, gate, cache, tracker, generated_day):
        rows_read = threading.Event()
        toggled = threading.Event()

        def slow_list_instances(day, site_id):
            rows = db.list_instances(day, site_id)
            rows_read.set()
            toggled.wait(timeout=5)
            return rows

        spy = MagicMock(wraps=db)
        spy.list_instances.side_effect = slow_list_instances
        service = ChecklistQueryService(spy, gate, cache=cache)
        first_id = generated_day["instance_ids"][0]

        reader = threading.Thread(target=service.list_instances, args=(DAY, SITE))
        reader.start()
        assert rows_read.wait(timeout=5)
        tracker.toggle_completion(first_id, True, "u-1")
        toggled.set()
        reader.join(timeout=5)

        spy.list_instances.side_effect = None
        listing = {i["id"]: i["completed"] for i in service.list_instances(DAY, SITE)}
        assert listing[first_id] is True

    def test_toggle_during_progress_load(self, db, generator, cache, tracker, generated_day):
        counted = threading.Event()
        toggled = threading.Event()

        def slow_count_progress(day, site_id):
            counts = db.count_progress(day, site_id)
            counted.set()
            toggled.wait(timeout=5)
            return counts

        spy = MagicMock(wraps=db)
        spy.count_progress.side_effect = slow_count_progress
        slow_gate = DayGate(spy, generator, cache=cache)

        reader = threading.Thread(target=slow_gate.progress, args=(DAY, SITE))
        reader.start()
        assert counted.wait(timeout=5)
        tracker.toggle_completion(generated_day["instance_ids"][0], True, "u-1")
        toggled.set()
        reader.join(timeout=5)

        spy.count_progress.side_effect = None
        assert slow_gate.progress(DAY, SITE)["completed"] == 1
