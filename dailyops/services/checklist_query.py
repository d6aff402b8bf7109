"""
Checklist query service - cached read projections for the presentation layer.
"""
import logging
from datetime import tzinfo
from typing import Any, Dict, List, Optional

from dailyops.cache import TTLCache, day_prefix, instance_key
from dailyops.database import ChecklistDatabase
from dailyops.dates import DayLike, day_key
from dailyops.exceptions import InstanceNotFoundError
from dailyops.services.day_gate import DayGate, can_proceed
from dailyops.services import projections
from dailyops.sites import site_key

logger = logging.getLogger(__name__)


class ChecklistQueryService:
    """Read-only views over task instances; never writes."""

    def __init__(
        self,
        db: ChecklistDatabase,
        gate: DayGate,
        cache: Optional[TTLCache] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.db = db
        self.gate = gate
        self.cache = cache
        self.tz = tz

    def _cached(self, key: str, loader):
        if self.cache is None:
            return loader()
        return self.cache.get_or_load(key, loader)

    def _day_instances(self, day: str, site_id: str) -> List[Dict[str, Any]]:
        return self._cached(
            day_prefix(site_id, day) + "instances",
            lambda: self.db.list_instances(day, site_id),
        )

    def list_instances(
        self,
        day: DayLike,
        site_id: str,
        service: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Instances of a day in display order, optionally filtered.

        Raises:
            ValueError: If status is not 'completed' or 'pending', or
                site_id is blank
        """
        site_id = site_key(site_id)
        key = day_key(day, self.tz)
        return projections.filter_instances(self._day_instances(key, site_id), service, status, search)

    def get_instance(self, instance_id: int) -> Dict[str, Any]:
        """
        Raises:
            InstanceNotFoundError: If the instance does not exist
        """
        instance = self._cached(instance_key(instance_id), lambda: self.db.get_instance(instance_id))
        if instance is None:
            # Misses are not worth keeping around
            if self.cache is not None:
                self.cache.invalidate(instance_key(instance_id))
            raise InstanceNotFoundError(instance_id)
        return instance

    def service_groups(
        self,
        day: DayLike,
        site_id: str,
        service: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return projections.group_by_service(self.list_instances(day, site_id, service, status, search))

    def instance_history(self, instance_id: int, newest_first: bool = True) -> List[Dict[str, Any]]:
        return projections.order_history(self.get_instance(instance_id).get("history", []), newest_first)

    def instance_comments(self, instance_id: int, newest_first: bool = False) -> List[Dict[str, Any]]:
        return projections.order_comments(self.get_instance(instance_id).get("comments", []), newest_first)

    def day_overview(
        self,
        day: DayLike,
        site_id: str,
        service: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Everything the day screen shows. Progress and the gate flags always
        cover the whole day; the filters only narrow the listed groups.
        """
        site_id = site_key(site_id)
        key = day_key(day, self.tz)
        progress = self.gate.progress(key, site_id)
        completion = self.gate.get_day_completion(key, site_id)
        return {
            **progress,
            "can_proceed_to_next_day": can_proceed(progress, completion is not None),
            "day_completed": completion is not None,
            "completion": completion,
            "groups": self.service_groups(key, site_id, service, status, search),
        }
