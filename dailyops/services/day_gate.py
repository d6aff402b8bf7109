"""
Day gate - progress of a day and the guarded "day completed" transition.

Completing a day writes the day's completion record and generates the next
day's instances. Both steps are idempotent, so a failed call can be retried as
a whole.
"""
import logging
from datetime import datetime, tzinfo
from typing import Any, Callable, Dict, Iterable, Optional

from dailyops.auth.permissions import CANCEL_DAY_COMPLETION, require_elevated_role
from dailyops.cache import TTLCache, day_prefix, safe_invalidate
from dailyops.database import ChecklistDatabase
from dailyops.dates import DayLike, day_key, format_instant, next_day, utc_now
from dailyops.exceptions import DayCompletionNotFoundError
from dailyops.monitoring import day_completions_cancelled_total, days_completed_total
from dailyops.services.instance_generator import InstanceGenerator
from dailyops.services.projections import calculate_percentage
from dailyops.sites import site_key
from dailyops.tracing import trace_span

logger = logging.getLogger(__name__)


def can_proceed(progress: Dict[str, Any], day_completed: bool) -> bool:
    """
    The day gate rule over already-fetched values: the day has at least one
    instance, every instance is completed, and the day is not completed yet.
    """
    return progress["total"] > 0 and progress["completed"] == progress["total"] and not day_completed


class DayGate:
    """Service for day progress, rollover and its administrative reversal."""

    def __init__(
        self,
        db: ChecklistDatabase,
        generator: InstanceGenerator,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], datetime] = utc_now,
        tz: Optional[tzinfo] = None,
        admin_roles: Optional[Iterable[str]] = None,
    ):
        self.db = db
        self.generator = generator
        self.cache = cache
        self.clock = clock
        self.tz = tz
        self.admin_roles = list(admin_roles) if admin_roles is not None else None

    def _cached(self, key: str, loader):
        if self.cache is None:
            return loader()
        return self.cache.get_or_load(key, loader)

    def progress(self, day: DayLike, site_id: str) -> Dict[str, Any]:
        """
        Aggregate progress of a day.

        Returns:
            Dictionary with day, site_id, total, completed and percentage
            (0 when the day has no instances)
        """
        site_id = site_key(site_id)
        key = day_key(day, self.tz)
        total, completed = self._cached(
            day_prefix(site_id, key) + "progress",
            lambda: self.db.count_progress(key, site_id),
        )
        return {
            "day": key,
            "site_id": site_id,
            "total": total,
            "completed": completed,
            "percentage": calculate_percentage(completed, total),
        }

    def get_day_completion(self, day: DayLike, site_id: str) -> Optional[Dict[str, Any]]:
        site_id = site_key(site_id)
        key = day_key(day, self.tz)
        return self._cached(
            day_prefix(site_id, key) + "completion",
            lambda: self.db.get_day_completion(key, site_id),
        )

    def is_day_completed(self, day: DayLike, site_id: str) -> bool:
        return self.get_day_completion(day, site_id) is not None

    def can_proceed_to_next_day(self, day: DayLike, site_id: str) -> bool:
        """
        True when the day has at least one instance, every instance is
        completed, and the day has not been completed already.
        """
        return can_proceed(self.progress(day, site_id), self.is_day_completed(day, site_id))

    def complete_day(self, day: DayLike, site_id: str, actor_id: str) -> Dict[str, Any]:
        """
        Mark a day completed and generate the next day.

        The gate is re-checked inside the write transaction, so a stale client
        check cannot let an incomplete day through. If the day is already
        completed (a retry, or a concurrent caller that won), no second record
        is written and only the idempotent next-day generation runs again.

        Returns:
            Dictionary with record, already_completed, next_day and generation

        Raises:
            PreconditionFailedError: If the day has no instances or any is pending;
                nothing is written and the next day is not generated
            ValueError: If actor_id is empty
        """
        if not actor_id or not str(actor_id).strip():
            raise ValueError("actor_id is required")
        site_id = site_key(site_id)
        key = day_key(day, self.tz)
        following = next_day(key).isoformat()

        with trace_span("checklist.complete_day", {"site_id": site_id, "day": key}):
            try:
                record, already_completed = self.db.complete_day(
                    key, site_id, str(actor_id).strip(), format_instant(self.clock())
                )
            finally:
                safe_invalidate(self.cache, day_prefix(site_id, key), day_prefix(site_id, following))

            if already_completed:
                logger.info(f"Day {key} already completed for site {site_id}; re-running next-day generation")
            else:
                days_completed_total.inc()
                logger.info(f"Day {key} completed for site {site_id} by {actor_id}")

            generation = self.generator.generate(following, site_id)

        return {
            "record": record,
            "already_completed": already_completed,
            "next_day": following,
            "generation": generation,
        }

    def cancel_day_completion(self, day: DayLike, site_id: str, actor_id: str, role: str) -> Dict[str, Any]:
        """
        Administrative reversal: clear a day's completion record.

        The next day's instances are left as they are; reverting a
        day does not retract the work already generated for tomorrow.

        Raises:
            PermissionDeniedError: If role is not an elevated role
            DayCompletionNotFoundError: If the day is not completed
        """
        site_id = site_key(site_id)
        key = day_key(day, self.tz)
        require_elevated_role(role, CANCEL_DAY_COMPLETION, self.admin_roles, actor_id=actor_id)

        with trace_span("checklist.cancel_day_completion", {"site_id": site_id, "day": key}):
            record = self.db.cancel_day_completion(key, site_id, actor_id, format_instant(self.clock()))
            safe_invalidate(self.cache, day_prefix(site_id, key), day_prefix(site_id, next_day(key).isoformat()))
            if record is None:
                raise DayCompletionNotFoundError(key, site_id)

        day_completions_cancelled_total.inc()
        logger.warning(f"Completion of day {key} for site {site_id} cancelled by {actor_id} ({role})")
        return record
