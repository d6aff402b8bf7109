"""
Instance generator - turns the active templates of a site into one day's task instances.
This layer contains no HTTP framework dependencies.
"""
import logging
from datetime import datetime, tzinfo
from typing import Any, Callable, Dict, List, Optional

from dailyops.cache import TTLCache, day_prefix, safe_invalidate
from dailyops.database import ChecklistDatabase
from dailyops.dates import DayLike, day_key, format_instant, utc_now
from dailyops.exceptions import ServiceError, TemplateSourceUnavailableError
from dailyops.monitoring import instances_generated_total
from dailyops.sites import site_key
from dailyops.storage.interface import TemplateSource
from dailyops.tracing import trace_span

logger = logging.getLogger(__name__)

REQUIRED_TEMPLATE_FIELDS = ("id", "title", "service")


def snapshot_template(template: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy the fields an instance keeps from its template. Instances are not
    linked to the live template, so later template edits leave history intact.

    Raises:
        ValueError: If the template lacks an id, title or service
    """
    missing = [f for f in REQUIRED_TEMPLATE_FIELDS if not template.get(f)]
    if missing:
        raise ValueError(f"Template {template.get('id', '?')} is missing {', '.join(missing)}")
    return {
        "template_id": str(template["id"]),
        "title": template["title"],
        "description": template.get("description") or "",
        "service": template["service"],
        "order": int(template.get("order") or 0),
        "image_url": template.get("image_url") or None,
        "document_url": template.get("document_url") or None,
        "document_name": template.get("document_name") or None,
    }


class InstanceGenerator:
    """Creates per-day, per-site task instances from templates."""

    def __init__(
        self,
        db: ChecklistDatabase,
        template_source: TemplateSource,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], datetime] = utc_now,
        tz: Optional[tzinfo] = None,
    ):
        self.db = db
        self.template_source = template_source
        self.cache = cache
        self.clock = clock
        self.tz = tz

    def generate(self, day: DayLike, site_id: str) -> Dict[str, Any]:
        """
        Generate the instances of ``day`` for ``site_id``.

        A day that already has any instance is left alone (no-op), so calling
        this twice has the same effect as calling it once. A site without
        active templates gets a zero-task day.

        Returns:
            Dictionary with day, site_id, created (count), instance_ids and
            skipped (True when the day already had instances)

        Raises:
            ValueError: If site_id is empty or day is not a valid date
            TemplateSourceUnavailableError: If templates cannot be fetched;
                nothing is written in that case
        """
        site_id = site_key(site_id)
        key = day_key(day, self.tz)
        with trace_span("checklist.generate", {"site_id": site_id, "day": key}):
            if self.db.count_instances(key, site_id) > 0:
                logger.debug(f"Instances already exist for site {site_id} on {key}; generation skipped")
                return self._result(key, site_id, [], skipped=True)

            snapshots = self._load_snapshots(key, site_id)
            instance_ids = self.db.create_instances(
                key, site_id, snapshots, format_instant(self.clock()), require_empty_day=True
            )
            # A concurrent generator may have filled the day between our check and our write
            skipped = bool(snapshots) and not instance_ids
            safe_invalidate(self.cache, day_prefix(site_id, key))

        instances_generated_total.labels(mode="generate").inc(len(instance_ids))
        logger.info(f"Generated {len(instance_ids)} task instances for site {site_id} on {key}")
        return self._result(key, site_id, instance_ids, skipped=skipped)

    def initialize_day(self, day: DayLike, site_id: str) -> Dict[str, Any]:
        """
        Make sure a day is populated: generate it when empty, otherwise add
        instances for active templates that have none yet (templates activated
        after the day was generated). A completed day is never extended.

        Returns:
            Same shape as ``generate``
        """
        site_id = site_key(site_id)
        key = day_key(day, self.tz)
        existing = set(self.db.list_instance_template_ids(key, site_id))
        if not existing:
            return self.generate(key, site_id)

        if self.db.get_day_completion(key, site_id) is not None:
            logger.info(f"Day {key} is completed for site {site_id}; new templates are not added")
            return self._result(key, site_id, [], skipped=True)

        with trace_span("checklist.initialize_day", {"site_id": site_id, "day": key}):
            snapshots = [s for s in self._load_snapshots(key, site_id) if s["template_id"] not in existing]
            if not snapshots:
                return self._result(key, site_id, [], skipped=True)
            instance_ids = self.db.create_instances(
                key, site_id, snapshots, format_instant(self.clock()), require_empty_day=False
            )
            safe_invalidate(self.cache, day_prefix(site_id, key))

        instances_generated_total.labels(mode="initialize").inc(len(instance_ids))
        logger.info(f"Added {len(instance_ids)} new task instances for site {site_id} on {key}")
        return self._result(key, site_id, instance_ids, skipped=False)

    def _load_snapshots(self, day: str, site_id: str) -> List[Dict[str, Any]]:
        """Fetch and snapshot templates. Any failure aborts before anything is written."""
        try:
            templates = self.template_source.get_active_templates(site_id)
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Template source failed for site {site_id}: {e}", exc_info=True)
            raise TemplateSourceUnavailableError(
                f"Could not fetch templates for site {site_id}",
                site_id=site_id, day=day, original_error=e,
            ) from e
        try:
            return [snapshot_template(t) for t in templates]
        except ValueError as e:
            raise TemplateSourceUnavailableError(
                f"Template source returned an invalid template for site {site_id}: {e}",
                site_id=site_id, day=day, original_error=e,
            ) from e

    @staticmethod
    def _result(day: str, site_id: str, instance_ids: List[int], skipped: bool) -> Dict[str, Any]:
        return {
            "day": day,
            "site_id": site_id,
            "created": len(instance_ids),
            "instance_ids": instance_ids,
            "skipped": skipped,
        }
