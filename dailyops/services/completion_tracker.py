"""
Completion tracker - toggles task instances and records comments.
Every call appends to the instance's audit trail; nothing is ever rewritten.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from dailyops.cache import TTLCache, day_prefix, instance_key, safe_invalidate
from dailyops.database import ChecklistDatabase
from dailyops.dates import format_instant, utc_now
from dailyops.exceptions import InstanceNotFoundError
from dailyops.monitoring import audit_entries_total
from dailyops.storage.interface import ActorDirectory
from dailyops.tracing import trace_span

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 50


def describe_completion(completed: bool) -> str:
    return "Task marked as completed" if completed else "Task marked as not completed"


def describe_comment(content: str) -> str:
    preview = content[:COMMENT_PREVIEW_LENGTH]
    if len(content) > COMMENT_PREVIEW_LENGTH:
        preview += "..."
    return f'Comment added: "{preview}"'


class CompletionTracker:
    """Service for completion state and comments of task instances."""

    def __init__(
        self,
        db: ChecklistDatabase,
        actor_directory: ActorDirectory,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.actor_directory = actor_directory
        self.cache = cache
        self.clock = clock

    def toggle_completion(
        self,
        instance_id: int,
        completed: bool,
        actor_id: str,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Set an instance's completion flag.

        Completing stamps completed_by/completed_at; un-completing clears both.
        One audit entry is appended per call, including a repeated request for
        the state the instance is already in. Concurrent calls are
        last-write-wins on the flag and every call keeps its audit entry.

        Args:
            instance_id: Task instance ID
            completed: Requested state
            actor_id: Who made the change
            idempotency_key: Optional client token; a replayed token writes nothing

        Returns:
            The instance after the change, with comments and history

        Raises:
            InstanceNotFoundError: If the instance does not exist
            ValueError: If actor_id is empty
        """
        actor_id = self._require_actor(actor_id)
        completed = bool(completed)
        with trace_span("checklist.toggle_completion", {"instance_id": instance_id, "completed": completed}):
            applied = self.db.set_completion(
                instance_id,
                completed,
                actor_id,
                self.actor_directory.get_display_name(actor_id),
                format_instant(self.clock()),
                describe_completion(completed),
                idempotency_key=idempotency_key,
            )
            if applied is None:
                raise InstanceNotFoundError(instance_id)
            instance = self._reload(instance_id)

        if applied:
            audit_entries_total.labels(action="completed" if completed else "uncompleted").inc()
            logger.info(
                f"Instance {instance_id} marked {'completed' if completed else 'pending'} by {actor_id}"
            )
        return instance

    def add_comment(
        self,
        instance_id: int,
        content: str,
        actor_id: str,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Append a comment and a correlated ``commented`` audit entry.
        Completion state is never touched.

        Returns:
            The instance after the change, with comments and history

        Raises:
            InstanceNotFoundError: If the instance does not exist
            ValueError: If content or actor_id is empty
        """
        actor_id = self._require_actor(actor_id)
        if content is None or not content.strip():
            raise ValueError("comment content cannot be empty")
        content = content.strip()
        with trace_span("checklist.add_comment", {"instance_id": instance_id}):
            applied = self.db.add_comment(
                instance_id,
                content,
                actor_id,
                self.actor_directory.get_display_name(actor_id),
                format_instant(self.clock()),
                describe_comment(content),
                idempotency_key=idempotency_key,
            )
            if applied is None:
                raise InstanceNotFoundError(instance_id)
            instance = self._reload(instance_id)

        if applied:
            audit_entries_total.labels(action="commented").inc()
            logger.info(f"Comment added to instance {instance_id} by {actor_id}")
        return instance

    def _reload(self, instance_id: int) -> Dict[str, Any]:
        """Fetch the fresh instance and drop cached projections of its day."""
        instance = self.db.get_instance(instance_id)
        if instance is None:
            raise InstanceNotFoundError(instance_id)
        safe_invalidate(
            self.cache,
            day_prefix(instance["site_id"], instance["day"]),
            keys=(instance_key(instance_id),),
        )
        return instance

    @staticmethod
    def _require_actor(actor_id: str) -> str:
        if not actor_id or not str(actor_id).strip():
            raise ValueError("actor_id is required")
        return str(actor_id).strip()
