"""
Service container for dependency injection.
Centralizes service initialization and provides access to all services.
"""
import logging
from typing import Optional

from dailyops.cache import TTLCache
from dailyops.config import Settings
from dailyops.database import ChecklistDatabase
from dailyops.services import ChecklistQueryService, CompletionTracker, DayGate, InstanceGenerator
from dailyops.storage import ActorDirectory, SQLiteTemplateSource, StaticActorDirectory, TemplateSource

logger = logging.getLogger(__name__)

# Global service instance
_service_instance: Optional['ServiceContainer'] = None


class ServiceContainer:
    """Container for all application services."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        template_source: Optional[TemplateSource] = None,
        actor_directory: Optional[ActorDirectory] = None,
    ):
        self.settings = settings or Settings.from_env()
        tz = self.settings.tzinfo

        # Initialize database
        self.db = ChecklistDatabase(self.settings.db_path)

        # External collaborators; local implementations unless injected
        self.template_source = template_source or SQLiteTemplateSource(self.db)
        if self.settings.templates_file and isinstance(self.template_source, SQLiteTemplateSource):
            self.template_source.seed_from_json_file(self.settings.templates_file)
        if actor_directory is None:
            if self.settings.actors_file:
                actor_directory = StaticActorDirectory.from_json_file(
                    self.settings.actors_file, self.settings.unknown_actor_name
                )
            else:
                actor_directory = StaticActorDirectory(unknown_name=self.settings.unknown_actor_name)
        self.actor_directory = actor_directory

        # One read cache per container
        self.cache = TTLCache(ttl_seconds=self.settings.cache_ttl_seconds)

        self.generator = InstanceGenerator(self.db, self.template_source, cache=self.cache, tz=tz)
        self.tracker = CompletionTracker(self.db, self.actor_directory, cache=self.cache)
        self.gate = DayGate(
            self.db, self.generator, cache=self.cache, tz=tz, admin_roles=self.settings.admin_roles
        )
        self.query = ChecklistQueryService(self.db, self.gate, cache=self.cache, tz=tz)
        logger.info(f"Services initialized (db={self.settings.db_path}, cache_ttl={self.settings.cache_ttl_seconds}s)")


def get_services() -> ServiceContainer:
    """Get the global service container instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = ServiceContainer()
    return _service_instance


def set_services(container: Optional[ServiceContainer]) -> None:
    """Replace the global service container (used by tests)."""
    global _service_instance
    _service_instance = container


def reset_services() -> None:
    set_services(None)


def get_db() -> ChecklistDatabase:
    """Get the database instance from the service container."""
    return get_services().db


def get_generator() -> InstanceGenerator:
    return get_services().generator


def get_tracker() -> CompletionTracker:
    return get_services().tracker


def get_gate() -> DayGate:
    return get_services().gate


def get_query() -> ChecklistQueryService:
    return get_services().query
