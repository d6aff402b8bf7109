"""
Settings for the daily operations service.
All values come from environment variables; nothing is required at import time.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional
from zoneinfo import ZoneInfo


DEFAULT_ADMIN_ROLES = ["system_admin", "hotel_admin"]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


@dataclass
class Settings:
    """Service configuration."""
    db_path: str = "/app/data/dailyops.db"
    cache_ttl_seconds: float = 60.0
    admin_roles: List[str] = field(default_factory=lambda: list(DEFAULT_ADMIN_ROLES))
    timezone: Optional[str] = None
    service_port: int = 8004
    log_level: str = "INFO"
    unknown_actor_name: str = "Unknown user"
    templates_file: Optional[str] = None
    actors_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        return cls(
            db_path=os.getenv("DAILYOPS_DB_PATH", "/app/data/dailyops.db"),
            cache_ttl_seconds=_env_float("DAILYOPS_CACHE_TTL_SECONDS", 60.0),
            admin_roles=_env_list("DAILYOPS_ADMIN_ROLES", DEFAULT_ADMIN_ROLES),
            timezone=os.getenv("DAILYOPS_TIMEZONE") or None,
            service_port=_env_int("DAILYOPS_SERVICE_PORT", 8004),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            unknown_actor_name=os.getenv("DAILYOPS_UNKNOWN_ACTOR_NAME", "Unknown user"),
            templates_file=os.getenv("DAILYOPS_TEMPLATES_FILE") or None,
            actors_file=os.getenv("DAILYOPS_ACTORS_FILE") or None,
        )

    @property
    def tzinfo(self):
        """Timezone used to turn instants into calendar days (None = system local)."""
        return ZoneInfo(self.timezone) if self.timezone else None
