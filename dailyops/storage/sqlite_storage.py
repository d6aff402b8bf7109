"""
Implementations of the collaborator interfaces.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dailyops.database import ChecklistDatabase
from dailyops.dates import format_instant, utc_now
from .interface import ActorDirectory, TemplateSource

logger = logging.getLogger(__name__)


class SQLiteTemplateSource(TemplateSource):
    """Reads templates from the ``task_templates`` table of the checklist database."""

    def __init__(self, db: ChecklistDatabase):
        self._db = db

    def get_active_templates(self, site_id: str) -> List[Dict[str, Any]]:
        templates = self._db.list_templates(active_only=True)
        eligible = [t for t in templates if site_id in t["sites"]]
        return sorted(eligible, key=lambda t: (t["order"], t["id"]))

    def seed_from_json_file(self, path: str) -> int:
        """
        Upsert the templates listed in a JSON file into the local catalog.

        The file holds a list of template objects (id, title, service, sites,
        order, active, ...). Returns the number of templates written.

        Raises:
            ValueError: If the file does not hold a list of objects
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, list) or not all(isinstance(t, dict) for t in data):
            raise ValueError(f"Template file {path} must contain a JSON list of objects")
        now = format_instant(utc_now())
        for template in data:
            if not template.get("id") or not template.get("title") or not template.get("service"):
                raise ValueError(f"Template {template.get('id', '?')} in {path} is missing id, title or service")
            self._db.save_template(template, now)
        logger.info(f"Seeded {len(data)} templates from {path}")
        return len(data)

    @property
    def db(self) -> ChecklistDatabase:
        return self._db


class StaticActorDirectory(ActorDirectory):
    """Actor names from a fixed mapping, e.g. loaded from a JSON export of the user directory."""

    def __init__(self, names: Optional[Mapping[str, str]] = None, unknown_name: str = "Unknown user"):
        self._names = dict(names or {})
        self.unknown_name = unknown_name

    @classmethod
    def from_json_file(cls, path: str, unknown_name: str = "Unknown user") -> "StaticActorDirectory":
        """
        Load ``{"actor_id": "Display Name", ...}``. A missing file yields an
        empty directory.
        """
        file_path = Path(path)
        if not file_path.exists():
            logger.warning(f"Actor directory file {path} not found; names will show as '{unknown_name}'")
            return cls({}, unknown_name)
        data = json.loads(file_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Actor directory file {path} must contain a JSON object")
        return cls({str(k): str(v) for k, v in data.items()}, unknown_name)

    def get_display_name(self, actor_id: str) -> str:
        name = self._names.get(actor_id, "").strip()
        return name or self.unknown_name
