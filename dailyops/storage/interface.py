"""
Storage interfaces - contracts for the collaborators the checklist engine reads from.

The template catalog and the user directory are owned elsewhere; the engine
only needs these read operations.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List


class TemplateSource(ABC):
    """Supplies the recurring task templates."""

    @abstractmethod
    def get_active_templates(self, site_id: str) -> List[Dict[str, Any]]:
        """
        Active templates eligible for ``site_id``, ordered by display order.

        Each template carries: id, title, description, service, order, and
        optionally image_url, document_url, document_name.
        """
        pass


class ActorDirectory(ABC):
    """Resolves actor IDs to display names."""

    @abstractmethod
    def get_display_name(self, actor_id: str) -> str:
        """Display name for ``actor_id``; implementations never raise for unknown IDs."""
        pass
