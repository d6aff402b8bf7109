"""
Role checks for administrative checklist operations.

Roles are resolved by the caller's user directory; the engine only compares
the resolved role name against the configured elevated roles.
"""
import logging
from typing import Iterable, Optional

from dailyops.config import DEFAULT_ADMIN_ROLES
from dailyops.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)

CANCEL_DAY_COMPLETION = "CANCEL_DAY_COMPLETION"


def is_elevated_role(role: Optional[str], admin_roles: Optional[Iterable[str]] = None) -> bool:
    if not role:
        return False
    allowed = {r.strip().lower() for r in (admin_roles if admin_roles is not None else DEFAULT_ADMIN_ROLES)}
    return role.strip().lower() in allowed


def require_elevated_role(
    role: Optional[str],
    action: str,
    admin_roles: Optional[Iterable[str]] = None,
    actor_id: Optional[str] = None,
) -> None:
    """
    Raises:
        PermissionDeniedError: If ``role`` is not one of the elevated roles
    """
    if is_elevated_role(role, admin_roles):
        return
    logger.warning(f"Actor {actor_id or '-'} with role {role or '-'} denied {action}")
    raise PermissionDeniedError(
        f"Role '{role or ''}' is not allowed to perform {action}",
        role=role,
        context={"action": action, "actor_id": actor_id},
    )
