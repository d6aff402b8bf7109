"""
Read-side projections over task instances.
Pure functions: no storage access, no caching, inputs are never mutated.
"""
import math
from typing import Any, Dict, Iterable, List, Optional

STATUS_COMPLETED = "completed"
STATUS_PENDING = "pending"
VALID_STATUSES = (STATUS_COMPLETED, STATUS_PENDING)


def calculate_percentage(completed: int, total: int) -> int:
    """Rounded completion percentage (halves round up); 0 when there is nothing to do."""
    if total <= 0:
        return 0
    return int(math.floor(completed / total * 100 + 0.5))


def summarize(instances: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    instances = list(instances)
    total = len(instances)
    completed = sum(1 for instance in instances if instance.get("completed"))
    return {
        "total": total,
        "completed": completed,
        "percentage": calculate_percentage(completed, total),
    }


def matches_search(instance: Dict[str, Any], search: Optional[str]) -> bool:
    """Case-insensitive match on title and description."""
    if not search:
        return True
    needle = search.strip().lower()
    if not needle:
        return True
    title = (instance.get("title") or "").lower()
    description = (instance.get("description") or "").lower()
    return needle in title or needle in description


def filter_instances(
    instances: Iterable[Dict[str, Any]],
    service: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Filter by service, completion status and free-text search.

    Raises:
        ValueError: If status is not 'completed' or 'pending'
    """
    if status is not None and status not in VALID_STATUSES:
        raise ValueError(f"Invalid status '{status}'. Must be one of: {', '.join(VALID_STATUSES)}")
    result = []
    for instance in instances:
        if service and instance.get("service") != service:
            continue
        if status == STATUS_COMPLETED and not instance.get("completed"):
            continue
        if status == STATUS_PENDING and instance.get("completed"):
            continue
        if not matches_search(instance, search):
            continue
        result.append(instance)
    return result


def group_by_service(instances: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Group instances by service category.

    Groups keep the order in which their service first appears in the (display
    ordered) input, and only services that have tasks are returned.
    """
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for instance in instances:
        groups.setdefault(instance.get("service") or "", []).append(instance)
    result = []
    for service, tasks in groups.items():
        group = {"service": service}
        group.update(summarize(tasks))
        group["tasks"] = tasks
        result.append(group)
    return result


def order_history(history: Iterable[Dict[str, Any]], newest_first: bool = True) -> List[Dict[str, Any]]:
    """
    Order audit entries by timestamp. Entries sharing a timestamp keep their
    insertion order relative to each other (reversed when newest first).
    """
    indexed = list(enumerate(history))
    indexed.sort(key=lambda pair: (pair[1].get("timestamp") or "", pair[0]), reverse=newest_first)
    return [entry for _, entry in indexed]


def order_comments(comments: Iterable[Dict[str, Any]], newest_first: bool = False) -> List[Dict[str, Any]]:
    indexed = list(enumerate(comments))
    indexed.sort(key=lambda pair: (pair[1].get("created_at") or "", pair[0]), reverse=newest_first)
    return [comment for _, comment in indexed]
