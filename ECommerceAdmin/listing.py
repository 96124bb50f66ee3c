"""Client-side filtering, searching and sorting for admin list views."""
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ECommerceAdmin.enums import LifecycleStatus, OfferStatus


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # Date-only values from the backend are UTC midnight
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _utc_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def get_field(entity: Dict[str, Any], path: str) -> Any:
    """Read a dotted path such as ``applicableTo.type`` from a nested dict."""
    value: Any = entity
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def lifecycle_status(entity: Dict[str, Any], now: Optional[datetime] = None) -> LifecycleStatus:
    """Where an offer is in its life: switched off, not started, over, or live.

    An explicit inactive status wins over the date window.
    """
    status = entity.get("status")
    if status == OfferStatus.INACTIVE or status is False:
        return LifecycleStatus.INACTIVE
    now = _utc_now(now)
    start = _parse_datetime(entity.get("startDate"))
    end = _parse_datetime(entity.get("endDate"))
    if start and now < start:
        return LifecycleStatus.UPCOMING
    if end and now > end:
        return LifecycleStatus.EXPIRED
    return LifecycleStatus.ACTIVE


def matches_search(entity: Dict[str, Any], term: Optional[str], fields: Sequence[str]) -> bool:
    if not term:
        return True
    needle = term.lower()
    for path in fields:
        value = get_field(entity, path)
        if value is not None and needle in str(value).lower():
            return True
    return False


def filter_items(items: Iterable[Dict[str, Any]],
                 search: Optional[str] = None,
                 search_fields: Sequence[str] = (),
                 lifecycle: Optional[str] = None,
                 now: Optional[datetime] = None,
                 **equals: Any) -> List[Dict[str, Any]]:
    """Apply the list-view filters.

    ``equals`` maps dotted field paths (with ``__`` standing for ``.``) to the
    value they must have; ``None`` or ``"all"`` disables a filter, as does a
    ``lifecycle`` of ``None`` or ``"all"``.
    """
    filtered = []
    for item in items:
        if any(
            expected not in (None, "all") and get_field(item, key.replace("__", ".")) != expected
            for key, expected in equals.items()
        ):
            continue
        if lifecycle not in (None, "all") and lifecycle_status(item, now) != lifecycle:
            continue
        if not matches_search(item, search, search_fields):
            continue
        filtered.append(item)
    return filtered


def sort_by(items: Iterable[Dict[str, Any]], key: str, reverse: bool = False) -> List[Dict[str, Any]]:
    """Sort by a dotted field; items missing the field always go last."""
    items = list(items)
    present = [item for item in items if get_field(item, key) is not None]
    missing = [item for item in items if get_field(item, key) is None]
    return sorted(present, key=lambda item: get_field(item, key), reverse=reverse) + missing


def count_by_status(items: Iterable[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, int]:
    counts = {status.value: 0 for status in LifecycleStatus}
    for item in items:
        counts[lifecycle_status(item, now).value] += 1
    counts["total"] = sum(counts.values())
    return counts


def flatten_category_tree(categories: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Order categories parent-first, depth-first, tagging each with its ``level``.

    Categories whose parent is not in the list are not shown.
    """
    children: Dict[Optional[str], List[Dict[str, Any]]] = {}
    for category in categories:
        parent = category.get("parentId") or None
        if isinstance(parent, dict):
            parent = parent.get("_id")
        children.setdefault(parent, []).append(category)

    flat: List[Dict[str, Any]] = []

    def walk(parent_id: Optional[str], level: int) -> None:
        for category in children.get(parent_id, []):
            flat.append({**category, "level": level})
            walk(category.get("_id"), level + 1)

    walk(None, 0)
    return flat


def names_for(ids: Iterable[str], items: Iterable[Dict[str, Any]]) -> List[str]:
    """Display names of the referenced items, in the order ``items`` lists them."""
    wanted = set(ids)
    return [
        item.get("name") or item.get("title") or item["_id"]
        for item in items
        if item.get("_id") in wanted
    ]
