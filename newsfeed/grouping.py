from __future__ import annotations

from typing import Any, Dict, Iterable, List, TypeVar

T = TypeVar("T")

UNCATEGORIZED = "uncategorized"


def _category_of(item: Any) -> str:
    cat = item.get("category") if isinstance(item, dict) else getattr(item, "category", None)
    return cat or UNCATEGORIZED


def group_by_category(items: Iterable[T]) -> Dict[str, List[T]]:
    """Partition into {category: items in original order}; buckets appear in first-seen order."""
    groups: Dict[str, List[T]] = {}
    for it in items:
        groups.setdefault(_category_of(it), []).append(it)
    return groups
