from __future__ import annotations

from typing import Any, Iterable, List, Set, TypeVar

T = TypeVar("T")


def _url_of(item: Any) -> str:
    if isinstance(item, dict):
        url = item.get("url")
    else:
        url = getattr(item, "url", None)
    return url.strip() if isinstance(url, str) else ""


def dedupe_by_url(items: Iterable[T]) -> List[T]:
    """
    Keep the first record seen for each URL, preserving input order.
    Records without a usable URL are dropped rather than rejected.
    """
    seen: Set[str] = set()
    out: List[T] = []
    for it in items:
        url = _url_of(it)
        if not url or url in seen:
            continue
        seen.add(url)
        out.append(it)
    return out
