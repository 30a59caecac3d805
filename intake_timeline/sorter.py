from __future__ import annotations

from datetime import date
from functools import cmp_to_key
from typing import Any, Iterable, List, Optional, Sequence, TypeVar

from .date_parser import is_exact_date, parse_approximate_date

T = TypeVar("T")


def _date_text(entry: Any) -> str:
    if isinstance(entry, dict):
        value = entry.get("approximateDate", entry.get("approximate_date"))
    else:
        value = getattr(entry, "approximate_date", None)
    return value if isinstance(value, str) else ""


def _compare_text(a: str, b: str) -> int:
    folded_a, folded_b = a.casefold(), b.casefold()
    if folded_a != folded_b:
        return -1 if folded_a < folded_b else 1
    if a != b:
        return -1 if a < b else 1
    return 0


def compare_entries(a: Any, b: Any) -> int:
    """Comparator for the event list.

    Exact dates compare by day and always come before approximate text.
    Two approximate values compare as text.
    """

    text_a, text_b = _date_text(a), _date_text(b)
    exact_a, exact_b = is_exact_date(text_a), is_exact_date(text_b)

    if exact_a and exact_b:
        instant_a = parse_approximate_date(text_a)
        instant_b = parse_approximate_date(text_b)
        if instant_a == instant_b:
            return 0
        return -1 if instant_a < instant_b else 1
    if exact_a:
        return -1
    if exact_b:
        return 1
    return _compare_text(text_a, text_b)


def sort_chronological(entries: Iterable[T]) -> List[T]:
    """Return a new list ordered by ``compare_entries``. Ties keep input order."""
    return sorted(entries, key=cmp_to_key(compare_entries))


def sort_by_parsed_date(entries: Iterable[T], reference_date: Optional[date] = None) -> List[T]:
    """Order by the heuristic instant of each date, exact or approximate alike.

    This is the review-screen ordering: "Summer 2023" lands in June 2023
    rather than after every exact date. Ties keep input order.
    """

    reference = reference_date or date.today()
    return sorted(entries, key=lambda entry: parse_approximate_date(_date_text(entry), reference))


def order_ids(entries: Sequence[Any]) -> List[str]:
    return [entry["id"] if isinstance(entry, dict) else entry.id for entry in entries]


__all__ = ["compare_entries", "order_ids", "sort_by_parsed_date", "sort_chronological"]
