from datetime import date

from .models import TimelineEntry
from .sorter import compare_entries, order_ids, sort_by_parsed_date, sort_chronological


def _entry(entry_id: str, approximate_date: str) -> TimelineEntry:
    return TimelineEntry(id=entry_id, title=entry_id, approximate_date=approximate_date)


def test_exact_dates_come_before_approximate_ones():
    entries = [_entry("approx", "Winter 2001"), _entry("exact", "2024-01-10")]

    assert order_ids(sort_chronological(entries)) == ["exact", "approx"]
    assert compare_entries(entries[1], entries[0]) < 0


def test_exact_dates_sort_by_day():
    entries = [_entry("a", "2024-01-10"), _entry("b", "2023-12-01"), _entry("c", "2023-12-02")]

    assert order_ids(sort_chronological(entries)) == ["b", "c", "a"]


def test_approximate_dates_compare_as_text():
    entries = [_entry("summer", "Summer 2019"), _entry("early", "early 2020"), _entry("blank", "")]

    assert order_ids(sort_chronological(entries)) == ["blank", "early", "summer"]


def test_sort_is_stable_for_equal_dates():
    entries = [
        _entry("first", "2023-05-05"),
        _entry("second", "2023-05-05"),
        _entry("third", "Summer 2023"),
        _entry("fourth", "Summer 2023"),
    ]

    assert order_ids(sort_chronological(entries)) == ["first", "second", "third", "fourth"]
    assert order_ids(sort_chronological(list(reversed(entries)))) == ["second", "first", "fourth", "third"]


def test_sort_returns_a_new_list():
    entries = [_entry("b", "2024-01-02"), _entry("a", "2024-01-01")]
    result = sort_chronological(entries)

    assert order_ids(entries) == ["b", "a"]
    assert order_ids(result) == ["a", "b"]


def test_sort_accepts_plain_documents():
    entries = [
        {"id": "x", "approximateDate": "Summer 2023"},
        {"id": "y", "approximateDate": "2023-12-01"},
        {"id": "z"},
    ]

    assert order_ids(sort_chronological(entries)) == ["y", "z", "x"]


def test_parsed_date_order_places_approximate_dates_in_time():
    entries = [_entry("jan", "2024-01-10"), _entry("summer", "Summer 2023"), _entry("dec", "2023-12-01")]

    assert order_ids(sort_by_parsed_date(entries, date(2025, 1, 1))) == ["summer", "dec", "jan"]


def test_parsed_date_order_is_stable():
    entries = [_entry("a", "June 2023"), _entry("b", "Summer 2023"), _entry("c", "2023-06-15")]

    assert order_ids(sort_by_parsed_date(entries, date(2025, 1, 1))) == ["a", "b", "c"]
