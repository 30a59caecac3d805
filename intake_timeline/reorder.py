from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence

from .date_parser import parse_approximate_date
from .merger import event_entry, is_synthetic_id, synthetic_entries
from .models import Complaint, TimelineEntry, TimelineEvent, TimelineMode
from .sorter import sort_by_parsed_date

logger = logging.getLogger("intake.reorder")


class ReorderModeError(RuntimeError):
    """Raised when a manual move is attempted outside custom mode."""


def reorder_custom(order: Sequence[str], dragged_id: str, target_index: int) -> List[str]:
    """Move ``dragged_id`` to ``target_index`` and return the new order.

    The index is clamped: anything at or below zero moves the id to the
    front, anything at or beyond the end moves it to the back. Ids that are
    not part of ``order`` leave the order as it was, and complaint or
    response entry ids never move even when a caller lists them.
    """

    result = list(order)
    if is_synthetic_id(dragged_id) or dragged_id not in result:
        return result
    result.remove(dragged_id)
    index = min(max(target_index, 0), len(result))
    result.insert(index, dragged_id)
    return result


def reconcile_order(order: Sequence[str], event_ids: Sequence[str]) -> List[str]:
    """Keep ``order`` a permutation of ``event_ids``.

    Known ids keep their relative position, vanished ids are dropped and new
    ids are appended in the order they appear in ``event_ids``.
    """

    wanted = set(event_ids)
    kept = [event_id for event_id in dict.fromkeys(order) if event_id in wanted]
    seen = set(kept)
    kept.extend(event_id for event_id in event_ids if event_id not in seen)
    return kept


def interleave(
    ordered_events: Sequence[TimelineEntry],
    synthetic: Iterable[TimelineEntry],
    reference_date: Optional[date] = None,
) -> List[TimelineEntry]:
    """Merge chronologically sorted synthetic entries into a fixed event order.

    Events keep their relative order. Each synthetic entry is emitted just
    before the first pending event whose parsed date is later than its own.
    """

    reference = reference_date or date.today()
    pending = sort_by_parsed_date(synthetic, reference)
    merged: List[TimelineEntry] = []
    position = 0
    for event in ordered_events:
        event_instant = parse_approximate_date(event.approximate_date, reference)
        while position < len(pending) and parse_approximate_date(pending[position].approximate_date, reference) < event_instant:
            merged.append(pending[position])
            position += 1
        merged.append(event)
    merged.extend(pending[position:])
    return merged


class ReorderController:
    """Review-screen ordering state for one submission.

    ``custom_order`` only ever holds real event ids. Complaint and company
    response entries are never reordered by hand; in custom mode they are
    merged into the manual event order by date.
    """

    def __init__(
        self,
        events: Iterable[TimelineEvent],
        *,
        mode: TimelineMode = "chronological",
        custom_order: Optional[Sequence[str]] = None,
        reference_date: Optional[date] = None,
    ) -> None:
        self._events: List[TimelineEvent] = list(events)
        self._reference = reference_date
        self.mode: TimelineMode = mode
        ids = [event.id for event in self._events]
        self.custom_order: List[str] = reconcile_order(custom_order if custom_order is not None else ids, ids)

    @property
    def events(self) -> List[TimelineEvent]:
        return list(self._events)

    def chronological_events(self) -> List[TimelineEvent]:
        return sort_by_parsed_date(self._events, self._reference)

    def toggle_mode(self) -> TimelineMode:
        if self.mode == "chronological":
            # Dragging starts from what the user was just looking at.
            self.custom_order = [event.id for event in self.chronological_events()]
            self.mode = "custom"
        else:
            self.mode = "chronological"
        logger.debug("Timeline mode switched", extra={"mode": self.mode})
        return self.mode

    def is_draggable(self, entry_id: str) -> bool:
        return (
            self.mode == "custom"
            and len(self._events) > 1
            and not is_synthetic_id(entry_id)
            and entry_id in self.custom_order
        )

    def move_event(self, dragged_id: str, target_index: int) -> bool:
        if self.mode != "custom":
            raise ReorderModeError("Events can only be moved in custom order mode.")
        if is_synthetic_id(dragged_id):
            logger.debug("Ignoring move of complaint or response entry", extra={"entry_id": dragged_id})
            return False
        if dragged_id not in self.custom_order:
            logger.debug("Ignoring move of unknown entry", extra={"entry_id": dragged_id})
            return False
        self.custom_order = reorder_custom(self.custom_order, dragged_id, target_index)
        return True

    def sync_events(self, events: Iterable[TimelineEvent]) -> None:
        self._events = list(events)
        self.custom_order = reconcile_order(self.custom_order, [event.id for event in self._events])

    def ordered_events(self) -> List[TimelineEvent]:
        if self.mode == "chronological":
            return self.chronological_events()
        by_id = {event.id: event for event in self._events}
        return [by_id[event_id] for event_id in self.custom_order]

    def display(self, complaints: Iterable[Complaint] = ()) -> List[TimelineEntry]:
        derived = synthetic_entries(self._events, complaints)
        event_entries = [event_entry(event) for event in self.ordered_events()]
        if self.mode == "chronological":
            return sort_by_parsed_date([*event_entries, *derived], self._reference)
        return interleave(event_entries, derived, self._reference)


__all__ = [
    "ReorderController",
    "ReorderModeError",
    "interleave",
    "reconcile_order",
    "reorder_custom",
]
