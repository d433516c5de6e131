"""
View Selector
=============
Narrows a loaded document to "all shifts" or a single shift, and memoizes
derived results per (document, selection).
"""

from __future__ import annotations

from dataclasses import dataclass

from production_model import DowntimeEvent, Shift
from shared import ALL_SHIFTS


@dataclass(frozen=True)
class ShiftView:
    shifts: tuple[Shift, ...]
    downtime_events: tuple[DowntimeEvent, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.shifts) == 0


def select_view(data, shift_filter=ALL_SHIFTS) -> ShiftView:
    """Shifts and downtime events for one selection.

    ``"all"`` hands back the document's own sequences. A shift id returns
    that shift and its events. An unknown id returns an empty view (no
    shifts, no events) rather than raising.
    """
    if shift_filter == ALL_SHIFTS:
        return ShiftView(shifts=data.shifts, downtime_events=data.downtime_events)

    match = next((s for s in data.shifts if s.id == shift_filter), None)
    if match is None:
        return ShiftView(shifts=(), downtime_events=())

    return ShiftView(
        shifts=(match,),
        downtime_events=tuple(e for e in data.downtime_events if e.shift_id == shift_filter),
    )


class MetricsCache:
    """Memo of derived results keyed by (document identity, selection).

    Holds results for one document at a time; seeing a different document
    object drops everything cached for the previous one.
    """

    def __init__(self):
        self._data_id = None
        self._data = None
        self._entries: dict[str, object] = {}
        self.hits = 0
        self.misses = 0

    def get(self, data, shift_filter, compute):
        """Return the cached value for ``(data, shift_filter)``, computing it once."""
        if self._data_id != id(data):
            self.clear()
            self._data_id = id(data)
            # hold a reference so the id can't be recycled by another object
            self._data = data

        if shift_filter in self._entries:
            self.hits += 1
            return self._entries[shift_filter]

        self.misses += 1
        value = compute(data, shift_filter)
        self._entries[shift_filter] = value
        return value

    def clear(self):
        self._entries.clear()
        self._data_id = None
        self._data = None

    def __len__(self):
        return len(self._entries)
