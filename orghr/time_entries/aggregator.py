"""Pair raw check-in / check-out events into per-day worked minutes.

Entries are grouped by their ``date``; each day's entries are sorted by
``entry_time`` and walked two at a time. A ``check_in`` followed by a
``check_out`` counts the whole minutes between them. Any other pair, and a
trailing single entry, counts zero and marks the day as having unpaired
entries.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime
from typing import Iterable, Iterator, Protocol, Sequence

from orghr.common.constants import TimeEntryType
from orghr.time_entries.schemas import DaySummary


class _Entry(Protocol):
    date: date
    entry_type: TimeEntryType
    entry_time: datetime


def pair_minutes(entries: Sequence[_Entry]) -> tuple[int, bool]:
    """Return ``(minutes, has_unpaired)`` for one day's entries in time order."""
    total = 0
    unpaired = False
    for i in range(0, len(entries), 2):
        if i + 1 >= len(entries):
            unpaired = True
            break
        first, second = entries[i], entries[i + 1]
        if (
            first.entry_type == TimeEntryType.check_in
            and second.entry_type == TimeEntryType.check_out
        ):
            total += int((second.entry_time - first.entry_time).total_seconds() / 60)
        else:
            unpaired = True
    return total, unpaired


def summarize_day(day: date, entries: Iterable[_Entry]) -> DaySummary:
    ordered = sorted(entries, key=lambda e: e.entry_time)
    minutes, unpaired = pair_minutes(ordered)
    return DaySummary(
        date=day,
        total_minutes=minutes,
        entry_count=len(ordered),
        has_unpaired=unpaired,
    )


class DaySummaries:
    """Re-iterable view of day summaries, newest day first.

    Each iteration regroups the captured entries and builds summaries one
    day at a time.
    """

    def __init__(self, entries: Iterable[_Entry]) -> None:
        self._entries = list(entries)

    def __iter__(self) -> Iterator[DaySummary]:
        by_day: dict[date, list[_Entry]] = defaultdict(list)
        for entry in self._entries:
            by_day[entry.date].append(entry)
        for day in sorted(by_day, reverse=True):
            yield summarize_day(day, by_day[day])

    def total_minutes(self) -> int:
        return sum(s.total_minutes for s in self)


def aggregate(entries: Iterable[_Entry]) -> DaySummaries:
    """Summaries for every date present in *entries*."""
    return DaySummaries(entries)
