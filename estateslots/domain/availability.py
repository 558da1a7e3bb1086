"""
Core business logic for resolving free time inside a business window.

Pure domain logic: no API calls, no clock reads, no I/O.
"""

from datetime import timedelta
from typing import Iterable, List

from .models import BusinessWindow, Interval


def resolve_availability(
    window: BusinessWindow,
    busy: Iterable[Interval],
    minimum_free_gap_minutes: int = 30,
) -> List[Interval]:
    """
    Subtract busy intervals from a business window.

    Algorithm:
    1. Start with a single candidate covering the whole window
    2. Apply each busy interval (in start order) to every candidate:
       drop covered candidates, shrink heads and tails, split around
       busy time strictly inside a candidate
    3. Discard candidates shorter than the minimum free gap
    4. Return the rest sorted by start

    Touching boundaries are not overlap: a viewing ending at 10:00 leaves a
    candidate starting at 10:00 untouched.

    Example:
    Window: 09:00 - 18:00
    Busy: [10:00-11:00, 14:00-15:00]
    Result: [09:00-10:00, 11:00-14:00, 15:00-18:00]

    Raises:
        InvalidIntervalError: If the window or any busy interval is inverted
        ValueError: If the minimum gap is negative
    """
    if minimum_free_gap_minutes < 0:
        raise ValueError("minimum_free_gap_minutes must not be negative")

    candidates: List[Interval] = [window.as_interval()]

    for blocker in sorted(busy, key=lambda r: r.start):
        candidates = _subtract(candidates, blocker)

        if not candidates:
            return []

    minimum_gap = timedelta(minutes=minimum_free_gap_minutes)
    free = [c for c in candidates if c.duration >= minimum_gap]

    return sorted(free, key=lambda r: r.start)


def _subtract(candidates: List[Interval], blocker: Interval) -> List[Interval]:
    """Apply one busy interval to the current list of free candidates."""
    remaining: List[Interval] = []

    for candidate in candidates:
        if not candidate.overlaps(blocker):
            remaining.append(candidate)
            continue

        covers_head = blocker.start <= candidate.start
        covers_tail = blocker.end >= candidate.end

        if covers_head and covers_tail:
            continue

        if covers_head:
            remaining.append(Interval(start=blocker.end, end=candidate.end))
        elif covers_tail:
            remaining.append(Interval(start=candidate.start, end=blocker.start))
        else:
            # Strictly inside: split in two
            remaining.append(Interval(start=candidate.start, end=blocker.start))
            remaining.append(Interval(start=blocker.end, end=candidate.end))

    return remaining
