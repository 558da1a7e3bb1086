"""
Normalisation of raw calendar events into busy intervals for one business day.
"""

import logging
from typing import Iterable, List

from .models import BusinessWindow, BusyEvent, Interval

logger = logging.getLogger(__name__)


def extract_busy_intervals(
    events: Iterable[BusyEvent],
    window: BusinessWindow,
    all_day_means_fully_busy: bool = True,
) -> List[Interval]:
    """
    Turn provider events into sorted busy intervals confined to ``window``.

    Rules:
    - cancelled events never block time
    - an all-day event that touches the window's calendar day blocks the whole
      window when ``all_day_means_fully_busy`` is set; otherwise it is clipped
      like any timed event
    - everything else is clipped to the window and dropped when it falls
      completely outside business hours

    Overlapping events are kept as separate intervals; the resolver absorbs
    them. A malformed event raises InvalidIntervalError for the whole batch.

    Args:
        events: Events fetched for the target day
        window: Business window of that day
        all_day_means_fully_busy: Treat all-day events as blocking the full window

    Returns:
        Busy intervals sorted ascending by start
    """
    business_range = window.as_interval()
    calendar_day = window.calendar_day()
    busy: List[Interval] = []

    for event in events:
        if event.is_cancelled:
            logger.debug("Ignoring cancelled event %s", event.event_id or event.summary)
            continue

        event_range = event.as_interval()

        if event.is_all_day and all_day_means_fully_busy:
            if event_range.overlaps(calendar_day):
                busy.append(business_range)
            continue

        clipped = event_range.clip(business_range)
        if clipped is None:
            continue

        busy.append(clipped)

    return sorted(busy, key=lambda r: r.start)
