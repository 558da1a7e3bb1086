"""
Quantisation of free intervals into fixed-length bookable slots.
"""

from typing import Iterable, List, Optional

from pendulum import DateTime

from .models import Interval, Slot


def quantize_slots(
    free_intervals: Iterable[Interval],
    duration_minutes: int,
    step_minutes: int = 30,
    not_before: Optional[DateTime] = None,
) -> List[Slot]:
    """
    Cut free intervals into slots of ``duration_minutes`` starting every
    ``step_minutes``. Slots of one interval may overlap each other when the
    step is shorter than the duration.

    Intervals shorter than the duration yield no slots. When ``not_before``
    is given, slots starting earlier are skipped, which lets the caller hide
    slots that are already in the past.

    Args:
        free_intervals: Free intervals in ascending order
        duration_minutes: Length of every slot
        step_minutes: Distance between consecutive slot starts
        not_before: Earliest acceptable slot start

    Returns:
        Slots in ascending start order
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be greater than zero")
    if step_minutes <= 0:
        raise ValueError("step_minutes must be greater than zero")

    slots: List[Slot] = []

    for interval in free_intervals:
        slot_start = interval.start
        slot_end = slot_start.add(minutes=duration_minutes)

        while slot_end <= interval.end:
            if not_before is None or slot_start >= not_before:
                slots.append(Slot(start=slot_start, end=slot_end))

            slot_start = slot_start.add(minutes=step_minutes)
            slot_end = slot_start.add(minutes=duration_minutes)

    return slots
