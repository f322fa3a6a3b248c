"""Pick the best bookable slot from a schedule."""

import logging
from datetime import date
from typing import Iterable, Optional, Union

from .models import DayEntry, Schedule, Slot

logger = logging.getLogger(__name__)


def booking_day(schedule: Schedule, target_date: Union[str, date, None] = None) -> Optional[DayEntry]:
    """
    Locate the day entry to book from.

    Prefers the entry whose date equals ``target_date``. Without a match,
    falls back to the furthest-future day by date, or the server's last
    entry when dates can't be parsed.
    """
    if not schedule.days:
        return None

    if target_date is not None:
        if isinstance(target_date, str):
            target_date = date.fromisoformat(target_date)
        for day in schedule.days:
            if day.day == target_date:
                return day

    last = schedule.last_day
    dated = [d for d in schedule.days if d.day is not None]
    if not dated:
        return last

    furthest = max(dated, key=lambda d: d.day)
    if furthest is not last:
        logger.warning(
            f"[schedule] Server day order is not chronological: last entry {last.id}, furthest {furthest.id}"
        )
    return furthest


def select_slot(
    schedule: Schedule,
    target_slot_id: str,
    fallback_slot_ids: Iterable[str],
    target_date: Union[str, date, None] = None
) -> Optional[Slot]:
    """
    Pick a slot on the booking day, first matching tier wins:

    1. the target slot, if AVAILABLE
    2. the first AVAILABLE slot in fallback priority order
    3. the first AVAILABLE slot of any id, in server order

    Returns None when nothing on that day is AVAILABLE.
    """
    day = booking_day(schedule, target_date)
    if day is None:
        return None

    available = [s for s in day.slots if s.is_available]
    if not available:
        logger.info(f"[schedule] No AVAILABLE slot on {day.id}")
        return None

    for slot in available:
        if slot.id == target_slot_id:
            return slot

    for slot_id in fallback_slot_ids:
        for slot in available:
            if slot.id == slot_id:
                return slot

    return available[0]
