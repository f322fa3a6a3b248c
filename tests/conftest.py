"""Shared fixtures: schedule payload builders and a scripted booking client."""

import threading

import pytest

from cultbook.booking_http import HttpError
from cultbook.config import Credentials, RaceConfig
from cultbook.models import BookingResult, Schedule, TokenPair


def make_day(day, slots):
    """slots: list of (id, state, start_time)."""
    return {
        'id': day,
        'classByTimeList': [
            {'classes': [{'id': sid, 'date': day, 'startTime': start, 'state': state}]}
            for sid, state, start in slots
        ]
    }


def make_schedule(*days):
    return Schedule.from_payload({'classByDateList': list(days)})


@pytest.fixture
def config():
    return RaceConfig(
        center_id=988,
        workout_id=350,
        target_slot_id='15',
        fallback_slot_ids=('16', '15', '17', '14'),
        max_retries=3,
        retry_delay_ms=300,
        booking_horizon_days=4,
        timezone='Asia/Kolkata',
        base_url='https://example.test/api'
    )


@pytest.fixture
def credentials():
    return Credentials(api_key='key-123', tokens=TokenPair(at='at-token', st='st-token'))


def booked(date, slot_id):
    return BookingResult(slot_id=slot_id, date=date, payload={"status": "ok", "slot": slot_id})


def rejected(date, slot_id):
    raise HttpError(409, code="SLOT_FULL")


class FakeClient:
    """Booking client whose answers are scripted per call."""

    def __init__(self, book=None, schedules=None):
        # book(date, slot_id) -> BookingResult or raises
        self._book = book or rejected
        self._schedules = list(schedules or [])
        self.book_calls = []
        self.schedule_calls = 0
        self.lock = threading.Lock()
        self.threads = set()

    def blind_book(self, date, slot_id):
        with self.lock:
            self.book_calls.append((date, slot_id))
            self.threads.add(threading.current_thread().name)
        return self._book(date, slot_id)

    def fetch_schedule(self):
        self.schedule_calls += 1
        item = self._schedules.pop(0) if self._schedules else HttpError(500)
        if isinstance(item, Exception):
            raise item
        return item
