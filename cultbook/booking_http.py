"""
Fast HTTP booking client for the cult.fit PLAY platform.
Uses direct API calls over a pooled keep-alive session.
"""

import logging
import socket
from datetime import date as date_type
from typing import Any, Optional, Union
from urllib.parse import urlparse

import requests

from .config import Credentials, RaceConfig
from .models import BookingResult, Schedule

logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base class for a failed platform call."""

    @property
    def reason(self) -> str:
        return str(self)


class NetworkError(BookingError):
    """Connection, DNS or TLS failure."""
    pass


class BookingTimeout(BookingError):
    """The call exceeded the per-call timeout."""
    pass


class HttpError(BookingError):
    """The server rejected the call (slot taken, not yet open, auth, rate limit)."""

    def __init__(self, status_code: int, code: Any = None, payload: Any = None):
        self.status_code = status_code
        self.code = code if code is not None else status_code
        self.payload = payload
        super().__init__(f"HTTP {status_code} (code {self.code})")

    @property
    def reason(self) -> str:
        return str(self.code)


class EmptySchedule(BookingError):
    """The schedule response contained no day entries."""
    pass


class NoSlotSelected(BookingError):
    """No AVAILABLE slot on the booking day."""
    pass


class FastBookingClient:
    """Fast HTTP-based booking client using direct API calls."""

    BOOK_PATH = "/v2/fitso/web/class/book"
    SCHEDULE_PATH = "/v2/fitso/web/schedule"
    WARMUP_PATH = "/user/cities/v2"

    PRODUCT_TYPE = "PLAY"

    USER_AGENT = (
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36'
    )

    def __init__(
        self,
        config: RaceConfig,
        credentials: Credentials,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize HTTP booking client.

        Args:
            config: Race settings (resource ids, base URL, timeout)
            credentials: API key and session tokens
            session: Optional pre-built session (tests)
        """
        self.config = config
        self.base_url = config.base_url.rstrip('/')
        self.timeout = config.request_timeout
        self.session = session or requests.Session()

        # Connection pooling: CARPET shares one pool across threads
        adapter = requests.adapters.HTTPAdapter(
            pool_connections=10,
            pool_maxsize=20,
            max_retries=0  # Retries belong to the race, not the client
        )
        self.session.mount('https://', adapter)
        self.session.mount('http://', adapter)

        self.session.headers.update({
            'apikey': credentials.api_key,
            'cookie': credentials.tokens.cookie_header,
            'appversion': '7',
            'browsername': 'Web',
            'osname': 'browser',
            'cityid': config.city_id,
            'timezone': config.timezone,
            'content-type': 'application/json',
            'user-agent': self.USER_AGENT,
            'Connection': 'keep-alive'
        })

    def warm_connection(self):
        """
        Pre-establish the TCP + TLS connection to reduce booking latency.
        Should be called well before the release instant.
        """
        host = urlparse(self.base_url).hostname
        try:
            # Pre-resolve DNS
            if host:
                socket.getaddrinfo(host, 443, socket.AF_INET, socket.SOCK_STREAM)

            self.session.get(f"{self.base_url}{self.WARMUP_PATH}", timeout=self.timeout)
            logger.info("[warmup] Connection pool ready")
        except Exception as e:
            logger.debug(f"[warmup] Connection warm failed (non-critical): {e}")

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Send one request and map transport/HTTP failures onto BookingError."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise BookingTimeout(f"Timed out after {self.timeout}s: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(str(e)) from e

        logger.debug(f"{method} {path} -> {response.status_code}")

        if response.status_code >= 400:
            payload = self._json_or_text(response)
            code = None
            if isinstance(payload, dict):
                code = (payload.get('meta') or {}).get('code')
            raise HttpError(response.status_code, code=code, payload=payload)

        return response

    @staticmethod
    def _json_or_text(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    def blind_book(self, date: Union[str, date_type], slot_id: str) -> BookingResult:
        """
        Fire a booking POST for a known slot id and date without checking availability.

        Args:
            date: Booking date (YYYY-MM-DD or date)
            slot_id: Platform slot identifier

        Returns:
            BookingResult with the server payload

        Raises:
            NetworkError, BookingTimeout, HttpError
        """
        if isinstance(date, date_type):
            date = date.isoformat()

        payload = {
            'slotId': slot_id,
            'classId': slot_id,
            'productType': self.PRODUCT_TYPE,
            'date': date,
            'workoutId': self.config.workout_id,
            'centerID': self.config.center_id
        }

        response = self._request('POST', self.BOOK_PATH, json=payload)
        return BookingResult(
            slot_id=slot_id,
            date=date,
            payload=self._json_or_text(response),
            status_code=response.status_code
        )

    def fetch_schedule(self) -> Schedule:
        """
        Fetch the slot schedule for the configured center and workout.

        Raises:
            NetworkError, BookingTimeout, HttpError, EmptySchedule
        """
        params = {
            'workoutId': self.config.workout_id,
            'productType': self.PRODUCT_TYPE,
            'pageFrom': 'PLAY',
            'pageType': 'slotbooking',
            'centerId': self.config.center_id
        }

        response = self._request('GET', self.SCHEDULE_PATH, params=params)
        data = self._json_or_text(response)
        if not isinstance(data, dict):
            raise EmptySchedule("Schedule response was not JSON")

        schedule = Schedule.from_payload(data)
        if not schedule.days:
            raise EmptySchedule("No dates")

        logger.debug(f"Schedule has {len(schedule.days)} days")
        return schedule

    def close(self):
        self.session.close()
