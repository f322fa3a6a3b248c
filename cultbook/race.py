"""
Booking race for the moment slots open.

Escalates through three phases: a blind POST for the target slot, a bounded
schedule-and-book retry loop, then a parallel sweep of every fallback slot.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo

from .booking_http import BookingError, FastBookingClient, NoSlotSelected
from .config import RaceConfig
from .models import BookingResult, Phase, RaceOutcome, RaceState
from .selector import select_slot

logger = logging.getLogger(__name__)


def compute_target_date(
    now: Optional[datetime] = None,
    tz: str = 'Asia/Kolkata',
    offset_days: int = 4
) -> str:
    """
    Furthest bookable day: today in the platform's timezone plus the booking horizon.

    Args:
        now: Current instant; aware values are converted to ``tz``, naive
            values are taken as already local to it
        tz: IANA timezone of the platform
        offset_days: Booking horizon in days

    Returns:
        ISO date string (YYYY-MM-DD)
    """
    zone = ZoneInfo(tz)
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is not None:
        now = now.astimezone(zone)

    return (now.date() + timedelta(days=offset_days)).isoformat()


def wait_until(
    fire_at: datetime,
    prepare: Optional[Callable[[], None]] = None,
    prep_seconds: float = 10,
    sleep: Callable[[float], None] = time.sleep,
    now: Optional[Callable[[], datetime]] = None
):
    """
    Block until ``fire_at`` (aware datetime), running ``prepare`` shortly before.

    Args:
        fire_at: Release instant
        prepare: Called once ``prep_seconds`` before release (connection warm-up)
        prep_seconds: How early to run ``prepare``
        sleep: Sleep function
        now: Wall clock returning aware datetimes
    """
    now = now or (lambda: datetime.now(fire_at.tzinfo))

    def seconds_left() -> float:
        return (fire_at - now()).total_seconds()

    remaining = seconds_left()
    if remaining > prep_seconds:
        logger.info(f"Release at {fire_at.isoformat()} ({remaining:.0f}s from now). Sleeping...")
        sleep(remaining - prep_seconds)

    if prepare:
        prepare()

    remaining = seconds_left()
    if remaining > 0:
        logger.info(f"Waiting {remaining:.2f}s until exact release time...")
        sleep(remaining)


class RaceOrchestrator:
    """Runs the blind / retry / carpet booking race against one resource."""

    def __init__(
        self,
        client: FastBookingClient,
        config: RaceConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        now: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            client: Booking client (anything with blind_book / fetch_schedule)
            config: Immutable race settings
            clock: Monotonic clock in seconds, for elapsed-time logging
            sleep: Sleep function used between retry iterations
            now: Wall clock used for the target date
        """
        self.client = client
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self.now = now
        self.state: Optional[RaceState] = None
        self.target_date: Optional[str] = None

    def _elapsed(self) -> int:
        return self.state.elapsed_ms(self.clock())

    def _finish(self, result: BookingResult, **extra) -> RaceOutcome:
        phase = self.state.phase
        self.state.phase = Phase.DONE
        return RaceOutcome(
            success=True,
            phase=phase,
            elapsed_ms=self._elapsed(),
            attempts=self.state.attempts,
            slot_id=result.slot_id,
            date=result.date,
            payload=result.payload,
            **extra
        )

    def _book(self, date: str, slot_id: str) -> BookingResult:
        self.state.attempts += 1
        return self.client.blind_book(date, slot_id)

    def run(self) -> RaceOutcome:
        """
        Run all three phases and return the outcome.

        Never raises for booking failures; a fully booked resource is a
        normal unsuccessful outcome.
        """
        self.state = RaceState(started_at=self.clock(), max_retries=self.config.max_retries)
        self.target_date = compute_target_date(
            now=self.now() if self.now else None,
            tz=self.config.timezone,
            offset_days=self.config.booking_horizon_days
        )
        logger.info(f"[start] Target date: {self.target_date}, slot: {self.config.target_slot_id}")

        outcome = self._blind_phase() or self._retry_phase() or self._carpet_phase()
        if outcome is None:
            self.state.phase = Phase.DONE
            outcome = RaceOutcome(
                success=False,
                phase=Phase.DONE,
                elapsed_ms=self._elapsed(),
                attempts=self.state.attempts
            )
            logger.info(f"[done] All attempts failed after {outcome.elapsed_ms}ms")
        return outcome

    def _blind_phase(self) -> Optional[RaceOutcome]:
        """Single POST for the target slot on the computed date."""
        self.state.phase = Phase.BLIND
        slot_id = self.config.target_slot_id
        logger.info(f"[blind] POST book {self.target_date} slot {slot_id}...")

        try:
            result = self._book(self.target_date, slot_id)
        except BookingError as e:
            self.state.record_failure(e.reason)
            logger.info(f"[blind] Failed: {e.reason} ({self._elapsed()}ms)")
            return None
        except Exception as e:
            self.state.record_failure(repr(e))
            logger.error(f"[blind] Unexpected error: {e} ({self._elapsed()}ms)", exc_info=True)
            return None

        outcome = self._finish(result)
        logger.info(f"[blind] BOOKED in {outcome.elapsed_ms}ms! {result.payload}")
        return outcome

    def _retry_once(self) -> BookingResult:
        schedule = self.client.fetch_schedule()
        slot = select_slot(
            schedule,
            self.config.target_slot_id,
            self.config.fallback_slot_ids,
            target_date=self.target_date
        )
        if slot is None:
            raise NoSlotSelected("No AVAILABLE slot")

        logger.info(f"[schedule] Booking {slot.date} {slot.start_time} (slot {slot.id})")
        return self._book(slot.date, slot.id)

    def _retry_phase(self) -> Optional[RaceOutcome]:
        """Schedule lookup, slot selection and booking, up to max_retries times."""
        self.state.phase = Phase.RETRY
        state = self.state

        while state.retry_count < state.max_retries:
            state.retry_count += 1
            tag = f"[retry {state.retry_count}/{state.max_retries}]"
            logger.info(f"{tag} {self._elapsed()}ms elapsed")

            try:
                result = self._retry_once()
            except BookingError as e:
                self.state.record_failure(e.reason)
                logger.info(f"{tag} Failed: {e.reason}")
            except Exception as e:
                self.state.record_failure(repr(e))
                logger.error(f"{tag} Unexpected error: {e}", exc_info=True)
            else:
                outcome = self._finish(result)
                logger.info(f"[retry] BOOKED in {outcome.elapsed_ms}ms! {result.payload}")
                return outcome

            if state.retry_count < state.max_retries:
                self.sleep(self.config.retry_delay)

        return None

    def _carpet_phase(self) -> Optional[RaceOutcome]:
        """Book every fallback slot at once; first success in list order wins."""
        self.state.phase = Phase.CARPET
        slot_ids = list(self.config.fallback_slot_ids)
        logger.info(f"[carpet] Trying all fallback slots {slot_ids}...")

        self.state.attempts += len(slot_ids)

        # Futures are joined, never cancelled; an in-flight POST may still book
        with ThreadPoolExecutor(max_workers=len(slot_ids), thread_name_prefix='carpet') as pool:
            futures = [
                pool.submit(self.client.blind_book, self.target_date, slot_id)
                for slot_id in slot_ids
            ]

        successes: Dict[int, BookingResult] = {}
        for index, (slot_id, future) in enumerate(zip(slot_ids, futures)):
            try:
                successes[index] = future.result()
            except BookingError as e:
                self.state.record_failure(f"{slot_id}: {e.reason}")
                logger.info(f"[carpet] Slot {slot_id} failed: {e.reason}")
            except Exception as e:
                self.state.record_failure(f"{slot_id}: {e!r}")
                logger.error(f"[carpet] Slot {slot_id} unexpected error: {e}", exc_info=True)

        if not successes:
            return None

        winner_index = min(successes)
        winner = successes[winner_index]
        duplicates = [successes[i].slot_id for i in sorted(successes) if i != winner_index]
        if duplicates:
            logger.warning(f"[carpet] Also booked {duplicates}; cancel duplicates on the platform")

        outcome = self._finish(winner, duplicate_slot_ids=duplicates)
        logger.info(f"[carpet] BOOKED slot {winner.slot_id} in {outcome.elapsed_ms}ms! {winner.payload}")
        return outcome
