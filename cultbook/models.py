"""Shared data models for schedules, bookings and race bookkeeping."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SlotState(str, Enum):
    """Availability state reported by the platform for a slot."""

    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"
    FULL = "FULL"
    WAITLIST_AVAILABLE = "WAITLIST_AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "SlotState":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Slot:
    """Read-only snapshot of one bookable time unit from a schedule query."""

    id: str
    date: str  # YYYY-MM-DD
    start_time: Optional[str]
    state: SlotState
    class_id: Optional[str] = None
    product_type: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False, hash=False)

    @property
    def is_available(self) -> bool:
        return self.state is SlotState.AVAILABLE

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Slot":
        return cls(
            id=str(data.get('id')),
            date=str(data.get('date', '')),
            start_time=data.get('startTime'),
            state=SlotState.parse(data.get('state')),
            class_id=str(data['classId']) if data.get('classId') is not None else None,
            product_type=data.get('productType'),
            raw=data
        )


@dataclass(frozen=True)
class DayEntry:
    """All time entries the server returned for one calendar day."""

    id: str
    slots: Tuple[Slot, ...] = ()

    @property
    def day(self) -> Optional[date]:
        """Calendar date of this entry, from its id or its first slot."""
        for candidate in [self.id] + [s.date for s in self.slots[:1]]:
            try:
                return date.fromisoformat(str(candidate)[:10])
            except ValueError:
                continue
        return None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "DayEntry":
        slots = []
        for time_entry in data.get('classByTimeList') or []:
            # Each time entry wraps exactly one class
            classes = time_entry.get('classes') or []
            if classes:
                slots.append(Slot.from_payload(classes[0]))
        return cls(id=str(data.get('id', '')), slots=tuple(slots))


@dataclass(frozen=True)
class Schedule:
    """Day entries in the order the server returned them."""

    days: Tuple[DayEntry, ...] = ()

    @property
    def last_day(self) -> Optional[DayEntry]:
        return self.days[-1] if self.days else None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Schedule":
        date_list = (payload or {}).get('classByDateList') or []
        return cls(days=tuple(DayEntry.from_payload(d) for d in date_list))


@dataclass(frozen=True)
class BookingResult:
    """A confirmed booking and the server's response body."""

    slot_id: str
    date: str
    payload: Any
    status_code: int = 200


@dataclass(frozen=True)
class TokenPair:
    """The two session cookies the platform requires on every call."""

    at: str
    st: str

    @property
    def cookie_header(self) -> str:
        return f"at={self.at}; st={self.st}"

    def __repr__(self) -> str:
        return f"TokenPair(at='{self.at[:6]}...', st='{self.st[:6]}...')"


class Phase(str, Enum):
    BLIND = "blind"
    RETRY = "retry"
    CARPET = "carpet"
    DONE = "done"


@dataclass
class RaceState:
    """Mutable bookkeeping for one race; owned by the orchestrator."""

    started_at: float
    max_retries: int
    phase: Phase = Phase.BLIND
    retry_count: int = 0
    attempts: int = 0
    failures: List[Tuple[Phase, str]] = field(default_factory=list)

    def elapsed_ms(self, now: float) -> int:
        return int((now - self.started_at) * 1000)

    def record_failure(self, reason: str):
        self.failures.append((self.phase, reason))


@dataclass
class RaceOutcome:
    """Final result of a race."""

    success: bool
    phase: Phase
    elapsed_ms: int
    attempts: int
    slot_id: Optional[str] = None
    date: Optional[str] = None
    payload: Any = None
    duplicate_slot_ids: List[str] = field(default_factory=list)
