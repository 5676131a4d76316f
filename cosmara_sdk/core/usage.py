"""
Usage tracking and admission control.

Counts completed calls in three trailing windows (minute, day, month)
and rejects calls that would exceed the configured limits.

Windows are recomputed per check as the interval (now - duration, now],
never calendar-aligned buckets, so a burst straddling midnight is still
bounded.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .constants import UPGRADE_MESSAGES
from .errors import QuotaExceededError
from .types import UsageLimits, UsageRecord

lib_logger = logging.getLogger("cosmara_sdk")


class QuotaWindow(Enum):
    """Rolling windows, shortest first."""
    MINUTE = "minute"
    DAY = "day"
    MONTH = "month"

    @property
    def duration(self) -> timedelta:
        return _WINDOW_DURATIONS[self]

    def limit(self, limits: UsageLimits) -> int:
        return getattr(limits, f"per_{self.value}")


_WINDOW_DURATIONS = {
    QuotaWindow.MINUTE: timedelta(seconds=60),
    QuotaWindow.DAY: timedelta(hours=24),
    QuotaWindow.MONTH: timedelta(days=30),
}


@dataclass(frozen=True)
class Reservation:
    """Capacity held between admission and the end of a call."""
    id: str
    timestamp: datetime
    cost: int


@dataclass(frozen=True)
class WindowUsage:
    """Usage within one window."""
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


@dataclass(frozen=True)
class UsageStats:
    """Snapshot of usage across all windows."""
    windows: Dict[str, WindowUsage]
    total_tokens: int
    total_requests: int


class UsageTracker:
    """Rolling-window request counter scoped to one client.

    ``admit`` followed by ``record`` is two separate steps. Callers that
    may run calls concurrently should use ``reserve`` / ``commit`` /
    ``release`` instead, which hold capacity atomically under a lock.
    """

    def __init__(
        self,
        limits: UsageLimits,
        clock: Optional[Callable[[], datetime]] = None,
        records: Optional[Iterable[UsageRecord]] = None,
    ):
        """Initialize tracker.

        Args:
            limits: Per-window request limits
            clock: Returns the current time (defaults to datetime.now)
            records: Previously persisted records to restore
        """
        self.limits = limits
        self._clock = clock or datetime.now
        self._records: List[UsageRecord] = sorted(records or [], key=lambda r: r.timestamp)
        self._reservations: Dict[str, Reservation] = {}
        self._lock = threading.Lock()

    @property
    def records(self) -> Tuple[UsageRecord, ...]:
        """Records still inside the longest window (oldest first)."""
        with self._lock:
            return tuple(self._records)

    def admit(self, estimated_cost: int = 1, now: Optional[datetime] = None) -> bool:
        """Check whether a call may proceed.

        Args:
            estimated_cost: Request units the call will consume
            now: Evaluation time (defaults to the tracker clock)

        Returns:
            True when every window has room

        Raises:
            QuotaExceededError: If any window would be exceeded
        """
        with self._lock:
            self._check(now or self._clock(), estimated_cost)
        return True

    def record(self, record: UsageRecord) -> None:
        """Append a record for a completed call."""
        with self._lock:
            self._append(record)

    def reserve(self, estimated_cost: int = 1, now: Optional[datetime] = None) -> Reservation:
        """Admit a call and hold its capacity until commit or release.

        Raises:
            QuotaExceededError: If any window would be exceeded
        """
        with self._lock:
            now = now or self._clock()
            self._check(now, estimated_cost)
            reservation = Reservation(id=uuid.uuid4().hex, timestamp=now, cost=estimated_cost)
            self._reservations[reservation.id] = reservation
            return reservation

    def commit(self, reservation: Reservation, record: UsageRecord) -> None:
        """Replace a reservation with the record of the completed call.

        Raises:
            ValueError: If the reservation was already committed or released
        """
        with self._lock:
            if self._reservations.pop(reservation.id, None) is None:
                raise ValueError(f"Unknown or settled reservation: {reservation.id}")
            self._append(record)

    def release(self, reservation: Reservation) -> None:
        """Drop a reservation for a call that did not complete."""
        with self._lock:
            self._reservations.pop(reservation.id, None)

    def window_counts(self, now: Optional[datetime] = None) -> Dict[QuotaWindow, int]:
        """Count records and held reservations inside each window."""
        with self._lock:
            return self._counts(now or self._clock())

    def usage_stats(self, now: Optional[datetime] = None) -> UsageStats:
        """Usage, limit and remaining capacity for every window."""
        with self._lock:
            now = now or self._clock()
            counts = self._counts(now)
            cutoff = now - QuotaWindow.MONTH.duration
            month_records = [r for r in self._records if cutoff < r.timestamp <= now]
            return UsageStats(
                windows={
                    window.value: WindowUsage(used=counts[window], limit=window.limit(self.limits))
                    for window in QuotaWindow
                },
                total_tokens=sum(r.tokens_consumed for r in month_records),
                total_requests=len(month_records),
            )

    def prune(self, now: Optional[datetime] = None) -> int:
        """Physically drop records older than the longest window.

        Returns:
            Number of records removed
        """
        with self._lock:
            return self._prune(now or self._clock())

    def _append(self, record: UsageRecord) -> None:
        if self._records and record.timestamp < self._records[-1].timestamp:
            self._records.append(record)
            self._records.sort(key=lambda r: r.timestamp)
        else:
            self._records.append(record)
        self._prune(self._records[-1].timestamp)

    def _prune(self, now: datetime) -> int:
        cutoff = now - QuotaWindow.MONTH.duration
        keep = [r for r in self._records if r.timestamp > cutoff]
        removed = len(self._records) - len(keep)
        self._records = keep
        # Reservations never settled (abandoned streams) stop counting here
        self._reservations = {
            rid: reservation
            for rid, reservation in self._reservations.items()
            if reservation.timestamp > cutoff
        }
        return removed

    def _timestamps(self, now: datetime, window: QuotaWindow) -> List[datetime]:
        """Timestamps inside the window, one per request unit, oldest first."""
        cutoff = now - window.duration
        stamps = [r.timestamp for r in self._records if cutoff < r.timestamp <= now]
        for reservation in self._reservations.values():
            if cutoff < reservation.timestamp <= now:
                stamps.extend([reservation.timestamp] * reservation.cost)
        stamps.sort()
        return stamps

    def _counts(self, now: datetime) -> Dict[QuotaWindow, int]:
        return {window: len(self._timestamps(now, window)) for window in QuotaWindow}

    def _check(self, now: datetime, cost: int) -> None:
        """Raise QuotaExceededError if ``cost`` more units do not fit.

        When several windows are violated at once, the error names the
        longest-horizon one (month over day over minute), not the
        tightest: that window decides when the next call can succeed,
        and ``retry_after`` is measured against it.
        """
        self._prune(now)

        violated = None
        for window in QuotaWindow:
            stamps = self._timestamps(now, window)
            limit = window.limit(self.limits)
            # Meeting the limit exactly is allowed
            if len(stamps) + cost > limit:
                violated = (window, stamps, limit)

        if violated is None:
            return

        # Longest violated window decides when the next call can succeed
        window, stamps, limit = violated
        used = len(stamps)
        excess = used + cost - limit
        if excess > used:
            retry_after = window.duration.total_seconds()
        else:
            expires_at = stamps[excess - 1] + window.duration
            retry_after = max((expires_at - now).total_seconds(), 0.0)

        lib_logger.info(
            f"Admission denied: {window.value} window at {used}/{limit}, retry in {retry_after:.0f}s"
        )
        raise QuotaExceededError(
            window=window.value,
            limit=limit,
            used=used,
            retry_after=retry_after,
            message=(
                f"Quota exceeded for the {window.value} window "
                f"({used}/{limit} requests). {UPGRADE_MESSAGES[window.value]}"
            ),
        )
