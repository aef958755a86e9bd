from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from services.log_store import DailyStatus, StatusLookup, is_completed, is_miss
from utils.datetime_utils import DayLike, format_day, parse_day, previous_day

DEFAULT_MAX_LOOKBACK_DAYS = 1098
COMEBACK_THRESHOLD = 2
DEFAULT_COMEBACK_LOOKBACK_DAYS = 2


@dataclass(frozen=True)
class ComebackStatus:
    system_id: int
    consecutive_misses: int
    missed_dates: tuple[str, ...] = ()

    @property
    def is_comeback(self) -> bool:
        return self.consecutive_misses >= COMEBACK_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "system_id": self.system_id,
            "is_comeback": self.is_comeback,
            "consecutive_misses": self.consecutive_misses,
            "missed_dates": list(self.missed_dates),
        }


def scan_back(
    status_of: StatusLookup,
    start: DayLike,
    matches: Callable[[DailyStatus], bool],
    *,
    limit: int,
    earliest: DayLike | None = None,
) -> list[str]:
    """Walk backward from ``start`` (inclusive) while ``matches`` holds.

    Returns the matching days newest first. The walk stops at the first day
    that does not match, after ``limit`` days, or before passing ``earliest``.
    Lookup errors propagate unchanged.
    """
    if limit < 0:
        raise ValueError("limit must be non-negative")
    day = format_day(parse_day(start))
    floor = parse_day(earliest) if earliest is not None else None
    matched: list[str] = []
    while len(matched) < limit:
        if floor is not None and parse_day(day) < floor:
            break
        if not matches(status_of(day)):
            break
        matched.append(day)
        day = previous_day(day)
    return matched


def calculate_streak(
    status_of: StatusLookup,
    reference_day: DayLike,
    *,
    max_lookback: int = DEFAULT_MAX_LOOKBACK_DAYS,
) -> int:
    """Consecutive completed days ending at ``reference_day`` (inclusive)."""
    return len(scan_back(status_of, reference_day, is_completed, limit=max_lookback))


def detect_comeback(
    system_id: int,
    status_of: StatusLookup,
    today: DayLike,
    *,
    lookback: int | None = DEFAULT_COMEBACK_LOOKBACK_DAYS,
    max_lookback: int = DEFAULT_MAX_LOOKBACK_DAYS,
    earliest: DayLike | None = None,
) -> ComebackStatus:
    """Count consecutive missed days before ``today``; today itself is never inspected.

    ``lookback=None`` scans back as far as ``max_lookback``. ``earliest`` is
    normally the day the system was created, so days before it existed are not
    counted against it.
    """
    limit = max_lookback if lookback is None else min(lookback, max_lookback)
    missed = scan_back(status_of, previous_day(today), is_miss, limit=limit, earliest=earliest)
    return ComebackStatus(
        system_id=system_id,
        consecutive_misses=len(missed),
        missed_dates=tuple(reversed(missed)),
    )


def comeback_systems(
    statuses: Iterable[ComebackStatus],
) -> list[ComebackStatus]:
    return [status for status in statuses if status.is_comeback]
