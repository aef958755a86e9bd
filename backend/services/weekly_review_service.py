from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import System, WeeklySync
from services.log_store import DailyStatus, StatusLookup, StoreUnavailable, is_completed, is_miss
from utils.datetime_utils import WEEKDAY_NAMES, DayLike, parse_day, week_start, week_window

logger = logging.getLogger(__name__)

WEEK_LENGTH = 7
SYNC_FIELDS = ("win", "pattern", "hard_days", "adjusted_system_id", "adjustment_note", "intention")

# (minimum completion %, label), checked in order
_MOMENTUM_LABELS: tuple[tuple[int, str], ...] = (
    (100, "perfect week"),
    (80, "strong consistency"),
    (50, "building momentum"),
    (1, "starting small"),
)


@dataclass(frozen=True)
class WeekPattern:
    kind: str  # "weekday" | "momentum"
    label: str
    weekday_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "label": self.label, "weekday_index": self.weekday_index}


def completion_pct(statuses: Sequence[DailyStatus]) -> int:
    """Completed share of a full week; days not yet inspected count as not completed."""
    completed = sum(1 for status in statuses[:WEEK_LENGTH] if is_completed(status))
    return round(100 * completed / WEEK_LENGTH)


def _momentum_label(pct: int) -> str | None:
    for minimum, label in _MOMENTUM_LABELS:
        if pct >= minimum:
            return label
    return None


def skip_pattern(statuses: Sequence[DailyStatus]) -> WeekPattern | None:
    """Most-missed weekday, or a momentum label when nothing was missed.

    ``statuses`` are Monday first. Ties go to the earliest weekday.
    """
    tally = [0] * WEEK_LENGTH
    for index, status in enumerate(statuses[:WEEK_LENGTH]):
        if is_miss(status):
            tally[index] += 1
    top = max(tally)
    if top >= 1:
        index = tally.index(top)
        return WeekPattern(kind="weekday", label=f"You often skip {WEEKDAY_NAMES[index]}s", weekday_index=index)

    label = _momentum_label(completion_pct(statuses))
    if label is None:
        return None
    return WeekPattern(kind="momentum", label=label)


def week_statuses(status_of: StatusLookup, days: Sequence[str]) -> list[DailyStatus]:
    return [status_of(day) for day in days]


def build_week_review(
    systems: Sequence[System],
    reference_day: DayLike,
    lookup_for: Callable[[System], StatusLookup],
    *,
    through: DayLike | None = None,
) -> dict[str, Any]:
    """Per-system status matrix for the week containing ``reference_day``.

    Days after ``through`` (normally today) are not fetched and show as ``None``,
    so an unfinished week is not reported as skipped.
    """
    days = week_window(reference_day)
    if through is not None:
        last = parse_day(through)
        inspected = [day for day in days if parse_day(day) <= last]
    else:
        inspected = days
    rows = []
    for system in systems:
        statuses = week_statuses(lookup_for(system), inspected)
        pattern = skip_pattern(statuses)
        cells: list[str | None] = [status.value for status in statuses]
        cells.extend([None] * (len(days) - len(cells)))
        rows.append(
            {
                "system_id": system.id,
                "name": system.name,
                "statuses": cells,
                "completion_pct": completion_pct(statuses),
                "pattern": pattern.to_dict() if pattern else None,
            }
        )
    return {
        "week_start": days[0],
        "week_end": days[-1],
        "days": days,
        "weekdays": [name[:3] for name in WEEKDAY_NAMES],
        "systems": rows,
    }


def sync_to_dict(record: WeeklySync) -> dict[str, Any]:
    return {
        "id": record.id,
        "week_start": record.week_start,
        "win": record.win,
        "pattern": record.pattern,
        "hard_days": record.hard_days,
        "adjusted_system_id": record.adjusted_system_id,
        "adjustment_note": record.adjustment_note,
        "intention": record.intention,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


class WeeklySyncStore:
    """One reflection per (user, week_start); saving again updates it."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int, day: DayLike) -> WeeklySync | None:
        key = week_start(day)
        try:
            return (
                self.db.query(WeeklySync)
                .filter(WeeklySync.user_id == user_id, WeeklySync.week_start == key)
                .first()
            )
        except SQLAlchemyError as exc:
            logger.error("Weekly sync lookup failed for user=%s week=%s: %s", user_id, key, exc)
            raise StoreUnavailable("Weekly sync store is unavailable") from exc

    def upsert(self, user_id: int, day: DayLike, fields: dict[str, Any]) -> WeeklySync:
        key = week_start(day)
        unknown = set(fields) - set(SYNC_FIELDS)
        if unknown:
            raise ValueError(f"Unknown weekly sync fields: {sorted(unknown)}")
        record = self.get(user_id, key)
        try:
            if record is None:
                record = WeeklySync(user_id=user_id, week_start=key)
                self.db.add(record)
                logger.info("Creating weekly sync for user=%s week=%s", user_id, key)
            else:
                logger.info("Updating weekly sync %s for user=%s week=%s", record.id, user_id, key)
            for name in SYNC_FIELDS:
                if name in fields:
                    setattr(record, name, fields[name])
            record.updated_at = datetime.now(timezone.utc)
            self.db.flush()
        except SQLAlchemyError as exc:
            logger.error("Weekly sync upsert failed for user=%s week=%s: %s", user_id, key, exc)
            raise StoreUnavailable("Weekly sync store is unavailable") from exc
        return record

    def history(self, user_id: int) -> list[WeeklySync]:
        try:
            return (
                self.db.query(WeeklySync)
                .filter(WeeklySync.user_id == user_id)
                .order_by(WeeklySync.week_start.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error("Weekly sync history failed for user=%s: %s", user_id, exc)
            raise StoreUnavailable("Weekly sync store is unavailable") from exc
