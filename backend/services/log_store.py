from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import DailyLog
from utils.datetime_utils import DayLike, format_day, parse_day

logger = logging.getLogger(__name__)


class DailyStatus(str, Enum):
    DONE = "done"
    SURVIVAL = "survival"
    SKIP = "skip"
    NULL = "null"  # a row exists but its status was cleared
    ABSENT = "absent"  # no row for (user, system, day)


LOGGABLE_STATUSES = frozenset({DailyStatus.DONE, DailyStatus.SURVIVAL, DailyStatus.SKIP})
COMPLETED_STATUSES = frozenset({DailyStatus.DONE, DailyStatus.SURVIVAL})

StatusLookup = Callable[[str], DailyStatus]


class StoreUnavailable(Exception):
    """Raised when the log store cannot answer; never means "no log"."""


def status_from_row(raw: str | None) -> DailyStatus:
    if raw is None:
        return DailyStatus.NULL
    try:
        return DailyStatus(raw)
    except ValueError:
        logger.warning("Unknown stored log status %r, treating as cleared", raw)
        return DailyStatus.NULL


def is_completed(status: DailyStatus) -> bool:
    return status in COMPLETED_STATUSES


def is_miss(status: DailyStatus) -> bool:
    """absent, cleared and skipped days all count as misses."""
    return not is_completed(status)


class LogStore:
    """Read/write access to ``daily_logs`` for the adherence calculations."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int, system_id: int, day: DayLike) -> DailyStatus:
        key = format_day(parse_day(day))
        try:
            row = (
                self.db.query(DailyLog.status)
                .filter(
                    DailyLog.user_id == user_id,
                    DailyLog.system_id == system_id,
                    DailyLog.log_date == key,
                )
                .first()
            )
        except SQLAlchemyError as exc:
            logger.error("Log lookup failed for user=%s system=%s day=%s: %s", user_id, system_id, key, exc)
            raise StoreUnavailable("Daily log store is unavailable") from exc
        if row is None:
            return DailyStatus.ABSENT
        return status_from_row(row[0])

    def list_for_day(self, user_id: int, day: DayLike) -> dict[int, DailyStatus]:
        key = format_day(parse_day(day))
        try:
            rows = (
                self.db.query(DailyLog.system_id, DailyLog.status)
                .filter(DailyLog.user_id == user_id, DailyLog.log_date == key)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error("Log listing failed for user=%s day=%s: %s", user_id, key, exc)
            raise StoreUnavailable("Daily log store is unavailable") from exc
        return {int(system_id): status_from_row(status) for system_id, status in rows}

    def lookup_for(self, user_id: int, system_id: int) -> StatusLookup:
        def status_of(day: str) -> DailyStatus:
            return self.get(user_id, system_id, day)

        return status_of

    def upsert(self, user_id: int, system_id: int, day: DayLike, status: DailyStatus | None) -> DailyLog:
        """Insert or update the single log for (user, system, day).

        ``None`` (or ``DailyStatus.NULL``) keeps the row but clears its status.
        """
        if status is not None and status not in LOGGABLE_STATUSES and status != DailyStatus.NULL:
            raise ValueError(f"Cannot record status {status!r}")
        key = format_day(parse_day(day))
        raw = None if status in (None, DailyStatus.NULL) else status.value
        try:
            row = (
                self.db.query(DailyLog)
                .filter(
                    DailyLog.user_id == user_id,
                    DailyLog.system_id == system_id,
                    DailyLog.log_date == key,
                )
                .first()
            )
            if row is None:
                row = DailyLog(user_id=user_id, system_id=system_id, log_date=key, status=raw)
                self.db.add(row)
            else:
                row.status = raw
            self.db.flush()
        except SQLAlchemyError as exc:
            logger.error("Log upsert failed for user=%s system=%s day=%s: %s", user_id, system_id, key, exc)
            raise StoreUnavailable("Daily log store is unavailable") from exc
        return row
