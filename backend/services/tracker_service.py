from __future__ import annotations

import logging
from datetime import timezone
from typing import Any

from sqlalchemy.orm import Session

from config import settings as app_settings
from db.models import System, User, UserSettings
from services.log_store import DailyStatus, LogStore
from services.streak_service import calculate_streak, comeback_systems, detect_comeback
from services.system_service import list_systems, system_to_dict
from utils.datetime_utils import (
    DayLike,
    format_day,
    is_future,
    is_today,
    next_day,
    parse_day,
    previous_day,
    today_string,
    week_window,
)

logger = logging.getLogger(__name__)


class FutureDayError(ValueError):
    """Raised when a log or tracker date points past the user's today."""


def ensure_settings(db: Session, user: User) -> UserSettings:
    if user.settings is None:
        user.settings = UserSettings(user_id=user.id, survival_mode=False, timezone=app_settings.DEFAULT_TIMEZONE)
        db.flush()
    return user.settings


def _tz_name(user: User) -> str | None:
    return getattr(getattr(user, "settings", None), "timezone", None) or app_settings.DEFAULT_TIMEZONE


def user_today(user: User) -> str:
    return today_string(_tz_name(user))


def resolve_day(user: User, day: DayLike | None) -> str:
    """Canonical day for a request; defaults to the user's today and rejects future days."""
    today = user_today(user)
    if day is None:
        return today
    canonical = format_day(parse_day(day))
    if is_future(canonical, today):
        raise FutureDayError(f"{canonical} is in the future")
    return canonical


def get_tracker_date(db: Session, user: User) -> str:
    row = ensure_settings(db, user)
    today = user_today(user)
    stored = row.tracker_date
    if not stored:
        return today
    try:
        if is_future(stored, today):
            return today
    except ValueError:
        logger.warning("Ignoring unreadable tracker date %r for user %s", stored, user.id)
        return today
    return stored


def set_tracker_date(db: Session, user: User, day: DayLike) -> str:
    canonical = resolve_day(user, day)
    ensure_settings(db, user).tracker_date = canonical
    return canonical


def set_survival_mode(db: Session, user: User, enabled: bool) -> bool:
    ensure_settings(db, user).survival_mode = bool(enabled)
    return bool(enabled)


def statuses_for_day(store: LogStore, user: User, systems: list[System], day: str) -> dict[int, str]:
    logged = store.list_for_day(user.id, day)
    return {system.id: logged.get(system.id, DailyStatus.ABSENT).value for system in systems}


def build_tracker_view(db: Session, user: User, day: DayLike | None = None, *, max_lookback: int) -> dict[str, Any]:
    """Week strip, per-day statuses and streaks for the day the tracker is viewing."""
    viewed = resolve_day(user, day) if day is not None else get_tracker_date(db, user)
    today = user_today(user)
    store = LogStore(db)
    systems = list_systems(db, user.id, active_only=True)
    days = week_window(viewed)
    week = {d: statuses_for_day(store, user, systems, d) for d in days}
    streaks = {
        system.id: calculate_streak(store.lookup_for(user.id, system.id), viewed, max_lookback=max_lookback)
        for system in systems
    }
    return {
        "date": viewed,
        "today": today,
        "is_today": is_today(viewed, today),
        "previous_date": previous_day(viewed),
        "next_date": None if is_today(viewed, today) else next_day(viewed),
        "week": days,
        "systems": [system_to_dict(system) for system in systems],
        "logs": week[viewed],
        "week_logs": week,
        "streaks": streaks,
        "survival_mode": bool(ensure_settings(db, user).survival_mode),
    }


def _created_day(system: System, tz_name: str | None) -> str | None:
    if system.created_at is None:
        return None
    created = system.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return format_day(created, tz_name)


def comeback_report(db: Session, user: User, *, lookback: int | None, max_lookback: int) -> list[dict[str, Any]]:
    store = LogStore(db)
    today = user_today(user)
    systems = list_systems(db, user.id, active_only=True)
    by_id = {system.id: system for system in systems}
    statuses = [
        detect_comeback(
            system.id,
            store.lookup_for(user.id, system.id),
            today,
            lookback=lookback,
            max_lookback=max_lookback,
            earliest=_created_day(system, _tz_name(user)),
        )
        for system in systems
    ]
    return [
        {**status.to_dict(), "system": system_to_dict(by_id[status.system_id])}
        for status in comeback_systems(statuses)
    ]


def build_dashboard(db: Session, user: User, *, lookback: int | None, max_lookback: int) -> dict[str, Any]:
    store = LogStore(db)
    today = user_today(user)
    systems = list_systems(db, user.id, active_only=True)
    return {
        "today": today,
        "systems": [system_to_dict(system) for system in systems],
        "logs": statuses_for_day(store, user, systems, today),
        "survival_mode": bool(ensure_settings(db, user).survival_mode),
        "comebacks": comeback_report(db, user, lookback=lookback, max_lookback=max_lookback),
    }


def restart_with_survival(db: Session, user: User, system: System) -> str:
    today = user_today(user)
    set_survival_mode(db, user, True)
    LogStore(db).upsert(user.id, system.id, today, DailyStatus.SURVIVAL)
    logger.info("User %s restarted system %s in survival mode", user.id, system.id)
    return today
