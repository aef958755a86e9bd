from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from config import settings
from db.database import get_db
from db.models import User
from services.log_store import DailyStatus, LogStore
from services.streak_service import calculate_streak
from services.system_service import get_system, list_systems
from services.tracker_service import (
    FutureDayError,
    build_tracker_view,
    get_tracker_date,
    resolve_day,
    set_tracker_date,
    statuses_for_day,
)

router = APIRouter(tags=["tracker"], dependencies=[Depends(get_current_user)])


class LogUpdateRequest(BaseModel):
    status: Optional[Literal["done", "survival", "skip"]] = None
    date: Optional[str] = None


class TrackerDateRequest(BaseModel):
    date: str


def _resolve(user: User, day: Optional[str]) -> str:
    try:
        return resolve_day(user, day)
    except FutureDayError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/tracker")
def tracker_view(
    date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if date is not None:
        _resolve(user, date)
    view = build_tracker_view(db, user, date, max_lookback=settings.STREAK_MAX_LOOKBACK_DAYS)
    db.commit()
    return view


@router.get("/tracker/date")
def tracker_date(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    value = get_tracker_date(db, user)
    db.commit()
    return {"date": value}


@router.put("/tracker/date")
def update_tracker_date(
    req: TrackerDateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        value = set_tracker_date(db, user, req.date)
    except FutureDayError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    return {"date": value}


@router.get("/logs")
def logs_for_day(
    date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    day = _resolve(user, date)
    systems = list_systems(db, user.id)
    return {"date": day, "logs": statuses_for_day(LogStore(db), user, systems, day)}


@router.put("/logs/{system_id}")
def save_log(
    system_id: int,
    req: LogUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    system = get_system(db, user.id, system_id)
    if not system:
        raise HTTPException(status_code=404, detail="System not found")
    day = _resolve(user, req.date)
    status = DailyStatus(req.status) if req.status else None
    LogStore(db).upsert(user.id, system.id, day, status)
    db.commit()
    return {"system_id": system.id, "date": day, "status": req.status}


@router.get("/systems/{system_id}/streak")
def system_streak(
    system_id: int,
    date: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    system = get_system(db, user.id, system_id)
    if not system:
        raise HTTPException(status_code=404, detail="System not found")
    day = _resolve(user, date)
    streak = calculate_streak(
        LogStore(db).lookup_for(user.id, system.id),
        day,
        max_lookback=settings.STREAK_MAX_LOOKBACK_DAYS,
    )
    return {"system_id": system.id, "date": day, "streak": streak}
