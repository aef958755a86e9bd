from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import System, User
from services.log_store import LogStore
from services.system_service import get_system, list_systems
from services.tracker_service import user_today
from services.weekly_review_service import WeeklySyncStore, build_week_review, sync_to_dict

router = APIRouter(prefix="/sync", tags=["sync"], dependencies=[Depends(get_current_user)])


class WeeklySyncRequest(BaseModel):
    week_of: Optional[str] = None
    win: str = Field(min_length=1)
    pattern: str = Field(min_length=1)
    hard_days: Optional[str] = None
    adjusted_system_id: Optional[int] = None
    adjustment_note: Optional[str] = None
    intention: Optional[str] = None


@router.get("/review")
def week_review(
    week_of: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    reference = week_of or user_today(user)
    store = LogStore(db)
    systems = list_systems(db, user.id, active_only=True)

    def lookup_for(system: System):
        return store.lookup_for(user.id, system.id)

    review = build_week_review(systems, reference, lookup_for, through=user_today(user))
    existing = WeeklySyncStore(db).get(user.id, reference)
    review["sync"] = sync_to_dict(existing) if existing else None
    return review


@router.post("")
def save_weekly_sync(
    req: WeeklySyncRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not req.win.strip() or not req.pattern.strip():
        raise HTTPException(status_code=422, detail="win and pattern are required")
    if req.adjusted_system_id is not None and not get_system(db, user.id, req.adjusted_system_id):
        raise HTTPException(status_code=404, detail="System not found")
    fields = req.model_dump(exclude={"week_of"})
    for key in ("win", "pattern", "hard_days", "adjustment_note", "intention"):
        if isinstance(fields.get(key), str):
            fields[key] = fields[key].strip()
    record = WeeklySyncStore(db).upsert(user.id, req.week_of or user_today(user), fields)
    db.commit()
    db.refresh(record)
    return sync_to_dict(record)


@router.get("")
def load_weekly_sync(
    week_of: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    record = WeeklySyncStore(db).get(user.id, week_of or user_today(user))
    return sync_to_dict(record) if record else None


@router.get("/history")
def sync_history(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [sync_to_dict(record) for record in WeeklySyncStore(db).history(user.id)]
