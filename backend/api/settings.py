from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.tracker_service import ensure_settings, set_survival_mode, user_today
from utils.datetime_utils import is_valid_timezone

router = APIRouter(prefix="/settings", tags=["settings"], dependencies=[Depends(get_current_user)])


class SettingsUpdateRequest(BaseModel):
    survival_mode: Optional[bool] = None
    timezone: Optional[str] = None


def _settings_to_dict(user: User) -> dict:
    row = user.settings
    return {
        "survival_mode": bool(row.survival_mode),
        "timezone": row.timezone,
        "tracker_date": row.tracker_date,
        "today": user_today(user),
    }


@router.get("")
def get_settings(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_settings(db, user)
    db.commit()
    return _settings_to_dict(user)


@router.put("")
def update_settings(
    req: SettingsUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = ensure_settings(db, user)
    if req.timezone is not None:
        tz_name = req.timezone.strip()
        if not is_valid_timezone(tz_name):
            raise HTTPException(status_code=422, detail=f"Unknown timezone: {tz_name}")
        row.timezone = tz_name
    if req.survival_mode is not None:
        set_survival_mode(db, user, req.survival_mode)
    db.commit()
    db.refresh(row)
    return _settings_to_dict(user)
