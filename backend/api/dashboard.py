from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from config import settings
from db.database import get_db
from db.models import User
from services.system_service import get_system
from services.tracker_service import build_dashboard, comeback_report, restart_with_survival

router = APIRouter(prefix="/dashboard", tags=["dashboard"], dependencies=[Depends(get_current_user)])


@router.get("")
def dashboard(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    summary = build_dashboard(
        db,
        user,
        lookback=settings.COMEBACK_LOOKBACK_DAYS,
        max_lookback=settings.STREAK_MAX_LOOKBACK_DAYS,
    )
    db.commit()
    return summary


@router.get("/comebacks")
def comebacks(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return comeback_report(
        db,
        user,
        lookback=settings.COMEBACK_LOOKBACK_DAYS,
        max_lookback=settings.STREAK_MAX_LOOKBACK_DAYS,
    )


@router.post("/comebacks/{system_id}/restart")
def restart(system_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    system = get_system(db, user.id, system_id)
    if not system:
        raise HTTPException(status_code=404, detail="System not found")
    day = restart_with_survival(db, user, system)
    db.commit()
    return {"system_id": system.id, "date": day, "status": "survival", "survival_mode": True}
