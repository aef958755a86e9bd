from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from config import settings
from db.database import get_db
from db.models import User
from services.system_service import (
    SystemLimitReached,
    create_system,
    delete_system,
    get_system,
    list_systems,
    system_to_dict,
    update_system,
)

router = APIRouter(prefix="/systems", tags=["systems"], dependencies=[Depends(get_current_user)])


class SystemCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    trigger: str = Field(default="", max_length=300)
    full_action: str = Field(default="", max_length=300)
    survival_action: str = Field(default="", max_length=300)
    is_paused: bool = False


class SystemUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    trigger: Optional[str] = Field(default=None, max_length=300)
    full_action: Optional[str] = Field(default=None, max_length=300)
    survival_action: Optional[str] = Field(default=None, max_length=300)
    is_paused: Optional[bool] = None


@router.get("")
def get_systems(
    active: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [system_to_dict(s) for s in list_systems(db, user.id, active_only=active)]


@router.post("", status_code=201)
def add_system(
    req: SystemCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        system = create_system(
            db,
            user.id,
            max_systems=settings.MAX_SYSTEMS_PER_USER,
            name=req.name.strip(),
            trigger=req.trigger.strip(),
            full_action=req.full_action.strip(),
            survival_action=req.survival_action.strip(),
            is_paused=req.is_paused,
        )
    except SystemLimitReached as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    db.commit()
    db.refresh(system)
    return system_to_dict(system)


@router.put("/{system_id}")
def edit_system(
    system_id: int,
    req: SystemUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    system = get_system(db, user.id, system_id)
    if not system:
        raise HTTPException(status_code=404, detail="System not found")
    updates = req.model_dump(exclude_unset=True)
    for key in ("name", "trigger", "full_action", "survival_action"):
        if isinstance(updates.get(key), str):
            updates[key] = updates[key].strip()
    update_system(system, updates)
    db.commit()
    db.refresh(system)
    return system_to_dict(system)


@router.delete("/{system_id}")
def remove_system(
    system_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    system = get_system(db, user.id, system_id)
    if not system:
        raise HTTPException(status_code=404, detail="System not found")
    delete_system(db, system)
    db.commit()
    return {"status": "deleted", "id": system_id}
