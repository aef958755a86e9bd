from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from db.models import System, WeeklySync

logger = logging.getLogger(__name__)

DEFAULT_SYSTEMS: tuple[dict[str, str], ...] = (
    {
        "name": "Morning Movement",
        "trigger": "After waking up",
        "full_action": "30-min walk/gym",
        "survival_action": "5-min stretch",
    },
    {
        "name": "Ship Something Small",
        "trigger": "During work hours",
        "full_action": "30-min focused work",
        "survival_action": "Send one email",
    },
    {
        "name": "Family Connection",
        "trigger": "After work",
        "full_action": "30-min quality time",
        "survival_action": "5-min check-in",
    },
    {
        "name": "Partner Wind-Down",
        "trigger": "Before bed",
        "full_action": "30-min together time",
        "survival_action": "5-min gratitude share",
    },
)

EDITABLE_FIELDS = ("name", "trigger", "full_action", "survival_action", "is_paused")


class SystemLimitReached(Exception):
    """Raised when a user already owns the maximum number of systems."""


def system_to_dict(system: System) -> dict[str, Any]:
    return {
        "id": system.id,
        "name": system.name,
        "trigger": system.trigger,
        "full_action": system.full_action,
        "survival_action": system.survival_action,
        "is_paused": bool(system.is_paused),
        "created_at": system.created_at.isoformat() if system.created_at else None,
    }


def list_systems(db: Session, user_id: int, *, active_only: bool = False) -> list[System]:
    query = db.query(System).filter(System.user_id == user_id)
    if active_only:
        query = query.filter(System.is_paused.is_(False))
    return query.order_by(System.created_at.asc(), System.id.asc()).all()


def get_system(db: Session, user_id: int, system_id: int) -> System | None:
    return db.query(System).filter(System.id == system_id, System.user_id == user_id).first()


def create_system(db: Session, user_id: int, *, max_systems: int, **fields: Any) -> System:
    count = db.query(System).filter(System.user_id == user_id).count()
    if count >= max_systems:
        logger.warning("User %s hit the system limit (%s)", user_id, max_systems)
        raise SystemLimitReached(f"You can track at most {max_systems} systems")
    system = System(user_id=user_id, **{k: v for k, v in fields.items() if k in EDITABLE_FIELDS})
    db.add(system)
    db.flush()
    return system


def update_system(system: System, updates: dict[str, Any]) -> System:
    for name in EDITABLE_FIELDS:
        if name in updates and updates[name] is not None:
            setattr(system, name, updates[name])
    system.updated_at = datetime.now(timezone.utc)
    return system


def delete_system(db: Session, system: System) -> None:
    """Remove a system and its logs; weekly syncs keep their text but lose the link."""
    (
        db.query(WeeklySync)
        .filter(WeeklySync.adjusted_system_id == system.id)
        .update({WeeklySync.adjusted_system_id: None}, synchronize_session=False)
    )
    db.delete(system)
    db.flush()


def seed_default_systems(db: Session, user_id: int) -> list[System]:
    created = [System(user_id=user_id, is_paused=False, **defaults) for defaults in DEFAULT_SYSTEMS]
    db.add_all(created)
    db.flush()
    return created
