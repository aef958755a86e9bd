from datetime import datetime
from sqlalchemy import (
    Column, Integer, Text, Boolean, ForeignKey, Index, UniqueConstraint,
    DateTime,
)
from sqlalchemy.orm import relationship
from db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, unique=True, nullable=False)
    username_normalized = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    display_name = Column(Text, nullable=False)
    token_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    settings = relationship("UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan")
    systems = relationship("System", back_populates="user", cascade="all, delete-orphan")
    daily_logs = relationship("DailyLog", back_populates="user", cascade="all, delete-orphan")
    weekly_syncs = relationship("WeeklySync", back_populates="user", cascade="all, delete-orphan")


class UserSettings(Base):
    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    survival_mode = Column(Boolean, nullable=False, default=False)
    tracker_date = Column(Text)  # YYYY-MM-DD, the day the tracker is viewing
    timezone = Column(Text)  # IANA name, e.g. "Europe/Berlin"
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="settings")


class System(Base):
    __tablename__ = "systems"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    trigger = Column(Text, nullable=False, default="")
    full_action = Column(Text, nullable=False, default="")
    survival_action = Column(Text, nullable=False, default="")
    is_paused = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="systems")
    logs = relationship("DailyLog", back_populates="system", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_systems_user_created", "user_id", "created_at"),
    )


class DailyLog(Base):
    __tablename__ = "daily_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    system_id = Column(Integer, ForeignKey("systems.id", ondelete="CASCADE"), nullable=False)
    log_date = Column(Text, nullable=False)  # YYYY-MM-DD
    status = Column(Text)  # done | survival | skip | NULL (cleared)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="daily_logs")
    system = relationship("System", back_populates="logs")

    __table_args__ = (
        UniqueConstraint("user_id", "system_id", "log_date", name="uq_daily_logs_user_system_date"),
        Index("ix_daily_logs_user_date", "user_id", "log_date"),
    )


class WeeklySync(Base):
    __tablename__ = "weekly_syncs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    week_start = Column(Text, nullable=False)  # Monday, YYYY-MM-DD
    win = Column(Text, nullable=False, default="")
    pattern = Column(Text, nullable=False, default="")
    hard_days = Column(Text)
    adjusted_system_id = Column(Integer, ForeignKey("systems.id", ondelete="SET NULL"))
    adjustment_note = Column(Text)
    intention = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="weekly_syncs")

    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_syncs_user_week"),
    )
