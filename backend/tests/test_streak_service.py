from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base  # noqa: E402
from db.models import System, User  # noqa: E402
from services.log_store import DailyStatus, LogStore, StoreUnavailable, is_completed  # noqa: E402
from services.streak_service import (  # noqa: E402
    calculate_streak,
    comeback_systems,
    detect_comeback,
    scan_back,
)

D = DailyStatus
TODAY = "2024-05-15"


def _lookup(statuses: dict[str, DailyStatus]):
    calls: list[str] = []

    def status_of(day: str) -> DailyStatus:
        calls.append(day)
        return statuses.get(day, D.ABSENT)

    status_of.calls = calls  # type: ignore[attr-defined]
    return status_of


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user_with_system(db, username: str = "streak_tester") -> tuple[User, System]:
    user = User(username=username, username_normalized=username, password_hash="hash", display_name="Streak Tester")
    db.add(user)
    db.flush()
    system = System(user_id=user.id, name="Morning Movement", trigger="After waking up")
    db.add(system)
    db.commit()
    return user, system


def test_skip_breaks_the_streak():
    status_of = _lookup({
        "2024-05-12": D.DONE,
        "2024-05-13": D.DONE,
        "2024-05-14": D.SKIP,
        "2024-05-15": D.DONE,
    })
    assert calculate_streak(status_of, TODAY) == 1


def test_streak_counts_survival_days_and_stops_at_cleared_log():
    status_of = _lookup({
        "2024-05-11": D.DONE,
        "2024-05-12": D.NULL,
        "2024-05-13": D.SURVIVAL,
        "2024-05-14": D.DONE,
        "2024-05-15": D.SURVIVAL,
    })
    assert calculate_streak(status_of, TODAY) == 3


def test_reference_day_without_log_yields_zero():
    status_of = _lookup({"2024-05-14": D.DONE, "2024-05-13": D.DONE})
    assert calculate_streak(status_of, TODAY) == 0
    assert status_of.calls == [TODAY]


def test_completing_today_extends_yesterdays_streak_by_one():
    history = {"2024-05-12": D.DONE, "2024-05-13": D.SURVIVAL, "2024-05-14": D.DONE}
    before_today = calculate_streak(_lookup(history), "2024-05-14")
    assert calculate_streak(_lookup(history), TODAY) == 0

    history[TODAY] = D.DONE
    assert calculate_streak(_lookup(history), TODAY) == before_today + 1


def test_streak_is_bounded_by_max_lookback():
    calls: list[str] = []

    def always_done(day: str) -> DailyStatus:
        calls.append(day)
        return D.DONE

    assert calculate_streak(always_done, TODAY, max_lookback=30) == 30
    assert len(calls) == 30
    assert calls[-1] == "2024-04-16"


def test_scan_back_respects_earliest_day():
    matched = scan_back(_lookup({}), TODAY, lambda status: True, limit=10, earliest="2024-05-13")
    assert matched == ["2024-05-15", "2024-05-14", "2024-05-13"]


def test_scan_back_propagates_lookup_failures():
    def failing(day: str) -> DailyStatus:
        if day == "2024-05-13":
            raise StoreUnavailable("boom")
        return D.DONE

    with pytest.raises(StoreUnavailable):
        calculate_streak(failing, TODAY)


def test_comeback_absent_then_skip():
    status_of = _lookup({"2024-05-13": D.SKIP})
    result = detect_comeback(7, status_of, TODAY)
    assert result.is_comeback is True
    assert result.consecutive_misses == 2
    assert result.missed_dates == ("2024-05-13", "2024-05-14")
    assert TODAY not in status_of.calls


def test_comeback_not_flagged_when_yesterday_done():
    result = detect_comeback(7, _lookup({"2024-05-14": D.DONE, "2024-05-13": D.SKIP}), TODAY)
    assert result.is_comeback is False
    assert result.consecutive_misses == 0
    assert result.missed_dates == ()


def test_comeback_counts_cleared_logs_as_misses():
    result = detect_comeback(7, _lookup({"2024-05-14": D.NULL, "2024-05-13": D.DONE}), TODAY)
    assert result.consecutive_misses == 1
    assert result.is_comeback is False


def test_unbounded_comeback_scan_stops_at_first_completed_day():
    statuses = {"2024-05-10": D.DONE, "2024-05-11": D.SKIP, "2024-05-12": D.SKIP, "2024-05-13": D.NULL}
    result = detect_comeback(7, _lookup(statuses), TODAY, lookback=None)
    assert result.consecutive_misses == 4
    assert result.missed_dates == ("2024-05-11", "2024-05-12", "2024-05-13", "2024-05-14")


def test_comeback_ignores_days_before_system_existed():
    result = detect_comeback(7, _lookup({}), TODAY, lookback=None, earliest="2024-05-14")
    assert result.consecutive_misses == 1
    assert result.is_comeback is False


def test_comeback_systems_filters_flagged_only():
    flagged = detect_comeback(1, _lookup({}), TODAY)
    calm = detect_comeback(2, _lookup({"2024-05-14": D.DONE}), TODAY)
    assert [status.system_id for status in comeback_systems([flagged, calm])] == [1]


def test_log_store_distinguishes_absent_and_cleared():
    db = _new_db()
    user, system = _new_user_with_system(db)
    store = LogStore(db)

    assert store.get(user.id, system.id, TODAY) == D.ABSENT
    store.upsert(user.id, system.id, TODAY, D.DONE)
    store.upsert(user.id, system.id, TODAY, None)
    db.commit()

    assert store.get(user.id, system.id, TODAY) == D.NULL
    assert store.list_for_day(user.id, TODAY) == {system.id: D.NULL}
    assert not is_completed(store.get(user.id, system.id, TODAY))


def test_log_store_upsert_keeps_one_row_per_day():
    db = _new_db()
    user, system = _new_user_with_system(db, "upsert_tester")
    store = LogStore(db)

    store.upsert(user.id, system.id, "2024-05-14", D.SKIP)
    store.upsert(user.id, system.id, "2024-05-14", D.DONE)
    store.upsert(user.id, system.id, TODAY, D.SURVIVAL)
    db.commit()

    assert store.get(user.id, system.id, "2024-05-14") == D.DONE
    assert calculate_streak(store.lookup_for(user.id, system.id), TODAY) == 2


def test_log_store_rejects_absent_as_a_recorded_status():
    db = _new_db()
    user, system = _new_user_with_system(db, "absent_tester")
    with pytest.raises(ValueError):
        LogStore(db).upsert(user.id, system.id, TODAY, D.ABSENT)


def test_store_failure_surfaces_instead_of_zero_streak():
    engine = create_engine("sqlite:///:memory:")
    broken = sessionmaker(bind=engine)()  # no tables created
    store = LogStore(broken)
    with pytest.raises(StoreUnavailable):
        calculate_streak(store.lookup_for(1, 1), TODAY)
    with pytest.raises(StoreUnavailable):
        detect_comeback(1, store.lookup_for(1, 1), TODAY)
