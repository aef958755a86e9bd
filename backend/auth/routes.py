import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from auth.models import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from auth.utils import (
    create_token,
    get_current_user,
    hash_password,
    normalize_username,
    session_cookie_name,
    verify_password,
)
from config import settings
from db.database import get_db
from db.models import User, UserSettings
from services.rate_limit_service import RateLimitRule, enforce_rate_limit
from services.system_service import seed_default_systems
from utils.datetime_utils import is_valid_timezone, today_string

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else "") or "unknown"


def _set_session_cookie(response: Response, token: str, *, max_age_seconds: int) -> None:
    samesite = (settings.AUTH_COOKIE_SAMESITE or "lax").strip().lower()
    if samesite not in {"strict", "lax", "none"}:
        samesite = "lax"
    response.set_cookie(
        key=session_cookie_name(),
        value=token,
        httponly=bool(settings.AUTH_COOKIE_HTTPONLY),
        secure=bool(settings.AUTH_COOKIE_SECURE),
        samesite=samesite,  # type: ignore[arg-type]
        domain=settings.AUTH_COOKIE_DOMAIN,
        path=settings.AUTH_COOKIE_PATH or "/",
        max_age=max(int(max_age_seconds), 1),
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=session_cookie_name(),
        domain=settings.AUTH_COOKIE_DOMAIN,
        path=settings.AUTH_COOKIE_PATH or "/",
    )


def _check_rate_limit(endpoint: str, limit: int, window_seconds: int, scope_key: str, detail: str) -> None:
    allowed, retry_after = enforce_rate_limit(
        rule=RateLimitRule(endpoint=endpoint, limit=limit, window_seconds=window_seconds),
        scope_key=scope_key,
    )
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers={"Retry-After": str(retry_after)},
        )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    normalized_username = normalize_username(req.username)
    _check_rate_limit(
        "/api/auth/register",
        settings.RATE_LIMIT_AUTH_REGISTER_ATTEMPTS,
        settings.RATE_LIMIT_AUTH_REGISTER_WINDOW_SECONDS,
        f"{_client_ip(request)}:{normalized_username}",
        "Too many registration attempts. Please try again later.",
    )
    if len(normalized_username) < 3:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username must be at least 3 characters")
    tz_name = (req.timezone or "").strip() or settings.DEFAULT_TIMEZONE
    if not is_valid_timezone(tz_name):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown timezone: {tz_name}")

    if db.query(User).filter(User.username_normalized == normalized_username).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")

    canonical_username = " ".join(req.username.strip().split())
    user = User(
        username=canonical_username,
        username_normalized=normalized_username,
        password_hash=hash_password(req.password),
        display_name=req.display_name,
        token_version=0,
    )
    db.add(user)
    db.flush()

    # New accounts start with settings and the starter systems
    user.settings = UserSettings(
        user_id=user.id,
        survival_mode=False,
        tracker_date=today_string(tz_name),
        timezone=tz_name,
    )
    seed_default_systems(db, user.id)
    db.commit()
    logger.info("Registered user %s", user.id)
    token = create_token(user.id, token_version=user.token_version)
    _set_session_cookie(response, token, max_age_seconds=max(int(settings.JWT_EXPIRY_HOURS), 1) * 3600)
    return TokenResponse(access_token=token)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    normalized_username = normalize_username(req.username)
    _check_rate_limit(
        "/api/auth/login",
        settings.RATE_LIMIT_AUTH_LOGIN_ATTEMPTS,
        settings.RATE_LIMIT_AUTH_LOGIN_WINDOW_SECONDS,
        f"{_client_ip(request)}:{normalized_username}",
        "Too many login attempts. Please try again later.",
    )
    user = db.query(User).filter(User.username_normalized == normalized_username).first()
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_token(user.id, token_version=user.token_version)
    _set_session_cookie(response, token, max_age_seconds=max(int(settings.JWT_EXPIRY_HOURS), 1) * 3600)
    return TokenResponse(access_token=token)


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/logout")
def logout(response: Response):
    _clear_session_cookie(response)
    return {"status": "ok"}
