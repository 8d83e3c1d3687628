from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hrms.audit import client_ip, log_audit, user_agent
from hrms.db import get_db
from hrms.errors import ApiError
from hrms.models import AuditActorType, User, UserRole
from hrms.schemas import LoginRequest, MeResponse, TokenResponse
from hrms.security import (
    CurrentUser,
    create_access_token,
    ensure_login_attempt_allowed,
    register_login_failure,
    register_login_success,
    require_user,
    verify_password,
)

router = APIRouter(tags=["auth"])


def _find_user(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(func.lower(User.email) == email))


@router.post("/api/auth/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TokenResponse:
    email = payload.email.strip().lower()
    ip = client_ip(request)
    agent = user_agent(request)
    request_id = getattr(request.state, "request_id", None)

    if ip:
        try:
            ensure_login_attempt_allowed(ip)
        except ApiError:
            log_audit(
                db,
                actor_type=AuditActorType.SYSTEM,
                actor_id=email,
                action="LOGIN_FAIL",
                success=False,
                ip=ip,
                user_agent=agent,
                details={"reason": "TOO_MANY_ATTEMPTS"},
                request_id=request_id,
            )
            raise

    user = _find_user(db, email)
    if user is None or not user.is_active or not verify_password(payload.password, user.password_hash):
        if ip:
            register_login_failure(ip)
        log_audit(
            db,
            actor_type=AuditActorType.SYSTEM,
            actor_id=email,
            action="LOGIN_FAIL",
            success=False,
            ip=ip,
            user_agent=agent,
            details={"reason": "INVALID_CREDENTIALS"},
            request_id=request_id,
        )
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid credentials.")

    if ip:
        register_login_success(ip)

    access_token, expires_in, claims = create_access_token(user)
    request.state.actor = claims["role"]
    request.state.actor_id = user.email
    log_audit(
        db,
        actor_type=AuditActorType.ADMIN if user.role == UserRole.ADMIN else AuditActorType.USER,
        actor_id=user.email,
        action="LOGIN_SUCCESS",
        success=True,
        ip=ip,
        user_agent=agent,
        details={"access_jti": claims["jti"]},
        request_id=request_id,
    )
    return TokenResponse(access_token=access_token, expires_in=expires_in)


@router.get("/api/auth/me", response_model=MeResponse)
def me(user: CurrentUser = Depends(require_user)) -> MeResponse:
    return MeResponse(
        user_id=user.user_id,
        email=user.email,
        role=user.role.value,
        full_name=user.full_name,
    )
