"""Authentication endpoints: login, me, logout and admin-only registration."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.security import (
    StaffSession,
    create_access_token,
    get_current_user,
    get_password_hash,
    require_role,
)
from ..models.base import generate_uuid, get_db
from ..models.user import StaffRole, StaffUser
from ..services.auth import sign_in

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Request / Response schemas ──────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    full_name: str
    role: str = StaffRole.NURSE
    avatar_url: Optional[str] = None


class SessionProfile(BaseModel):
    user_id: str
    email: str
    full_name: str
    role: str
    demo: bool = False


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: SessionProfile


class StaffUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: str
    role: str
    avatar_url: Optional[str]
    is_active: bool


def _profile(session: StaffSession) -> SessionProfile:
    return SessionProfile(
        user_id=session.user_id,
        email=session.email,
        full_name=session.full_name,
        role=session.role,
        demo=session.demo,
    )


# ── Endpoints ────────────────────────────────────────────────────────────────

@router.post("/login", response_model=LoginResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    """Sign in and receive a JWT access token plus the session profile."""
    result = sign_in(req.email, req.password, None if settings.offline_mode else db)
    if not result.is_ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(result.error),
            headers={"WWW-Authenticate": "Bearer"},
        )
    session = result.value
    return LoginResponse(access_token=create_access_token(session), user=_profile(session))


@router.get("/me", response_model=SessionProfile)
def get_me(current_user: StaffSession = Depends(get_current_user)):
    return _profile(current_user)


@router.post("/logout")
def logout(current_user: StaffSession = Depends(get_current_user)):
    return {"status": "signed_out"}


@router.post("/register", response_model=StaffUserResponse, status_code=status.HTTP_201_CREATED)
def register(
    req: RegisterRequest,
    db: Session = Depends(get_db),
    _admin=Depends(require_role(StaffRole.ADMIN)),
):
    """Admin-only: create a new staff account."""
    if settings.offline_mode:
        raise HTTPException(status_code=503, detail="Registration is unavailable in offline mode")
    if db.query(StaffUser).filter(StaffUser.email == req.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    if req.role not in StaffRole.ALL:
        raise HTTPException(status_code=400, detail=f"Invalid role. Choose from: {StaffRole.ALL}")

    user = StaffUser(
        id=generate_uuid(),
        email=req.email,
        hashed_password=get_password_hash(req.password),
        full_name=req.full_name,
        role=req.role,
        avatar_url=req.avatar_url,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
