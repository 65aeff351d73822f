"""
Staff sign-in.

The reserved demo credential pair always succeeds without touching the
backend. In fully-offline mode it is the only accepted pair; otherwise other
credentials are checked against the staff table (also in partial demo mode).
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import AuthenticationFailed, BackendError
from ..core.result import Err, Ok, Result
from ..core.security import StaffSession, verify_password
from ..fixtures import DEMO_USER_ID, DEMO_USER_NAME, DEMO_USER_ROLE
from ..models.user import StaffUser

logger = logging.getLogger(__name__)


def demo_session() -> StaffSession:
    return StaffSession(
        user_id=DEMO_USER_ID,
        email=settings.DEMO_LOGIN_EMAIL,
        full_name=DEMO_USER_NAME,
        role=DEMO_USER_ROLE,
        demo=True,
    )


def is_demo_credentials(email: str, password: str) -> bool:
    return email == settings.DEMO_LOGIN_EMAIL and password == settings.DEMO_LOGIN_PASSWORD


def sign_in(email: str, password: str, db: Optional[Session] = None) -> Result[StaffSession]:
    if is_demo_credentials(email, password):
        return Ok(demo_session())

    if settings.offline_mode or db is None:
        return Err(AuthenticationFailed("認証に失敗しました。テスト用アカウントを使用してください。"))

    try:
        user = db.query(StaffUser).filter(StaffUser.email == email).first()
    except SQLAlchemyError as exc:
        logger.error("Staff lookup failed during sign-in: %s", exc)
        return Err(BackendError("sign_in", exc))

    if user is None or not verify_password(password, user.hashed_password):
        return Err(AuthenticationFailed("メールアドレスまたはパスワードが正しくありません"))
    if not user.is_active:
        return Err(AuthenticationFailed("このアカウントは無効化されています"))

    return Ok(StaffSession(
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
    ))
