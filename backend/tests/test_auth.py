"""Tests for staff sign-in, password hashing and access tokens."""
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from careplan.core.config import settings
from careplan.core.exceptions import AuthenticationFailed
from careplan.core.security import (
    StaffSession,
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from careplan.models.base import Base, generate_uuid
from careplan.models.user import StaffRole, StaffUser
from careplan.services.auth import sign_in


@pytest.fixture()
def live_db(monkeypatch):
    """In-memory staff table with one active and one disabled account, live mode on."""
    monkeypatch.setattr(settings, "DATABASE_URL", "sqlite://")
    monkeypatch.setattr(settings, "DEMO_MODE", "")
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    db = TestSession()
    db.add(StaffUser(
        id=generate_uuid(),
        email="nurse@example.jp",
        hashed_password=get_password_hash("correct-horse"),
        full_name="佐々木 恵",
        role=StaffRole.NURSE,
    ))
    db.add(StaffUser(
        id=generate_uuid(),
        email="retired@example.jp",
        hashed_password=get_password_hash("correct-horse"),
        full_name="退職 済",
        role=StaffRole.NURSE,
        is_active=False,
    ))
    db.commit()
    yield db
    db.close()


class TestPasswordHashing:
    def test_round_trip(self):
        hashed = get_password_hash("secret")
        assert hashed != "secret"
        assert verify_password("secret", hashed)
        assert not verify_password("wrong", hashed)

    def test_garbage_hash_does_not_verify(self):
        assert verify_password("secret", "not-a-bcrypt-hash") is False


class TestAccessToken:
    def setup_method(self):
        self.session = StaffSession(user_id="u1", email="a@b.jp", full_name="A", role=StaffRole.NURSE)

    def test_claims(self):
        payload = decode_access_token(create_access_token(self.session))
        assert payload["sub"] == "u1"
        assert payload["role"] == StaffRole.NURSE
        assert payload["type"] == "access"
        assert payload["demo"] is False

    def test_expired_token_is_rejected(self):
        token = create_access_token(self.session, expires_delta=timedelta(seconds=-1))
        assert decode_access_token(token) is None


class TestSignIn:
    def test_demo_pair_always_succeeds(self):
        session = sign_in(settings.DEMO_LOGIN_EMAIL, settings.DEMO_LOGIN_PASSWORD).unwrap()
        assert session.demo is True
        assert session.user_id == "12345"
        assert session.full_name == "山田 花子"
        assert session.role == "看護師"

    def test_offline_rejects_everything_else(self, monkeypatch):
        monkeypatch.setattr(settings, "DEMO_MODE", "true")
        result = sign_in("nurse@example.jp", "correct-horse")
        assert not result.is_ok
        assert isinstance(result.error, AuthenticationFailed)

    def test_live_account(self, live_db):
        session = sign_in("nurse@example.jp", "correct-horse", db=live_db).unwrap()
        assert session.full_name == "佐々木 恵"
        assert session.demo is False

    def test_wrong_password(self, live_db):
        assert not sign_in("nurse@example.jp", "nope", db=live_db).is_ok

    def test_unknown_email(self, live_db):
        assert not sign_in("nobody@example.jp", "correct-horse", db=live_db).is_ok

    def test_disabled_account(self, live_db):
        result = sign_in("retired@example.jp", "correct-horse", db=live_db)
        assert isinstance(result.error, AuthenticationFailed)
