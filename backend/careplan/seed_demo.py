"""
Demo account seeder.

Creates an administrator and a nurse account with known credentials so the
live/partial demo can be signed into right after a fresh start.

Credentials (printed to stdout on first run):
  Admin : admin@careplan.demo / Admin1234!
  Nurse : nurse@careplan.demo / Nurse1234!

The reserved demo login (``DEMO_LOGIN_EMAIL``) is not stored; it is accepted
without a backend lookup. In fully-offline mode nothing is seeded.

The seeder is idempotent and runs on every startup.
"""
from .core.config import settings
from .core.security import get_password_hash
from .models.base import SessionLocal, Base, engine, generate_uuid
from .models.user import StaffUser, StaffRole

DEMO_ADMIN_EMAIL = "admin@careplan.demo"
DEMO_ADMIN_PASSWORD = "Admin1234!"

DEMO_NURSE_EMAIL = "nurse@careplan.demo"
DEMO_NURSE_PASSWORD = "Nurse1234!"


def seed_demo_data() -> None:
    """Create the demo staff accounts if they do not already exist."""
    if settings.offline_mode:
        return

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        _seed_user(db, DEMO_ADMIN_EMAIL, DEMO_ADMIN_PASSWORD, "デモ 管理者", StaffRole.ADMIN)
        _seed_user(db, DEMO_NURSE_EMAIL, DEMO_NURSE_PASSWORD, "デモ 看護師", StaffRole.NURSE)
    finally:
        db.close()


def _seed_user(db, email: str, password: str, full_name: str, role: str) -> None:
    if db.query(StaffUser).filter(StaffUser.email == email).first():
        return
    user = StaffUser(
        id=generate_uuid(),
        email=email,
        hashed_password=get_password_hash(password),
        full_name=full_name,
        role=role,
    )
    db.add(user)
    db.commit()
    print(f"[seed] Created demo {role}: {email} / {password}")
