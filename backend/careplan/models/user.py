from sqlalchemy import Column, String, Boolean
from .base import Base, TimestampMixin, generate_uuid


class StaffRole:
    NURSE = "看護師"
    THERAPIST = "理学療法士"
    ADMIN = "管理者"

    ALL = [NURSE, THERAPIST, ADMIN]


class StaffUser(Base, TimestampMixin):
    __tablename__ = "staff_users"

    id = Column(String, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default=StaffRole.NURSE)
    avatar_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)
