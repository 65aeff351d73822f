from enum import Enum

from sqlalchemy import Column, String, Date, Text, Integer
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class Gender(str, Enum):
    MALE = "男性"
    FEMALE = "女性"
    OTHER = "その他"


class InsuranceType(str, Enum):
    LONG_TERM_CARE = "介護保険"
    MEDICAL = "医療保険"
    SELF_PAY = "自費"
    OTHER = "その他"


class CareLevel(str, Enum):
    """Ordinal scale from independent to care level 5."""
    INDEPENDENT = "自立"
    SUPPORT_1 = "要支援1"
    SUPPORT_2 = "要支援2"
    CARE_1 = "要介護1"
    CARE_2 = "要介護2"
    CARE_3 = "要介護3"
    CARE_4 = "要介護4"
    CARE_5 = "要介護5"
    NOT_APPLIED = "未申請"


class Patient(Base, TimestampMixin):
    __tablename__ = "patients"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False, index=True)
    gender = Column(String(10), nullable=False)
    birthdate = Column(Date, nullable=False)
    age = Column(Integer, nullable=False)  # Derived from birthdate at write time
    address = Column(String(300), nullable=False)
    phone = Column(String(30), nullable=True)
    emergency_contact = Column(String(200), nullable=True)
    medical_history = Column(Text, nullable=True)
    primary_doctor = Column(String(200), nullable=True)
    insurance_type = Column(String(20), nullable=False, default=InsuranceType.LONG_TERM_CARE.value)
    care_level = Column(String(20), nullable=False, default=CareLevel.CARE_1.value)
    user_id = Column(String, nullable=False, index=True)  # Creating staff account

    care_plans = relationship("CarePlan", back_populates="patient", cascade="all, delete-orphan")
