from enum import Enum

from sqlalchemy import Column, String, Text, Integer, ForeignKey, JSON
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class VisitType(str, Enum):
    NURSE = "nurse"
    REHAB = "rehab"
    BOTH = "both"


class AdlLevel(str, Enum):
    INDEPENDENT = "independent"
    SUPERVISION = "supervision"
    PARTIAL = "partial"
    COMPLETE = "complete"

    @property
    def label(self) -> str:
        return ADL_LABELS[self]


ADL_LABELS = {
    AdlLevel.INDEPENDENT: "自立",
    AdlLevel.SUPERVISION: "見守り",
    AdlLevel.PARTIAL: "一部介助",
    AdlLevel.COMPLETE: "全介助",
}


class PlanStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"


class CarePlan(Base, TimestampMixin):
    __tablename__ = "care_plans"

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False)
    visit_type = Column(String(10), nullable=False, default=VisitType.BOTH.value)

    health_status = Column(Text, nullable=True)
    adl_mobility = Column(String(20), nullable=True)
    adl_eating = Column(String(20), nullable=True)
    adl_toilet = Column(String(20), nullable=True)
    adl_bathing = Column(String(20), nullable=True)
    patient_family_request = Column(Text, nullable=True)
    doctor_instructions = Column(Text, nullable=True)
    staff_notes = Column(Text, nullable=True)

    # Ordered lists of short strings
    goals = Column(JSON, nullable=False, default=list)
    issues = Column(JSON, nullable=False, default=list)
    supports = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default=PlanStatus.DRAFT.value)

    # Period key; not unique per patient
    month = Column(Integer, nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)

    patient = relationship("Patient", back_populates="care_plans")
