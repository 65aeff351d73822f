"""
Record types crossing the service boundary.

Rows coming back from the backend (or the fixture repository) are converted
into these models; anything carrying unknown fields is rejected rather than
passed along as a loose mapping.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models.care_plan import AdlLevel, PlanStatus, VisitType
from .models.patient import CareLevel, Gender, InsuranceType


class RecordModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")


# ── Patients ─────────────────────────────────────────────────────────────────

class PatientRecord(RecordModel):
    id: str
    name: str
    gender: Gender
    birthdate: date
    age: int
    address: str
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    medical_history: Optional[str] = None
    primary_doctor: Optional[str] = None
    insurance_type: InsuranceType = InsuranceType.LONG_TERM_CARE
    care_level: CareLevel = CareLevel.CARE_1
    user_id: str
    created_at: datetime


class PatientForm(BaseModel):
    """Raw new-patient form input; checked by ``validate_patient_form``."""
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    gender: str = ""
    birthdate: Optional[date] = None
    address: str = ""
    phone: str = ""
    emergency_contact: str = ""
    medical_history: str = ""
    primary_doctor: str = ""
    insurance_type: InsuranceType = InsuranceType.LONG_TERM_CARE
    care_level: CareLevel = CareLevel.CARE_1


class PatientUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    gender: Optional[str] = None
    birthdate: Optional[date] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    medical_history: Optional[str] = None
    primary_doctor: Optional[str] = None
    insurance_type: Optional[InsuranceType] = None
    care_level: Optional[CareLevel] = None

    @field_validator("insurance_type", "care_level")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


# ── Care plans ───────────────────────────────────────────────────────────────

class DraftContent(RecordModel):
    goals: List[str]
    issues: List[str]
    supports: List[str]


class Assessment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    health_status: str = ""
    adl_mobility: AdlLevel = AdlLevel.INDEPENDENT
    adl_eating: AdlLevel = AdlLevel.INDEPENDENT
    adl_toilet: AdlLevel = AdlLevel.INDEPENDENT
    adl_bathing: AdlLevel = AdlLevel.INDEPENDENT
    patient_family_request: str = ""
    doctor_instructions: str = ""
    staff_notes: str = ""


class CarePlanCreate(RecordModel):
    patient_id: str
    user_id: str
    visit_type: VisitType = VisitType.BOTH
    health_status: Optional[str] = None
    adl_mobility: Optional[AdlLevel] = None
    adl_eating: Optional[AdlLevel] = None
    adl_toilet: Optional[AdlLevel] = None
    adl_bathing: Optional[AdlLevel] = None
    patient_family_request: Optional[str] = None
    doctor_instructions: Optional[str] = None
    staff_notes: Optional[str] = None
    goals: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    supports: List[str] = Field(default_factory=list)
    status: PlanStatus = PlanStatus.DRAFT
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900)


class CarePlanRecord(CarePlanCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class CarePlanUpdate(BaseModel):
    """Partial plan edit. The (month, year) period key cannot be changed."""
    model_config = ConfigDict(extra="forbid")

    visit_type: Optional[VisitType] = None
    health_status: Optional[str] = None
    adl_mobility: Optional[AdlLevel] = None
    adl_eating: Optional[AdlLevel] = None
    adl_toilet: Optional[AdlLevel] = None
    adl_bathing: Optional[AdlLevel] = None
    patient_family_request: Optional[str] = None
    doctor_instructions: Optional[str] = None
    staff_notes: Optional[str] = None
    goals: Optional[List[str]] = None
    issues: Optional[List[str]] = None
    supports: Optional[List[str]] = None
    status: Optional[PlanStatus] = None

    @field_validator("visit_type", "goals", "issues", "supports", "status")
    @classmethod
    def not_null(cls, value):
        # Omit a field to leave it unchanged
        if value is None:
            raise ValueError("may be omitted but not null")
        return value
