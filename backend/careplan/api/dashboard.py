from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.security import StaffSession, get_current_user
from ..services.completeness import build_plan_index, dashboard_summary
from ..services.patient_directory import PatientDirectory
from ..services.plan_store import PlanStore
from .deps import get_patient_directory, get_plan_store
from .patients import load_patients

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class PendingPatient(BaseModel):
    patient_id: str
    name: str
    age: int
    last_plan_month: Optional[int]
    last_plan_year: Optional[int]


class RecentPlanItem(BaseModel):
    plan_id: Optional[str]
    patient_id: str
    patient_name: str
    month: int
    year: int
    status: Optional[str]
    updated_at: datetime


class RecentPatientItem(BaseModel):
    patient_id: str
    name: str
    age: int
    address: str
    care_level: str


class DashboardResponse(BaseModel):
    month: int
    year: int
    patient_count: int
    completed_plans_count: int
    needing_plans_count: int
    days_left_in_month: int
    patients_needing_plans: List[PendingPatient]
    recent_plans: List[RecentPlanItem]
    recent_patients: List[RecentPatientItem]


@router.get("/", response_model=DashboardResponse)
def get_dashboard(
    directory: PatientDirectory = Depends(get_patient_directory),
    store: PlanStore = Depends(get_plan_store),
    current_user: StaffSession = Depends(get_current_user),
):
    """Monthly overview: who still needs a plan and what was written last."""
    today = date.today()
    patients = load_patients(directory)
    index = build_plan_index(patients, store, today.month, today.year)
    summary = dashboard_summary(patients, index, today)

    return DashboardResponse(
        month=today.month,
        year=today.year,
        patient_count=summary.patient_count,
        completed_plans_count=summary.completed_plans_count,
        needing_plans_count=summary.needing_plans_count,
        days_left_in_month=summary.days_left_in_month,
        patients_needing_plans=[
            PendingPatient(
                patient_id=s.patient.id,
                name=s.patient.name,
                age=s.patient.age,
                last_plan_month=s.last_plan_month,
                last_plan_year=s.last_plan_year,
            )
            for s in summary.patients_needing_plans
        ],
        recent_plans=[RecentPlanItem(**vars(r)) for r in summary.recent_plans],
        recent_patients=[
            RecentPatientItem(
                patient_id=p.id,
                name=p.name,
                age=p.age,
                address=p.address,
                care_level=p.care_level.value,
            )
            for p in summary.recent_patients
        ],
    )
