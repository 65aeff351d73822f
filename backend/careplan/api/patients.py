from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from ..core.security import StaffSession, get_current_user
from ..fixtures import demo_patients, fixture_patient, fixture_plans_for
from ..schemas import CarePlanRecord, PatientForm, PatientRecord, PatientUpdate
from ..services.completeness import build_plan_index, plan_statuses
from ..services.fallback import or_fixture
from ..services.patient_directory import PatientDirectory, PlanFilter, search_patients
from ..services.plan_store import PlanStore
from .deps import get_patient_directory, get_plan_store

router = APIRouter(prefix="/patients", tags=["patients"])


class PatientListItem(BaseModel):
    patient: PatientRecord
    needs_plan: bool
    last_plan_month: Optional[int]
    last_plan_year: Optional[int]
    last_updated: Optional[datetime]


class PatientListResponse(BaseModel):
    items: List[PatientListItem]
    total: int
    page: int
    page_size: int
    start: int
    end: int
    month: int
    year: int


class DeleteResponse(BaseModel):
    deleted: bool


def load_patients(directory: PatientDirectory) -> List[PatientRecord]:
    return or_fixture(directory.list_patients(), demo_patients, "patient list")


def load_patient(directory: PatientDirectory, patient_id: str) -> PatientRecord:
    result = directory.get(patient_id)
    if result.is_ok:
        return result.value
    patient = None if result.is_not_found else or_fixture(
        result, lambda: fixture_patient(patient_id), f"patient {patient_id}"
    )
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


@router.get("/", response_model=PatientListResponse)
def list_patients(
    q: str = "",
    plan_filter: str = Query(PlanFilter.ALL, description="all | needs-plan | has-plan"),
    sort_by: str = "name",
    descending: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    directory: PatientDirectory = Depends(get_patient_directory),
    store: PlanStore = Depends(get_plan_store),
    current_user: StaffSession = Depends(get_current_user),
):
    """Searchable patient list flagged with this month's plan status."""
    today = date.today()
    patients = load_patients(directory)
    index = build_plan_index(patients, store, today.month, today.year)
    try:
        result = search_patients(
            patients,
            term=q,
            plan_filter=plan_filter,
            plan_index=index,
            month=today.month,
            year=today.year,
            sort_by=sort_by,
            descending=descending,
            page=page,
            page_size=page_size,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    statuses = plan_statuses(result.items, index, today.month, today.year)
    return PatientListResponse(
        items=[
            PatientListItem(
                patient=s.patient,
                needs_plan=s.needs_plan,
                last_plan_month=s.last_plan_month,
                last_plan_year=s.last_plan_year,
                last_updated=s.last_updated,
            )
            for s in statuses
        ],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        start=result.start,
        end=result.end,
        month=today.month,
        year=today.year,
    )


@router.post("/", response_model=PatientRecord, status_code=status.HTTP_201_CREATED)
def create_patient(
    patient_in: PatientForm,
    directory: PatientDirectory = Depends(get_patient_directory),
    current_user: StaffSession = Depends(get_current_user),
):
    record = directory.build_record(patient_in, current_user.user_id)
    return or_fixture(directory.insert(record), lambda: record, "new patient")


@router.get("/{patient_id}", response_model=PatientRecord)
def get_patient(
    patient_id: str,
    directory: PatientDirectory = Depends(get_patient_directory),
    current_user: StaffSession = Depends(get_current_user),
):
    return load_patient(directory, patient_id)


@router.patch("/{patient_id}", response_model=PatientRecord)
def update_patient(
    patient_id: str,
    changes: PatientUpdate,
    directory: PatientDirectory = Depends(get_patient_directory),
    current_user: StaffSession = Depends(get_current_user),
):
    result = directory.update(patient_id, changes)
    if result.is_ok:
        return result.value
    if result.is_not_found:
        raise HTTPException(status_code=404, detail="Patient not found")
    base = or_fixture(result, lambda: fixture_patient(patient_id), f"patient {patient_id}")
    if base is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return directory.merge_update(base, changes)


@router.delete("/{patient_id}", response_model=DeleteResponse)
def delete_patient(
    patient_id: str,
    directory: PatientDirectory = Depends(get_patient_directory),
    current_user: StaffSession = Depends(get_current_user),
):
    deleted = or_fixture(directory.delete(patient_id), lambda: False, f"delete of patient {patient_id}")
    if not deleted and directory.get(patient_id).is_not_found:
        raise HTTPException(status_code=404, detail="Patient not found")
    return DeleteResponse(deleted=deleted)


@router.get("/{patient_id}/care-plans", response_model=List[CarePlanRecord])
def get_patient_care_plans(
    patient_id: str,
    store: PlanStore = Depends(get_plan_store),
    current_user: StaffSession = Depends(get_current_user),
):
    """All plans for a patient, newest period first."""
    return or_fixture(
        store.list_by_patient(patient_id),
        lambda: fixture_plans_for(patient_id),
        f"plan history of patient {patient_id}",
    )
