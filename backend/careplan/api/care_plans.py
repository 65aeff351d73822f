from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..core.security import StaffSession, get_current_user
from ..fixtures import demo_care_plans
from ..schemas import CarePlanRecord, CarePlanUpdate
from ..services.fallback import or_fixture
from ..services.plan_store import PlanStore
from .deps import get_plan_store

router = APIRouter(prefix="/care-plans", tags=["care-plans"])


class DeleteResponse(BaseModel):
    deleted: bool


def _fixture_plan(plan_id: str) -> Optional[CarePlanRecord]:
    return next((p for p in demo_care_plans() if p.id == plan_id), None)


@router.get("/", response_model=List[CarePlanRecord])
def list_care_plans_for_period(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=1900),
    store: PlanStore = Depends(get_plan_store),
    current_user: StaffSession = Depends(get_current_user),
):
    """Every plan recorded for one (month, year) period, duplicates included."""
    return or_fixture(
        store.list_for_period(month, year),
        lambda: [p for p in demo_care_plans() if p.month == month and p.year == year],
        f"plans for {year:04d}-{month:02d}",
    )


@router.get("/{plan_id}", response_model=CarePlanRecord)
def get_care_plan(
    plan_id: str,
    store: PlanStore = Depends(get_plan_store),
    current_user: StaffSession = Depends(get_current_user),
):
    result = store.get(plan_id)
    if result.is_ok:
        return result.value
    plan = None if result.is_not_found else or_fixture(result, lambda: _fixture_plan(plan_id), f"plan {plan_id}")
    if plan is None:
        raise HTTPException(status_code=404, detail="Care plan not found")
    return plan


@router.patch("/{plan_id}", response_model=CarePlanRecord)
def update_care_plan(
    plan_id: str,
    changes: CarePlanUpdate,
    store: PlanStore = Depends(get_plan_store),
    current_user: StaffSession = Depends(get_current_user),
):
    """Partial edit of a plan; the period key is fixed once created."""
    result = store.update(plan_id, changes)
    if result.is_ok:
        return result.value
    if result.is_not_found:
        raise HTTPException(status_code=404, detail="Care plan not found")
    base = or_fixture(result, lambda: _fixture_plan(plan_id), f"plan {plan_id}")
    if base is None:
        raise HTTPException(status_code=404, detail="Care plan not found")
    merged = base.model_dump()
    merged.update(changes.model_dump(exclude_unset=True))
    merged["updated_at"] = datetime.utcnow()
    return CarePlanRecord(**merged)


@router.delete("/{plan_id}", response_model=DeleteResponse)
def delete_care_plan(
    plan_id: str,
    store: PlanStore = Depends(get_plan_store),
    current_user: StaffSession = Depends(get_current_user),
):
    deleted = or_fixture(store.delete(plan_id), lambda: False, f"delete of plan {plan_id}")
    if not deleted and store.get(plan_id).is_not_found:
        raise HTTPException(status_code=404, detail="Care plan not found")
    return DeleteResponse(deleted=deleted)
