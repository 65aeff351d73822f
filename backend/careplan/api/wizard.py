"""
Plan creation wizard endpoints.

A wizard session is opened per staff member and driven step by step; the
session lives in the in-process registry until it is cancelled, or until it
sits idle past WIZARD_IDLE_MINUTES (WIZARD_FINISHED_MINUTES once saved).
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ..core.security import StaffSession, get_current_user
from ..models.care_plan import VisitType
from ..schemas import Assessment, CarePlanRecord, DraftContent, PatientRecord
from ..services.draft_generator import DraftGenerator
from ..services.patient_directory import PatientDirectory
from ..services.plan_store import PlanStore
from ..services.wizard import PlanWizard, WizardRegistry, WizardStep
from .deps import get_draft_generator, get_patient_directory, get_plan_store, get_wizard_registry
from .patients import load_patient

router = APIRouter(prefix="/wizards", tags=["wizards"])


# ── Request / Response schemas ──────────────────────────────────────────────

class SelectionRequest(BaseModel):
    patient_id: Optional[str] = None
    visit_type: VisitType = VisitType.BOTH
    plan_date: Optional[date] = None


class DraftEditRequest(BaseModel):
    section: str
    index: Optional[int] = None
    text: str = ""


class WizardState(BaseModel):
    id: str
    step: str
    can_advance: bool
    patient: Optional[PatientRecord]
    visit_type: VisitType
    plan_date: date
    assessment: Assessment
    draft: Optional[DraftContent]
    draft_source: Optional[str]
    saved_plan: Optional[CarePlanRecord]
    persisted: bool


def _state(wizard: PlanWizard) -> WizardState:
    return WizardState(
        id=wizard.id,
        step=wizard.step.value,
        can_advance=wizard.can_advance,
        patient=wizard.patient,
        visit_type=wizard.visit_type,
        plan_date=wizard.plan_date,
        assessment=wizard.assessment,
        draft=wizard.draft,
        draft_source=wizard.draft_source.value if wizard.draft_source else None,
        saved_plan=wizard.saved_plan,
        persisted=wizard.persisted,
    )


def _owned_wizard(wizard_id: str, registry: WizardRegistry, current_user: StaffSession) -> PlanWizard:
    wizard = registry.get(wizard_id)
    if wizard is None or wizard.user_id != current_user.user_id:
        raise HTTPException(status_code=404, detail="Wizard not found")
    return wizard


# ── Endpoints ────────────────────────────────────────────────────────────────

@router.post("/", response_model=WizardState, status_code=status.HTTP_201_CREATED)
def open_wizard(
    registry: WizardRegistry = Depends(get_wizard_registry),
    current_user: StaffSession = Depends(get_current_user),
):
    return _state(registry.open(current_user.user_id))


@router.get("/{wizard_id}", response_model=WizardState)
def get_wizard(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_wizard_registry),
    current_user: StaffSession = Depends(get_current_user),
):
    return _state(_owned_wizard(wizard_id, registry, current_user))


@router.put("/{wizard_id}/selection", response_model=WizardState)
def select_patient(
    wizard_id: str,
    req: SelectionRequest,
    registry: WizardRegistry = Depends(get_wizard_registry),
    directory: PatientDirectory = Depends(get_patient_directory),
    current_user: StaffSession = Depends(get_current_user),
):
    """Choose the patient, visit type and plan date. An empty id clears the choice."""
    wizard = _owned_wizard(wizard_id, registry, current_user)
    patient = load_patient(directory, req.patient_id) if req.patient_id else None
    wizard.select_patient(patient, req.visit_type, req.plan_date)
    return _state(wizard)


@router.post("/{wizard_id}/next", response_model=WizardState)
def next_step(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_wizard_registry),
    current_user: StaffSession = Depends(get_current_user),
):
    wizard = _owned_wizard(wizard_id, registry, current_user)
    wizard.advance()
    return _state(wizard)


@router.post("/{wizard_id}/back", response_model=WizardState)
def previous_step(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_wizard_registry),
    current_user: StaffSession = Depends(get_current_user),
):
    wizard = _owned_wizard(wizard_id, registry, current_user)
    wizard.go_back()
    return _state(wizard)


@router.put("/{wizard_id}/assessment", response_model=WizardState)
def record_assessment(
    wizard_id: str,
    assessment: Assessment,
    registry: WizardRegistry = Depends(get_wizard_registry),
    current_user: StaffSession = Depends(get_current_user),
):
    wizard = _owned_wizard(wizard_id, registry, current_user)
    wizard.record_assessment(assessment)
    return _state(wizard)


@router.post("/{wizard_id}/generate", response_model=WizardState)
def generate_draft(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_wizard_registry),
    generator: DraftGenerator = Depends(get_draft_generator),
    current_user: StaffSession = Depends(get_current_user),
):
    """Generate the draft; always lands in review, with fallback content if needed."""
    wizard = _owned_wizard(wizard_id, registry, current_user)
    wizard.generate(generator)
    return _state(wizard)


@router.patch("/{wizard_id}/draft", response_model=WizardState)
def edit_draft(
    wizard_id: str,
    req: DraftEditRequest,
    registry: WizardRegistry = Depends(get_wizard_registry),
    current_user: StaffSession = Depends(get_current_user),
):
    """Replace one item, or append a new one when no index is given."""
    wizard = _owned_wizard(wizard_id, registry, current_user)
    try:
        if req.index is None:
            wizard.append_item(req.section, req.text)
        else:
            wizard.edit_item(req.section, req.index, req.text)
    except (ValueError, IndexError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state(wizard)


@router.post("/{wizard_id}/commit", response_model=WizardState)
def commit_plan(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_wizard_registry),
    store: PlanStore = Depends(get_plan_store),
    current_user: StaffSession = Depends(get_current_user),
):
    wizard = _owned_wizard(wizard_id, registry, current_user)
    wizard.commit(store)
    return _state(wizard)


@router.get("/{wizard_id}/view", response_model=CarePlanRecord)
def view_plan(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_wizard_registry),
    current_user: StaffSession = Depends(get_current_user),
):
    return _owned_wizard(wizard_id, registry, current_user).view()


@router.get("/{wizard_id}/export")
def export_plan(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_wizard_registry),
    current_user: StaffSession = Depends(get_current_user),
):
    return _owned_wizard(wizard_id, registry, current_user).export()


@router.delete("/{wizard_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_wizard(
    wizard_id: str,
    registry: WizardRegistry = Depends(get_wizard_registry),
    current_user: StaffSession = Depends(get_current_user),
):
    """Cancel an unfinished wizard, or drop a saved one from the registry."""
    wizard = _owned_wizard(wizard_id, registry, current_user)
    if wizard.step not in (WizardStep.SAVED, WizardStep.CANCELLED):
        wizard.cancel()
    registry.discard(wizard_id)
