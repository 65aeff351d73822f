"""
Plan Creation Wizard.

A linear state machine:

    PATIENT_AND_VISIT -> ASSESSMENT -> GENERATING -> REVIEW_AND_EDIT -> SAVED

No step can be skipped. Going back (before generation) keeps everything that
was entered. The wizard can be cancelled from any non-terminal step, in which
case nothing is persisted.
"""
import logging
import threading
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..core.config import settings
from ..core.exceptions import WizardStateError
from ..models.base import generate_uuid
from ..models.care_plan import PlanStatus, VisitType
from ..schemas import (
    Assessment,
    CarePlanCreate,
    CarePlanRecord,
    DraftContent,
    PatientRecord,
)
from .draft_generator import DraftGenerator, DraftSource
from .plan_store import PlanStore

logger = logging.getLogger(__name__)

SECTION_NAMES = ("goals", "issues", "supports")


class WizardStep(str, Enum):
    PATIENT_AND_VISIT = "patient_and_visit"
    ASSESSMENT = "assessment"
    GENERATING = "generating"
    REVIEW_AND_EDIT = "review_and_edit"
    SAVED = "saved"
    CANCELLED = "cancelled"


ORDER = [
    WizardStep.PATIENT_AND_VISIT,
    WizardStep.ASSESSMENT,
    WizardStep.GENERATING,
    WizardStep.REVIEW_AND_EDIT,
    WizardStep.SAVED,
]

TERMINAL_STEPS = (WizardStep.SAVED, WizardStep.CANCELLED)


class PlanWizard:
    def __init__(self, user_id: str, wizard_id: Optional[str] = None, today: Optional[date] = None):
        self.id = wizard_id or generate_uuid()
        self.user_id = user_id
        self.step = WizardStep.PATIENT_AND_VISIT

        self.patient: Optional[PatientRecord] = None
        self.visit_type = VisitType.BOTH
        self.plan_date: date = today or date.today()
        self.assessment = Assessment()

        self.draft: Optional[DraftContent] = None
        self.draft_source: Optional[DraftSource] = None
        self.saved_plan: Optional[CarePlanRecord] = None
        self.persisted = False

        self.touched_at = datetime.utcnow()
        # Serialises step transitions that call out to external services
        self._lock = threading.Lock()

    # ── guards ───────────────────────────────────────────────────────────────

    def _require(self, *steps: WizardStep) -> None:
        if self.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise WizardStateError(f"Action not allowed in step '{self.step.value}' (needs {allowed})")

    @property
    def can_advance(self) -> bool:
        """Whether the "next" action is enabled for the current step."""
        if self.step is WizardStep.PATIENT_AND_VISIT:
            return self.patient is not None and bool(self.patient.id)
        return False

    @property
    def period(self) -> tuple:
        return self.plan_date.month, self.plan_date.year

    # ── step 1: patient and visit type ───────────────────────────────────────

    def select_patient(
        self,
        patient: Optional[PatientRecord],
        visit_type: VisitType = VisitType.BOTH,
        plan_date: Optional[date] = None,
    ) -> None:
        self._require(WizardStep.PATIENT_AND_VISIT)
        self.patient = patient
        self.visit_type = VisitType(visit_type)
        if plan_date is not None:
            self.plan_date = plan_date

    def advance(self) -> WizardStep:
        """Move from patient selection to assessment entry."""
        self._require(WizardStep.PATIENT_AND_VISIT)
        if not self.can_advance:
            raise WizardStateError("Select a patient before continuing")
        self.step = WizardStep.ASSESSMENT
        return self.step

    def go_back(self) -> WizardStep:
        self._require(WizardStep.ASSESSMENT)
        self.step = WizardStep.PATIENT_AND_VISIT
        return self.step

    # ── step 2: assessment ───────────────────────────────────────────────────

    def record_assessment(self, assessment: Assessment) -> None:
        self._require(WizardStep.ASSESSMENT)
        self.assessment = assessment

    # ── step 3: generation ───────────────────────────────────────────────────

    def generate(self, generator: DraftGenerator) -> DraftContent:
        """
        Run the draft generator and land in review. The generator never raises
        for service failures, so this always reaches REVIEW_AND_EDIT.
        """
        with self._lock:
            self._require(WizardStep.ASSESSMENT)
            self.step = WizardStep.GENERATING
        try:
            result = generator.generate(self.patient, self.assessment, self.visit_type)
        except Exception:
            with self._lock:
                if self.step is WizardStep.GENERATING:
                    self.step = WizardStep.ASSESSMENT
            raise
        with self._lock:
            if self.step is not WizardStep.GENERATING:
                raise WizardStateError("Wizard was cancelled while the draft was being generated")
            self.draft = result.content.model_copy(deep=True)
            self.draft_source = result.source
            self.step = WizardStep.REVIEW_AND_EDIT
        logger.info(
            "Wizard %s generated draft for patient %s (source=%s)",
            self.id, self.patient.id, result.source.value,
        )
        return self.draft

    # ── step 4: review and edit ──────────────────────────────────────────────

    def _section(self, section: str) -> List[str]:
        if section not in SECTION_NAMES:
            raise ValueError(f"Unknown section '{section}'. Choose from: {list(SECTION_NAMES)}")
        return getattr(self.draft, section)

    def edit_item(self, section: str, index: int, text: str) -> None:
        self._require(WizardStep.REVIEW_AND_EDIT)
        items = self._section(section)
        if not 0 <= index < len(items):
            raise IndexError(f"{section}[{index}] does not exist")
        items[index] = text

    def append_item(self, section: str, text: str = "") -> int:
        self._require(WizardStep.REVIEW_AND_EDIT)
        items = self._section(section)
        items.append(text)
        return len(items) - 1

    def build_plan(self) -> CarePlanCreate:
        month, year = self.period
        a = self.assessment
        return CarePlanCreate(
            patient_id=self.patient.id,
            user_id=self.user_id,
            visit_type=self.visit_type,
            health_status=a.health_status,
            adl_mobility=a.adl_mobility,
            adl_eating=a.adl_eating,
            adl_toilet=a.adl_toilet,
            adl_bathing=a.adl_bathing,
            patient_family_request=a.patient_family_request,
            doctor_instructions=a.doctor_instructions,
            staff_notes=a.staff_notes,
            goals=list(self.draft.goals),
            issues=list(self.draft.issues),
            supports=list(self.draft.supports),
            status=PlanStatus.COMPLETED,
            month=month,
            year=year,
        )

    def commit(self, store: PlanStore) -> CarePlanRecord:
        """
        Persist the finished plan. A store failure is logged and the locally
        built plan is kept as the result; the wizard still reaches SAVED.
        """
        with self._lock:
            self._require(WizardStep.REVIEW_AND_EDIT)
            plan = self.build_plan()
            result = store.create(plan)
            if result.is_ok:
                self.saved_plan = result.value
                self.persisted = True
            else:
                logger.warning("Wizard %s could not persist plan, keeping local copy: %s", self.id, result.error)
                now = datetime.utcnow()
                self.saved_plan = CarePlanRecord(id=generate_uuid(), created_at=now, updated_at=now, **plan.model_dump())
                self.persisted = False
            self.step = WizardStep.SAVED
            return self.saved_plan

    # ── step 5: saved ────────────────────────────────────────────────────────

    def view(self) -> CarePlanRecord:
        self._require(WizardStep.SAVED)
        return self.saved_plan

    def export(self) -> dict:
        """JSON-ready document of the finalized plan with its patient summary."""
        self._require(WizardStep.SAVED)
        patient = self.patient
        return {
            "title": "訪問看護計画書",
            "period": {"month": self.saved_plan.month, "year": self.saved_plan.year},
            "patient": {
                "id": patient.id,
                "name": patient.name,
                "age": patient.age,
                "gender": patient.gender.value,
                "address": patient.address,
                "care_level": patient.care_level.value,
                "insurance_type": patient.insurance_type.value,
                "primary_doctor": patient.primary_doctor,
            },
            "plan": self.saved_plan.model_dump(mode="json"),
            "persisted": self.persisted,
        }

    # ── cancellation ─────────────────────────────────────────────────────────

    def cancel(self) -> None:
        with self._lock:
            if self.step in TERMINAL_STEPS:
                raise WizardStateError(f"Cannot cancel a wizard in step '{self.step.value}'")
            self.patient = None
            self.assessment = Assessment()
            self.draft = None
            self.draft_source = None
            self.step = WizardStep.CANCELLED


class WizardRegistry:
    """
    In-process store of open wizard sessions, keyed by wizard id.

    Every open() and get() first drops sessions nobody has touched within
    idle_timeout, and saved or cancelled ones past finished_timeout.
    """

    def __init__(
        self,
        idle_timeout: Optional[timedelta] = None,
        finished_timeout: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.idle_timeout = idle_timeout or timedelta(minutes=settings.WIZARD_IDLE_MINUTES)
        self.finished_timeout = finished_timeout or timedelta(minutes=settings.WIZARD_FINISHED_MINUTES)
        self.clock = clock
        self._wizards: Dict[str, PlanWizard] = {}
        self._lock = threading.Lock()

    def _expire_locked(self, now: datetime) -> None:
        stale = [
            wizard_id for wizard_id, wizard in self._wizards.items()
            if now - wizard.touched_at > (
                self.finished_timeout if wizard.step in TERMINAL_STEPS else self.idle_timeout
            )
        ]
        for wizard_id in stale:
            del self._wizards[wizard_id]
        if stale:
            logger.info("Expired %d wizard session(s)", len(stale))

    def open(self, user_id: str, today: Optional[date] = None) -> PlanWizard:
        wizard = PlanWizard(user_id=user_id, today=today)
        with self._lock:
            now = self.clock()
            self._expire_locked(now)
            wizard.touched_at = now
            self._wizards[wizard.id] = wizard
        return wizard

    def get(self, wizard_id: str) -> Optional[PlanWizard]:
        with self._lock:
            now = self.clock()
            self._expire_locked(now)
            wizard = self._wizards.get(wizard_id)
            if wizard is not None:
                wizard.touched_at = now
            return wizard

    def discard(self, wizard_id: str) -> bool:
        with self._lock:
            return self._wizards.pop(wizard_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._wizards)


wizard_registry = WizardRegistry()
