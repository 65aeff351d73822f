"""
Patient Directory: create/read/update/delete of patient records, plus the
search/filter/sort/paginate logic behind the patient list screen.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Generic, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import BackendError, NotFoundError, ValidationFailed
from ..core.result import Err, Ok, Result
from ..models.base import generate_uuid
from ..models.patient import Patient
from ..schemas import PatientForm, PatientRecord, PatientUpdate
from .completeness import PlanIndexEntry, needs_monthly_plan
from .memory import MemoryTable
from .validation import calculate_age, validate_patient_form

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlanFilter:
    ALL = "all"
    NEEDS_PLAN = "needs-plan"
    HAS_PLAN = "has-plan"

    CHOICES = [ALL, NEEDS_PLAN, HAS_PLAN]


SORT_KEYS = ("name", "age", "created_at")


@dataclass
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int

    @property
    def start(self) -> int:
        """1-based position of the first item shown (0 when empty)."""
        return (self.page - 1) * self.page_size + 1 if self.items else 0

    @property
    def end(self) -> int:
        return self.start + len(self.items) - 1 if self.items else 0


class PatientDirectory:
    """
    Patient CRUD against either the SQL backend (``db``) or an in-memory
    fixture table (``table``). Every call returns a Result; the caller decides
    what to show when the backend fails.
    """

    def __init__(
        self,
        db: Optional[Session] = None,
        table: Optional[MemoryTable] = None,
        plan_table: Optional[MemoryTable] = None,
    ):
        if db is None and table is None:
            raise ValueError("PatientDirectory needs a database session or a fixture table")
        self.db = db
        self.table = table
        # Fixture-mode plans, cleared alongside their patient on delete
        self.plan_table = plan_table

    # ── reads ────────────────────────────────────────────────────────────────

    def list_patients(self) -> Result[List[PatientRecord]]:
        if self.table is not None:
            return Ok(sorted(self.table.all(), key=lambda p: p.name))
        try:
            rows = self.db.query(Patient).order_by(Patient.name.asc()).all()
            return Ok([PatientRecord.model_validate(r) for r in rows])
        except SQLAlchemyError as exc:
            logger.error("Patient list query failed: %s", exc)
            return Err(BackendError("list_patients", exc))

    def get(self, patient_id: str) -> Result[PatientRecord]:
        if self.table is not None:
            record = self.table.get(patient_id)
            return Ok(record) if record else Err(NotFoundError("patient", patient_id))
        try:
            row = self.db.query(Patient).filter(Patient.id == patient_id).first()
        except SQLAlchemyError as exc:
            logger.error("Patient lookup failed for %s: %s", patient_id, exc)
            return Err(BackendError("get_patient", exc))
        if row is None:
            return Err(NotFoundError("patient", patient_id))
        return Ok(PatientRecord.model_validate(row))

    # ── writes ───────────────────────────────────────────────────────────────

    def build_record(self, form: PatientForm, user_id: str) -> PatientRecord:
        """Validate the form and build the record that ``create`` will persist."""
        errors = validate_patient_form(form)
        if errors:
            raise ValidationFailed(errors)
        return PatientRecord(
            id=generate_uuid(),
            name=form.name.strip(),
            gender=form.gender,
            birthdate=form.birthdate,
            age=calculate_age(form.birthdate),
            address=form.address.strip(),
            phone=form.phone.strip() or None,
            emergency_contact=form.emergency_contact or None,
            medical_history=form.medical_history or None,
            primary_doctor=form.primary_doctor or None,
            insurance_type=form.insurance_type,
            care_level=form.care_level,
            user_id=user_id,
            created_at=datetime.utcnow(),
        )

    def create(self, form: PatientForm, user_id: str) -> Result[PatientRecord]:
        return self.insert(self.build_record(form, user_id))

    def insert(self, record: PatientRecord) -> Result[PatientRecord]:
        if self.table is not None:
            return Ok(self.table.put(record))
        try:
            row = Patient(**_row_fields(record))
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return Ok(PatientRecord.model_validate(row))
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Patient insert failed: %s", exc)
            return Err(BackendError("create_patient", exc))

    def merge_update(self, current: PatientRecord, changes: PatientUpdate) -> PatientRecord:
        """Apply partial changes to a record, re-validating and re-deriving age."""
        data = current.model_dump()
        data.update(changes.model_dump(exclude_unset=True))
        form = PatientForm(
            name=data["name"] or "",
            gender=_enum_value(data["gender"]) or "",
            birthdate=data["birthdate"],
            address=data["address"] or "",
            phone=data["phone"] or "",
        )
        errors = validate_patient_form(form)
        if errors:
            raise ValidationFailed(errors)
        data["age"] = calculate_age(data["birthdate"])
        for key in ("phone", "emergency_contact", "medical_history", "primary_doctor"):
            data[key] = data[key] or None
        return PatientRecord(**data)

    def update(self, patient_id: str, changes: PatientUpdate) -> Result[PatientRecord]:
        current = self.get(patient_id)
        if not current.is_ok:
            return current
        updated = self.merge_update(current.value, changes)
        if self.table is not None:
            return Ok(self.table.put(updated))
        try:
            row = self.db.query(Patient).filter(Patient.id == patient_id).first()
            if row is None:
                return Err(NotFoundError("patient", patient_id))
            for key, value in _row_fields(updated).items():
                if key not in ("id", "created_at"):
                    setattr(row, key, value)
            self.db.commit()
            self.db.refresh(row)
            return Ok(PatientRecord.model_validate(row))
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Patient update failed for %s: %s", patient_id, exc)
            return Err(BackendError("update_patient", exc))

    def delete(self, patient_id: str) -> Result[bool]:
        """Hard delete; the patient's plans go with it."""
        if self.table is not None:
            removed = self.table.remove(patient_id)
            if removed and self.plan_table is not None:
                for plan in self.plan_table.all():
                    if plan.patient_id == patient_id:
                        self.plan_table.remove(plan.id)
            return Ok(removed)
        try:
            row = self.db.query(Patient).filter(Patient.id == patient_id).first()
            if row is None:
                return Ok(False)
            self.db.delete(row)
            self.db.commit()
            return Ok(True)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Patient delete failed for %s: %s", patient_id, exc)
            return Err(BackendError("delete_patient", exc))


def search_patients(
    patients: List[PatientRecord],
    term: str = "",
    plan_filter: str = PlanFilter.ALL,
    plan_index: Optional[Dict[str, PlanIndexEntry]] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    sort_by: str = "name",
    descending: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> Page[PatientRecord]:
    """
    Filter by a case-insensitive name/address substring and by plan status for
    the given (month, year), sort, then cut out one 1-based page.
    """
    if plan_filter not in PlanFilter.CHOICES:
        raise ValueError(f"Invalid plan filter. Choose from: {PlanFilter.CHOICES}")
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Invalid sort key. Choose from: {list(SORT_KEYS)}")
    if page < 1 or page_size < 1:
        raise ValueError("page and page_size must be positive")

    needle = term.strip().lower()
    matched = [
        p for p in patients
        if not needle or needle in p.name.lower() or needle in p.address.lower()
    ]

    if plan_filter != PlanFilter.ALL:
        if plan_index is None or month is None or year is None:
            raise ValueError("Plan filters need a plan index and the current month/year")
        want_missing = plan_filter == PlanFilter.NEEDS_PLAN
        matched = [
            p for p in matched
            if needs_monthly_plan(p.id, month, year, plan_index) == want_missing
        ]

    matched.sort(key=lambda p: getattr(p, sort_by), reverse=descending)

    offset = (page - 1) * page_size
    return Page(
        items=matched[offset:offset + page_size],
        total=len(matched),
        page=page,
        page_size=page_size,
    )


def _enum_value(value):
    return getattr(value, "value", value)


def _row_fields(record: PatientRecord) -> dict:
    data = record.model_dump()
    for key in ("gender", "insurance_type", "care_level"):
        data[key] = _enum_value(data[key])
    return data
