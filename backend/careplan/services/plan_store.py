"""
Plan Store: versioned monthly care-plan documents per patient.

Duplicate (patient, month, year) periods are accepted on create; readers that
need a single "current" plan take the most recently updated one.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import BackendError, NotFoundError
from ..core.result import Err, Ok, Result
from ..models.base import generate_uuid
from ..models.care_plan import CarePlan
from ..schemas import CarePlanCreate, CarePlanRecord, CarePlanUpdate
from .memory import MemoryTable

logger = logging.getLogger(__name__)


def newest_period_first(plans: List[CarePlanRecord]) -> List[CarePlanRecord]:
    """Sort by year desc, month desc; same-period ties by updated_at desc."""
    return sorted(plans, key=lambda p: (p.year, p.month, p.updated_at, p.created_at), reverse=True)


def most_recent(plans: List[CarePlanRecord]) -> Optional[CarePlanRecord]:
    if not plans:
        return None
    return max(plans, key=lambda p: (p.updated_at, p.created_at))


class PlanStore:
    """
    Care-plan persistence against the SQL backend (``db``) or the in-memory
    fixture table (``table``). Not-found is an ordinary outcome; backend
    failures come back as ``Err(BackendError)`` and are logged here.
    """

    def __init__(self, db: Optional[Session] = None, table: Optional[MemoryTable] = None):
        if db is None and table is None:
            raise ValueError("PlanStore needs a database session or a fixture table")
        self.db = db
        self.table = table

    def create(self, plan: CarePlanCreate) -> Result[CarePlanRecord]:
        """Persist a new plan under a fresh id. Never overwrites an existing period."""
        now = datetime.utcnow()
        record = CarePlanRecord(
            id=generate_uuid(),
            created_at=now,
            updated_at=now,
            **plan.model_dump(),
        )
        if self.table is not None:
            return Ok(self.table.put(record))
        try:
            row = CarePlan(**_row_fields(record))
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.info(
                "Created care plan %s for patient %s (%04d-%02d)",
                row.id, row.patient_id, row.year, row.month,
            )
            return Ok(CarePlanRecord.model_validate(row))
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Care plan insert failed for patient %s: %s", plan.patient_id, exc)
            return Err(BackendError("create_care_plan", exc))

    def update(self, plan_id: str, changes: CarePlanUpdate) -> Result[CarePlanRecord]:
        """Merge partial fields and bump updated_at."""
        fields = changes.model_dump(exclude_unset=True)
        now = datetime.utcnow()
        if self.table is not None:
            current = self.table.get(plan_id)
            if current is None:
                return Err(NotFoundError("care_plan", plan_id))
            merged = current.model_dump()
            merged.update(fields)
            merged["updated_at"] = now
            return Ok(self.table.put(CarePlanRecord(**merged)))
        try:
            row = self.db.query(CarePlan).filter(CarePlan.id == plan_id).first()
            if row is None:
                return Err(NotFoundError("care_plan", plan_id))
            for key, value in fields.items():
                setattr(row, key, _column_value(value))
            row.updated_at = now
            self.db.commit()
            self.db.refresh(row)
            return Ok(CarePlanRecord.model_validate(row))
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Care plan update failed for %s: %s", plan_id, exc)
            return Err(BackendError("update_care_plan", exc))

    def get(self, plan_id: str) -> Result[CarePlanRecord]:
        if self.table is not None:
            record = self.table.get(plan_id)
            return Ok(record) if record else Err(NotFoundError("care_plan", plan_id))
        try:
            row = self.db.query(CarePlan).filter(CarePlan.id == plan_id).first()
        except SQLAlchemyError as exc:
            logger.error("Care plan lookup failed for %s: %s", plan_id, exc)
            return Err(BackendError("get_care_plan", exc))
        if row is None:
            return Err(NotFoundError("care_plan", plan_id))
        return Ok(CarePlanRecord.model_validate(row))

    def list_by_patient(self, patient_id: str) -> Result[List[CarePlanRecord]]:
        """All plans for a patient, newest period first."""
        if self.table is not None:
            return Ok(newest_period_first([p for p in self.table.all() if p.patient_id == patient_id]))
        try:
            rows = (
                self.db.query(CarePlan)
                .filter(CarePlan.patient_id == patient_id)
                .order_by(
                    CarePlan.year.desc(),
                    CarePlan.month.desc(),
                    CarePlan.updated_at.desc(),
                )
                .all()
            )
            return Ok([CarePlanRecord.model_validate(r) for r in rows])
        except SQLAlchemyError as exc:
            logger.error("Care plan list failed for patient %s: %s", patient_id, exc)
            return Err(BackendError("list_care_plans", exc))

    def find_by_period(self, patient_id: str, month: int, year: int) -> Result[Optional[CarePlanRecord]]:
        """The current plan for one period, or Ok(None) when there is none."""
        if self.table is not None:
            return Ok(most_recent([
                p for p in self.table.all()
                if p.patient_id == patient_id and p.month == month and p.year == year
            ]))
        try:
            row = (
                self.db.query(CarePlan)
                .filter(
                    CarePlan.patient_id == patient_id,
                    CarePlan.month == month,
                    CarePlan.year == year,
                )
                .order_by(CarePlan.updated_at.desc(), CarePlan.created_at.desc())
                .first()
            )
        except SQLAlchemyError as exc:
            logger.error(
                "Care plan period lookup failed for patient %s (%04d-%02d): %s",
                patient_id, year, month, exc,
            )
            return Err(BackendError("find_care_plan_by_period", exc))
        return Ok(CarePlanRecord.model_validate(row) if row else None)

    def list_for_period(self, month: int, year: int) -> Result[List[CarePlanRecord]]:
        if self.table is not None:
            return Ok([p for p in self.table.all() if p.month == month and p.year == year])
        try:
            rows = (
                self.db.query(CarePlan)
                .filter(CarePlan.month == month, CarePlan.year == year)
                .all()
            )
            return Ok([CarePlanRecord.model_validate(r) for r in rows])
        except SQLAlchemyError as exc:
            logger.error("Care plan period listing failed (%04d-%02d): %s", year, month, exc)
            return Err(BackendError("list_care_plans_for_period", exc))

    def delete(self, plan_id: str) -> Result[bool]:
        if self.table is not None:
            return Ok(self.table.remove(plan_id))
        try:
            row = self.db.query(CarePlan).filter(CarePlan.id == plan_id).first()
            if row is None:
                return Ok(False)
            self.db.delete(row)
            self.db.commit()
            return Ok(True)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Care plan delete failed for %s: %s", plan_id, exc)
            return Err(BackendError("delete_care_plan", exc))


def _column_value(value):
    return getattr(value, "value", value)


def _row_fields(record: CarePlanRecord) -> dict:
    return {key: _column_value(value) for key, value in record.model_dump().items()}
