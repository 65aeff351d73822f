"""
Per-request service wiring.

In fixture mode (fully offline or partial demo) patients and plans live in
process-wide in-memory tables seeded from the demo fixtures; otherwise the
stores run against the request's database session.
"""
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.config import settings
from ..fixtures import demo_care_plans, demo_patients
from ..models.base import get_db
from ..services.draft_generator import draft_generator
from ..services.memory import MemoryTable
from ..services.patient_directory import PatientDirectory
from ..services.plan_store import PlanStore
from ..services.preferences import PreferencesStore
from ..services.wizard import wizard_registry

fixture_patients = MemoryTable(demo_patients())
fixture_plans = MemoryTable(demo_care_plans())

_preferences: Optional[PreferencesStore] = None


def reset_fixture_tables() -> None:
    """Restore the in-memory tables to the pristine demo fixtures."""
    global fixture_patients, fixture_plans
    fixture_patients = MemoryTable(demo_patients())
    fixture_plans = MemoryTable(demo_care_plans())


def get_patient_directory(db: Session = Depends(get_db)) -> PatientDirectory:
    if settings.fixture_data_mode:
        return PatientDirectory(table=fixture_patients, plan_table=fixture_plans)
    return PatientDirectory(db=db)


def get_plan_store(db: Session = Depends(get_db)) -> PlanStore:
    if settings.fixture_data_mode:
        return PlanStore(table=fixture_plans)
    return PlanStore(db=db)


def get_draft_generator():
    return draft_generator


def get_wizard_registry():
    return wizard_registry


def get_preferences_store() -> PreferencesStore:
    global _preferences
    if _preferences is None:
        _preferences = PreferencesStore(settings.USER_SETTINGS_PATH)
    return _preferences
