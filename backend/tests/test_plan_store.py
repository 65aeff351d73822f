"""Tests for the care-plan store against SQLite and the in-memory fixture table."""
from datetime import datetime

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from careplan.core.exceptions import BackendError, NotFoundError
from careplan.models.base import Base
import careplan.models.patient  # noqa: F401  registers the Patient mapper
from careplan.models.care_plan import CarePlan, PlanStatus
from careplan.schemas import CarePlanCreate, CarePlanUpdate
from careplan.services.memory import MemoryTable
from careplan.services.plan_store import PlanStore


@pytest.fixture()
def db():
    """Provide an isolated in-memory SQLite session for each test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    session = TestSession()
    yield session
    session.close()


def _new_plan(patient_id="p1", month=3, year=2025, **fields):
    return CarePlanCreate(
        patient_id=patient_id,
        user_id="12345",
        goals=fields.pop("goals", ["血圧を安定させる"]),
        issues=fields.pop("issues", ["高血圧"]),
        supports=fields.pop("supports", ["血圧測定"]),
        month=month,
        year=year,
        **fields,
    )


class TestPlanStoreSQL:
    def test_create_assigns_id_and_timestamps(self, db):
        store = PlanStore(db=db)
        plan = store.create(_new_plan()).unwrap()
        assert plan.id
        assert plan.created_at == plan.updated_at
        assert plan.goals == ["血圧を安定させる"]

    def test_duplicate_period_creates_two_rows(self, db):
        store = PlanStore(db=db)
        first = store.create(_new_plan()).unwrap()
        second = store.create(_new_plan(goals=["別の目標"])).unwrap()
        assert first.id != second.id
        assert db.query(CarePlan).filter(CarePlan.patient_id == "p1").count() == 2

    def test_update_merges_fields_and_bumps_updated_at(self, db):
        store = PlanStore(db=db)
        plan = store.create(_new_plan()).unwrap()
        updated = store.update(plan.id, CarePlanUpdate(goals=["歩行の安定"], status="completed")).unwrap()
        assert updated.goals == ["歩行の安定"]
        assert updated.status == PlanStatus.COMPLETED
        assert updated.issues == ["高血圧"]
        assert updated.updated_at >= plan.updated_at
        assert (updated.month, updated.year) == (3, 2025)

    def test_update_missing_plan_is_not_found(self, db):
        result = PlanStore(db=db).update("nope", CarePlanUpdate(goals=["x"]))
        assert result.is_not_found
        assert isinstance(result.error, NotFoundError)

    def test_list_by_patient_orders_newest_period_first(self, db):
        store = PlanStore(db=db)
        store.create(_new_plan(month=1, year=2025))
        store.create(_new_plan(month=11, year=2024))
        store.create(_new_plan(month=3, year=2025))
        store.create(_new_plan(patient_id="other", month=12, year=2025))
        periods = [(p.year, p.month) for p in store.list_by_patient("p1").unwrap()]
        assert periods == [(2025, 3), (2025, 1), (2024, 11)]

    def test_find_by_period_returns_none_when_absent(self, db):
        result = PlanStore(db=db).find_by_period("p1", 3, 2025)
        assert result.is_ok
        assert result.value is None

    def test_find_by_period_picks_latest_update(self, db):
        store = PlanStore(db=db)
        first = store.create(_new_plan()).unwrap()
        store.create(_new_plan())
        store.update(first.id, CarePlanUpdate(staff_notes="再評価"))
        found = store.find_by_period("p1", 3, 2025).unwrap()
        assert found.id == first.id

    def test_list_for_period_includes_duplicates(self, db):
        store = PlanStore(db=db)
        store.create(_new_plan(patient_id="p1"))
        store.create(_new_plan(patient_id="p1"))
        store.create(_new_plan(patient_id="p2"))
        store.create(_new_plan(patient_id="p2", month=2))
        assert len(store.list_for_period(3, 2025).unwrap()) == 3

    def test_delete(self, db):
        store = PlanStore(db=db)
        plan = store.create(_new_plan()).unwrap()
        assert store.delete(plan.id).unwrap() is True
        assert store.delete(plan.id).unwrap() is False
        assert store.get(plan.id).is_not_found

    def test_backend_failure_returns_err(self, db, monkeypatch):
        def broken_query(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(db, "query", broken_query)
        store = PlanStore(db=db)
        for result in (
            store.get("x"),
            store.list_by_patient("p1"),
            store.find_by_period("p1", 3, 2025),
            store.list_for_period(3, 2025),
            store.update("x", CarePlanUpdate(goals=["g"])),
        ):
            assert not result.is_ok
            assert not result.is_not_found
            assert isinstance(result.error, BackendError)


class TestPlanStoreMemory:
    def setup_method(self):
        self.store = PlanStore(table=MemoryTable())

    def test_create_and_get(self):
        plan = self.store.create(_new_plan()).unwrap()
        assert self.store.get(plan.id).unwrap() == plan

    def test_duplicate_period_keeps_both(self):
        self.store.create(_new_plan())
        self.store.create(_new_plan())
        assert len(self.store.list_by_patient("p1").unwrap()) == 2

    def test_update_missing_is_not_found(self):
        assert self.store.update("missing", CarePlanUpdate(goals=["x"])).is_not_found

    @pytest.mark.parametrize("field", ["goals", "issues", "supports", "status", "visit_type"])
    def test_null_for_a_required_field_is_rejected(self, field):
        with pytest.raises(ValidationError):
            CarePlanUpdate(**{field: None})

    def test_nullable_text_can_still_be_cleared(self):
        plan = self.store.create(_new_plan()).unwrap()
        updated = self.store.update(plan.id, CarePlanUpdate(staff_notes=None)).unwrap()
        assert updated.staff_notes is None
        assert updated.goals == plan.goals

    def test_find_by_period_resolves_to_latest_update(self):
        first = self.store.create(_new_plan()).unwrap()
        self.store.create(_new_plan())
        self.store.update(first.id, CarePlanUpdate(staff_notes="追記"))
        assert self.store.find_by_period("p1", 3, 2025).unwrap().id == first.id

    def test_same_period_ties_broken_by_updated_at(self):
        older = self.store.create(_new_plan()).unwrap()
        newer = self.store.create(_new_plan()).unwrap()
        self.store.table.put(older.model_copy(update={"updated_at": datetime(2025, 3, 1)}))
        self.store.table.put(newer.model_copy(update={"updated_at": datetime(2025, 3, 9)}))
        ids = [p.id for p in self.store.list_by_patient("p1").unwrap()]
        assert ids == [newer.id, older.id]


def test_store_requires_a_backend():
    with pytest.raises(ValueError):
        PlanStore()
