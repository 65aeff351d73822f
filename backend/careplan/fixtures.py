"""
Fixed sample data served in offline/partial demo mode and used as the
fallback when the backend cannot be reached.
"""
from datetime import date, datetime
from typing import List, Optional

from .schemas import CarePlanRecord, PatientRecord
from .services.validation import calculate_age

DEMO_USER_ID = "12345"
DEMO_USER_NAME = "山田 花子"
DEMO_USER_ROLE = "看護師"


def _patient(**fields) -> PatientRecord:
    fields.setdefault("age", calculate_age(fields["birthdate"]))
    return PatientRecord(user_id=DEMO_USER_ID, **fields)


def demo_patients() -> List[PatientRecord]:
    return [
        _patient(
            id="1",
            name="鈴木 一郎",
            gender="男性",
            birthdate=date(1945, 5, 15),
            address="東京都新宿区西新宿1-1-1",
            phone="03-1234-5678",
            emergency_contact="鈴木花子（娘）090-1234-5678",
            medical_history="高血圧、糖尿病、脳梗塞後遺症",
            primary_doctor="佐藤医師・東京中央病院",
            insurance_type="介護保険",
            care_level="要介護2",
            created_at=datetime(2025, 1, 15),
        ),
        _patient(
            id="2",
            name="田中 花子",
            gender="女性",
            birthdate=date(1950, 10, 20),
            address="東京都渋谷区渋谷2-2-2",
            phone="03-2345-6789",
            emergency_contact="田中太郎（息子）090-2345-6789",
            medical_history="関節リウマチ、骨粗鬆症",
            primary_doctor="高橋医師・渋谷総合病院",
            insurance_type="介護保険",
            care_level="要介護1",
            created_at=datetime(2025, 2, 1),
        ),
        _patient(
            id="3",
            name="佐藤 健太",
            gender="男性",
            birthdate=date(1940, 3, 10),
            address="東京都品川区大崎3-3-3",
            phone="03-3456-7890",
            emergency_contact="佐藤美香（妻）03-3456-7890",
            medical_history="パーキンソン病、心不全",
            primary_doctor="伊藤医師・品川医療センター",
            insurance_type="介護保険",
            care_level="要介護3",
            created_at=datetime(2025, 2, 15),
        ),
    ]


def demo_care_plans() -> List[CarePlanRecord]:
    return [
        CarePlanRecord(
            id="101",
            patient_id="1",
            user_id=DEMO_USER_ID,
            visit_type="both",
            health_status="高血圧症状あり。血圧140-160/90前後で推移。",
            adl_mobility="partial",
            adl_eating="independent",
            adl_toilet="supervision",
            adl_bathing="partial",
            patient_family_request="自宅での生活を継続したい。",
            doctor_instructions="血圧管理と転倒予防に注意。",
            staff_notes="認知機能の低下傾向がみられる。",
            goals=["血圧を安定させる", "室内歩行の安定", "服薬管理の自立"],
            issues=["高血圧", "転倒リスク", "服薬管理"],
            supports=["血圧測定と記録", "歩行訓練", "服薬カレンダーの活用"],
            status="completed",
            month=3,
            year=2025,
            created_at=datetime(2025, 3, 1),
            updated_at=datetime(2025, 3, 1),
        ),
        CarePlanRecord(
            id="102",
            patient_id="2",
            user_id=DEMO_USER_ID,
            visit_type="nurse",
            health_status="関節痛あり。疼痛コントロール良好。",
            adl_mobility="supervision",
            adl_eating="independent",
            adl_toilet="independent",
            adl_bathing="partial",
            patient_family_request="痛みなく日常生活を送りたい。",
            doctor_instructions="疼痛管理と関節可動域の維持。",
            staff_notes="家族の介護負担が大きい。",
            goals=["疼痛コントロール", "関節可動域の維持", "家族の介護負担軽減"],
            issues=["関節痛", "活動性低下", "家族の介護負担"],
            supports=["疼痛評価と管理", "関節運動の実施", "家族への介護指導"],
            status="completed",
            month=3,
            year=2025,
            created_at=datetime(2025, 3, 5),
            updated_at=datetime(2025, 3, 5),
        ),
        CarePlanRecord(
            id="103",
            patient_id="3",
            user_id=DEMO_USER_ID,
            visit_type="both",
            health_status="パーキンソン症状進行中。歩行困難。",
            adl_mobility="complete",
            adl_eating="partial",
            adl_toilet="complete",
            adl_bathing="complete",
            patient_family_request="安全に生活したい。",
            doctor_instructions="嚥下機能評価と誤嚥予防。",
            staff_notes="栄養状態に注意が必要。",
            goals=["安全な食事摂取", "褥瘡予防", "栄養状態の改善"],
            issues=["嚥下機能低下", "褥瘡リスク", "低栄養"],
            supports=["食事姿勢と食形態の調整", "体位変換と皮膚観察", "栄養評価と指導"],
            status="completed",
            month=2,
            year=2025,
            created_at=datetime(2025, 2, 10),
            updated_at=datetime(2025, 2, 10),
        ),
    ]


def fixture_patient(patient_id: str) -> Optional[PatientRecord]:
    return next((p for p in demo_patients() if p.id == patient_id), None)


def fixture_plans_for(patient_id: str) -> List[CarePlanRecord]:
    """Fixture plans for one patient, newest period first."""
    plans = [p for p in demo_care_plans() if p.patient_id == patient_id]
    return sorted(plans, key=lambda p: (p.year, p.month, p.updated_at), reverse=True)


def fixture_plan_for_period(patient_id: str, month: int, year: int) -> Optional[CarePlanRecord]:
    matches = [p for p in fixture_plans_for(patient_id) if p.month == month and p.year == year]
    return matches[0] if matches else None
