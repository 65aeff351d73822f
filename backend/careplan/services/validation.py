"""
New-patient form validation.
Errors are returned per field so they can be shown inline next to the input.
"""
import re
from datetime import date
from typing import Dict, Optional

from ..models.patient import Gender

PHONE_PATTERN = re.compile(r"^\d{2,4}-?\d{2,4}-?\d{3,4}$")

GENDER_VALUES = {g.value for g in Gender}


def calculate_age(birthdate: Optional[date], today: Optional[date] = None) -> int:
    """Whole years since birthdate; 0 when no birthdate is given."""
    if birthdate is None:
        return 0
    today = today or date.today()
    age = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        age -= 1
    return age


def validate_patient_form(form) -> Dict[str, str]:
    """
    Check a ``PatientForm`` (or a ``PatientUpdate`` merged over an existing
    record) and return {field: message}. An empty dict means the form is valid.
    """
    errors: Dict[str, str] = {}

    if not (form.name or "").strip():
        errors["name"] = "患者名を入力してください"

    if not form.birthdate:
        errors["birthdate"] = "生年月日を入力してください"

    if (form.gender or "") not in GENDER_VALUES:
        errors["gender"] = "性別を選択してください"

    if not (form.address or "").strip():
        errors["address"] = "住所を入力してください"

    # Phone is optional; only check the format when something was entered
    phone = (form.phone or "").strip()
    if phone and not PHONE_PATTERN.match(phone):
        errors["phone"] = "正しい電話番号の形式で入力してください"

    return errors
