"""Tests for new-patient form validation and age derivation."""
from datetime import date

from careplan.schemas import PatientForm
from careplan.services.validation import calculate_age, validate_patient_form


def _form(**overrides):
    fields = dict(
        name="鈴木 一郎",
        gender="男性",
        birthdate=date(1945, 5, 15),
        address="東京都新宿区西新宿1-1-1",
        phone="03-1234-5678",
    )
    fields.update(overrides)
    return PatientForm(**fields)


class TestCalculateAge:
    def test_birthday_already_passed(self):
        assert calculate_age(date(1945, 5, 15), today=date(2025, 6, 1)) == 80

    def test_birthday_not_yet_reached(self):
        assert calculate_age(date(1945, 5, 15), today=date(2025, 5, 14)) == 79

    def test_on_the_birthday(self):
        assert calculate_age(date(1945, 5, 15), today=date(2025, 5, 15)) == 80

    def test_missing_birthdate_is_zero(self):
        assert calculate_age(None) == 0


class TestValidatePatientForm:
    def test_valid_form_has_no_errors(self):
        assert validate_patient_form(_form()) == {}

    def test_empty_form_reports_every_required_field(self):
        errors = validate_patient_form(PatientForm())
        assert errors == {
            "name": "患者名を入力してください",
            "birthdate": "生年月日を入力してください",
            "gender": "性別を選択してください",
            "address": "住所を入力してください",
        }

    def test_whitespace_only_name_is_missing(self):
        assert "name" in validate_patient_form(_form(name="   "))

    def test_unknown_gender_is_rejected(self):
        assert validate_patient_form(_form(gender="male"))["gender"] == "性別を選択してください"

    def test_phone_is_optional(self):
        assert validate_patient_form(_form(phone="")) == {}

    def test_phone_without_hyphens_is_accepted(self):
        assert validate_patient_form(_form(phone="0312345678")) == {}

    def test_malformed_phone_is_rejected(self):
        errors = validate_patient_form(_form(phone="12-ab-3456"))
        assert errors == {"phone": "正しい電話番号の形式で入力してください"}
