"""Field checks shared by sign-up, tutor applications and profile edits."""

import re
from typing import Any, Dict

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_DIGITS_RE = re.compile(r"^\d{10,15}$")

MIN_GPA = 3.50
MAX_GPA = 4.00
MIN_PASSWORD_LENGTH = 6


def _to_float(value: Any):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_gpa(gpa: Any) -> bool:
    value = _to_float(gpa)
    return value is not None and MIN_GPA <= value <= MAX_GPA


def validate_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_RE.match(email))


def validate_password(password: Any) -> bool:
    return isinstance(password, str) and len(password) >= MIN_PASSWORD_LENGTH


def validate_phone_number(phone_number: Any) -> bool:
    """10-15 digits once spaces, dashes, brackets and '+' are stripped."""
    if not isinstance(phone_number, str):
        return False
    return bool(PHONE_DIGITS_RE.match(re.sub(r"\D", "", phone_number)))


def validate_subject_selection(subjects: Any) -> bool:
    return isinstance(subjects, (list, tuple)) and len(subjects) > 0


def validate_hourly_rate(hourly_rate: Any) -> bool:
    value = _to_float(hourly_rate)
    return value is not None and value > 0


def validate_tutor_form(form: Dict[str, Any]) -> Dict[str, Any]:
    """Check a tutor sign-up/application form; returns ``is_valid`` and per-field ``errors``."""
    errors = {}

    if not validate_email(form.get("email")):
        errors["email"] = "Please enter a valid email address"
    if "password" in form and not validate_password(form.get("password")):
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if not (form.get("full_name") or "").strip():
        errors["full_name"] = "Full name is required"
    if not validate_gpa(form.get("gpa")):
        errors["gpa"] = "GPA must be at least 3.50 and at most 4.00"
    if not validate_subject_selection(form.get("subjects")):
        errors["subjects"] = "Please select at least one subject"
    if not validate_hourly_rate(form.get("hourly_rate")):
        errors["hourly_rate"] = "Please enter a valid hourly rate"
    if not validate_phone_number(form.get("phone_number")):
        errors["phone_number"] = "Please enter a valid phone number"

    return {"is_valid": not errors, "errors": errors}
