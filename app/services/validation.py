from __future__ import annotations

import re
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_DIGITS = 10
PASSWORD_MIN_LENGTH = 8


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value or ""))


def normalize_phone(value: str) -> Optional[str]:
    """Strip everything but digits; ``None`` unless exactly ten remain."""
    digits = re.sub(r"\D", "", value or "")
    if len(digits) != PHONE_DIGITS:
        return None
    return digits


def password_problem(password: str, confirm: str) -> Optional[str]:
    """Return the first password policy violation, or ``None`` when acceptable."""
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    if not re.search(r"[A-Z]", password):
        return "Password must contain an uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain a lowercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain a number"
    if not re.search(r"[^A-Za-z0-9]", password):
        return "Password must contain a special character"
    if password != confirm:
        return "Passwords do not match"
    return None
