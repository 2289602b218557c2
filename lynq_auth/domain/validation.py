"""Pure input checks. Each returns ``None`` when the value is acceptable,
otherwise the message of the first rule it breaks."""
from __future__ import annotations
import re
from typing import Callable, Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SPECIAL_CHARS = '!@#$%^&*(),.?":{}|<>'
MIN_PASSWORD_LENGTH = 8

# order matters: the first failing rule is the one reported
PASSWORD_RULES: list[tuple[Callable[[str], bool], str]] = [
    (lambda p: len(p) >= MIN_PASSWORD_LENGTH, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"),
    (lambda p: any(c.isascii() and c.isupper() for c in p), "Password must contain at least one uppercase letter"),
    (lambda p: any(c.isascii() and c.islower() for c in p), "Password must contain at least one lowercase letter"),
    (lambda p: any(c.isascii() and c.isdigit() for c in p), "Password must contain at least one number"),
    (lambda p: any(c in SPECIAL_CHARS for c in p), "Password must contain at least one special character (!@#$%^&*)"),
]


def normalize_email(email: str) -> str:
    return email.strip().lower()


def email_violation(email: str) -> Optional[str]:
    if not EMAIL_RE.match(email):
        return "Invalid email format"
    return None


def password_violation(password: str) -> Optional[str]:
    for ok, message in PASSWORD_RULES:
        if not ok(password):
            return message
    return None


def default_display_name(email: str) -> str:
    return email.split("@", 1)[0]
