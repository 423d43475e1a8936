"""
Input validators - framework-agnostic, pure functions.

Validators raise ``errors.ValidationError`` with the message the client sees,
so route handlers can call them directly.
"""

from __future__ import annotations

import re
from typing import Literal, Optional

from errors import ValidationError

Role = Literal["user", "seller"]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    """Trim and lower-case *email* so it is stable as a lookup and store key."""
    return email.strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* has a ``local@domain.tld`` shape with no spaces."""
    return bool(_EMAIL_RE.match(email))


def validate_registration_data(
    role: Role,
    *,
    name: Optional[str],
    email: Optional[str],
    password: Optional[str],
    phone_number: Optional[str] = None,
    country: Optional[str] = None,
) -> None:
    """Check the fields a registration request must carry for *role*.

    Sellers additionally need a phone number and a country.

    Raises:
        ValidationError: "Missing required fields" or "Invalid email format".
    """
    if not name or not email or not password:
        raise ValidationError("Missing required fields")
    if role == "seller" and (not phone_number or not country):
        raise ValidationError("Missing required fields")

    if not validate_email(email):
        raise ValidationError("Invalid email format", field="email")
