"""
Canonical forms for personal identifiers (phone numbers, emails).

Both report evidence and user records are stored in canonical form so that
identifier matching is a plain equality check (and an indexed query).
"""

import re
from typing import Optional

_PHONE_STRIP = re.compile(r"[\s\-().]")


def normalize_phone(phone_number: Optional[str]) -> Optional[str]:
    """Strip formatting characters, keep a leading '+'. Empty input → None."""
    if not phone_number or not phone_number.strip():
        return None
    return _PHONE_STRIP.sub("", phone_number.strip())


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Trim and lower-case. Empty input → None."""
    if not email or not email.strip():
        return None
    return email.strip().lower()
