"""
Random code generators - pure, side-effect-free functions.

All generators use cryptographically secure sources (``secrets`` module).
"""

from __future__ import annotations

import secrets

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp_code() -> str:
    """Generate a cryptographically secure 6-digit numeric OTP.

    Codes are drawn uniformly from 100000–999999 inclusive, so they are always
    six digits and never zero-padded.

    Returns:
        String of six decimal digits.
    """
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))
