"""Human-shareable bill codes"""

import secrets

# Digits and uppercase letters without the look-alikes 0, O, 1 and I
SHORT_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
SHORT_CODE_LENGTH = 6


def generate_short_code(length: int = SHORT_CODE_LENGTH) -> str:
    """Draw a code uniformly from the short-code alphabet"""
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))


def normalize_short_code(code: str) -> str:
    """Short codes are matched case-insensitively"""
    return code.strip().upper()


def looks_like_short_code(value: str) -> bool:
    code = normalize_short_code(value)
    return len(code) == SHORT_CODE_LENGTH and all(c in SHORT_CODE_ALPHABET for c in code)
