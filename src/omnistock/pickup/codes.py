"""Pickup code generation.

Codes are short, uppercase and avoid characters that are easy to misread
(0/O, 1/I/L). Uniqueness is checked against the codes already in use at the
location; the caller serializes generation per location.
"""

import secrets

from omnistock import settings

CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
MAX_ATTEMPTS = 100


def generate_pickup_code(taken: set[str] | frozenset[str] = frozenset(), length: int | None = None) -> str:
    """A random code not present in ``taken`` (compared case-insensitively)."""
    length = length or settings.pickup_code_length()
    taken_upper = {code.upper() for code in taken}
    for _ in range(MAX_ATTEMPTS):
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
        if code not in taken_upper:
            return code
    raise RuntimeError(f"Could not generate a unique pickup code after {MAX_ATTEMPTS} attempts")


def codes_match(expected: str | None, presented: str | None) -> bool:
    if not expected or not presented:
        return False
    return secrets.compare_digest(expected.strip().upper(), presented.strip().upper())
