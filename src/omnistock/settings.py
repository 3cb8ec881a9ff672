"""Runtime tunables read from the environment.

Values are read on every call so tests can override them with monkeypatch.
"""

import os


def _float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


def _int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def lock_timeout() -> float:
    """Seconds to wait for a row lock before raising Contention."""
    return _float("OMNISTOCK_LOCK_TIMEOUT", 0.5)


def contention_retries() -> int:
    """Attempts made by run_serialized before Contention surfaces."""
    return _int("OMNISTOCK_CONTENTION_RETRIES", 3)


def retry_backoff() -> float:
    return _float("OMNISTOCK_RETRY_BACKOFF", 0.01)


def pickup_expiry_days() -> int:
    return _int("OMNISTOCK_PICKUP_EXPIRY_DAYS", 14)


def pickup_code_length() -> int:
    return _int("OMNISTOCK_PICKUP_CODE_LENGTH", 6)


def max_split_locations() -> int:
    return _int("OMNISTOCK_MAX_SPLIT_LOCATIONS", 3)
