"""Cryptographically random alphanumeric strings."""

import secrets
import string

ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits


def random_string(n: int) -> str:
    """Return ``n`` characters drawn uniformly from ``ALPHABET``."""
    if n < 0:
        raise ValueError("length must not be negative")
    return "".join(secrets.choice(ALPHABET) for _ in range(n))