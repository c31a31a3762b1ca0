"""
Join codes for shared rides.

A code is `SHARED_CODE_LENGTH` (4) characters drawn uniformly from [A-Z0-9],
i.e. 36**4 = 1,679,616 combinations. Uniqueness is probabilistic: a fresh code
is checked against the store and regenerated on collision, up to
`SHARED_CODE_MAX_ATTEMPTS` (6) times. With N live codes the chance a single
attempt collides is N / 1.68M, so at campus volumes (a few thousand rides) six
straight collisions are practically impossible. The unique index on
`Ride.shared_code` still settles the rare race between two creators that
drew the same free code at the same moment.
"""

import logging
import secrets
import string
from typing import Callable, Optional

from django.conf import settings

from .exceptions import SharedCodeExhaustedError

logger = logging.getLogger(__name__)

SHARED_CODE_ALPHABET = string.ascii_uppercase + string.digits


def _code_length() -> int:
    return getattr(settings, "SHARED_CODE_LENGTH", 4)


def generate_shared_code(length: Optional[int] = None) -> str:
    """Random uppercase alphanumeric code."""
    length = length or _code_length()
    return "".join(secrets.choice(SHARED_CODE_ALPHABET) for _ in range(length))


def normalize_shared_code(code: str) -> str:
    """Codes are matched case-insensitively; storage is uppercase."""
    return (code or "").strip().upper()


def is_well_formed_shared_code(code: str) -> bool:
    return len(code) == _code_length() and all(c in SHARED_CODE_ALPHABET for c in code)


def create_unique_shared_code(
    exists: Callable[[str], bool],
    max_attempts: Optional[int] = None,
) -> str:
    """
    Generate a code for which `exists(code)` is False.

    Raises:
        SharedCodeExhaustedError: every attempt collided
    """
    max_attempts = max_attempts or getattr(settings, "SHARED_CODE_MAX_ATTEMPTS", 6)

    for attempt in range(1, max_attempts + 1):
        code = generate_shared_code()
        if not exists(code):
            return code
        logger.warning("Shared code collision on attempt %s/%s", attempt, max_attempts)

    logger.error("Shared code generation exhausted after %s attempts", max_attempts)
    raise SharedCodeExhaustedError()
